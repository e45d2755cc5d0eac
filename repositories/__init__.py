# ============================================================================
# REPOSITORIES MODULE
# ============================================================================
# EPOCH: 1 - CASCADING DISPATCH
# STATUS: Core - Persistence layer
# PURPOSE: Progress and definition stores for workflow instances
# CREATED: 18 OCT 2026
# ============================================================================
"""
Repositories Module

Stores for workflow definitions and job progress. All share one key scheme
("<prefix>:<workflow_id>:<concern>") and one async interface.

Usage:
    from repositories import InMemoryWorkflowStore

    store = InMemoryWorkflowStore(ttl_seconds=604800)
    orchestrator = Orchestrator(store, store, dispatcher)

    # Shared across processes
    pool = await get_pool()
    store = PostgresWorkflowStore(pool)
    await store.ensure_schema()
"""

from .base import ProgressStore, DefinitionStore, WorkflowStore
from .memory_store import InMemoryWorkflowStore
from .file_store import FileWorkflowStore
from .postgres_store import PostgresWorkflowStore
from .database import get_pool, init_pool, close_pool, get_connection_string

__all__ = [
    # Contract
    "ProgressStore",
    "DefinitionStore",
    "WorkflowStore",
    # Implementations
    "InMemoryWorkflowStore",
    "FileWorkflowStore",
    "PostgresWorkflowStore",
    # Pool
    "get_pool",
    "init_pool",
    "close_pool",
    "get_connection_string",
]
