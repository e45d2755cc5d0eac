# ============================================================================
# ORCHESTRATOR FACTORY
# ============================================================================
# EPOCH: 1 - CASCADING DISPATCH
# STATUS: Core - Wiring from configuration
# PURPOSE: Build store, dispatcher, runner and orchestrator from Defaults
# CREATED: 18 OCT 2026
# ============================================================================
"""
Orchestrator Factory

The only place configuration is read. The engine itself takes explicit
arguments, so tests and embedders can skip this module entirely.

Usage:
    runtime = await build_runtime(registry)
    await runtime.orchestrator.start(definition)
    ...
    await runtime.close()
"""

import logging
from dataclasses import dataclass
from typing import Optional

from core.config import Defaults, DispatchBackend, StoreBackend, get_defaults
from handlers.registry import JobRegistry
from messaging.config import MessagingConfig
from messaging.dispatcher import InProcessDispatcher, JobDispatcher
from messaging.publisher import ServiceBusDispatcher
from repositories.base import WorkflowStore
from repositories.database import close_pool, init_pool
from repositories.file_store import FileWorkflowStore
from repositories.memory_store import InMemoryWorkflowStore
from repositories.postgres_store import PostgresWorkflowStore
from worker.executor import JobRunner
from .cascade import CompletionHook, Orchestrator

logger = logging.getLogger(__name__)


@dataclass
class CascadeRuntime:
    """Everything build_runtime wired together."""
    orchestrator: Orchestrator
    store: WorkflowStore
    dispatcher: JobDispatcher
    runner: JobRunner
    registry: JobRegistry
    uses_pool: bool = False

    async def close(self) -> None:
        await self.dispatcher.close()
        if self.uses_pool:
            await close_pool()
        logger.info("Cascade runtime closed")


async def build_store(defaults: Defaults) -> WorkflowStore:
    """Create the configured workflow store."""
    config = defaults.store
    backend = StoreBackend(config.backend)

    if backend == StoreBackend.MEMORY:
        store = InMemoryWorkflowStore(key_prefix=config.key_prefix, ttl_seconds=config.ttl_seconds)
    elif backend == StoreBackend.FILE:
        store = FileWorkflowStore(
            directory=config.file_dir,
            key_prefix=config.key_prefix,
            ttl_seconds=config.ttl_seconds,
        )
    else:
        pool = await init_pool()
        store = PostgresWorkflowStore(
            pool,
            schema=config.schema,
            table=config.table,
            key_prefix=config.key_prefix,
            ttl_seconds=config.ttl_seconds,
        )
        await store.ensure_schema()

    logger.info(
        f"Using {backend.value} store (prefix={config.key_prefix}, ttl={config.ttl_seconds})"
    )
    return store


def build_dispatcher(
    defaults: Defaults,
    registry: JobRegistry,
    runner: JobRunner,
) -> JobDispatcher:
    """Create the configured dispatcher."""
    backend = DispatchBackend(defaults.dispatch.backend)

    if backend == DispatchBackend.SERVICE_BUS:
        dispatcher = ServiceBusDispatcher(MessagingConfig.from_env(), registry=registry)
    else:
        dispatcher = InProcessDispatcher(registry, runner)

    logger.info(f"Using {backend.value} dispatcher")
    return dispatcher


async def build_runtime(
    registry: JobRegistry,
    defaults: Optional[Defaults] = None,
    on_workflow_complete: Optional[CompletionHook] = None,
) -> CascadeRuntime:
    """
    Wire store, dispatcher, runner and orchestrator.

    Args:
        registry: Jobs this process can run
        defaults: Configuration (defaults to the environment)
        on_workflow_complete: Completion hook passed to the orchestrator
    """
    defaults = defaults or get_defaults()

    store = await build_store(defaults)
    runner = JobRunner(registry, job_timeout=defaults.engine.job_timeout_seconds)
    dispatcher = build_dispatcher(defaults, registry, runner)

    orchestrator = Orchestrator(
        progress_store=store,
        definition_store=store,
        dispatcher=dispatcher,
        on_workflow_complete=on_workflow_complete,
        operation_timeout=defaults.engine.operation_timeout_seconds,
        fail_unknown_jobs=defaults.engine.fail_unknown_jobs,
    )
    runner.attach(orchestrator)

    return CascadeRuntime(
        orchestrator=orchestrator,
        store=store,
        dispatcher=dispatcher,
        runner=runner,
        registry=registry,
        uses_pool=isinstance(store, PostgresWorkflowStore),
    )


__all__ = ["CascadeRuntime", "build_store", "build_dispatcher", "build_runtime"]
