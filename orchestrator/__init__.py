# ============================================================================
# ORCHESTRATOR MODULE
# ============================================================================
# EPOCH: 1 - CASCADING DISPATCH
# STATUS: Core - Cascading dispatch engine
# PURPOSE: Dispatch ready jobs and cascade on completion
# CREATED: 18 OCT 2026
# ============================================================================
"""
Orchestrator Module

Usage:
    from orchestrator import Orchestrator

    orchestrator = Orchestrator(store, store, dispatcher)
    await orchestrator.start(definition)
    await orchestrator.notify_completed("wf-123", "a_job")
"""

from .cascade import Orchestrator, CascadeResult, CompletionHook
from .factory import CascadeRuntime, build_runtime

__all__ = [
    "Orchestrator",
    "CascadeResult",
    "CompletionHook",
    "CascadeRuntime",
    "build_runtime",
]
