# ============================================================================
# ORCHESTRATOR ENGINE
# ============================================================================
# EPOCH: 1 - CASCADING DISPATCH
# STATUS: Core - Engine components
# PURPOSE: DAG evaluation
# CREATED: 18 OCT 2026
# ============================================================================
"""
Orchestrator Engine Components

- evaluator: DAG dependency resolution, readiness and blocking
"""

from orchestrator.engine.evaluator import (
    DAGEvaluator,
    DependencyGraph,
    GraphBuilder,
    get_evaluator,
    find_ready_jobs,
    validate_workflow,
)

__all__ = [
    "DAGEvaluator",
    "DependencyGraph",
    "GraphBuilder",
    "get_evaluator",
    "find_ready_jobs",
    "validate_workflow",
]
