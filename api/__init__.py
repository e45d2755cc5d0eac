# ============================================================================
# API MODULE
# ============================================================================
# EPOCH: 1 - CASCADING DISPATCH
# STATUS: Core - FastAPI routes
# PURPOSE: HTTP boundary for the orchestrator
# CREATED: 18 OCT 2026
# ============================================================================
"""
API Module

FastAPI routes for the cascading orchestrator.
"""

from .routes import router, set_orchestrator
from .schemas import (
    WorkflowCreate,
    JobFailure,
    CascadeResponse,
)

__all__ = [
    "router",
    "set_orchestrator",
    "WorkflowCreate",
    "JobFailure",
    "CascadeResponse",
]
