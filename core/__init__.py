# ============================================================================
# CORE MODULE
# ============================================================================
# EPOCH: 1 - CASCADING DISPATCH
# STATUS: Core module initialization
# PURPOSE: Export core contracts, models and errors
# LAST_REVIEWED: 18 OCT 2026
# ============================================================================

from core.contracts import JobStatus, WorkflowStatus
from core.errors import (
    OrchestrationError,
    ValidationError,
    NotFoundError,
    UnknownJobError,
    DuplicateJobError,
    DispatchError,
    InvalidTransitionError,
    StoreError,
)
from core.models import (
    WorkflowDefinition,
    JobSpec,
    ProgressRecord,
    WorkflowRunState,
    JobMessage,
)

__all__ = [
    # Enums
    "JobStatus",
    "WorkflowStatus",
    # Errors
    "OrchestrationError",
    "ValidationError",
    "NotFoundError",
    "UnknownJobError",
    "DuplicateJobError",
    "DispatchError",
    "InvalidTransitionError",
    "StoreError",
    # Models
    "WorkflowDefinition",
    "JobSpec",
    "ProgressRecord",
    "WorkflowRunState",
    "JobMessage",
]
