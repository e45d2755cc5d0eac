# ============================================================================
# BASE CONTRACTS & ENUMS
# ============================================================================
# EPOCH: 1 - CASCADING DISPATCH
# STATUS: Foundation - Core enums and transition table
# PURPOSE: Define job/workflow status enums shared by engine and stores
# LAST_REVIEWED: 18 OCT 2026
# EXPORTS: JobStatus, WorkflowStatus, ALLOWED_TRANSITIONS
# DEPENDENCIES: enum
# ============================================================================
"""
Base contracts for the cascading orchestrator.

These values cross every boundary:
- Stores (persisted as JSON string values)
- Engine (readiness evaluation, transitions)
- HTTP (run state responses)
"""

from enum import Enum
from typing import Dict, Set


# ============================================================================
# STATUS ENUMS
# ============================================================================

class JobStatus(str, Enum):
    """
    Job lifecycle states within one workflow instance.

    State transitions:
        PENDING -> IN_PROGRESS -> COMPLETE
                               -> FAILED

    A job with no entry in the progress record is PENDING.
    """
    PENDING = "pending"            # Waiting for dependencies (or never evaluated)
    IN_PROGRESS = "in_progress"    # Claimed and handed to the dispatcher
    COMPLETE = "complete"          # Reported finished
    FAILED = "failed"              # Reported failed, dependents are blocked

    def is_terminal(self) -> bool:
        """Check if this is a terminal state (no further transitions)."""
        return self in (JobStatus.COMPLETE, JobStatus.FAILED)

    def can_transition_to(self, new_status: "JobStatus") -> bool:
        """Check the transition table. Same-state is not a transition."""
        return new_status in ALLOWED_TRANSITIONS[self]


class WorkflowStatus(str, Enum):
    """
    Derived workflow summary. Never stored.

        PENDING  - nothing claimed yet
        RUNNING  - at least one job ready or in progress
        COMPLETE - every job complete
        BLOCKED  - not complete and nothing can make progress
    """
    PENDING = "pending"
    RUNNING = "running"
    COMPLETE = "complete"
    BLOCKED = "blocked"


ALLOWED_TRANSITIONS: Dict[JobStatus, Set[JobStatus]] = {
    JobStatus.PENDING: {JobStatus.IN_PROGRESS},
    JobStatus.IN_PROGRESS: {JobStatus.COMPLETE, JobStatus.FAILED},
    JobStatus.COMPLETE: set(),
    JobStatus.FAILED: set(),
}


__all__ = ["JobStatus", "WorkflowStatus", "ALLOWED_TRANSITIONS"]
