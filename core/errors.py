# ============================================================================
# ERROR TAXONOMY
# ============================================================================
# EPOCH: 1 - CASCADING DISPATCH
# STATUS: Foundation - Exceptions raised by engine, stores and dispatchers
# PURPOSE: One exception hierarchy with workflow/job context
# CREATED: 18 OCT 2026
# ============================================================================
"""
Orchestration Errors

Every error carries optional workflow_id / job_name context so that callers
and log lines can point at the exact job without parsing messages.

    OrchestrationError
    ├── ValidationError          malformed definition, nothing persisted
    ├── NotFoundError            no stored definition (never started / expired)
    ├── UnknownJobError          no registered counterpart for a job name
    ├── DuplicateJobError        job name registered twice
    ├── DispatchError            backend refused or timed out
    ├── InvalidTransitionError   status forbids the requested transition
    └── StoreError               persistence failure

A compare-and-set rejection is not an exception: it is reported on the
cascade result and the job is skipped.
"""

from typing import List, Optional


class OrchestrationError(Exception):
    """Base exception for orchestration failures."""

    def __init__(
        self,
        message: str,
        workflow_id: Optional[str] = None,
        job_name: Optional[str] = None,
    ):
        self.workflow_id = workflow_id
        self.job_name = job_name
        super().__init__(message)


class ValidationError(OrchestrationError):
    """Raised when a workflow definition is malformed."""

    def __init__(
        self,
        message: str,
        errors: Optional[List[str]] = None,
        workflow_id: Optional[str] = None,
    ):
        self.errors = errors or [message]
        super().__init__(message, workflow_id=workflow_id)


class NotFoundError(OrchestrationError):
    """Raised when a workflow (or a job within it) does not exist."""
    pass


class UnknownJobError(OrchestrationError):
    """Raised when no handler is registered for a job name."""

    def __init__(self, job_name: str, workflow_id: Optional[str] = None):
        super().__init__(
            f"No handler registered for job '{job_name}'",
            workflow_id=workflow_id,
            job_name=job_name,
        )


class DuplicateJobError(OrchestrationError):
    """Raised when a job name is already registered."""

    def __init__(self, job_name: str):
        super().__init__(f"Job already registered: {job_name}", job_name=job_name)


class DispatchError(OrchestrationError):
    """Raised when the execution backend did not accept a job."""
    pass


class InvalidTransitionError(OrchestrationError):
    """Raised when a notification conflicts with the job's current status."""

    def __init__(
        self,
        workflow_id: str,
        job_name: str,
        current: str,
        target: str,
    ):
        self.current = current
        self.target = target
        super().__init__(
            f"Job '{job_name}' in workflow '{workflow_id}' cannot move "
            f"from {current} to {target}",
            workflow_id=workflow_id,
            job_name=job_name,
        )


class StoreError(OrchestrationError):
    """Raised when a progress/definition store operation fails."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        workflow_id: Optional[str] = None,
    ):
        self.operation = operation
        super().__init__(message, workflow_id=workflow_id)


__all__ = [
    "OrchestrationError",
    "ValidationError",
    "NotFoundError",
    "UnknownJobError",
    "DuplicateJobError",
    "DispatchError",
    "InvalidTransitionError",
    "StoreError",
]
