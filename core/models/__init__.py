# ============================================================================
# MODELS MODULE
# ============================================================================
# EPOCH: 1 - CASCADING DISPATCH
# STATUS: Model exports
# PURPOSE: Central export point for all Pydantic models
# LAST_REVIEWED: 18 OCT 2026
# ============================================================================
"""
Models Module - Central Export Point

- WorkflowDefinition / JobSpec: the DAG (immutable, stored once)
- ProgressRecord: job statuses (stored, mutated only through CAS)
- WorkflowRunState: derived view, never stored
- JobMessage: queue payload for dispatched jobs
"""

from core.models.workflow import WorkflowDefinition, JobSpec
from core.models.progress import ProgressRecord, WorkflowRunState
from core.models.job_message import JobMessage

__all__ = [
    # Workflow
    "WorkflowDefinition",
    "JobSpec",
    # Progress
    "ProgressRecord",
    "WorkflowRunState",
    # Queue
    "JobMessage",
]
