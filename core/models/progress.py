# ============================================================================
# PROGRESS RECORD & RUN STATE MODELS
# ============================================================================
# EPOCH: 1 - CASCADING DISPATCH
# STATUS: Core model - Per-workflow job status
# PURPOSE: Track which jobs have been claimed, completed or failed
# LAST_REVIEWED: 18 OCT 2026
# EXPORTS: ProgressRecord, WorkflowRunState
# DEPENDENCIES: pydantic
# ============================================================================
"""
Progress Models

Key concept:
- WorkflowDefinition = WHAT to run (immutable)
- ProgressRecord     = WHAT HAS RUN (single source of truth, stored)
- WorkflowRunState   = (definition, progress) joined for inspection, never stored

A job missing from the ProgressRecord is PENDING. Stores only ever move a job
forward along PENDING -> IN_PROGRESS -> COMPLETE | FAILED.
"""

from typing import Any, Dict, List, Mapping, Set

from pydantic import BaseModel, Field, computed_field

from core.contracts import JobStatus, WorkflowStatus


class ProgressRecord(BaseModel):
    """Snapshot of job statuses for one workflow instance."""

    jobs: Dict[str, JobStatus] = Field(default_factory=dict)

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "ProgressRecord":
        """Rebuild from the persisted JSON form {job: status}."""
        return cls(jobs={job: JobStatus(status) for job, status in record.items()})

    def to_record(self) -> Dict[str, str]:
        """Serialize to the persisted JSON form {job: status}."""
        return {job: status.value for job, status in self.jobs.items()}

    def status_of(self, job_name: str) -> JobStatus:
        """Status of a job; absent entries are PENDING."""
        return self.jobs.get(job_name, JobStatus.PENDING)

    def with_status(self, job_name: str, status: JobStatus) -> "ProgressRecord":
        """Copy of this record with one job's status replaced."""
        return ProgressRecord(jobs={**self.jobs, job_name: status})

    def jobs_with(self, status: JobStatus) -> Set[str]:
        return {job for job, s in self.jobs.items() if s == status}

    def all_complete(self, job_names) -> bool:
        """True if every named job is COMPLETE."""
        return all(self.status_of(job) == JobStatus.COMPLETE for job in job_names)

    def __len__(self) -> int:
        return len(self.jobs)


class WorkflowRunState(BaseModel):
    """
    Derived view of a workflow instance.

    Built by DAGEvaluator.run_state() from the two stores so that a restarted
    process sees exactly what the durable state says.
    """

    workflow_id: str
    jobs: Dict[str, JobStatus] = Field(default_factory=dict)
    ready: List[str] = Field(default_factory=list)
    in_progress: List[str] = Field(default_factory=list)
    complete: List[str] = Field(default_factory=list)
    failed: List[str] = Field(default_factory=list)
    blocked: List[str] = Field(
        default_factory=list,
        description="Pending jobs with a failed job upstream; they will never run",
    )

    @computed_field
    @property
    def is_complete(self) -> bool:
        return bool(self.jobs) and len(self.complete) == len(self.jobs)

    @computed_field
    @property
    def is_stalled(self) -> bool:
        """Not complete and nothing ready or running."""
        return not self.is_complete and not self.ready and not self.in_progress

    @computed_field
    @property
    def status(self) -> WorkflowStatus:
        if self.is_complete:
            return WorkflowStatus.COMPLETE
        if self.failed and self.is_stalled:
            return WorkflowStatus.BLOCKED
        if self.in_progress or self.complete or self.failed:
            return WorkflowStatus.RUNNING
        return WorkflowStatus.PENDING


__all__ = ["ProgressRecord", "WorkflowRunState"]
