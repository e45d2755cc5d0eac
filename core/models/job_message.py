# ============================================================================
# JOB MESSAGE MODEL
# ============================================================================
# EPOCH: 1 - CASCADING DISPATCH
# STATUS: Core model - Queue payload for dispatched jobs
# PURPOSE: Define what a queue-backed dispatcher sends to job runners
# LAST_REVIEWED: 18 OCT 2026
# EXPORTS: JobMessage
# DEPENDENCIES: pydantic
# ============================================================================
"""
Job Message

What goes ON the queue when a queue-backed dispatcher hands a job to the
execution backend. Runners receive this, execute the registered handler and
report completion back through the orchestrator.

Jobs are DUMB. They don't know about:
- The overall DAG structure
- What runs next
- Whether they're "last"
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class JobMessage(BaseModel):
    """Message describing one dispatched job."""

    workflow_id: str = Field(..., min_length=1, max_length=256)
    job_name: str = Field(..., min_length=1, max_length=256)
    args: List[Any] = Field(default_factory=list)

    dispatched_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    # Correlation (for tracing)
    correlation_id: Optional[str] = Field(default=None, max_length=64)

    @property
    def message_id(self) -> str:
        """Stable per (workflow, job) so that queue-side duplicate detection works."""
        return f"{self.workflow_id}:{self.job_name}"

    def to_queue_message(self) -> Dict[str, Any]:
        """
        Serialize to JSON for the queue.

        Returns dict ready for json.dumps().
        """
        return {
            "workflow_id": self.workflow_id,
            "job_name": self.job_name,
            "args": self.args,
            "dispatched_at": self.dispatched_at.isoformat(),
            "correlation_id": self.correlation_id,
        }

    @classmethod
    def from_queue_message(cls, data: Dict[str, Any]) -> "JobMessage":
        """Deserialize from a queue message body."""
        return cls.model_validate(data)


__all__ = ["JobMessage"]
