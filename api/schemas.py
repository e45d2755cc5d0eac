# ============================================================================
# API SCHEMAS
# ============================================================================
# EPOCH: 1 - CASCADING DISPATCH
# STATUS: Core - Request/Response schemas
# PURPOSE: Pydantic models for API validation
# CREATED: 18 OCT 2026
# ============================================================================
"""
API Schemas

Request and response models for the API.

Job specs are accepted as loose dicts here; the shape is checked by
WorkflowDefinition.from_mapping so that a malformed DAG is a 400 with the
same messages as any other caller gets, not a 422.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


# ============================================================================
# REQUEST SCHEMAS
# ============================================================================

class WorkflowCreate(BaseModel):
    """Request to start a workflow instance."""
    workflow_id: str = Field(..., min_length=1, max_length=256, description="Instance ID")
    jobs: Dict[str, Any] = Field(
        ...,
        description="Map of job name -> {deps: [...], args: [...]}",
    )

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "workflow_id": "wf-123",
                    "jobs": {
                        "a_job": {"deps": [], "args": [1, 2]},
                        "b_job": {"deps": ["a_job"]},
                        "c_job": {"deps": ["a_job"]},
                        "d_job": {"deps": ["b_job", "c_job"], "args": ["final"]},
                    },
                }
            ]
        }
    }


class JobFailure(BaseModel):
    """Request to report a failed job."""
    reason: Optional[str] = Field(None, max_length=2000, description="Why the job failed")


# ============================================================================
# RESPONSE SCHEMAS
# ============================================================================

class CascadeResponse(BaseModel):
    """What one engine call did."""
    workflow_id: str
    trigger: str
    job_name: Optional[str] = None
    dispatched: List[str] = Field(default_factory=list)
    rejected: List[str] = Field(default_factory=list)
    ambiguous: List[str] = Field(default_factory=list)
    failed_dispatches: Dict[str, str] = Field(default_factory=dict)
    unknown_jobs: List[str] = Field(default_factory=list)
    blocked: List[str] = Field(default_factory=list)
    workflow_completed: bool = False
    duplicate: bool = False
    reason: Optional[str] = None


class ErrorResponse(BaseModel):
    """Error response."""
    detail: str


__all__ = [
    "WorkflowCreate",
    "JobFailure",
    "CascadeResponse",
    "ErrorResponse",
]
