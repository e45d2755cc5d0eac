# ============================================================================
# API ROUTES
# ============================================================================
# EPOCH: 1 - CASCADING DISPATCH
# STATUS: Core - FastAPI route definitions
# PURPOSE: HTTP boundary for starting workflows and reporting job outcomes
# CREATED: 18 OCT 2026
# ============================================================================
"""
API Routes

FastAPI routes for the cascading orchestrator. Workers that cannot call the
orchestrator in-process report completion here.

    POST /workflows                               start
    POST /workflows/{id}/jobs/{job}/complete      notify_completed
    POST /workflows/{id}/jobs/{job}/fail          notify_failed
    POST /workflows/{id}/resume                   resume
    GET  /workflows/{id}                          run state
"""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException

from core.errors import (
    InvalidTransitionError,
    NotFoundError,
    OrchestrationError,
    StoreError,
    ValidationError,
)
from core.models import WorkflowDefinition, WorkflowRunState
from orchestrator.cascade import CascadeResult, Orchestrator
from .schemas import CascadeResponse, ErrorResponse, JobFailure, WorkflowCreate

logger = logging.getLogger(__name__)

router = APIRouter()


# ============================================================================
# DEPENDENCY INJECTION
# ============================================================================
# Set by the main app at startup

_orchestrator: Optional[Orchestrator] = None


def set_orchestrator(orchestrator: Optional[Orchestrator]) -> None:
    """Set orchestrator instance for dependency injection."""
    global _orchestrator
    _orchestrator = orchestrator


def get_orchestrator() -> Orchestrator:
    if _orchestrator is None:
        raise HTTPException(503, "Orchestrator not initialized")
    return _orchestrator


def _to_http(error: OrchestrationError) -> HTTPException:
    """Map engine errors to status codes."""
    if isinstance(error, ValidationError):
        return HTTPException(400, str(error))
    if isinstance(error, NotFoundError):
        return HTTPException(404, str(error))
    if isinstance(error, InvalidTransitionError):
        return HTTPException(409, str(error))
    if isinstance(error, StoreError):
        logger.error(f"Store failure: {error}")
        return HTTPException(500, f"Store error: {error}")
    logger.error(f"Orchestration failure: {error}")
    return HTTPException(500, str(error))


def _response(result: CascadeResult) -> CascadeResponse:
    return CascadeResponse(**result.to_dict())


_ERRORS = {
    400: {"model": ErrorResponse, "description": "Invalid workflow definition"},
    404: {"model": ErrorResponse, "description": "Workflow or job not found"},
    409: {"model": ErrorResponse, "description": "Job status forbids this transition"},
    503: {"model": ErrorResponse, "description": "Orchestrator not initialized"},
}


# ============================================================================
# WORKFLOWS
# ============================================================================

@router.post(
    "/workflows",
    response_model=CascadeResponse,
    status_code=202,
    tags=["Workflows"],
    responses={k: v for k, v in _ERRORS.items() if k in (400, 503)},
)
async def start_workflow(request: WorkflowCreate):
    """
    Start a workflow instance.

    Persists the definition and dispatches every job with no dependencies.
    Returns as soon as those jobs are accepted by the dispatcher.
    """
    orchestrator = get_orchestrator()

    try:
        definition = WorkflowDefinition.from_mapping(request.workflow_id, request.jobs)
        result = await orchestrator.start(definition)
    except OrchestrationError as e:
        raise _to_http(e) from e

    logger.info(f"Started workflow {request.workflow_id}: dispatched {result.dispatched}")
    return _response(result)


@router.get(
    "/workflows/{workflow_id}",
    response_model=WorkflowRunState,
    tags=["Workflows"],
    responses={k: v for k, v in _ERRORS.items() if k in (404, 503)},
)
async def get_workflow(workflow_id: str):
    """Get the derived run state of a workflow."""
    orchestrator = get_orchestrator()

    try:
        return await orchestrator.get_run_state(workflow_id)
    except OrchestrationError as e:
        raise _to_http(e) from e


@router.post(
    "/workflows/{workflow_id}/resume",
    response_model=CascadeResponse,
    tags=["Workflows"],
    responses={k: v for k, v in _ERRORS.items() if k in (404, 503)},
)
async def resume_workflow(workflow_id: str):
    """Dispatch anything ready that nobody has claimed."""
    orchestrator = get_orchestrator()

    try:
        result = await orchestrator.resume(workflow_id)
    except OrchestrationError as e:
        raise _to_http(e) from e

    return _response(result)


# ============================================================================
# JOB OUTCOMES
# ============================================================================

@router.post(
    "/workflows/{workflow_id}/jobs/{job_name}/complete",
    response_model=CascadeResponse,
    tags=["Jobs"],
    responses={k: v for k, v in _ERRORS.items() if k in (404, 409, 503)},
)
async def complete_job(workflow_id: str, job_name: str):
    """
    Report a job as complete.

    Safe to repeat: a second report for the same job returns duplicate=true
    and dispatches nothing.
    """
    orchestrator = get_orchestrator()

    try:
        result = await orchestrator.notify_completed(workflow_id, job_name)
    except OrchestrationError as e:
        raise _to_http(e) from e

    return _response(result)


@router.post(
    "/workflows/{workflow_id}/jobs/{job_name}/fail",
    response_model=CascadeResponse,
    tags=["Jobs"],
    responses={k: v for k, v in _ERRORS.items() if k in (404, 409, 503)},
)
async def fail_job(workflow_id: str, job_name: str, request: Optional[JobFailure] = None):
    """Report a job as failed. Its dependents will never run."""
    orchestrator = get_orchestrator()
    reason = request.reason if request else None

    try:
        result = await orchestrator.notify_failed(workflow_id, job_name, reason)
    except OrchestrationError as e:
        raise _to_http(e) from e

    return _response(result)


__all__ = ["router", "set_orchestrator", "get_orchestrator"]
