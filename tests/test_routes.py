# ============================================================================
# API ROUTES TESTS
# ============================================================================
# EPOCH: 1 - CASCADING DISPATCH
# STATUS: Tests - HTTP boundary
# PURPOSE: Verify routes call the orchestrator and map errors to status codes
# CREATED: 18 OCT 2026
# ============================================================================
"""
API Routes Tests

Uses FastAPI TestClient with a mocked orchestrator for wiring and error
mapping, and a real in-memory orchestrator for one full round trip.

Covers:
1. POST /workflows validates and starts
2. Completion / failure reporting endpoints
3. Resume and run state
4. Error mapping (400, 404, 409, 500, 503)

Run with:
    pytest tests/test_routes.py -v
"""

import pytest
from unittest.mock import AsyncMock, MagicMock

from fastapi import FastAPI
from fastapi.testclient import TestClient

from core.contracts import JobStatus
from core.errors import InvalidTransitionError, NotFoundError, StoreError
from core.models import WorkflowDefinition, WorkflowRunState
from api.routes import router, set_orchestrator
from orchestrator.cascade import CascadeResult, Orchestrator
from repositories.memory_store import InMemoryWorkflowStore


# ============================================================================
# FIXTURES
# ============================================================================

def _make_test_app(orchestrator):
    """Create a test FastAPI app with the routes and the given orchestrator."""
    app = FastAPI()
    app.include_router(router, prefix="/api/v1")
    set_orchestrator(orchestrator)
    return app


DIAMOND = {
    "a_job": {"deps": [], "args": [1, 2]},
    "b_job": {"deps": ["a_job"]},
    "c_job": {"deps": ["a_job"]},
    "d_job": {"deps": ["b_job", "c_job"], "args": ["final"]},
}


@pytest.fixture
def orchestrator():
    mock = MagicMock()
    mock.start = AsyncMock(
        return_value=CascadeResult(workflow_id="wf-123", trigger="start", dispatched=["a_job"])
    )
    mock.notify_completed = AsyncMock(
        return_value=CascadeResult(
            workflow_id="wf-123", trigger="completed", job_name="a_job",
            dispatched=["b_job", "c_job"],
        )
    )
    mock.notify_failed = AsyncMock(
        return_value=CascadeResult(
            workflow_id="wf-123", trigger="failed", job_name="b_job",
            blocked=["d_job"], reason="boom",
        )
    )
    mock.resume = AsyncMock(
        return_value=CascadeResult(workflow_id="wf-123", trigger="resume")
    )
    mock.get_run_state = AsyncMock(
        return_value=WorkflowRunState(
            workflow_id="wf-123",
            jobs={"a_job": JobStatus.IN_PROGRESS},
            in_progress=["a_job"],
        )
    )
    return mock


@pytest.fixture
def client(orchestrator):
    app = _make_test_app(orchestrator)
    yield TestClient(app)
    set_orchestrator(None)


# ============================================================================
# START
# ============================================================================

class TestStartWorkflow:

    def test_start(self, client, orchestrator):
        resp = client.post("/api/v1/workflows", json={"workflow_id": "wf-123", "jobs": DIAMOND})

        assert resp.status_code == 202
        assert resp.json()["dispatched"] == ["a_job"]

        definition = orchestrator.start.call_args.args[0]
        assert isinstance(definition, WorkflowDefinition)
        assert definition.get_job("d_job").deps == frozenset({"b_job", "c_job"})

    def test_cycle_is_400(self, client, orchestrator):
        resp = client.post("/api/v1/workflows", json={
            "workflow_id": "wf-123",
            "jobs": {"a": {"deps": ["b"]}, "b": {"deps": ["a"]}},
        })

        assert resp.status_code == 400
        assert "Cycle detected" in resp.json()["detail"]
        orchestrator.start.assert_not_called()

    def test_unknown_dep_is_400(self, client):
        resp = client.post("/api/v1/workflows", json={
            "workflow_id": "wf-123",
            "jobs": {"a": {"deps": ["ghost"]}},
        })
        assert resp.status_code == 400

    def test_missing_jobs_is_422(self, client):
        resp = client.post("/api/v1/workflows", json={"workflow_id": "wf-123"})
        assert resp.status_code == 422

    def test_store_error_is_500(self, client, orchestrator):
        orchestrator.start.side_effect = StoreError("db down", operation="write definition")

        resp = client.post("/api/v1/workflows", json={"workflow_id": "wf-123", "jobs": DIAMOND})

        assert resp.status_code == 500
        assert "db down" in resp.json()["detail"]


# ============================================================================
# JOB OUTCOMES
# ============================================================================

class TestJobOutcomes:

    def test_complete(self, client, orchestrator):
        resp = client.post("/api/v1/workflows/wf-123/jobs/a_job/complete")

        assert resp.status_code == 200
        assert resp.json()["dispatched"] == ["b_job", "c_job"]
        orchestrator.notify_completed.assert_awaited_once_with("wf-123", "a_job")

    def test_fail_with_reason(self, client, orchestrator):
        resp = client.post(
            "/api/v1/workflows/wf-123/jobs/b_job/fail",
            json={"reason": "boom"},
        )

        assert resp.status_code == 200
        assert resp.json()["blocked"] == ["d_job"]
        orchestrator.notify_failed.assert_awaited_once_with("wf-123", "b_job", "boom")

    def test_fail_without_body(self, client, orchestrator):
        resp = client.post("/api/v1/workflows/wf-123/jobs/b_job/fail")

        assert resp.status_code == 200
        orchestrator.notify_failed.assert_awaited_once_with("wf-123", "b_job", None)

    def test_not_found_is_404(self, client, orchestrator):
        orchestrator.notify_completed.side_effect = NotFoundError("Workflow not found: nope")

        resp = client.post("/api/v1/workflows/nope/jobs/a_job/complete")
        assert resp.status_code == 404

    def test_invalid_transition_is_409(self, client, orchestrator):
        orchestrator.notify_completed.side_effect = InvalidTransitionError(
            "wf-123", "d_job", "pending", "complete"
        )

        resp = client.post("/api/v1/workflows/wf-123/jobs/d_job/complete")

        assert resp.status_code == 409
        assert "from pending to complete" in resp.json()["detail"]


# ============================================================================
# RESUME / STATE
# ============================================================================

class TestWorkflowState:

    def test_get(self, client):
        resp = client.get("/api/v1/workflows/wf-123")

        assert resp.status_code == 200
        body = resp.json()
        assert body["in_progress"] == ["a_job"]
        assert body["status"] == "running"

    def test_resume(self, client, orchestrator):
        resp = client.post("/api/v1/workflows/wf-123/resume")

        assert resp.status_code == 200
        assert resp.json()["trigger"] == "resume"
        orchestrator.resume.assert_awaited_once_with("wf-123")


class TestNotInitialized:

    def test_503(self):
        app = FastAPI()
        app.include_router(router, prefix="/api/v1")
        set_orchestrator(None)

        resp = TestClient(app).get("/api/v1/workflows/wf-123")
        assert resp.status_code == 503


# ============================================================================
# ROUND TRIP
# ============================================================================

class TestRoundTrip:

    def test_diamond_over_http(self):
        dispatched = []

        class Recorder:
            async def dispatch(self, workflow_id, job_name, args):
                dispatched.append(job_name)

            async def close(self):
                pass

        store = InMemoryWorkflowStore()
        app = _make_test_app(Orchestrator(store, store, Recorder()))

        try:
            with TestClient(app) as client:
                client.post("/api/v1/workflows", json={"workflow_id": "wf-rt", "jobs": DIAMOND})
                for job in ("a_job", "b_job", "c_job"):
                    client.post(f"/api/v1/workflows/wf-rt/jobs/{job}/complete")
                final = client.post("/api/v1/workflows/wf-rt/jobs/d_job/complete").json()
                again = client.post("/api/v1/workflows/wf-rt/jobs/d_job/complete").json()
                state = client.get("/api/v1/workflows/wf-rt").json()
        finally:
            set_orchestrator(None)

        assert sorted(dispatched) == ["a_job", "b_job", "c_job", "d_job"]
        assert final["workflow_completed"] is True
        assert again["duplicate"] is True
        assert state["status"] == "complete"
