# ============================================================================
# JOB RUNNER TESTS
# ============================================================================
# EPOCH: 1 - CASCADING DISPATCH
# STATUS: Tests - Job execution wrapper
# PURPOSE: Verify outcome capture and completion reporting
# CREATED: 18 OCT 2026
# ============================================================================
"""
Job Runner Tests

Covers:
1. Success reports notify_completed
2. Exceptions report notify_failed with "<Type>: <message>"
3. Timeouts (runner default and per-job override)
4. Reporting failures are recorded, not raised, by run()
5. handle_message parses queue bodies and re-raises reporting failures

Run with:
    pytest tests/test_executor.py -v
"""

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from core.errors import StoreError
from core.models import JobMessage
from handlers.registry import JobRegistry
from worker.executor import MAX_ERROR_LENGTH, JobOutcome, JobRunner


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def registry():
    registry = JobRegistry()

    @registry.register("ok")
    async def ok(ctx):
        return {"args": ctx.args}

    @registry.register("broken")
    def broken(ctx):
        raise ValueError("bad input")

    @registry.register("slow")
    async def slow(ctx):
        await asyncio.sleep(1)

    @registry.register("quick_timeout", timeout_seconds=0.05)
    async def quick_timeout(ctx):
        await asyncio.sleep(1)

    @registry.register("verbose")
    async def verbose(ctx):
        raise RuntimeError("x" * (MAX_ERROR_LENGTH * 2))

    return registry


@pytest.fixture
def orchestrator():
    mock = MagicMock()
    mock.notify_completed = AsyncMock(return_value="cascade-result")
    mock.notify_failed = AsyncMock(return_value="cascade-result")
    return mock


@pytest.fixture
def runner(registry, orchestrator):
    return JobRunner(registry, orchestrator=orchestrator)


# ============================================================================
# RUN
# ============================================================================

class TestRun:

    def test_success_reports_completion(self, runner, orchestrator):
        outcome = asyncio.run(runner.run("wf-1", "ok", [1, 2]))

        assert isinstance(outcome, JobOutcome)
        assert outcome.success
        assert outcome.output == {"args": [1, 2]}
        assert outcome.reported
        assert outcome.cascade == "cascade-result"
        orchestrator.notify_completed.assert_awaited_once_with("wf-1", "ok")
        orchestrator.notify_failed.assert_not_called()

    def test_exception_reports_failure(self, runner, orchestrator):
        outcome = asyncio.run(runner.run("wf-1", "broken", []))

        assert not outcome.success
        assert outcome.error_message == "ValueError: bad input"
        orchestrator.notify_failed.assert_awaited_once_with(
            "wf-1", "broken", "ValueError: bad input"
        )
        orchestrator.notify_completed.assert_not_called()

    def test_unregistered_job_reports_failure(self, runner, orchestrator):
        outcome = asyncio.run(runner.run("wf-1", "ghost", []))

        assert not outcome.success
        assert outcome.error_message.startswith("UnknownJobError: ")
        orchestrator.notify_failed.assert_awaited_once()

    def test_runner_timeout(self, registry, orchestrator):
        runner = JobRunner(registry, orchestrator=orchestrator, job_timeout=0.05)

        outcome = asyncio.run(runner.run("wf-1", "slow", []))

        assert not outcome.success
        assert outcome.error_message == "TimeoutError: job timed out after 0.05 seconds"
        orchestrator.notify_failed.assert_awaited_once()

    def test_registered_timeout_wins(self, registry, orchestrator):
        runner = JobRunner(registry, orchestrator=orchestrator, job_timeout=30)

        outcome = asyncio.run(runner.run("wf-1", "quick_timeout", []))

        assert "timed out after 0.05 seconds" in outcome.error_message

    def test_error_message_truncated(self, runner):
        outcome = asyncio.run(runner.run("wf-1", "verbose", []))
        assert len(outcome.error_message) == MAX_ERROR_LENGTH

    def test_report_error_recorded(self, runner, orchestrator):
        orchestrator.notify_completed.side_effect = StoreError("db down")

        outcome = asyncio.run(runner.run("wf-1", "ok", []))

        assert outcome.success
        assert not outcome.reported
        assert isinstance(outcome.report_error, StoreError)
        assert outcome.to_dict()["report_error"] == "db down"

    def test_no_orchestrator(self, registry):
        runner = JobRunner(registry)
        outcome = asyncio.run(runner.run("wf-1", "ok", []))

        assert outcome.success
        assert not outcome.reported

    def test_attach(self, registry, orchestrator):
        runner = JobRunner(registry)
        assert runner.attach(orchestrator) is runner
        assert runner.orchestrator is orchestrator


# ============================================================================
# QUEUE MESSAGES
# ============================================================================

class TestHandleMessage:

    def test_json_body(self, runner, orchestrator):
        body = json.dumps(
            JobMessage(workflow_id="wf-1", job_name="ok", args=["a"]).to_queue_message()
        )

        outcome = asyncio.run(runner.handle_message(body))

        assert outcome.output == {"args": ["a"]}
        orchestrator.notify_completed.assert_awaited_once_with("wf-1", "ok")

    def test_dict_body(self, runner):
        outcome = asyncio.run(runner.handle_message({"workflow_id": "wf-1", "job_name": "ok"}))
        assert outcome.success

    def test_report_failure_reraised(self, runner, orchestrator):
        orchestrator.notify_completed.side_effect = StoreError("db down")

        with pytest.raises(StoreError):
            asyncio.run(runner.handle_message({"workflow_id": "wf-1", "job_name": "ok"}))
