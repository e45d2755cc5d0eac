# ============================================================================
# JOB RUNNER
# ============================================================================
# EPOCH: 1 - CASCADING DISPATCH
# STATUS: Core - Job execution wrapper
# PURPOSE: Run a registered job, then report the outcome to the orchestrator
# CREATED: 18 OCT 2026
# ============================================================================
"""
Job Runner

Executes jobs from the registry with:
- Timeout enforcement
- Error capture
- Completion reporting (notify_completed / notify_failed)

Jobs never talk to the orchestrator themselves. The runner wraps every job
and reports the outcome, so a job body is plain code:

    1. Log the start
    2. Run the handler (bounded by a timeout)
    3. Success   -> orchestrator.notify_completed(workflow_id, job_name)
       Exception -> orchestrator.notify_failed(workflow_id, job_name,
                                               "<ExcType>: <message>")

Used by InProcessDispatcher directly, and by queue consumers through
handle_message().
"""

import asyncio
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

from core.logging import ComponentType, get_logger, log_context
from core.models import JobMessage
from handlers.registry import JobContext, JobRegistry

logger = get_logger(__name__, ComponentType.WORKER)

# Failure reasons are stored and logged; keep them bounded
MAX_ERROR_LENGTH = 2000


# ============================================================================
# OUTCOME
# ============================================================================

@dataclass
class JobOutcome:
    """What happened to one job run."""
    workflow_id: str
    job_name: str
    success: bool
    duration_ms: int
    output: Any = None
    error_message: Optional[str] = None

    # Reporting back to the orchestrator
    reported: bool = False
    report_error: Optional[Exception] = None
    cascade: Any = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "workflow_id": self.workflow_id,
            "job_name": self.job_name,
            "success": self.success,
            "duration_ms": self.duration_ms,
            "error_message": self.error_message,
            "reported": self.reported,
            "report_error": str(self.report_error) if self.report_error else None,
        }


# ============================================================================
# RUNNER
# ============================================================================

class JobRunner:
    """
    Runs one job and reports the result.

    The orchestrator is attached after construction because it in turn needs
    a dispatcher that holds this runner.
    """

    def __init__(
        self,
        registry: JobRegistry,
        orchestrator=None,
        job_timeout: Optional[float] = None,
    ):
        """
        Initialize runner.

        Args:
            registry: Where job handlers are looked up
            orchestrator: Receives completion/failure notifications
            job_timeout: Default bound on a job body in seconds (None = unbounded);
                a job's own registered timeout_seconds takes precedence
        """
        self.registry = registry
        self.orchestrator = orchestrator
        self.job_timeout = job_timeout

    def attach(self, orchestrator) -> "JobRunner":
        self.orchestrator = orchestrator
        return self

    def _timeout_for(self, job_name: str) -> Optional[float]:
        metadata = self.registry.get_metadata(job_name) or {}
        return metadata.get("timeout_seconds") or self.job_timeout

    async def run(self, workflow_id: str, job_name: str, args: List[Any]) -> JobOutcome:
        """
        Execute a job and report its outcome.

        Never raises for a failing job; the failure is reported to the
        orchestrator and returned on the outcome.
        """
        start_time = time.time()

        with log_context(workflow_id=workflow_id, job_name=job_name, operation="run_job"):
            logger.info(f"Starting job {job_name} with args: {args}")

            ctx = JobContext(workflow_id=workflow_id, job_name=job_name, args=list(args))
            timeout = self._timeout_for(job_name)
            output = None
            error_message = None

            try:
                if timeout:
                    output = await asyncio.wait_for(self.registry.execute(ctx), timeout=timeout)
                else:
                    output = await self.registry.execute(ctx)
            except asyncio.TimeoutError:
                error_message = f"TimeoutError: job timed out after {timeout} seconds"
                logger.error(error_message)
            except Exception as e:
                error_message = f"{type(e).__name__}: {e}"[:MAX_ERROR_LENGTH]
                logger.exception(f"Job {job_name} failed with exception")

            outcome = JobOutcome(
                workflow_id=workflow_id,
                job_name=job_name,
                success=error_message is None,
                duration_ms=int((time.time() - start_time) * 1000),
                output=output,
                error_message=error_message,
            )

            if outcome.success:
                logger.info(f"Job {job_name} finished in {outcome.duration_ms}ms")

            await self._report(outcome)
            return outcome

    async def _report(self, outcome: JobOutcome) -> None:
        """Tell the orchestrator. Reporting errors are recorded on the outcome."""
        if self.orchestrator is None:
            logger.warning(f"No orchestrator attached; outcome of {outcome.job_name} not reported")
            return

        try:
            if outcome.success:
                outcome.cascade = await self.orchestrator.notify_completed(
                    outcome.workflow_id, outcome.job_name
                )
            else:
                outcome.cascade = await self.orchestrator.notify_failed(
                    outcome.workflow_id, outcome.job_name, outcome.error_message
                )
            outcome.reported = True
        except Exception as e:
            outcome.report_error = e
            logger.error(
                f"Could not report outcome of {outcome.job_name}: {type(e).__name__}: {e}"
            )

    async def handle_message(self, body: Union[str, bytes, Dict[str, Any]]) -> JobOutcome:
        """
        Run a job received from a queue.

        Raises the reporting error, if any, so the consumer can abandon the
        message and let the queue redeliver it.
        """
        if isinstance(body, (str, bytes)):
            body = json.loads(body)
        message = JobMessage.from_queue_message(body)

        with log_context(correlation_id=message.correlation_id):
            outcome = await self.run(message.workflow_id, message.job_name, message.args)

        if outcome.report_error is not None:
            raise outcome.report_error
        return outcome


__all__ = ["JobRunner", "JobOutcome", "MAX_ERROR_LENGTH"]
