# ============================================================================
# CASCADING ORCHESTRATOR
# ============================================================================
# EPOCH: 1 - CASCADING DISPATCH
# STATUS: Core - Event-driven DAG engine
# PURPOSE: Dispatch ready jobs, cascade on completion, detect workflow end
# CREATED: 18 OCT 2026
# ============================================================================
"""
Cascading Orchestrator

There is no polling loop. Every state change arrives as a call:

    start(definition)                      -> dispatch the root jobs
    notify_completed(workflow_id, job)     -> dispatch newly ready dependents
    notify_failed(workflow_id, job, why)   -> record failure, dependents block
    resume(workflow_id)                    -> re-drive from stored state

Each call is one bounded pass:

    1. Read definition + progress from the stores
    2. Ask the evaluator for the ready frontier
    3. For every ready job, concurrently:
         CAS pending -> in_progress   (rejected = someone else owns it)
         dispatcher.dispatch(...)     (failure recorded, siblings unaffected)
    4. If every job is complete, claim the concluded marker and fire the
       completion hook (exactly once per workflow)

Correctness rests on the store's compare_and_set_status: no job enters
IN_PROGRESS twice, so no job is dispatched twice, however many completions
race on the same workflow. There is no per-workflow lock.

The orchestrator holds no state between calls. Two processes sharing a
multi-process-safe store can serve the same workflow.
"""

import asyncio
import inspect
from dataclasses import dataclass, field, asdict
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from core.contracts import JobStatus
from core.errors import (
    DispatchError,
    InvalidTransitionError,
    NotFoundError,
    StoreError,
    UnknownJobError,
    ValidationError,
)
from core.logging import ComponentType, get_logger, log_checkpoint, log_context
from core.models import ProgressRecord, WorkflowDefinition, WorkflowRunState
from messaging.dispatcher import JobDispatcher
from orchestrator.engine.evaluator import DAGEvaluator, get_evaluator
from repositories.base import DefinitionStore, ProgressStore

logger = get_logger(__name__, ComponentType.ORCHESTRATOR)

CompletionHook = Callable[[str], Union[None, Awaitable[None]]]


# ============================================================================
# RESULT
# ============================================================================

@dataclass
class CascadeResult:
    """
    What one engine call did.

    A CAS rejection is not an error: the job was claimed by someone else and
    is listed in `rejected`. An ambiguous claim (store error or timeout on the
    CAS itself) is listed in `ambiguous` and was NOT dispatched.
    """
    workflow_id: str
    trigger: str
    job_name: Optional[str] = None

    dispatched: List[str] = field(default_factory=list)
    rejected: List[str] = field(default_factory=list)
    ambiguous: List[str] = field(default_factory=list)
    failed_dispatches: Dict[str, str] = field(default_factory=dict)
    unknown_jobs: List[str] = field(default_factory=list)
    blocked: List[str] = field(default_factory=list)

    workflow_completed: bool = False
    duplicate: bool = False
    reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# ============================================================================
# ORCHESTRATOR
# ============================================================================

class Orchestrator:
    """
    Event-driven DAG engine.

    Dependencies are injected; the engine never reaches for a global store
    or dispatcher.
    """

    def __init__(
        self,
        progress_store: ProgressStore,
        definition_store: DefinitionStore,
        dispatcher: JobDispatcher,
        on_workflow_complete: Optional[CompletionHook] = None,
        operation_timeout: Optional[float] = None,
        fail_unknown_jobs: bool = True,
        evaluator: Optional[DAGEvaluator] = None,
    ):
        """
        Initialize orchestrator.

        Args:
            progress_store: Job status persistence (must provide atomic CAS)
            definition_store: Workflow definition persistence
            dispatcher: Hands claimed jobs to the execution backend
            on_workflow_complete: Called with the workflow_id once every job
                is complete; sync or async
            operation_timeout: Seconds allowed for each store/dispatcher call
                (None = unbounded)
            fail_unknown_jobs: Move jobs the dispatcher does not know to FAILED
                instead of leaving them IN_PROGRESS
            evaluator: DAG evaluator (defaults to the shared instance)
        """
        self.progress_store = progress_store
        self.definition_store = definition_store
        self.dispatcher = dispatcher
        self.on_workflow_complete = on_workflow_complete
        self.operation_timeout = operation_timeout
        self.fail_unknown_jobs = fail_unknown_jobs
        self.evaluator = evaluator or get_evaluator()

    # =========================================================================
    # PUBLIC API
    # =========================================================================

    async def start(self, definition: WorkflowDefinition) -> CascadeResult:
        """
        Persist a workflow and dispatch every job that is ready.

        Calling start again for a workflow that is already running re-runs
        the evaluation against the existing progress: nothing is reset and
        nothing already claimed is dispatched again.

        Raises:
            ValidationError: definition is malformed (nothing persisted)
            StoreError: persistence failed
        """
        if not isinstance(definition, WorkflowDefinition):
            raise ValidationError(
                f"Expected WorkflowDefinition, got {type(definition).__name__}"
            )

        workflow_id = definition.workflow_id
        is_valid, error = self.evaluator.validate_workflow(definition)
        if not is_valid:
            raise ValidationError(
                f"Invalid workflow '{workflow_id}': {error}",
                workflow_id=workflow_id,
            )

        with log_context(workflow_id=workflow_id, operation="start"):
            await self._store_call(
                "write definition",
                workflow_id,
                self.definition_store.write_definition(workflow_id, definition),
            )
            created = await self._store_call(
                "initialize progress",
                workflow_id,
                self.progress_store.initialize_progress(workflow_id),
            )

            if created:
                log_checkpoint("workflow_started", {"jobs": len(definition.nodes)})
                logger.info(f"Started workflow {workflow_id} with {len(definition.nodes)} jobs")
            else:
                logger.info(f"Workflow {workflow_id} already has progress, re-evaluating")

            result = CascadeResult(workflow_id=workflow_id, trigger="start")
            await self._cascade(definition, result)
            return result

    async def notify_completed(self, workflow_id: str, job_name: str) -> CascadeResult:
        """
        Record a job as complete and dispatch whatever became ready.

        A repeated notification for an already-complete job does not change
        its status (result.duplicate is True). The frontier is still
        re-evaluated, so a redelivery finishes a pass that failed after the
        job was marked complete; nothing already claimed is dispatched again.

        Raises:
            NotFoundError: no stored definition, or job not in it
            InvalidTransitionError: job is pending or failed
            StoreError: persistence failed
        """
        with log_context(workflow_id=workflow_id, job_name=job_name, operation="notify_completed"):
            definition = await self._load_definition(workflow_id)
            self._require_job(definition, job_name)
            await self._refresh_definition(workflow_id)

            result = CascadeResult(workflow_id=workflow_id, trigger="completed", job_name=job_name)

            applied = await self._store_call(
                "compare-and-set status",
                workflow_id,
                self.progress_store.compare_and_set_status(
                    workflow_id, job_name, JobStatus.IN_PROGRESS, JobStatus.COMPLETE
                ),
            )
            if applied:
                log_checkpoint("job_completed")
                logger.info(f"Job {job_name} completed")
            else:
                # Raises unless this is a redelivery; claims are CAS-gated,
                # so the cascade below only reaches jobs nobody claimed yet
                await self._reject_notification(workflow_id, job_name, JobStatus.COMPLETE, result)

            await self._cascade(definition, result)
            return result

    async def notify_failed(
        self,
        workflow_id: str,
        job_name: str,
        reason: Optional[str] = None,
    ) -> CascadeResult:
        """
        Record a job as failed.

        Nothing is retried and nothing is dispatched; every job downstream of
        a failed job stays pending forever (reported in result.blocked).

        Raises:
            NotFoundError: no stored definition, or job not in it
            InvalidTransitionError: job is pending or complete
            StoreError: persistence failed
        """
        with log_context(workflow_id=workflow_id, job_name=job_name, operation="notify_failed"):
            definition = await self._load_definition(workflow_id)
            self._require_job(definition, job_name)
            await self._refresh_definition(workflow_id)

            result = CascadeResult(
                workflow_id=workflow_id,
                trigger="failed",
                job_name=job_name,
                reason=reason,
            )

            applied = await self._store_call(
                "compare-and-set status",
                workflow_id,
                self.progress_store.compare_and_set_status(
                    workflow_id, job_name, JobStatus.IN_PROGRESS, JobStatus.FAILED
                ),
            )
            if not applied:
                await self._reject_notification(workflow_id, job_name, JobStatus.FAILED, result)
                return result

            log_checkpoint("job_failed", {"reason": reason})
            logger.error(f"Job {job_name} failed: {reason or 'no reason given'}")

            progress = await self._read_progress(workflow_id)
            result.blocked = self.evaluator.blocked_jobs(definition, progress)
            if result.blocked:
                logger.warning(f"Blocked by failure of {job_name}: {result.blocked}")
            return result

    async def resume(self, workflow_id: str) -> CascadeResult:
        """
        Re-drive a workflow from its stored state.

        Dispatches anything ready that nobody has claimed, e.g. after a
        crash between marking a job complete and dispatching its dependents.

        Raises:
            NotFoundError: no stored definition
            StoreError: persistence failed
        """
        with log_context(workflow_id=workflow_id, operation="resume"):
            definition = await self._load_definition(workflow_id)
            await self._store_call(
                "initialize progress",
                workflow_id,
                self.progress_store.initialize_progress(workflow_id),
            )
            result = CascadeResult(workflow_id=workflow_id, trigger="resume")
            await self._cascade(definition, result)
            logger.info(f"Resumed workflow {workflow_id}: dispatched {result.dispatched}")
            return result

    async def get_run_state(self, workflow_id: str) -> WorkflowRunState:
        """
        Derived view of a workflow's progress.

        Raises:
            NotFoundError: no stored definition
        """
        definition = await self._load_definition(workflow_id)
        progress = await self._read_progress(workflow_id)
        return self.evaluator.run_state(definition, progress)

    # =========================================================================
    # CASCADE
    # =========================================================================

    async def _cascade(self, definition: WorkflowDefinition, result: CascadeResult) -> None:
        """Claim and dispatch the ready frontier, then check for completion."""
        workflow_id = definition.workflow_id
        progress = await self._read_progress(workflow_id)
        ready = self.evaluator.find_ready_jobs(definition, progress)

        if ready:
            logger.debug(f"Ready jobs: {ready}")
            await asyncio.gather(
                *(self._claim_and_dispatch(definition, job, result) for job in ready)
            )
            progress = await self._read_progress(workflow_id)

        if self.evaluator.is_workflow_complete(definition, progress):
            await self._conclude(workflow_id, result)

    async def _claim_and_dispatch(
        self,
        definition: WorkflowDefinition,
        job_name: str,
        result: CascadeResult,
    ) -> None:
        """
        Claim one job with CAS and hand it to the dispatcher.

        Never raises: every outcome is recorded on the result.
        """
        workflow_id = definition.workflow_id

        with log_context(job_name=job_name):
            try:
                claimed = await self._store_call(
                    "compare-and-set status",
                    workflow_id,
                    self.progress_store.compare_and_set_status(
                        workflow_id, job_name, JobStatus.PENDING, JobStatus.IN_PROGRESS
                    ),
                )
            except StoreError as e:
                await self._record_ambiguous_claim(workflow_id, job_name, e, result)
                return

            if not claimed:
                logger.info(f"Job {job_name} already claimed, skipping")
                result.rejected.append(job_name)
                return

            args = list(definition.nodes[job_name].args)
            try:
                await self._dispatch_call(workflow_id, job_name, args)
            except UnknownJobError as e:
                logger.error(f"Cannot dispatch {job_name}: {e}")
                result.unknown_jobs.append(job_name)
                result.failed_dispatches[job_name] = str(e)
                if self.fail_unknown_jobs:
                    await self._fail_unknown_job(workflow_id, job_name, result)
                return
            except Exception as e:
                # Job stays IN_PROGRESS; resume() does not re-dispatch it
                message = f"{type(e).__name__}: {e}"
                logger.error(f"Dispatch of {job_name} failed: {message}")
                result.failed_dispatches[job_name] = message
                return

            result.dispatched.append(job_name)
            log_checkpoint("job_dispatched", {"args": len(args)})
            logger.info(f"Dispatched job {job_name}")

    async def _record_ambiguous_claim(
        self,
        workflow_id: str,
        job_name: str,
        error: StoreError,
        result: CascadeResult,
    ) -> None:
        """The CAS may or may not have applied. Re-read, never dispatch."""
        result.ambiguous.append(job_name)
        try:
            progress = await self._read_progress(workflow_id)
        except StoreError as reread_error:
            logger.error(
                f"Claim of {job_name} is ambiguous ({error}) and progress "
                f"could not be re-read: {reread_error}"
            )
            return

        logger.warning(
            f"Claim of {job_name} is ambiguous ({error}); store now reports "
            f"{progress.status_of(job_name).value}, not dispatching"
        )

    async def _fail_unknown_job(
        self,
        workflow_id: str,
        job_name: str,
        result: CascadeResult,
    ) -> None:
        try:
            moved = await self._store_call(
                "compare-and-set status",
                workflow_id,
                self.progress_store.compare_and_set_status(
                    workflow_id, job_name, JobStatus.IN_PROGRESS, JobStatus.FAILED
                ),
            )
        except StoreError as e:
            logger.error(f"Could not mark unknown job {job_name} as failed: {e}")
            return

        if moved:
            log_checkpoint("job_failed", {"reason": "unknown job"})

    async def _conclude(self, workflow_id: str, result: CascadeResult) -> None:
        """Fire the completion hook if this caller wins the concluded marker."""
        claimed = await self._store_call(
            "claim completion",
            workflow_id,
            self.progress_store.claim_completion(workflow_id),
        )
        if not claimed:
            return

        result.workflow_completed = True
        log_checkpoint("workflow_completed")
        logger.info(f"Workflow {workflow_id} has completed successfully.")

        if self.on_workflow_complete is None:
            return

        try:
            outcome = self.on_workflow_complete(workflow_id)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception as e:
            logger.error(f"Completion hook for {workflow_id} raised: {type(e).__name__}: {e}")
            raise

    # =========================================================================
    # HELPERS
    # =========================================================================

    async def _load_definition(self, workflow_id: str) -> WorkflowDefinition:
        definition = await self._store_call(
            "read definition",
            workflow_id,
            self.definition_store.read_definition(workflow_id),
        )
        if definition is None:
            raise NotFoundError(f"Workflow not found: {workflow_id}", workflow_id=workflow_id)
        return definition

    async def _refresh_definition(self, workflow_id: str) -> None:
        """Keep the definition alive as long as the workflow is active."""
        await self._store_call(
            "touch definition",
            workflow_id,
            self.definition_store.touch_definition(workflow_id),
        )

    async def _read_progress(self, workflow_id: str) -> ProgressRecord:
        return await self._store_call(
            "read progress",
            workflow_id,
            self.progress_store.read_progress(workflow_id),
        )

    @staticmethod
    def _require_job(definition: WorkflowDefinition, job_name: str) -> None:
        if job_name not in definition.nodes:
            raise NotFoundError(
                f"Job '{job_name}' not found in workflow '{definition.workflow_id}'",
                workflow_id=definition.workflow_id,
                job_name=job_name,
            )

    async def _reject_notification(
        self,
        workflow_id: str,
        job_name: str,
        target: JobStatus,
        result: CascadeResult,
    ) -> None:
        """
        A notification CAS did not apply.

        Same-state is a redelivery and is ignored; anything else is a
        transition the state machine forbids.
        """
        progress = await self._read_progress(workflow_id)
        current = progress.status_of(job_name)

        if current == target:
            result.duplicate = True
            logger.info(f"Duplicate {target.value} notification for {job_name} ignored")
            return

        raise InvalidTransitionError(workflow_id, job_name, current.value, target.value)

    async def _store_call(self, operation: str, workflow_id: str, coro):
        if self.operation_timeout is None:
            return await coro
        try:
            return await asyncio.wait_for(coro, timeout=self.operation_timeout)
        except asyncio.TimeoutError as e:
            raise StoreError(
                f"{operation} timed out after {self.operation_timeout}s for {workflow_id}",
                operation=operation,
                workflow_id=workflow_id,
            ) from e

    async def _dispatch_call(self, workflow_id: str, job_name: str, args: List[Any]) -> None:
        coro = self.dispatcher.dispatch(workflow_id, job_name, args)
        if self.operation_timeout is None:
            await coro
            return
        try:
            await asyncio.wait_for(coro, timeout=self.operation_timeout)
        except asyncio.TimeoutError as e:
            raise DispatchError(
                f"Dispatch of {job_name} timed out after {self.operation_timeout}s",
                workflow_id=workflow_id,
                job_name=job_name,
            ) from e


__all__ = ["Orchestrator", "CascadeResult", "CompletionHook"]
