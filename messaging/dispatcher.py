# ============================================================================
# JOB DISPATCHER
# ============================================================================
# EPOCH: 1 - CASCADING DISPATCH
# STATUS: Core - Dispatch boundary
# PURPOSE: Hand claimed jobs to an execution backend
# CREATED: 18 OCT 2026
# ============================================================================
"""
Job Dispatcher

The orchestrator's only way of getting work done:

    await dispatcher.dispatch(workflow_id, job_name, args)

Returning without error means ACCEPTED, not executed. Whoever executes the
job reports back through Orchestrator.notify_completed / notify_failed.

Errors:
    UnknownJobError  - no registered counterpart for job_name
    DispatchError    - backend did not accept the job

Implementations must be safe to call concurrently for different jobs.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, List, Set

from handlers.registry import JobRegistry

logger = logging.getLogger(__name__)


class JobDispatcher(ABC):
    """Hands a claimed job to the execution backend."""

    @abstractmethod
    async def dispatch(self, workflow_id: str, job_name: str, args: List[Any]) -> None:
        """Submit one job. Raises UnknownJobError or DispatchError."""

    async def close(self) -> None:
        """Release backend resources."""


class InProcessDispatcher(JobDispatcher):
    """
    Runs jobs as background asyncio tasks in this process.

    The runner is anything with `async run(workflow_id, job_name, args)`,
    normally a worker.executor.JobRunner attached to the orchestrator so that
    finished jobs cascade.
    """

    def __init__(self, registry: JobRegistry, runner=None):
        self.registry = registry
        self.runner = runner
        self._tasks: Set[asyncio.Task] = set()

    async def dispatch(self, workflow_id: str, job_name: str, args: List[Any]) -> None:
        self.registry.get_or_raise(job_name, workflow_id=workflow_id)
        if self.runner is None:
            raise RuntimeError("InProcessDispatcher has no runner attached")

        task = asyncio.create_task(
            self.runner.run(workflow_id, job_name, list(args)),
            name=f"{workflow_id}:{job_name}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        logger.debug(f"Scheduled {workflow_id}/{job_name} in-process")

    @property
    def pending(self) -> int:
        """Runs scheduled but not yet finished."""
        return len(self._tasks)

    async def drain(self) -> None:
        """
        Wait until every scheduled run has finished.

        Runs that finish schedule their dependents, so this loops until the
        cascade has nothing left in flight.
        """
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    async def close(self) -> None:
        await self.drain()


__all__ = ["JobDispatcher", "InProcessDispatcher"]
