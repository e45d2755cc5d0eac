# ============================================================================
# JOB REGISTRY
# ============================================================================
# EPOCH: 1 - CASCADING DISPATCH
# STATUS: Core - Job registration and lookup
# PURPOSE: Map job names in a workflow to the code that runs them
# CREATED: 18 OCT 2026
# ============================================================================
"""
Job Registry

Explicit mapping job name -> handler. Dispatchers use it to refuse jobs
nobody can run (UnknownJobError); runners use it to find the code to call.

Design:
- Instance-based: each orchestrator/runner pair gets its own registry
- Handlers registered via decorator or add()
- Fail-fast on duplicate registration
- Supports both sync and async handlers (sync ones run in the executor)

Usage:
    registry = JobRegistry()

    @registry.register("a_job", description="Fetch the input")
    async def a_job(ctx: JobContext):
        first, second = ctx.args
        ...
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from core.errors import DuplicateJobError, UnknownJobError
from core.models import WorkflowDefinition

logger = logging.getLogger(__name__)


# ============================================================================
# JOB TYPES
# ============================================================================

@dataclass
class JobContext:
    """Everything a handler gets to know about the job it is running."""
    workflow_id: str
    job_name: str
    args: List[Any] = field(default_factory=list)
    correlation_id: Optional[str] = None


# Handler function type; the return value is logged, never interpreted
JobFunc = Callable[[JobContext], Union[Any, Awaitable[Any]]]


# ============================================================================
# REGISTRY
# ============================================================================

class JobRegistry:
    """Name -> handler mapping with metadata."""

    def __init__(self):
        self._jobs: Dict[str, JobFunc] = {}
        self._metadata: Dict[str, Dict[str, Any]] = {}

    def register(
        self,
        name: str,
        *,
        description: str = "",
        timeout_seconds: Optional[int] = None,
        tags: Optional[List[str]] = None,
    ) -> Callable[[JobFunc], JobFunc]:
        """
        Decorator to register a job handler.

        Args:
            name: Job name as used in workflow definitions (must be unique)
            description: Human-readable description
            timeout_seconds: Per-job override of the runner's timeout
            tags: Optional tags for categorization

        Example:
            @registry.register("d_job", description="Publish the result")
            def d_job(ctx: JobContext):
                publish(*ctx.args)
        """
        def decorator(func: JobFunc) -> JobFunc:
            self.add(
                name,
                func,
                description=description,
                timeout_seconds=timeout_seconds,
                tags=tags,
            )
            return func

        return decorator

    def add(
        self,
        name: str,
        func: JobFunc,
        *,
        description: str = "",
        timeout_seconds: Optional[int] = None,
        tags: Optional[List[str]] = None,
    ) -> None:
        """Register a handler without the decorator."""
        if not isinstance(name, str) or not name:
            raise ValueError("Job name must be a non-empty string")
        if name in self._jobs:
            raise DuplicateJobError(name)

        self._jobs[name] = func
        self._metadata[name] = {
            "name": name,
            "description": description,
            "timeout_seconds": timeout_seconds,
            "tags": tags or [],
            "function": getattr(func, "__name__", repr(func)),
            "module": getattr(func, "__module__", None),
            "is_async": asyncio.iscoroutinefunction(func),
            "registered_at": datetime.now(timezone.utc).isoformat(),
        }

        logger.debug(f"Registered job: {name}")

    def get(self, name: str) -> Optional[JobFunc]:
        return self._jobs.get(name)

    def get_or_raise(self, name: str, workflow_id: Optional[str] = None) -> JobFunc:
        """
        Get a handler by name.

        Raises:
            UnknownJobError if nothing is registered under that name
        """
        func = self._jobs.get(name)
        if func is None:
            raise UnknownJobError(name, workflow_id=workflow_id)
        return func

    def get_metadata(self, name: str) -> Optional[Dict[str, Any]]:
        return self._metadata.get(name)

    def __contains__(self, name: str) -> bool:
        return name in self._jobs

    def list_jobs(self) -> List[Dict[str, Any]]:
        """All registered jobs with metadata, sorted by name."""
        return [self._metadata[name] for name in sorted(self._metadata)]

    def missing(self, definition: WorkflowDefinition) -> List[str]:
        """
        Jobs in a definition that have no handler.

        Returns:
            Missing job names, sorted (empty if all registered)
        """
        return sorted(name for name in definition.job_names if name not in self._jobs)

    def clear(self) -> None:
        """Remove every registration. Primarily for testing."""
        self._jobs.clear()
        self._metadata.clear()
        logger.debug("Cleared all jobs")

    # =========================================================================
    # EXECUTION
    # =========================================================================

    async def execute(self, ctx: JobContext) -> Any:
        """
        Run the handler registered for ctx.job_name.

        Exceptions raised by the handler propagate to the caller.

        Raises:
            UnknownJobError if the job is not registered
        """
        func = self.get_or_raise(ctx.job_name, workflow_id=ctx.workflow_id)

        if asyncio.iscoroutinefunction(func):
            return await func(ctx)

        # Run sync handler in thread pool
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, func, ctx)


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "JobRegistry",
    "JobContext",
    "JobFunc",
]
