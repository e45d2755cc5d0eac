# ============================================================================
# JOB REGISTRY
# ============================================================================
# EPOCH: 1 - CASCADING DISPATCH
# STATUS: Core - Job registration and lookup
# PURPOSE: Register and discover jobs
# CREATED: 18 OCT 2026
# ============================================================================
"""
Job Registry

Provides a decorator-based registration system for jobs.

Usage:
    from handlers import JobRegistry, JobContext

    registry = JobRegistry()

    @registry.register("my_job")
    async def my_job(ctx: JobContext):
        ...
"""

from handlers.registry import JobRegistry, JobContext, JobFunc
from handlers.examples import register_example_jobs

__all__ = [
    "JobRegistry",
    "JobContext",
    "JobFunc",
    "register_example_jobs",
]
