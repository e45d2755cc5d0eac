# ============================================================================
# EXAMPLE JOBS
# ============================================================================
# EPOCH: 1 - CASCADING DISPATCH
# STATUS: Examples - Sample job implementations
# PURPOSE: Wiring checks and templates for real jobs
# CREATED: 18 OCT 2026
# ============================================================================
"""
Example Jobs

Sample implementations showing how to write jobs. main.py registers them so
a freshly deployed service can run a workflow end to end:

    {"workflow_id": "smoke-1", "jobs": {
        "echo": {"args": ["hello"]},
        "sleep": {"deps": ["echo"], "args": [0.5]}
    }}
"""

import asyncio
import logging
from typing import Any, Dict

from handlers.registry import JobContext, JobRegistry

logger = logging.getLogger(__name__)


async def echo_job(ctx: JobContext) -> Dict[str, Any]:
    """Log the arguments and return them."""
    logger.info(f"Echo job {ctx.workflow_id}/{ctx.job_name} called with args: {ctx.args}")
    return {"echoed_args": ctx.args}


async def sleep_job(ctx: JobContext) -> Dict[str, Any]:
    """Sleep for args[0] seconds (default 1)."""
    seconds = float(ctx.args[0]) if ctx.args else 1.0
    logger.info(f"Sleeping {seconds}s")
    await asyncio.sleep(seconds)
    return {"slept_seconds": seconds}


def fail_job(ctx: JobContext) -> None:
    """Always raise; args[0] is the message."""
    message = str(ctx.args[0]) if ctx.args else "Intentional failure"
    raise RuntimeError(message)


def register_example_jobs(registry: JobRegistry) -> JobRegistry:
    """Register echo, sleep and fail on the given registry."""
    registry.add("echo", echo_job, description="Echoes args back", timeout_seconds=60)
    registry.add("sleep", sleep_job, description="Sleeps for args[0] seconds")
    registry.add("fail", fail_job, description="Always fails (for testing failure paths)")
    return registry


__all__ = ["echo_job", "sleep_job", "fail_job", "register_example_jobs"]
