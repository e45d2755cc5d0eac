# ============================================================================
# WORKER MAIN ENTRY POINT
# ============================================================================
# EPOCH: 1 - CASCADING DISPATCH
# STATUS: Core - Worker process entry point
# PURPOSE: Run queued jobs in a standalone process
# CREATED: 18 OCT 2026
# ============================================================================
"""
Worker Main Entry Point

Starts a worker process that:
1. Registers job handlers
2. Wires an orchestrator against the shared store (so finished jobs cascade)
3. Consumes the Service Bus job queue until shutdown

The worker needs the same store and dispatcher as the API process, normally
CASCADE_STORE=postgres and CASCADE_DISPATCHER=servicebus.

Usage:
    python -m worker.main

Environment Variables:
    CASCADE_JOB_QUEUE: Queue to listen on
    CASCADE_SERVICEBUS_CONNECTION_STRING / CASCADE_SERVICEBUS_FQDN: Service Bus
    USE_MANAGED_IDENTITY: "true" to use Azure managed identity
    CASCADE_WORKER_MAX_CONCURRENT: Max concurrent jobs
    HANDLER_MODULES: Comma-separated modules exposing register_jobs(registry)
    PORT: Health server port (default 8000)
"""

import asyncio
import importlib
import os
from typing import List, Optional

from aiohttp import web

from core.logging import configure_logging, get_logger
from handlers import JobRegistry, register_example_jobs
from messaging.config import MessagingConfig
from orchestrator.factory import CascadeRuntime, build_runtime
from worker.consumer import ServiceBusConsumer, run_consumer
from __version__ import __version__, BUILD_DATE

configure_logging(
    level=os.environ.get("LOG_LEVEL", "INFO"),
    json_output=os.environ.get("LOG_FORMAT", "").lower() == "json",
)
logger = get_logger(__name__)

# Worker state for health checks
_worker_status = "starting"
_consumer: Optional[ServiceBusConsumer] = None


# ============================================================================
# HEALTH SERVER (for Azure Web App probes)
# ============================================================================

async def health_handler(request):
    """Report version, queue and consumer stats."""
    healthy = _worker_status in ("starting", "running")
    response_data = {
        "status": "healthy" if healthy else "unhealthy",
        "worker_status": _worker_status,
        "version": __version__,
        "build_date": BUILD_DATE,
        "queue": _consumer.config.job_queue if _consumer else "unknown",
        "consuming": _consumer.running if _consumer else False,
    }
    if _consumer:
        response_data["stats"] = _consumer.stats()

    return web.json_response(response_data, status=200 if healthy else 503)


async def start_health_server(port: int = 8000) -> web.AppRunner:
    """Start minimal HTTP server for health probes."""
    app = web.Application()
    app.router.add_get("/", health_handler)
    app.router.add_get("/health", health_handler)
    app.router.add_get("/livez", health_handler)

    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, "0.0.0.0", port)
    await site.start()
    logger.info(f"Health server started on port {port}")
    return runner


# ============================================================================
# HANDLER LOADING
# ============================================================================

def load_handlers(registry: JobRegistry, modules: Optional[List[str]] = None) -> JobRegistry:
    """
    Register job handlers.

    The example jobs are always registered. Each extra module must expose
    register_jobs(registry).

    Args:
        registry: Registry to fill
        modules: Module names (defaults to HANDLER_MODULES)
    """
    register_example_jobs(registry)

    if modules is None:
        extra = os.getenv("HANDLER_MODULES", "")
        modules = [m.strip() for m in extra.split(",") if m.strip()]

    for module_name in modules:
        module = importlib.import_module(module_name)
        register = getattr(module, "register_jobs", None)
        if register is None:
            raise AttributeError(f"Handler module {module_name} has no register_jobs(registry)")
        register(registry)
        logger.info(f"Loaded handler module: {module_name}")

    logger.info(f"Registered {len(registry.list_jobs())} jobs: {[j['name'] for j in registry.list_jobs()]}")
    return registry


# ============================================================================
# MAIN
# ============================================================================

async def main() -> None:
    """Main entry point."""
    global _worker_status, _consumer

    logger.info("=" * 60)
    logger.info(f"Cascade Worker Starting v{__version__}")
    logger.info("=" * 60)

    health_port = int(os.environ.get("PORT", "8000"))
    health_runner = await start_health_server(health_port)

    runtime: Optional[CascadeRuntime] = None
    try:
        config = MessagingConfig.from_env()
        registry = load_handlers(JobRegistry())
        runtime = await build_runtime(registry)

        logger.info(f"Queue: {config.job_queue}")
        logger.info(f"Max Concurrent: {config.max_concurrent_jobs}")

        _consumer = ServiceBusConsumer(config, runtime.runner)
        _worker_status = "running"
        await run_consumer(_consumer)
        _worker_status = "stopped"
    except Exception as e:
        logger.exception(f"Worker failed: {e}")
        _worker_status = f"error: {str(e)[:100]}"
        raise
    finally:
        if runtime is not None:
            await runtime.close()
        await health_runner.cleanup()

    logger.info("Cascade Worker stopped")


def run() -> None:
    """Synchronous entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    run()
