# ============================================================================
# CASCADE ORCHESTRATOR - MAIN APPLICATION
# ============================================================================
# EPOCH: 1 - CASCADING DISPATCH
# STATUS: Core - FastAPI application entry point
# PURPOSE: Wire the orchestrator from configuration and serve the HTTP API
# CREATED: 18 OCT 2026
# ============================================================================
"""
Cascade Orchestrator Main Application

FastAPI application that:
1. Builds store, dispatcher, runner and orchestrator from environment config
2. Registers the example jobs
3. Serves the HTTP API for starting workflows and reporting job outcomes

Usage:
    uvicorn main:app --host 0.0.0.0 --port 8000
"""

import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from __version__ import __version__, BUILD_DATE, EPOCH
from api.routes import router, set_orchestrator
from core.logging import configure_logging, get_logger
from handlers import JobRegistry, register_example_jobs
from orchestrator.factory import CascadeRuntime, build_runtime

configure_logging(
    level=os.environ.get("LOG_LEVEL", "INFO"),
    json_output=os.environ.get("LOG_FORMAT", "").lower() == "json",
)
logger = get_logger(__name__)

# Global instances
_runtime: Optional[CascadeRuntime] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Initializes the runtime on startup, cleans up on shutdown.
    """
    global _runtime

    logger.info(f"Starting Cascade Orchestrator v{__version__} (Epoch {EPOCH}, Build {BUILD_DATE})")

    registry = register_example_jobs(JobRegistry())
    _runtime = await build_runtime(registry)
    set_orchestrator(_runtime.orchestrator)
    logger.info(f"Orchestrator ready ({len(registry.list_jobs())} jobs registered)")

    yield

    logger.info("Shutting down Cascade Orchestrator...")
    set_orchestrator(None)
    await _runtime.close()
    _runtime = None
    logger.info("Cascade Orchestrator stopped")


app = FastAPI(
    title="Cascade Orchestrator",
    description=f"Epoch {EPOCH} cascading DAG job orchestration",
    version=__version__,
    lifespan=lifespan,
)

app.include_router(router, prefix="/api/v1")


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "service": "Cascade Orchestrator",
        "version": __version__,
        "epoch": EPOCH,
        "build_date": BUILD_DATE,
        "status": "running" if _runtime else "starting",
        "docs": "/docs",
    }


@app.get("/livez")
async def livez():
    """Liveness probe."""
    return {"status": "ok"}


# ============================================================================
# MAIN ENTRY POINT
# ============================================================================

if __name__ == "__main__":
    import uvicorn

    host = os.environ.get("HOST", "0.0.0.0")
    port = int(os.environ.get("PORT", "8000"))

    uvicorn.run(
        "main:app",
        host=host,
        port=port,
        reload=os.environ.get("RELOAD", "false").lower() == "true",
    )
