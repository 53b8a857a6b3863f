# ============================================================================
# JOB CYCLE ENGINE - MAIN APPLICATION
# ============================================================================
# EPOCH: 1 - JOB CYCLE ENGINE
# STATUS: Core - FastAPI application entry point
# PURPOSE: Main application wiring pool, services and routers
# CREATED: 18 OCT 2026
# ============================================================================
"""
Job Cycle Engine Main Application

FastAPI application that:
1. Provides HTTP API for job definitions, instances, tasks and statuses
2. Manages the database connection pool
3. Optionally deploys the schema at startup (DB_DEPLOY_SCHEMA=true)

Usage:
    uvicorn main:app --host 0.0.0.0 --port 8000
"""

import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from __version__ import __version__, BUILD_DATE, EPOCH
from api import (
    definition_router,
    group_router,
    instance_router,
    task_router,
    set_definition_service,
    set_group_services,
    set_instance_service,
)
from repositories.database import init_pool, close_pool, get_pool
from repositories.schema import deploy_schema
from services import JobDefinitionService, JobInstanceService, StatusCatalogService

# Configure logging using our structured logging system
from core.logging import configure_logging, get_logger

configure_logging(
    level=os.environ.get("LOG_LEVEL", "INFO"),
    json_output=os.environ.get("LOG_FORMAT", "").lower() == "json",
)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup: open pool, deploy schema if requested, build and inject services.
    Shutdown: close pool.
    """
    logger.info(f"Starting Job Cycle Engine v{__version__}...")

    pool = await init_pool()

    if os.environ.get("DB_DEPLOY_SCHEMA", "false").lower() == "true":
        await deploy_schema(pool)

    definition_service = JobDefinitionService(pool)
    instance_service = JobInstanceService(pool)
    status_service = StatusCatalogService(pool)

    set_definition_service(definition_service)
    set_instance_service(instance_service)
    set_group_services(definition_service, instance_service, status_service)

    logger.info("Job Cycle Engine started")

    yield

    logger.info("Shutting down Job Cycle Engine...")
    await close_pool()
    logger.info("Job Cycle Engine stopped")


# Create FastAPI app
app = FastAPI(
    title="Job Cycle Engine",
    description=f"Epoch {EPOCH} recurring job templates, instances and task hierarchies",
    version=__version__,
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=os.environ.get("CORS_ORIGINS", "*").split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(definition_router, prefix="/api/v1")
app.include_router(instance_router, prefix="/api/v1")
app.include_router(task_router, prefix="/api/v1")
app.include_router(group_router, prefix="/api/v1")


# Root endpoint
@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "service": "Job Cycle Engine",
        "version": __version__,
        "epoch": EPOCH,
        "build_date": BUILD_DATE,
        "status": "running",
        "docs": "/docs",
    }


@app.get("/health")
async def health():
    """Database round-trip check."""
    pool = await get_pool()
    async with pool.connection() as conn:
        await conn.execute("SELECT 1")
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
