# ============================================================================
# BLUEPRINT FORGE - MAIN APPLICATION
# ============================================================================
# EPOCH: 1 - GENERATION CORE
# STATUS: Core - FastAPI application entry point
# PURPOSE: Wire the event bus, registry, scheduler and pipeline into one app
# CREATED: 15 OCT 2026
# ============================================================================
"""
Blueprint Forge Main Application

FastAPI application that:
1. Provides the HTTP API for builds, scheduler state, events and extensions
2. Runs the task scheduler's dispatcher and heartbeat in the background
3. Optionally persists builds and events to PostgreSQL

Environment:
    PERSISTENCE_BACKEND   memory (default) | postgres
    GENERATOR_MODE        reference (default) | scheduled
    LOG_LEVEL, LOG_FORMAT=json

Usage:
    uvicorn main:app --host 0.0.0.0 --port 8000
"""

import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from __version__ import __version__, BUILD_DATE, EPOCH
from api.routes import router
from core.config import Defaults, PersistenceBackend, get_defaults
from core.logging import ComponentType, configure_logging, get_logger
from core.models.build import ArtifactBag, BuildJob
from generators import LoggingDeployer, ReferenceGenerator, SchedulerBackedGenerator
from health import HealthCheckRegistry, health_router
from health.checks import (
    EventBusCheck,
    PipelineCheck,
    PostgresCheck,
    ProcessCheck,
    SchedulerCheck,
    SystemResourcesCheck,
)
from orchestrator import BuildPipeline, TaskScheduler
from providers import LocalGenerationProvider
from repositories import (
    PostgresEventStore,
    PostgresProjectionRepository,
    close_pool,
    ensure_schema,
    init_pool,
)
from services import EventBus, ExtensionRegistry

configure_logging(
    level=os.environ.get("LOG_LEVEL", "INFO"),
    json_output=os.environ.get("LOG_FORMAT", "").lower() == "json",
)
logger = get_logger(__name__, ComponentType.API)


async def build_services(app: FastAPI, defaults: Defaults) -> None:
    """
    Construct every core service and store it on ``app.state``.

    Nothing is module-global: a second app (or a test) gets its own bus,
    registry, scheduler and pipeline.
    """
    persistence = defaults.persistence
    pool = None
    store = None
    jobs_repo = None
    artifacts_repo = None

    if persistence.backend == PersistenceBackend.POSTGRES:
        pool = await init_pool(min_size=persistence.pool_min_size, max_size=persistence.pool_max_size)
        await ensure_schema(pool, persistence.schema_name)
        store = PostgresEventStore(pool, persistence.schema_name)
        jobs_repo = PostgresProjectionRepository(pool, "build_jobs", BuildJob, schema=persistence.schema_name)
        artifacts_repo = PostgresProjectionRepository(
            pool, "artifacts", ArtifactBag, schema=persistence.schema_name,
        )
        logger.info(f"PostgreSQL persistence enabled (schema={persistence.schema_name})")

    event_bus = EventBus(config=defaults.event_bus, store=store)
    await event_bus.initialize()

    extensions = ExtensionRegistry(event_bus=event_bus)

    scheduler = TaskScheduler(event_bus=event_bus, config=defaults.scheduler)
    reference = ReferenceGenerator()
    LocalGenerationProvider(reference).register_with(scheduler)

    generator_mode = os.environ.get("GENERATOR_MODE", "reference").lower()
    if generator_mode == "scheduled":
        generator = SchedulerBackedGenerator(scheduler, fallback=reference)
    else:
        generator = reference
    logger.info(f"Generator mode: {generator_mode}")

    pipeline = BuildPipeline(
        event_bus,
        extensions,
        generator,
        jobs_repo=jobs_repo,
        artifacts_repo=artifacts_repo,
        deployer=LoggingDeployer(),
        config=defaults.pipeline,
    )

    health = HealthCheckRegistry()
    health.register(ProcessCheck())
    health.register(SystemResourcesCheck())
    health.register(EventBusCheck(event_bus))
    health.register(SchedulerCheck(scheduler))
    health.register(PipelineCheck(pipeline))
    if pool is not None:
        health.register(PostgresCheck(pool, persistence.schema_name))

    app.state.pool = pool
    app.state.event_bus = event_bus
    app.state.extensions = extensions
    app.state.scheduler = scheduler
    app.state.pipeline = pipeline
    app.state.health = health


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Initializes services on startup, cleans up on shutdown.
    """
    logger.info(f"Starting Blueprint Forge v{__version__} (Epoch {EPOCH}, Build {BUILD_DATE})")

    await build_services(app, get_defaults())

    await app.state.scheduler.start()
    logger.info(f"Scheduler started ({len(app.state.scheduler.list_providers())} providers)")

    yield

    logger.info("Shutting down Blueprint Forge...")

    await app.state.pipeline.shutdown()
    await app.state.scheduler.stop()
    if app.state.pool is not None:
        await close_pool()

    logger.info("Blueprint Forge stopped")


# Create FastAPI app
app = FastAPI(
    title="Blueprint Forge",
    description=f"Epoch {EPOCH} generation core: specifications in, artifacts out",
    version=__version__,
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Health check routes (no prefix - /livez, /readyz, /health)
app.include_router(health_router)

# API routes
app.include_router(router, prefix="/api/v1")


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "service": "Blueprint Forge",
        "version": __version__,
        "epoch": EPOCH,
        "build_date": BUILD_DATE,
        "status": "running",
        "docs": "/docs",
    }


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
