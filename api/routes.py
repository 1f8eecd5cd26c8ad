# ============================================================================
# API ROUTES
# ============================================================================
# EPOCH: 1 - GENERATION CORE
# STATUS: Core - FastAPI route definitions
# PURPOSE: HTTP endpoints for builds, scheduler, events and extensions
# CREATED: 15 OCT 2026
# ============================================================================
"""
API Routes

Mounted under /api/v1 by main.py. Service instances are built by the
application lifespan and stored on ``app.state``; the get_* dependencies
below read them back per request.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from core.contracts import ArtifactCategory, TaskStatus
from core.errors import TaskNotFoundError
from .schemas import (
    ArtifactContentResponse,
    ArtifactInfo,
    ArtifactListResponse,
    BuildCreate,
    BuildDetailResponse,
    BuildListResponse,
    BuildSummary,
    ErrorResponse,
    EventListResponse,
    ExtensionListResponse,
    ExtensionPointListResponse,
    TaskCancelResponse,
    TaskListResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()


# ============================================================================
# DEPENDENCY INJECTION
# ============================================================================

def _service(request: Request, name: str, label: str):
    service = getattr(request.app.state, name, None)
    if service is None:
        raise HTTPException(500, f"{label} not initialized")
    return service


def get_pipeline(request: Request):
    return _service(request, "pipeline", "Build pipeline")


def get_scheduler(request: Request):
    return _service(request, "scheduler", "Scheduler")


def get_event_bus(request: Request):
    return _service(request, "event_bus", "Event bus")


def get_extensions(request: Request):
    return _service(request, "extensions", "Extension registry")


# ============================================================================
# BUILDS
# ============================================================================

@router.post(
    "/builds",
    response_model=BuildSummary,
    status_code=202,
    tags=["Builds"],
    responses={422: {"description": "Invalid specification"}},
)
async def create_build(body: BuildCreate, pipeline=Depends(get_pipeline)):
    """
    Start a build.

    Returns immediately with the idle job. Poll GET /builds/{job_id}
    to monitor progress.
    """
    job = await pipeline.submit(
        body.specification,
        deploy_target=body.deploy_target,
        tenant_id=body.tenant_id,
        correlation_id=body.correlation_id,
    )
    logger.info(f"Accepted build {job.job_id} for specification {body.specification.id}")
    return BuildSummary.from_job(job)


@router.get("/builds", response_model=BuildListResponse, tags=["Builds"])
async def list_builds(
    tenant_id: Optional[str] = Query(None, description="Filter by tenant"),
    limit: int = Query(100, ge=1, le=1000),
    pipeline=Depends(get_pipeline),
):
    jobs = await pipeline.list_jobs(limit=limit, tenant_id=tenant_id)
    return BuildListResponse(builds=[BuildSummary.from_job(j) for j in jobs], total=len(jobs))


@router.get(
    "/builds/{job_id}",
    response_model=BuildDetailResponse,
    tags=["Builds"],
    responses={404: {"model": ErrorResponse}},
)
async def get_build(job_id: str, pipeline=Depends(get_pipeline)):
    """Build record with logs, errors and artifact counts."""
    job = await pipeline.get_build_state(job_id)
    if job is None:
        raise HTTPException(404, f"Build not found: {job_id}")

    counts = {}
    for artifact in await pipeline.get_artifacts(job_id):
        counts[artifact.category.value] = counts.get(artifact.category.value, 0) + 1

    return BuildDetailResponse(job=job, artifact_counts=counts)


@router.get(
    "/builds/{job_id}/artifacts",
    response_model=ArtifactListResponse,
    tags=["Builds"],
    responses={404: {"model": ErrorResponse}},
)
async def list_artifacts(
    job_id: str,
    category: Optional[ArtifactCategory] = Query(None),
    pipeline=Depends(get_pipeline),
):
    if await pipeline.get_build_state(job_id) is None:
        raise HTTPException(404, f"Build not found: {job_id}")

    artifacts = await pipeline.get_artifacts(job_id, category)
    return ArtifactListResponse(
        job_id=job_id,
        artifacts=[ArtifactInfo.from_artifact(a) for a in artifacts],
        total=len(artifacts),
    )


@router.get(
    "/builds/{job_id}/artifacts/content",
    response_model=ArtifactContentResponse,
    tags=["Builds"],
    responses={404: {"model": ErrorResponse}},
)
async def get_artifact_content(
    job_id: str,
    path: str = Query(..., description="Artifact path, e.g. schema/001_init.sql"),
    pipeline=Depends(get_pipeline),
):
    content = await pipeline.get_artifact_content(job_id, path)
    if content is None:
        raise HTTPException(404, f"Artifact not found: {job_id}:{path}")
    return ArtifactContentResponse(job_id=job_id, path=path, content=content)


# ============================================================================
# SCHEDULER
# ============================================================================

@router.get("/scheduler/status", tags=["Scheduler"])
async def get_scheduler_status(scheduler=Depends(get_scheduler)):
    """Dispatcher state, counters, module health and recent alerts."""
    stats = scheduler.stats

    return {
        "status": "running" if stats["running"] else "stopped",
        "started_at": stats["started_at"],
        "uptime_seconds": stats["uptime_seconds"],
        "metrics": {
            "queue_depth": stats["queue_depth"],
            "running_tasks": stats["running_tasks"],
            "total_submitted": stats["total_submitted"],
            "total_completed": stats["total_completed"],
            "total_failed": stats["total_failed"],
            "total_cancelled": stats["total_cancelled"],
            "total_retries": stats["total_retries"],
            "avg_wait_ms": stats["avg_wait_ms"],
            "avg_execution_ms": stats["avg_execution_ms"],
            "ticks": stats["ticks"],
            "errors": stats["errors"],
        },
        "providers": [p.model_dump(mode="json") for p in scheduler.list_providers()],
        "health": {name: h.model_dump(mode="json") for name, h in scheduler.get_health().items()},
        "alerts": [a.model_dump(mode="json") for a in scheduler.get_alerts(limit=20)],
    }


@router.get("/scheduler/tasks", response_model=TaskListResponse, tags=["Scheduler"])
async def list_tasks(
    status: Optional[TaskStatus] = Query(None, description="Filter by status"),
    limit: int = Query(100, ge=1, le=1000),
    scheduler=Depends(get_scheduler),
):
    tasks = scheduler.list_tasks(status=status, limit=limit)
    return TaskListResponse(tasks=tasks, total=len(tasks))


@router.post(
    "/scheduler/tasks/{task_id}/cancel",
    response_model=TaskCancelResponse,
    tags=["Scheduler"],
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def cancel_task(task_id: str, scheduler=Depends(get_scheduler)):
    """Cancel a queued task. Running and finished tasks cannot be cancelled."""
    try:
        cancelled = await scheduler.cancel(task_id)
    except TaskNotFoundError:
        raise HTTPException(404, f"Task not found: {task_id}")

    if not cancelled:
        task = scheduler.get_task(task_id)
        raise HTTPException(409, f"Task {task_id} is {task.status.value}, only queued tasks can be cancelled")

    return TaskCancelResponse(task_id=task_id, cancelled=True)


# ============================================================================
# EVENTS
# ============================================================================

@router.get("/events", response_model=EventListResponse, tags=["Events"])
async def list_events(
    event_type: Optional[str] = Query(None, description="Dotted event type, e.g. task.failed"),
    correlation_id: Optional[str] = Query(None),
    aggregate_id: Optional[str] = Query(None, description="Build job id or task id"),
    tenant_id: Optional[str] = Query(None),
    from_sequence: Optional[int] = Query(None, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    event_bus=Depends(get_event_bus),
):
    """Recent events from the bus history, oldest first."""
    events = event_bus.get_event_history(
        event_type=event_type,
        limit=limit,
        tenant_id=tenant_id,
        correlation_id=correlation_id,
        aggregate_id=aggregate_id,
        from_sequence=from_sequence,
    )
    return EventListResponse(events=events, total=len(events), last_sequence=event_bus.last_sequence)


# ============================================================================
# EXTENSIONS
# ============================================================================

@router.get("/extensions", response_model=ExtensionListResponse, tags=["Extensions"])
async def list_extensions(
    enabled: Optional[bool] = Query(None),
    extension_point: Optional[str] = Query(None),
    tenant_id: Optional[str] = Query(None),
    extensions=Depends(get_extensions),
):
    items = extensions.list_extensions(
        enabled=enabled,
        extension_point=extension_point,
        tenant_id=tenant_id,
    )
    return ExtensionListResponse(extensions=[e.to_dict() for e in items], total=len(items))


@router.get("/extensions/points", response_model=ExtensionPointListResponse, tags=["Extensions"])
async def list_extension_points(extensions=Depends(get_extensions)):
    points = extensions.list_extension_points()
    return ExtensionPointListResponse(points=[p.to_dict() for p in points], total=len(points))


__all__ = [
    "router",
    "get_pipeline",
    "get_scheduler",
    "get_event_bus",
    "get_extensions",
]
