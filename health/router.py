# ============================================================================
# HEALTH CHECK ROUTER
# ============================================================================
# EPOCH: 1 - GENERATION CORE
# STATUS: Infrastructure - FastAPI health check endpoints
# PURPOSE: Liveness, readiness and full health endpoints
# CREATED: 15 OCT 2026
# ============================================================================
"""
Health Check Router

Endpoints:
    GET /livez   - Process alive; no checks run
    GET /readyz  - Required checks only
    GET /health  - Every registered check
    GET /health/{check_name} - Single check status

Response Codes:
    200 - Healthy
    206 - Degraded (partial content)
    503 - Unhealthy (service unavailable)

The registry is read from ``app.state.health``; with no registry (or no
checks) the service reports healthy.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from health.core import HealthStatus
from health.registry import HealthCheckRegistry
from __version__ import __version__, BUILD_DATE

logger = logging.getLogger(__name__)

health_router = APIRouter(tags=["Health"])


def _status_to_http_code(status: HealthStatus) -> int:
    return {
        HealthStatus.HEALTHY: 200,
        HealthStatus.DEGRADED: 206,
        HealthStatus.UNHEALTHY: 503,
    }[status]


def _registry(request: Request) -> Optional[HealthCheckRegistry]:
    return getattr(request.app.state, "health", None)


@health_router.get("/livez")
async def liveness_probe():
    """Returns 200 while the process is responsive."""
    return {"status": "alive", "version": __version__, "build_date": BUILD_DATE}


@health_router.get("/readyz")
async def readiness_probe(request: Request):
    """Returns 503 if any check marked required_for_ready is unhealthy."""
    registry = _registry(request)
    if registry is None or len(registry) == 0:
        return {"status": "ready", "message": "No checks registered"}

    result = await registry.run_required()

    if result.status == HealthStatus.UNHEALTHY:
        return JSONResponse(
            status_code=503,
            content={
                "status": "not_ready",
                "checks": {
                    name: check.to_dict()
                    for name, check in result.checks.items()
                    if check.status == HealthStatus.UNHEALTHY
                },
                "total_duration_ms": round(result.total_duration_ms, 2),
            },
        )

    return {
        "status": "ready",
        "checks_passed": len(result.checks),
        "total_duration_ms": round(result.total_duration_ms, 2),
    }


@health_router.get("/health")
async def full_health_check(request: Request):
    """Runs all registered checks and returns detailed status."""
    registry = _registry(request)
    if registry is None or len(registry) == 0:
        return {"status": "healthy", "message": "No checks registered", "checks": {}}

    result = await registry.run_all()

    response_body = result.to_dict()
    response_body["version"] = __version__
    response_body["build_date"] = BUILD_DATE

    summary = {}
    for name, check_result in result.checks.items():
        check = registry.get(name)
        if check:
            counts = summary.setdefault(check.category.value, {"healthy": 0, "degraded": 0, "unhealthy": 0})
            counts[check_result.status.value] += 1
    response_body["summary"] = summary

    return JSONResponse(status_code=_status_to_http_code(result.status), content=response_body)


@health_router.get("/health/{check_name}")
async def single_health_check(check_name: str, request: Request):
    registry = _registry(request)
    result = await registry.run_single(check_name) if registry is not None else None

    if result is None:
        return JSONResponse(
            status_code=404,
            content={"error": f"Health check not found: {check_name}"},
        )

    return JSONResponse(status_code=_status_to_http_code(result.status), content=result.to_dict())


__all__ = ["health_router"]
