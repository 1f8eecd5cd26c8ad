# ============================================================================
# HEALTH CHECK MODULE
# ============================================================================
# EPOCH: 1 - GENERATION CORE
# STATUS: Infrastructure - Health check plugin system
# PURPOSE: Probes and health monitoring for the generation service
# CREATED: 15 OCT 2026
# ============================================================================
"""
Health Check Module

- /livez: Process alive (instant)
- /readyz: Required checks pass
- /health: Every registered check

Architecture:
- HealthCheckPlugin: Base class for health checks
- HealthCheckRegistry: Per-application registration and execution

Usage:
    from health import HealthCheckRegistry, health_router
    from health.checks import SchedulerCheck

    registry = HealthCheckRegistry()
    registry.register(SchedulerCheck(scheduler))
    app.state.health = registry
    app.include_router(health_router)
"""

from health.core import (
    HealthStatus,
    HealthCheckResult,
    HealthCheckPlugin,
    HealthCheckCategory,
)
from health.registry import HealthCheckRegistry
from health.router import health_router

__all__ = [
    "HealthStatus",
    "HealthCheckResult",
    "HealthCheckPlugin",
    "HealthCheckCategory",
    "HealthCheckRegistry",
    "health_router",
]
