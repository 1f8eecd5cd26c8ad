# ============================================================================
# APPLICATION HEALTH CHECKS
# ============================================================================
# EPOCH: 1 - GENERATION CORE
# STATUS: Infrastructure - Application state checks
# PURPOSE: Event bus, task scheduler and build pipeline state
# CREATED: 15 OCT 2026
# ============================================================================
"""
Application Health Checks

Application-level checks (priority 40). Each wraps the service instance
built by the lifespan:
- EventBusCheck: handler failures and dead letters
- SchedulerCheck: dispatcher running, module snapshot from the last heartbeat
- PipelineCheck: build counters
"""

import logging

from core.contracts import HealthState
from health.core import (
    HealthCheckPlugin,
    HealthCheckResult,
    HealthCheckCategory,
)

logger = logging.getLogger(__name__)


class EventBusCheck(HealthCheckPlugin):
    """Degraded once events have been dead-lettered."""

    name = "event_bus"
    category = HealthCheckCategory.APPLICATION
    timeout_seconds = 1.0
    required_for_ready = False

    def __init__(self, event_bus):
        self.event_bus = event_bus

    async def check(self) -> HealthCheckResult:
        stats = self.event_bus.stats
        if stats["dead_lettered"]:
            return HealthCheckResult.degraded(
                message=f"{stats['dead_lettered']} event(s) dead-lettered",
                **stats,
            )
        return HealthCheckResult.healthy(
            message=f"{stats['published']} events published",
            **stats,
        )


class SchedulerCheck(HealthCheckPlugin):
    """
    Task scheduler health check.

    Unhealthy when the dispatcher is not running. Otherwise the worst module
    state from the last heartbeat decides; a DOWN provider pool only
    degrades the service because builds can still run on local generators.
    """

    name = "scheduler"
    category = HealthCheckCategory.APPLICATION
    timeout_seconds = 2.0
    required_for_ready = True

    def __init__(self, scheduler):
        self.scheduler = scheduler

    async def check(self) -> HealthCheckResult:
        if not self.scheduler.is_running:
            return HealthCheckResult.unhealthy(message="Scheduler not running")

        modules = self.scheduler.get_health()
        details = {
            "modules": {name: h.state.value for name, h in modules.items()},
            "queue_depth": self.scheduler.queue_depth,
            "running": self.scheduler.running_count,
        }

        troubled = [name for name, h in modules.items() if h.state != HealthState.HEALTHY]
        if troubled:
            return HealthCheckResult.degraded(
                message=f"Modules not healthy: {', '.join(sorted(troubled))}",
                **details,
            )
        return HealthCheckResult.healthy(message="Scheduler running", **details)


class PipelineCheck(HealthCheckPlugin):
    """Reports build counters; always healthy while the pipeline exists."""

    name = "pipeline"
    category = HealthCheckCategory.APPLICATION
    timeout_seconds = 1.0
    required_for_ready = False

    def __init__(self, pipeline):
        self.pipeline = pipeline

    async def check(self) -> HealthCheckResult:
        stats = self.pipeline.stats
        return HealthCheckResult.healthy(
            message=f"{stats['active']} build(s) in flight",
            **stats,
        )


__all__ = [
    "EventBusCheck",
    "SchedulerCheck",
    "PipelineCheck",
]
