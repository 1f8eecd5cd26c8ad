# ============================================================================
# HEALTH CHECK REGISTRY
# ============================================================================
# EPOCH: 1 - GENERATION CORE
# STATUS: Infrastructure - Health check registration and execution
# PURPOSE: Hold the application's checks and run them with timeouts
# CREATED: 15 OCT 2026
# ============================================================================
"""
Health Check Registry

One registry per application, built in the lifespan and stored on
``app.state.health``. Checks run in priority tiers; checks within a tier
run in parallel, each under its own timeout.

Usage:
    registry = HealthCheckRegistry()
    registry.register(SchedulerCheck(scheduler))
    result = await registry.run_all()
"""

import asyncio
import logging
import time
from typing import Dict, List, Optional

from health.core import (
    AggregatedHealthResult,
    HealthCheckPlugin,
    HealthCheckResult,
    HealthStatus,
)

logger = logging.getLogger(__name__)


class HealthCheckRegistry:
    """Registry and executor for health check plugins."""

    def __init__(self, overall_timeout: float = 30.0):
        self._checks: Dict[str, HealthCheckPlugin] = {}
        self.overall_timeout = overall_timeout

    def register(self, check: HealthCheckPlugin) -> None:
        if check.name in self._checks:
            logger.warning(f"Overwriting health check: {check.name}")

        self._checks[check.name] = check
        logger.debug(
            f"Registered health check: {check.name} "
            f"(category={check.category.value}, priority={check.priority})"
        )

    def unregister(self, name: str) -> bool:
        return self._checks.pop(name, None) is not None

    def get(self, name: str) -> Optional[HealthCheckPlugin]:
        return self._checks.get(name)

    def get_checks_by_priority(self) -> List[HealthCheckPlugin]:
        """All checks sorted by priority (lower first)."""
        return sorted(self._checks.values(), key=lambda c: c.priority)

    def get_required_checks(self) -> List[HealthCheckPlugin]:
        return [c for c in self.get_checks_by_priority() if c.required_for_ready]

    def __len__(self) -> int:
        return len(self._checks)

    def __contains__(self, name: str) -> bool:
        return name in self._checks

    # =========================================================================
    # EXECUTION
    # =========================================================================

    async def run_all(self) -> AggregatedHealthResult:
        """Run every check, tier by tier."""
        return await self._run(self.get_checks_by_priority())

    async def run_required(self) -> AggregatedHealthResult:
        """Run only checks required for /readyz."""
        return await self._run(self.get_required_checks())

    async def run_single(self, name: str) -> Optional[HealthCheckResult]:
        check = self.get(name)
        if check is None:
            return None
        return await self._execute_check(check)

    async def _run(self, checks: List[HealthCheckPlugin]) -> AggregatedHealthResult:
        start_time = time.monotonic()
        results: Dict[str, HealthCheckResult] = {}

        tiers: Dict[int, List[HealthCheckPlugin]] = {}
        for check in checks:
            tiers.setdefault(check.priority, []).append(check)

        for _priority, tier_checks in sorted(tiers.items()):
            if time.monotonic() - start_time >= self.overall_timeout:
                logger.warning(f"Health check overall timeout ({self.overall_timeout}s) exceeded")
                for check in tier_checks:
                    results[check.name] = HealthCheckResult.unhealthy("Skipped: overall timeout exceeded")
                continue

            tier_results = await asyncio.gather(*(self._execute_check(c) for c in tier_checks))
            for check, result in zip(tier_checks, tier_results):
                results[check.name] = result

        return AggregatedHealthResult(
            status=HealthStatus.aggregate([r.status for r in results.values()]),
            checks=results,
            total_duration_ms=(time.monotonic() - start_time) * 1000,
        )

    async def _execute_check(self, check: HealthCheckPlugin) -> HealthCheckResult:
        """Execute a single check with timeout."""
        start_time = time.monotonic()

        try:
            result = await asyncio.wait_for(check.check(), timeout=check.timeout_seconds)
        except asyncio.TimeoutError:
            logger.warning(f"Health check {check.name} timed out after {check.timeout_seconds}s")
            result = HealthCheckResult.unhealthy(f"Timeout after {check.timeout_seconds}s")
        except Exception as e:
            logger.error(f"Health check {check.name} failed: {e}")
            result = HealthCheckResult.from_exception(e)

        result.duration_ms = (time.monotonic() - start_time) * 1000
        logger.debug(f"Health check {check.name}: {result.status.value} ({result.duration_ms:.1f}ms)")
        return result


__all__ = ["HealthCheckRegistry"]
