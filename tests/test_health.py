# ============================================================================
# HEALTH CHECK TESTS
# ============================================================================
# EPOCH: 1 - GENERATION CORE
# STATUS: Tests - Health registry, plugins and endpoints
# PURPOSE: Verify worst-wins aggregation, timeouts and HTTP status mapping
# CREATED: 16 OCT 2026
# ============================================================================
"""
Health Check Tests

Covers:
1. HealthStatus aggregation (worst wins)
2. Registry execution: tiers, required checks, timeouts, exceptions
3. Plugins over real EventBus / TaskScheduler / BuildPipeline instances
4. PostgresCheck against a mocked pool
5. /livez, /readyz, /health and /health/{name} response codes

Run with:
    pytest tests/test_health.py -v
"""

import asyncio
from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock

from fastapi import FastAPI
from fastapi.testclient import TestClient

from core.config import SchedulerDefaults
from generators import ReferenceGenerator
from health import HealthCheckRegistry, health_router
from health.checks import (
    EventBusCheck,
    PipelineCheck,
    PostgresCheck,
    ProcessCheck,
    SchedulerCheck,
)
from health.core import (
    HealthCheckCategory,
    HealthCheckPlugin,
    HealthCheckResult,
    HealthStatus,
)
from orchestrator.pipeline import BuildPipeline
from orchestrator.scheduler import TaskScheduler
from providers import LocalGenerationProvider
from services.event_bus import EventBus
from services.extension_registry import ExtensionRegistry


# ============================================================================
# HELPERS
# ============================================================================

class StaticCheck(HealthCheckPlugin):
    """Returns a fixed status."""

    category = HealthCheckCategory.APPLICATION

    def __init__(self, name, status=HealthStatus.HEALTHY, required=True, calls=None):
        self.name = name
        self.status = status
        self.required_for_ready = required
        self.calls = calls if calls is not None else []

    async def check(self) -> HealthCheckResult:
        self.calls.append(self.name)
        return HealthCheckResult(status=self.status, message=self.status.value)


class SlowCheck(HealthCheckPlugin):
    name = "slow"
    timeout_seconds = 0.05

    async def check(self) -> HealthCheckResult:
        await asyncio.sleep(1)
        return HealthCheckResult.healthy()


class ExplodingCheck(HealthCheckPlugin):
    name = "exploding"

    async def check(self) -> HealthCheckResult:
        raise RuntimeError("disk on fire")


def _client(registry):
    app = FastAPI()
    app.include_router(health_router)
    if registry is not None:
        app.state.health = registry
    return TestClient(app)


def _mock_pool(rows=None, error=None):
    result = MagicMock()
    result.fetchall = AsyncMock(return_value=rows or [])

    conn = MagicMock()
    conn.execute = AsyncMock(return_value=result, side_effect=error)

    @asynccontextmanager
    async def connection():
        yield conn

    pool = MagicMock()
    pool.connection = connection
    return pool


# ============================================================================
# CORE TYPES
# ============================================================================

class TestHealthStatus:

    def test_aggregate_worst_wins(self):
        assert HealthStatus.aggregate([]) == HealthStatus.HEALTHY
        assert HealthStatus.aggregate([HealthStatus.HEALTHY, HealthStatus.DEGRADED]) == HealthStatus.DEGRADED
        assert HealthStatus.aggregate(
            [HealthStatus.DEGRADED, HealthStatus.UNHEALTHY, HealthStatus.HEALTHY]
        ) == HealthStatus.UNHEALTHY

    def test_category_priority_applied(self):
        assert ProcessCheck.priority == 10
        assert PostgresCheck.priority == 30
        assert SchedulerCheck.priority == 40

    def test_result_to_dict_omits_empty(self):
        body = HealthCheckResult.healthy().to_dict()
        assert body == {"status": "healthy", "duration_ms": 0.0}

    def test_from_exception(self):
        result = HealthCheckResult.from_exception(KeyError("x"))
        assert result.status == HealthStatus.UNHEALTHY
        assert result.details["exception_type"] == "KeyError"


# ============================================================================
# REGISTRY
# ============================================================================

class TestRegistry:

    def test_register_and_lookup(self):
        registry = HealthCheckRegistry()
        registry.register(StaticCheck("a"))
        registry.register(StaticCheck("a", HealthStatus.DEGRADED))

        assert len(registry) == 1
        assert "a" in registry
        assert registry.get("a").status == HealthStatus.DEGRADED
        assert registry.unregister("a") is True
        assert registry.unregister("a") is False

    def test_run_all_aggregates(self):
        registry = HealthCheckRegistry()
        registry.register(StaticCheck("ok"))
        registry.register(StaticCheck("meh", HealthStatus.DEGRADED))

        result = asyncio.run(registry.run_all())

        assert result.status == HealthStatus.DEGRADED
        assert set(result.checks) == {"ok", "meh"}

    def test_tiers_run_in_priority_order(self):
        calls = []
        registry = HealthCheckRegistry()
        late = StaticCheck("late", calls=calls)
        early = StaticCheck("early", calls=calls)
        early.priority = 5
        registry.register(late)
        registry.register(early)

        asyncio.run(registry.run_all())

        assert calls == ["early", "late"]

    def test_run_required_skips_optional(self):
        registry = HealthCheckRegistry()
        registry.register(StaticCheck("needed"))
        registry.register(StaticCheck("optional", HealthStatus.UNHEALTHY, required=False))

        result = asyncio.run(registry.run_required())

        assert list(result.checks) == ["needed"]
        assert result.status == HealthStatus.HEALTHY

    def test_timeout_is_unhealthy(self):
        registry = HealthCheckRegistry()
        registry.register(SlowCheck())

        result = asyncio.run(registry.run_single("slow"))

        assert result.status == HealthStatus.UNHEALTHY
        assert result.message == "Timeout after 0.05s"

    def test_exception_is_unhealthy(self):
        registry = HealthCheckRegistry()
        registry.register(ExplodingCheck())

        result = asyncio.run(registry.run_single("exploding"))

        assert result.status == HealthStatus.UNHEALTHY
        assert result.message == "disk on fire"

    def test_unknown_single(self):
        assert asyncio.run(HealthCheckRegistry().run_single("nope")) is None


# ============================================================================
# PLUGINS
# ============================================================================

class TestApplicationChecks:

    def test_event_bus_degrades_on_dead_letters(self):
        async def run():
            bus = EventBus()
            healthy = await EventBusCheck(bus).check()

            async def broken(event):
                raise RuntimeError("handler bug")

            bus.subscribe("demo.x", broken)
            await bus.emit("demo.x", {})
            return healthy, await EventBusCheck(bus).check()

        before, after = asyncio.run(run())
        assert before.status == HealthStatus.HEALTHY
        assert after.status == HealthStatus.DEGRADED
        assert after.details["dead_lettered"] == 1

    def test_scheduler_not_running(self):
        async def run():
            return await SchedulerCheck(TaskScheduler()).check()

        result = asyncio.run(run())
        assert result.status == HealthStatus.UNHEALTHY
        assert result.message == "Scheduler not running"

    def test_scheduler_with_provider_is_healthy(self):
        async def run():
            scheduler = TaskScheduler(config=SchedulerDefaults(tick_interval_seconds=0.05))
            LocalGenerationProvider(ReferenceGenerator()).register_with(scheduler)
            await scheduler.start()
            try:
                await scheduler.heartbeat()
                return await SchedulerCheck(scheduler).check()
            finally:
                await scheduler.stop()

        result = asyncio.run(run())
        assert result.status == HealthStatus.HEALTHY
        assert result.details["modules"]["provider-pool"] == "healthy"

    def test_scheduler_without_providers_is_degraded(self):
        async def run():
            scheduler = TaskScheduler(config=SchedulerDefaults(tick_interval_seconds=0.05))
            await scheduler.start()
            try:
                await scheduler.heartbeat()
                return await SchedulerCheck(scheduler).check()
            finally:
                await scheduler.stop()

        result = asyncio.run(run())
        assert result.status == HealthStatus.DEGRADED
        assert "provider-pool" in result.message

    def test_pipeline_reports_counters(self):
        async def run():
            bus = EventBus()
            pipeline = BuildPipeline(bus, ExtensionRegistry(bus), ReferenceGenerator())
            return await PipelineCheck(pipeline).check()

        result = asyncio.run(run())
        assert result.status == HealthStatus.HEALTHY
        assert result.details["active"] == 0


class TestPostgresCheck:

    def test_tables_present(self):
        pool = _mock_pool(rows=[{"table_name": "events"}, {"table_name": "projections"}])
        result = asyncio.run(PostgresCheck(pool).check())
        assert result.status == HealthStatus.HEALTHY

    def test_missing_table(self):
        pool = _mock_pool(rows=[{"table_name": "events"}])
        result = asyncio.run(PostgresCheck(pool).check())
        assert result.status == HealthStatus.UNHEALTHY
        assert "projections" in result.message

    def test_connection_failure(self):
        pool = _mock_pool(error=OSError("connection refused"))
        result = asyncio.run(PostgresCheck(pool).check())
        assert result.status == HealthStatus.UNHEALTHY
        assert "connection refused" in result.message


# ============================================================================
# ENDPOINTS
# ============================================================================

class TestHealthEndpoints:

    def test_livez(self):
        response = _client(None).get("/livez")
        assert response.status_code == 200
        assert response.json()["status"] == "alive"

    def test_no_registry(self):
        client = _client(None)
        assert client.get("/readyz").json()["status"] == "ready"
        assert client.get("/health").json() == {
            "status": "healthy",
            "message": "No checks registered",
            "checks": {},
        }

    def test_status_codes(self):
        for status, code in (
            (HealthStatus.HEALTHY, 200),
            (HealthStatus.DEGRADED, 206),
            (HealthStatus.UNHEALTHY, 503),
        ):
            registry = HealthCheckRegistry()
            registry.register(StaticCheck("only", status))
            response = _client(registry).get("/health")
            assert response.status_code == code
            assert response.json()["summary"]["application"][status.value] == 1

    def test_readyz_not_ready(self):
        registry = HealthCheckRegistry()
        registry.register(StaticCheck("ok"))
        registry.register(StaticCheck("down", HealthStatus.UNHEALTHY))

        response = _client(registry).get("/readyz")

        assert response.status_code == 503
        body = response.json()
        assert body["status"] == "not_ready"
        assert list(body["checks"]) == ["down"]

    def test_readyz_ignores_degraded(self):
        registry = HealthCheckRegistry()
        registry.register(StaticCheck("meh", HealthStatus.DEGRADED))

        response = _client(registry).get("/readyz")

        assert response.status_code == 200
        assert response.json()["checks_passed"] == 1

    def test_single_check(self):
        registry = HealthCheckRegistry()
        registry.register(StaticCheck("meh", HealthStatus.DEGRADED))
        client = _client(registry)

        assert client.get("/health/meh").status_code == 206
        assert client.get("/health/unknown").status_code == 404
