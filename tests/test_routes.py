# ============================================================================
# API ROUTE TESTS
# ============================================================================
# EPOCH: 1 - GENERATION CORE
# STATUS: Tests - HTTP surface
# PURPOSE: Verify build, scheduler, event and extension endpoints end to end
# CREATED: 16 OCT 2026
# ============================================================================
"""
API Route Tests

Covers:
1. POST /api/v1/builds accepts and runs a build in the background
2. Build detail, artifact listing and artifact content
3. Validation failures surfaced through the job record
4. Scheduler status, task listing and cancellation (404/409)
5. Event history and extension listing
6. 500 when a service was never initialized
7. The real application lifespan (root, /livez, /health)

Services are built with main.build_services inside a test lifespan so
each TestClient gets its own bus, registry, scheduler and pipeline. The
scheduler is left stopped there, which keeps submitted tasks queued.

Run with:
    pytest tests/test_routes.py -v
"""

import time
from contextlib import asynccontextmanager

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from api.routes import router
from core.config import Defaults, reset_defaults
from core.contracts import HookType, TaskKind
from core.models.extension import Hook
from services.extension_registry import CorePoint, create_extension


# ============================================================================
# FIXTURES
# ============================================================================

INVOICE_SPEC = {
    "id": "spec-billing",
    "name": "Billing",
    "entities": [
        {
            "name": "Invoice",
            "fields": [
                {"name": "number", "type": "string", "unique": True},
                {"name": "amount", "type": "decimal"},
            ],
        }
    ],
}


def _notify(result, context=None):
    return result


@pytest.fixture
def client(monkeypatch):
    monkeypatch.delenv("GENERATOR_MODE", raising=False)
    import main

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await main.build_services(app, Defaults())
        task = await app.state.scheduler.submit(TaskKind.CODE_REVIEW, {"files": []})
        app.state.queued_task_id = task.task_id
        await app.state.extensions.register_extension(
            create_extension(
                "slack-notify",
                "Slack Notify",
                {CorePoint.NOTIFICATION_DISPATCH: [Hook(hook_type=HookType.AFTER, handler=_notify)]},
            )
        )
        yield
        await app.state.pipeline.shutdown()

    app = FastAPI(lifespan=lifespan)
    app.include_router(router, prefix="/api/v1")

    with TestClient(app) as test_client:
        yield test_client


# ============================================================================
# HELPERS
# ============================================================================

def _wait_for_build(client, job_id, timeout=10.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        job = client.get(f"/api/v1/builds/{job_id}").json()["job"]
        if job["stage"] in ("completed", "failed"):
            return job
        time.sleep(0.05)
    raise AssertionError(f"Build {job_id} did not finish")


def _start_build(client, spec=None, **extra):
    response = client.post("/api/v1/builds", json={"specification": spec or INVOICE_SPEC, **extra})
    assert response.status_code == 202
    return response.json()


# ============================================================================
# BUILDS
# ============================================================================

class TestBuildRoutes:

    def test_submit_returns_idle_job(self, client):
        body = _start_build(client, tenant_id="acme", correlation_id="req-1")

        assert body["job_id"].startswith("build-")
        assert body["stage"] == "idle"
        assert body["progress"] == 0
        assert body["specification_id"] == "spec-billing"
        assert body["tenant_id"] == "acme"

    def test_build_completes(self, client):
        job_id = _start_build(client)["job_id"]

        job = _wait_for_build(client, job_id)
        detail = client.get(f"/api/v1/builds/{job_id}").json()

        assert job["stage"] == "completed"
        assert job["progress"] == 100
        assert job["artifacts_ready"] is True
        for category in ("schema", "backend", "frontend", "infrastructure", "tests"):
            assert detail["artifact_counts"][category] >= 1
        assert "documentation" not in detail["artifact_counts"]

    def test_artifacts_and_content(self, client):
        job_id = _start_build(client)["job_id"]
        _wait_for_build(client, job_id)

        listing = client.get(f"/api/v1/builds/{job_id}/artifacts", params={"category": "schema"}).json()
        assert [a["path"] for a in listing["artifacts"]] == ["schema/001_init.sql"]
        assert listing["artifacts"][0]["size"] > 0

        content = client.get(
            f"/api/v1/builds/{job_id}/artifacts/content",
            params={"path": "schema/001_init.sql"},
        ).json()
        assert "invoices" in content["content"]

        missing = client.get(
            f"/api/v1/builds/{job_id}/artifacts/content",
            params={"path": "nope.txt"},
        )
        assert missing.status_code == 404

    def test_empty_specification_fails_validation(self, client):
        job_id = _start_build(client, {"name": "Empty", "entities": []})["job_id"]

        job = _wait_for_build(client, job_id)

        assert job["stage"] == "failed"
        assert job["errors"][0]["code"] == "VALIDATION_FAILED"
        assert job["errors"][0]["stage"] == "validating"

    def test_malformed_request_is_422(self, client):
        response = client.post(
            "/api/v1/builds",
            json={"specification": {"entities": [{"name": "A", "fields": [{"name": "s", "type": "enum"}]}]}},
        )
        assert response.status_code == 422

    def test_list_builds_by_tenant(self, client):
        _start_build(client, tenant_id="acme")
        _start_build(client, tenant_id="globex")

        body = client.get("/api/v1/builds", params={"tenant_id": "acme"}).json()

        assert body["total"] == 1
        assert body["builds"][0]["tenant_id"] == "acme"

    def test_unknown_build(self, client):
        assert client.get("/api/v1/builds/build-missing").status_code == 404
        assert client.get("/api/v1/builds/build-missing/artifacts").status_code == 404


# ============================================================================
# SCHEDULER
# ============================================================================

class TestSchedulerRoutes:

    def test_status(self, client):
        body = client.get("/api/v1/scheduler/status").json()

        assert body["status"] == "stopped"
        assert body["metrics"]["queue_depth"] == 1
        assert [p["provider_id"] for p in body["providers"]] == ["local"]

    def test_tasks_filtered_by_status(self, client):
        queued = client.get("/api/v1/scheduler/tasks", params={"status": "queued"}).json()
        running = client.get("/api/v1/scheduler/tasks", params={"status": "running"}).json()

        assert queued["total"] == 1
        assert queued["tasks"][0]["task_type"] == "code-review"
        assert running["total"] == 0

    def test_cancel(self, client):
        task_id = client.app.state.queued_task_id

        first = client.post(f"/api/v1/scheduler/tasks/{task_id}/cancel")
        second = client.post(f"/api/v1/scheduler/tasks/{task_id}/cancel")

        assert first.status_code == 200
        assert first.json() == {"task_id": task_id, "cancelled": True}
        assert second.status_code == 409

    def test_cancel_unknown(self, client):
        assert client.post("/api/v1/scheduler/tasks/task-missing/cancel").status_code == 404


# ============================================================================
# EVENTS & EXTENSIONS
# ============================================================================

class TestEventRoutes:

    def test_build_events_by_aggregate(self, client):
        job_id = _start_build(client)["job_id"]
        _wait_for_build(client, job_id)

        body = client.get("/api/v1/events", params={"aggregate_id": job_id}).json()
        types = [e["event_type"] for e in body["events"]]

        assert types[0] == "generation.started"
        assert types[-1] == "generation.completed"
        assert "artifacts.ready" in types
        sequences = [e["sequence"] for e in body["events"]]
        assert sequences == sorted(sequences)
        assert body["last_sequence"] >= sequences[-1]

    def test_filter_by_type(self, client):
        body = client.get("/api/v1/events", params={"event_type": "task.queued"}).json()
        assert body["total"] == 1


class TestExtensionRoutes:

    def test_list_extensions(self, client):
        body = client.get("/api/v1/extensions").json()

        assert body["total"] == 1
        assert body["extensions"][0]["id"] == "slack-notify"
        assert body["extensions"][0]["enabled"] is False
        assert client.get("/api/v1/extensions", params={"enabled": "true"}).json()["total"] == 0

    def test_core_points(self, client):
        body = client.get("/api/v1/extensions/points").json()
        ids = {p["id"] for p in body["points"]}

        assert body["total"] == 9
        assert CorePoint.SECURITY_SCAN in ids
        assert CorePoint.NOTIFICATION_DISPATCH in ids


# ============================================================================
# WIRING
# ============================================================================

class TestUninitialized:

    def test_missing_service_is_500(self):
        app = FastAPI()
        app.include_router(router, prefix="/api/v1")
        client = TestClient(app)

        response = client.get("/api/v1/builds")

        assert response.status_code == 500
        assert response.json()["detail"] == "Build pipeline not initialized"
        assert client.get("/api/v1/scheduler/status").json()["detail"] == "Scheduler not initialized"


class TestApplication:

    def test_lifespan_and_root(self, monkeypatch):
        monkeypatch.delenv("PERSISTENCE_BACKEND", raising=False)
        monkeypatch.delenv("GENERATOR_MODE", raising=False)
        reset_defaults()
        import main

        try:
            with TestClient(main.app) as client:
                root = client.get("/").json()
                assert root["service"] == "Blueprint Forge"
                assert root["epoch"] == 1

                assert client.get("/livez").status_code == 200
                health = client.get("/health").json()
                assert health["checks"]["scheduler"]["status"] in ("healthy", "degraded")
                assert client.get("/api/v1/scheduler/status").json()["status"] == "running"
        finally:
            reset_defaults()
