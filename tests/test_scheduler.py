# ============================================================================
# TASK SCHEDULER TESTS
# ============================================================================
# EPOCH: 1 - GENERATION CORE
# STATUS: Tests - Priority admission, retries, provider pool, heartbeat
# PURPOSE: Verify dispatch ordering, retry exhaustion and slot accounting
# CREATED: 16 OCT 2026
# ============================================================================
"""
Task Scheduler Tests

Covers:
1. Dispatch order by priority, then arrival
2. Provider selection (capability, concurrency cap, priority)
3. Admission retries: exactly max_retries attempts, one task.failed event
4. Requeue policy
5. Provider failures, timeouts and sync executors
6. Cancellation
7. Heartbeat health snapshots and queue-depth alerts
8. Background dispatcher loop

Tests construct the scheduler inside the coroutine: it creates asyncio
primitives in __init__.

Run with:
    pytest tests/test_scheduler.py -v
"""

import asyncio
import time

import pytest

from core.config import RequeuePolicy, SchedulerDefaults
from core.contracts import HealthState, TaskPriority, TaskStatus
from core.errors import InvalidTransitionError, TaskNotFoundError
from core.models.task import Provider, Task
from orchestrator.scheduler import DispatchOutcome, TaskScheduler
from services.event_bus import EventBus


# ============================================================================
# HELPERS
# ============================================================================

def _provider(provider_id="p1", capabilities=("code-generation",), max_concurrent=1, priority=100):
    return Provider(
        provider_id=provider_id,
        capabilities=set(capabilities),
        max_concurrent=max_concurrent,
        priority=priority,
    )


class RecordingExecutor:
    """Async executor that records the order tasks reach it."""

    def __init__(self, delay=0.0):
        self.seen = []
        self.delay = delay

    async def __call__(self, task):
        self.seen.append(task.input.get("label"))
        if self.delay:
            await asyncio.sleep(self.delay)
        return {"label": task.input.get("label")}


def _types(bus, prefix="task."):
    return [e.event_type for e in bus.get_event_history(limit=None) if e.event_type.startswith(prefix)]


# ============================================================================
# ORDERING
# ============================================================================

class TestDispatchOrder:

    def test_priority_order(self):
        """Submitted low, critical, high -> dispatched critical, high, low."""
        async def run():
            scheduler = TaskScheduler()
            executor = RecordingExecutor()
            scheduler.register_provider(_provider(max_concurrent=1), executor)

            for label, priority in (
                ("low", TaskPriority.LOW),
                ("critical", TaskPriority.CRITICAL),
                ("high", TaskPriority.HIGH),
            ):
                await scheduler.submit("code-generation", {"label": label}, priority=priority, max_retries=10)

            await scheduler.run_until_idle()
            return executor.seen

        assert asyncio.run(run()) == ["critical", "high", "low"]

    def test_same_priority_is_fifo(self):
        async def run():
            scheduler = TaskScheduler()
            for label in ("a", "b", "c"):
                await scheduler.submit("code-generation", {"label": label})
            return [t.input["label"] for t in scheduler.queued_tasks()]

        assert asyncio.run(run()) == ["a", "b", "c"]

    def test_empty_queue_is_idle(self):
        async def run():
            scheduler = TaskScheduler()
            return await scheduler.dispatch_once()

        assert asyncio.run(run()) == DispatchOutcome.IDLE


# ============================================================================
# PROVIDER SELECTION
# ============================================================================

class TestProviderSelection:

    def test_lowest_priority_value_wins(self):
        async def run():
            scheduler = TaskScheduler()
            scheduler.register_provider(_provider("slow", priority=50), RecordingExecutor())
            scheduler.register_provider(_provider("fast", priority=10), RecordingExecutor())
            task = await scheduler.submit("code-generation", {"label": "x"})
            await scheduler.run_until_idle()
            return scheduler.get_task(task.task_id)

        task = asyncio.run(run())
        assert task.status == TaskStatus.COMPLETED
        assert task.assigned_provider == "fast"

    def test_capability_required(self):
        async def run():
            scheduler = TaskScheduler()
            scheduler.register_provider(_provider("reviewer", capabilities=("code-review",)), RecordingExecutor())
            scheduler.register_provider(_provider("writer"), RecordingExecutor())
            task = await scheduler.submit("code-review", {"label": "r"})
            await scheduler.run_until_idle()
            return scheduler.get_task(task.task_id)

        assert asyncio.run(run()).assigned_provider == "reviewer"

    def test_load_released_after_completion(self):
        async def run():
            scheduler = TaskScheduler()
            scheduler.register_provider(_provider(max_concurrent=2), RecordingExecutor(delay=0.01))
            for label in ("a", "b", "c"):
                await scheduler.submit("code-generation", {"label": label}, max_retries=10)
            await scheduler.run_until_idle()
            return scheduler

        scheduler = asyncio.run(run())
        provider = scheduler.get_provider("p1")
        assert provider.current_load == 0
        assert provider.calls_completed == 3
        assert scheduler.get_stats().total_completed == 3

    def test_duplicate_provider_rejected(self):
        async def run():
            scheduler = TaskScheduler()
            scheduler.register_provider(_provider(), RecordingExecutor())
            with pytest.raises(ValueError):
                scheduler.register_provider(_provider(), RecordingExecutor())

        asyncio.run(run())


# ============================================================================
# ADMISSION RETRIES
# ============================================================================

class TestAdmissionRetries:

    def test_retries_exhausted_without_provider(self):
        """max_retries=3 -> two task.retrying events, then exactly one task.failed."""
        async def run():
            bus = EventBus()
            scheduler = TaskScheduler(event_bus=bus)
            task = await scheduler.submit("code-generation", {"label": "orphan"}, max_retries=3)
            await scheduler.run_until_idle()
            return bus, scheduler.get_task(task.task_id)

        bus, task = asyncio.run(run())
        assert task.status == TaskStatus.FAILED
        assert task.retry_count == 3
        assert "No available provider" in task.error
        assert _types(bus) == ["task.queued", "task.retrying", "task.retrying", "task.failed"]

    def test_failed_event_payload(self):
        async def run():
            bus = EventBus()
            scheduler = TaskScheduler(event_bus=bus)
            await scheduler.submit("code-generation", max_retries=1)
            await scheduler.run_until_idle()
            return bus.get_event_history("task.failed")

        events = asyncio.run(run())
        assert len(events) == 1
        assert events[0].payload["retry_count"] == 1
        assert events[0].aggregate_type == "task"

    def test_requeue_keeps_priority_slot(self):
        """By default a requeued task goes back ahead of lower-priority work."""
        async def run():
            scheduler = TaskScheduler()
            await scheduler.submit("unsupported", {"label": "high"}, priority=TaskPriority.HIGH)
            await scheduler.submit("unsupported", {"label": "low"}, priority=TaskPriority.LOW)
            assert await scheduler.dispatch_once() == DispatchOutcome.REQUEUED
            return [t.input["label"] for t in scheduler.queued_tasks()]

        assert asyncio.run(run()) == ["high", "low"]

    def test_requeue_keeps_order_within_priority(self):
        """A requeued task stays ahead of same-priority work submitted after it."""
        async def run():
            scheduler = TaskScheduler()
            first = await scheduler.submit("unsupported", priority=TaskPriority.HIGH, max_retries=10)
            second = await scheduler.submit("unsupported", priority=TaskPriority.HIGH, max_retries=10)
            assert await scheduler.dispatch_once() == DispatchOutcome.REQUEUED
            return [first.task_id, second.task_id], [t.task_id for t in scheduler.queued_tasks()]

        submitted, queued = asyncio.run(run())
        assert queued == submitted

    def test_requeue_back_policy(self):
        async def run():
            scheduler = TaskScheduler(config=SchedulerDefaults(requeue_policy=RequeuePolicy.BACK))
            await scheduler.submit("unsupported", {"label": "high"}, priority=TaskPriority.HIGH)
            await scheduler.submit("unsupported", {"label": "low"}, priority=TaskPriority.LOW)
            await scheduler.dispatch_once()
            return [t.input["label"] for t in scheduler.queued_tasks()]

        assert asyncio.run(run()) == ["low", "high"]


# ============================================================================
# EXECUTION OUTCOMES
# ============================================================================

class TestExecution:

    def test_provider_exception_fails_task(self):
        async def explode(task):
            raise RuntimeError("model offline")

        async def run():
            bus = EventBus()
            scheduler = TaskScheduler(event_bus=bus)
            scheduler.register_provider(_provider(), explode)
            task = await scheduler.submit("code-generation")
            await scheduler.run_until_idle()
            return bus, scheduler, scheduler.get_task(task.task_id)

        bus, scheduler, task = asyncio.run(run())
        assert task.status == TaskStatus.FAILED
        assert "model offline" in task.error
        assert scheduler.get_provider("p1").current_load == 0
        assert scheduler.get_provider("p1").calls_failed == 1
        assert _types(bus) == ["task.queued", "task.started", "task.failed"]

    def test_timeout_fails_task(self):
        async def run():
            scheduler = TaskScheduler()
            scheduler.register_provider(_provider(), RecordingExecutor(delay=2.0))
            task = await scheduler.submit("code-generation", timeout_seconds=0.05)
            await scheduler.run_until_idle()
            return scheduler.get_task(task.task_id)

        task = asyncio.run(run())
        assert task.status == TaskStatus.FAILED
        assert "timed out" in task.error

    def test_sync_executor_runs_in_thread(self):
        def blocking(task):
            time.sleep(0.01)
            return {"ok": True}

        async def run():
            scheduler = TaskScheduler()
            scheduler.register_provider(_provider(), blocking)
            task = await scheduler.submit("code-generation")
            await scheduler.run_until_idle()
            return scheduler.get_task(task.task_id)

        task = asyncio.run(run())
        assert task.status == TaskStatus.COMPLETED
        assert task.output == {"ok": True}

    def test_non_dict_output_wrapped(self):
        async def returns_text(task):
            return "plain"

        async def run():
            scheduler = TaskScheduler()
            scheduler.register_provider(_provider(), returns_text)
            task = await scheduler.submit("code-generation")
            await scheduler.run_until_idle()
            return scheduler.get_task(task.task_id)

        assert asyncio.run(run()).output == {"result": "plain"}

    def test_completed_events_carry_wait_time(self):
        async def run():
            bus = EventBus()
            scheduler = TaskScheduler(event_bus=bus)
            scheduler.register_provider(_provider(), RecordingExecutor())
            await scheduler.submit("code-generation", correlation_id="corr-1")
            await scheduler.run_until_idle()
            return bus

        bus = asyncio.run(run())
        started = bus.get_event_history("task.started")[0]
        assert started.payload["wait_time_ms"] >= 0
        assert started.correlation_id == "corr-1"
        assert len(bus.get_event_history("task.completed")) == 1


# ============================================================================
# CANCELLATION
# ============================================================================

class TestCancellation:

    def test_cancel_queued(self):
        async def run():
            bus = EventBus()
            scheduler = TaskScheduler(event_bus=bus)
            task = await scheduler.submit("code-generation")
            cancelled = await scheduler.cancel(task.task_id)
            again = await scheduler.cancel(task.task_id)
            finished = await scheduler.wait_for(task.task_id, timeout=1)
            return bus, scheduler, cancelled, again, finished

        bus, scheduler, cancelled, again, finished = asyncio.run(run())
        assert cancelled is True
        assert again is False
        assert finished.status == TaskStatus.CANCELLED
        assert scheduler.queue_depth == 0
        assert len(bus.get_event_history("task.cancelled")) == 1

    def test_cancel_unknown_raises(self):
        async def run():
            scheduler = TaskScheduler()
            await scheduler.cancel("task-missing")

        with pytest.raises(TaskNotFoundError):
            asyncio.run(run())

    def test_task_status_moves_forward_only(self):
        task = Task(task_type="code-generation")
        task.mark_running("p1")
        task.mark_completed({"x": 1})

        with pytest.raises(InvalidTransitionError):
            task.mark_running("p1")
        assert task.is_terminal


# ============================================================================
# HEARTBEAT
# ============================================================================

class TestHeartbeat:

    def test_no_providers_is_down(self):
        async def run():
            scheduler = TaskScheduler()
            return await scheduler.heartbeat()

        snapshot = asyncio.run(run())
        assert snapshot["provider-pool"].state == HealthState.DOWN
        assert snapshot["task-queue"].state == HealthState.HEALTHY

    def test_queue_depth_alert(self):
        async def run():
            bus = EventBus()
            scheduler = TaskScheduler(
                event_bus=bus,
                config=SchedulerDefaults(queue_depth_alert_threshold=1),
            )
            scheduler.register_provider(_provider(), RecordingExecutor())
            await scheduler.submit("code-generation")
            await scheduler.submit("code-generation")
            snapshot = await scheduler.heartbeat()
            return bus, scheduler, snapshot

        bus, scheduler, snapshot = asyncio.run(run())
        assert snapshot["task-queue"].state == HealthState.DEGRADED
        assert len(scheduler.get_alerts()) == 1
        assert len(bus.get_event_history("system.alert.raised")) == 1
        assert "provider:p1" in snapshot

    def test_health_changed_only_on_transition(self):
        async def run():
            bus = EventBus()
            scheduler = TaskScheduler(event_bus=bus)
            scheduler.register_provider(_provider(), RecordingExecutor())
            await scheduler.heartbeat()
            first = len(bus.get_event_history("system.health.changed"))
            await scheduler.heartbeat()
            second = len(bus.get_event_history("system.health.changed"))
            return first, second

        first, second = asyncio.run(run())
        assert first == 3
        assert second == 3


# ============================================================================
# BACKGROUND LOOP
# ============================================================================

class TestBackgroundLoop:

    def test_start_dispatch_stop(self):
        async def run():
            scheduler = TaskScheduler(config=SchedulerDefaults(tick_interval_seconds=0.05))
            scheduler.register_provider(_provider(), RecordingExecutor())
            await scheduler.start()
            try:
                task = await scheduler.submit("code-generation", {"label": "bg"})
                finished = await scheduler.wait_for(task.task_id, timeout=5)
                running = scheduler.is_running
            finally:
                await scheduler.stop()
            return finished, running, scheduler.is_running

        finished, running, after = asyncio.run(run())
        assert finished.status == TaskStatus.COMPLETED
        assert running is True
        assert after is False
