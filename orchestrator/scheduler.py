# ============================================================================
# TASK SCHEDULER
# ============================================================================
# EPOCH: 1 - GENERATION CORE
# STATUS: Core - Priority dispatch to capability-tagged providers
# PURPOSE: Admit queued generation work onto providers under concurrency caps
# CREATED: 15 OCT 2026
# ============================================================================
"""
Task Scheduler

Priority queue plus provider pool. Tasks move forward only:

    queued -> running -> completed | failed
    queued -> failed      (no provider after max_retries admission attempts)
    queued -> cancelled

Admission (dispatch_once, one task per tick):
1. Pop the head of the queue (critical > high > normal > low, then arrival)
2. Pick the eligible provider with the lowest priority value
   (eligible = enabled, has the capability, current_load < max_concurrent)
3. None eligible: retry_count += 1, re-enqueue while retry_count <
   max_retries, otherwise fail the task with exactly one task.failed event
4. Otherwise acquire a provider slot, mark running, publish task.started
   with the measured wait, and run the provider call as its own asyncio task

The provider slot is released when the call finishes whatever the outcome,
stats are folded in and a terminal event is published.

The dispatcher wakes on enqueue and on provider release; the tick interval
is only a fallback poll. A separate heartbeat loop snapshots module health
and raises alerts when the queue is deeper than the threshold.

Runs as background tasks in the FastAPI application.
"""

import asyncio
import inspect
import logging
import time
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Deque, Dict, List, Optional, Union

from core.config import RequeuePolicy, SchedulerDefaults
from core.contracts import HealthState, TaskPriority, TaskStatus
from core.errors import ProviderUnavailableError, TaskNotFoundError
from core.logging import log_context
from core.models.events import EventType
from core.models.task import Alert, ModuleHealth, Provider, SchedulerStats, Task

logger = logging.getLogger(__name__)


ProviderExecutor = Callable[[Task], Union[Dict[str, Any], Awaitable[Dict[str, Any]]]]


class DispatchOutcome(str, Enum):
    """Result of one admission tick."""
    IDLE = "idle"               # Queue empty
    DISPATCHED = "dispatched"   # Task handed to a provider
    REQUEUED = "requeued"       # No provider; task back in the queue
    FAILED = "failed"           # No provider and retries exhausted


@dataclass
class _ProviderSlot:
    provider: Provider
    executor: ProviderExecutor
    order: int


def _is_async_callable(fn: Callable[..., Any]) -> bool:
    return inspect.iscoroutinefunction(fn) or inspect.iscoroutinefunction(
        getattr(fn, "__call__", None)
    )


class TaskScheduler:
    """
    Priority scheduler for generation tasks.

    Admission is serialised through one lock, so queue and provider load
    are only mutated by one tick at a time; provider calls run concurrently.
    """

    def __init__(
        self,
        event_bus: Optional[Any] = None,
        config: Optional[SchedulerDefaults] = None,
    ):
        self.event_bus = event_bus
        self.config = config or SchedulerDefaults()

        self._queue: List[Task] = []
        self._tasks: Dict[str, Task] = {}
        self._arrival: Dict[str, int] = {}
        self._done: Dict[str, asyncio.Event] = {}
        self._providers: Dict[str, _ProviderSlot] = {}
        self._registrations = 0
        self._inflight: Dict[str, asyncio.Task] = {}

        self._admission_lock = asyncio.Lock()
        self._wakeup = asyncio.Event()
        self._stop_event = asyncio.Event()
        self._running = False
        self._started_at: Optional[datetime] = None
        self._dispatcher_task: Optional[asyncio.Task] = None
        self._heartbeat_task: Optional[asyncio.Task] = None

        self._stats = SchedulerStats()
        self._health: Dict[str, ModuleHealth] = {}
        self._alerts: Deque[Alert] = deque(maxlen=self.config.max_alerts)

        # Metrics
        self._ticks = 0
        self._errors = 0
        self._heartbeats = 0
        self._last_tick_at: Optional[datetime] = None
        self._last_heartbeat_at: Optional[datetime] = None

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    async def start(self) -> None:
        """Start the dispatcher and heartbeat loops."""
        if self._running:
            logger.warning("Scheduler already running")
            return

        self._running = True
        self._started_at = datetime.now(timezone.utc)
        self._stop_event.clear()

        self._dispatcher_task = asyncio.create_task(self._dispatch_loop(), name="scheduler-dispatch")
        self._heartbeat_task = asyncio.create_task(self._heartbeat_loop(), name="scheduler-heartbeat")

        logger.info(
            f"Scheduler started (tick={self.config.tick_interval_seconds}s, "
            f"heartbeat={self.config.heartbeat_interval_seconds}s, "
            f"providers={len(self._providers)})"
        )

    async def stop(self, timeout: float = 10.0) -> None:
        """
        Stop the loops, then wait up to ``timeout`` for in-flight provider
        calls before cancelling them. Queued tasks stay queued.
        """
        logger.info("Stopping scheduler")

        self._running = False
        self._stop_event.set()
        self._wakeup.set()

        for task in (self._dispatcher_task, self._heartbeat_task):
            if task:
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._dispatcher_task = None
        self._heartbeat_task = None

        inflight = list(self._inflight.values())
        if inflight:
            _, pending = await asyncio.wait(inflight, timeout=timeout)
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)

        logger.info(
            f"Scheduler stopped (ticks={self._ticks}, "
            f"completed={self._stats.total_completed}, failed={self._stats.total_failed}, "
            f"queued={len(self._queue)})"
        )

    @property
    def is_running(self) -> bool:
        return self._running

    # =========================================================================
    # PROVIDERS
    # =========================================================================

    def register_provider(self, provider: Provider, executor: ProviderExecutor) -> Provider:
        """
        Register a provider and the callable that executes its tasks.

        The executor receives a copy of the Task and returns an output dict
        (sync executors run in the default thread pool).
        """
        if provider.provider_id in self._providers:
            raise ValueError(f"Provider already registered: {provider.provider_id}")

        self._registrations += 1
        self._providers[provider.provider_id] = _ProviderSlot(
            provider=provider, executor=executor, order=self._registrations
        )
        logger.info(
            f"Registered provider {provider.provider_id} "
            f"(capabilities={sorted(provider.capabilities)}, "
            f"max_concurrent={provider.max_concurrent}, priority={provider.priority})"
        )
        self._wakeup.set()
        return provider

    def unregister_provider(self, provider_id: str) -> bool:
        """Remove a provider. In-flight calls still finish and release."""
        slot = self._providers.pop(provider_id, None)
        if slot is None:
            return False
        slot.provider.enabled = False
        logger.info(f"Unregistered provider {provider_id}")
        return True

    def get_provider(self, provider_id: str) -> Optional[Provider]:
        slot = self._providers.get(provider_id)
        return slot.provider.model_copy(deep=True) if slot else None

    def list_providers(self) -> List[Provider]:
        return [slot.provider.model_copy(deep=True) for slot in self._providers.values()]

    def _select_provider(self, task_type: str) -> Optional[_ProviderSlot]:
        eligible = [s for s in self._providers.values() if s.provider.can_accept(task_type)]
        if not eligible:
            return None
        return min(eligible, key=lambda s: (s.provider.priority, s.provider.current_load, s.order))

    # =========================================================================
    # SUBMISSION
    # =========================================================================

    async def submit(
        self,
        task_type: str,
        input: Optional[Dict[str, Any]] = None,
        priority: TaskPriority = TaskPriority.NORMAL,
        max_retries: Optional[int] = None,
        timeout_seconds: Optional[float] = None,
        correlation_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Task:
        """Queue a new task and wake the dispatcher."""
        task = Task(
            task_type=task_type,
            input=input or {},
            priority=priority,
            max_retries=self.config.default_max_retries if max_retries is None else max_retries,
            timeout_seconds=timeout_seconds,
            correlation_id=correlation_id,
            metadata=metadata or {},
        )
        return await self.enqueue(task)

    async def enqueue(self, task: Task) -> Task:
        """Queue a pre-built task."""
        if task.task_id in self._tasks:
            raise ValueError(f"Task already submitted: {task.task_id}")
        if task.status != TaskStatus.QUEUED:
            raise ValueError(f"Only queued tasks can be enqueued (got {task.status.value})")

        self._tasks[task.task_id] = task
        self._arrival[task.task_id] = len(self._arrival)
        self._done[task.task_id] = asyncio.Event()
        self._insert(task)
        self._stats.total_submitted += 1

        logger.debug(f"Queued task {task.task_id} ({task.task_type}, {task.priority.value})")
        await self._publish(
            EventType.TASK_QUEUED,
            {"task_id": task.task_id, "task_type": task.task_type, "priority": task.priority.value},
            task,
        )
        self._wakeup.set()
        return task.model_copy(deep=True)

    def _insert(self, task: Task) -> None:
        """Insert before the first queued task of lower priority, or of equal priority submitted later."""
        rank = task.priority.rank
        arrival = self._arrival[task.task_id]
        for index, queued in enumerate(self._queue):
            if queued.priority.rank < rank or (
                queued.priority.rank == rank and self._arrival[queued.task_id] > arrival
            ):
                self._queue.insert(index, task)
                return
        self._queue.append(task)

    def _requeue(self, task: Task) -> None:
        if self.config.requeue_policy == RequeuePolicy.BACK:
            self._queue.append(task)
        else:
            self._insert(task)

    async def cancel(self, task_id: str) -> bool:
        """
        Cancel a queued task.

        Returns:
            False if the task is already running or terminal

        Raises:
            TaskNotFoundError: If the task id is unknown
        """
        task = self._tasks.get(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        if task.status != TaskStatus.QUEUED:
            return False

        self._queue.remove(task)
        task.mark_cancelled()
        self._stats.total_cancelled += 1
        self._done[task_id].set()

        logger.info(f"Cancelled task {task_id}")
        await self._publish(
            EventType.TASK_CANCELLED,
            {"task_id": task.task_id, "task_type": task.task_type},
            task,
        )
        return True

    # =========================================================================
    # QUERIES
    # =========================================================================

    def get_task(self, task_id: str) -> Optional[Task]:
        task = self._tasks.get(task_id)
        return task.model_copy(deep=True) if task else None

    def list_tasks(self, status: Optional[TaskStatus] = None, limit: int = 100) -> List[Task]:
        tasks = [t for t in self._tasks.values() if status is None or t.status == status]
        tasks.sort(key=lambda t: t.created_at, reverse=True)
        return [t.model_copy(deep=True) for t in tasks[:limit]]

    def queued_tasks(self) -> List[Task]:
        """Queue contents in dispatch order."""
        return [t.model_copy(deep=True) for t in self._queue]

    async def wait_for(self, task_id: str, timeout: Optional[float] = None) -> Task:
        """
        Wait until a task reaches a terminal state.

        Raises:
            TaskNotFoundError: If the task id is unknown
            asyncio.TimeoutError: If ``timeout`` elapses first
        """
        done = self._done.get(task_id)
        if done is None:
            raise TaskNotFoundError(task_id)
        await asyncio.wait_for(done.wait(), timeout=timeout)
        return self._tasks[task_id].model_copy(deep=True)

    @property
    def queue_depth(self) -> int:
        return len(self._queue)

    @property
    def running_count(self) -> int:
        return len(self._inflight)

    # =========================================================================
    # ADMISSION
    # =========================================================================

    async def dispatch_once(self) -> DispatchOutcome:
        """Run one admission tick."""
        events = []
        async with self._admission_lock:
            self._ticks += 1
            self._last_tick_at = datetime.now(timezone.utc)

            if not self._queue:
                return DispatchOutcome.IDLE

            task = self._queue.pop(0)
            slot = self._select_provider(task.task_type)

            if slot is None:
                task.retry_count += 1
                if task.retry_count < task.max_retries:
                    self._requeue(task)
                    self._stats.total_retries += 1
                    outcome = DispatchOutcome.REQUEUED
                    logger.info(
                        f"No provider for {task.task_id} ({task.task_type}); "
                        f"retry {task.retry_count}/{task.max_retries}"
                    )
                    events.append((
                        EventType.TASK_RETRYING,
                        {
                            "task_id": task.task_id,
                            "task_type": task.task_type,
                            "retry_count": task.retry_count,
                            "max_retries": task.max_retries,
                            "reason": "no eligible provider",
                        },
                    ))
                else:
                    error = ProviderUnavailableError(task.task_type, task.retry_count)
                    task.mark_failed(str(error))
                    self._stats.total_failed += 1
                    self._done[task.task_id].set()
                    outcome = DispatchOutcome.FAILED
                    logger.warning(f"Task {task.task_id} failed: {error}")
                    events.append((
                        EventType.TASK_FAILED,
                        {
                            "task_id": task.task_id,
                            "task_type": task.task_type,
                            "error": str(error),
                            "retry_count": task.retry_count,
                        },
                    ))
            else:
                provider = slot.provider
                provider.acquire()
                task.mark_running(provider.provider_id)
                wait_ms = task.wait_time_ms or 0
                self._stats.total_started += 1
                self._stats.total_wait_ms += wait_ms
                outcome = DispatchOutcome.DISPATCHED

                self._inflight[task.task_id] = asyncio.create_task(
                    self._execute(slot, task), name=f"task-{task.task_id}"
                )
                logger.debug(
                    f"Dispatched {task.task_id} to {provider.provider_id} "
                    f"(load {provider.current_load}/{provider.max_concurrent}, waited {wait_ms}ms)"
                )
                events.append((
                    EventType.TASK_STARTED,
                    {
                        "task_id": task.task_id,
                        "task_type": task.task_type,
                        "provider_id": provider.provider_id,
                        "wait_time_ms": wait_ms,
                    },
                ))

        for event_type, payload in events:
            await self._publish(event_type, payload, task)
        return outcome

    async def run_until_idle(self, max_ticks: int = 10000) -> int:
        """
        Drive admission without the background loop until the queue is
        empty and no provider call is in flight. Returns ticks used.
        """
        ticks = 0
        while ticks < max_ticks:
            outcome = await self.dispatch_once()
            ticks += 1
            if outcome in (DispatchOutcome.IDLE, DispatchOutcome.REQUEUED) and self._inflight:
                # Next tick only once a provider call has finished
                await asyncio.wait(
                    list(self._inflight.values()), return_when=asyncio.FIRST_COMPLETED
                )
            elif outcome == DispatchOutcome.IDLE:
                break
        return ticks

    async def _execute(self, slot: _ProviderSlot, task: Task) -> None:
        """Run one provider call and settle the task."""
        provider = slot.provider
        timeout = task.timeout_seconds or self.config.task_timeout_seconds
        started = time.monotonic()
        success = False

        try:
            with log_context(task_id=task.task_id, provider_id=provider.provider_id):
                call = self._call_executor(slot.executor, task.model_copy(deep=True))
                if timeout:
                    output = await asyncio.wait_for(call, timeout=timeout)
                else:
                    output = await call
            task.mark_completed(output if isinstance(output, dict) else {"result": output})
            success = True

        except asyncio.CancelledError:
            task.mark_failed("Task execution cancelled")
            raise
        except asyncio.TimeoutError:
            task.mark_failed(f"Task timed out after {timeout}s on {provider.provider_id}")
            logger.warning(f"Task {task.task_id} timed out after {timeout}s")
        except Exception as e:
            task.mark_failed(f"{type(e).__name__}: {e}")
            logger.exception(f"Provider {provider.provider_id} failed task {task.task_id}: {e}")
        finally:
            elapsed_ms = int((time.monotonic() - started) * 1000)
            provider.release()
            provider.record_call(elapsed_ms, success)
            self._stats.total_executed += 1
            self._stats.total_execution_ms += elapsed_ms
            if success:
                self._stats.total_completed += 1
            else:
                self._stats.total_failed += 1
            self._inflight.pop(task.task_id, None)
            self._done[task.task_id].set()
            self._wakeup.set()

        if success:
            await self._publish(
                EventType.TASK_COMPLETED,
                {
                    "task_id": task.task_id,
                    "task_type": task.task_type,
                    "provider_id": provider.provider_id,
                    "execution_time_ms": elapsed_ms,
                },
                task,
            )
        else:
            await self._publish(
                EventType.TASK_FAILED,
                {
                    "task_id": task.task_id,
                    "task_type": task.task_type,
                    "provider_id": provider.provider_id,
                    "error": task.error or "unknown error",
                    "retry_count": task.retry_count,
                },
                task,
            )

    async def _call_executor(self, executor: ProviderExecutor, task: Task) -> Any:
        if _is_async_callable(executor):
            return await executor(task)
        loop = asyncio.get_running_loop()
        result = await loop.run_in_executor(None, executor, task)
        if inspect.isawaitable(result):
            result = await result
        return result

    # =========================================================================
    # LOOPS
    # =========================================================================

    async def _dispatch_loop(self) -> None:
        """Drain the queue whenever woken, or at least every tick interval."""
        logger.info("Starting dispatch loop")

        while self._running and not self._stop_event.is_set():
            try:
                self._wakeup.clear()
                # One pass: each queued task gets at most one admission attempt
                for _ in range(len(self._queue)):
                    if await self.dispatch_once() == DispatchOutcome.IDLE:
                        break

            except asyncio.CancelledError:
                break
            except Exception as e:
                self._errors += 1
                logger.exception(f"Error in dispatch loop: {e}")

            try:
                await asyncio.wait_for(
                    self._wakeup.wait(),
                    timeout=self.config.tick_interval_seconds,
                )
            except asyncio.TimeoutError:
                pass

        logger.info("Dispatch loop stopped")

    async def _heartbeat_loop(self) -> None:
        """Snapshot module health on an interval."""
        logger.info(f"Starting heartbeat loop (interval={self.config.heartbeat_interval_seconds}s)")

        while not self._stop_event.is_set():
            try:
                await self.heartbeat()
            except asyncio.CancelledError:
                break
            except Exception as e:
                self._errors += 1
                logger.error(f"Heartbeat error: {e}")

            try:
                await asyncio.wait_for(
                    self._stop_event.wait(),
                    timeout=self.config.heartbeat_interval_seconds,
                )
                break
            except asyncio.TimeoutError:
                pass

        logger.info("Heartbeat loop stopped")

    # =========================================================================
    # HEALTH
    # =========================================================================

    async def heartbeat(self) -> Dict[str, ModuleHealth]:
        """
        Recompute per-module health and raise a queue-depth alert if needed.

        Publishes system.health.changed for every module whose state
        differs from the previous snapshot.
        """
        depth = len(self._queue)
        threshold = self.config.queue_depth_alert_threshold
        snapshot: Dict[str, ModuleHealth] = {}

        snapshot["task-queue"] = ModuleHealth(
            module="task-queue",
            state=HealthState.DEGRADED if depth > threshold else HealthState.HEALTHY,
            message=f"{depth} queued, {len(self._inflight)} running",
            details={"queue_depth": depth, "threshold": threshold, "running": len(self._inflight)},
        )

        providers = [s.provider for s in self._providers.values()]
        enabled = [p for p in providers if p.enabled]
        if not enabled:
            pool_state, pool_message = HealthState.DOWN, "no enabled providers"
        elif all(p.current_load >= p.max_concurrent for p in enabled):
            pool_state, pool_message = HealthState.DEGRADED, "all providers at capacity"
        else:
            pool_state, pool_message = HealthState.HEALTHY, f"{len(enabled)} provider(s) available"
        snapshot["provider-pool"] = ModuleHealth(
            module="provider-pool",
            state=pool_state,
            message=pool_message,
            details={
                "providers": len(providers),
                "enabled": len(enabled),
                "total_load": sum(p.current_load for p in providers),
                "total_capacity": sum(p.max_concurrent for p in enabled),
            },
        )

        for provider in providers:
            if not provider.enabled:
                state = HealthState.DOWN
            elif provider.current_load >= provider.max_concurrent:
                state = HealthState.DEGRADED
            else:
                state = HealthState.HEALTHY
            name = f"provider:{provider.provider_id}"
            snapshot[name] = ModuleHealth(
                module=name,
                state=state,
                message=f"load {provider.current_load}/{provider.max_concurrent}",
                details={
                    "current_load": provider.current_load,
                    "max_concurrent": provider.max_concurrent,
                    "avg_latency_ms": round(provider.avg_latency_ms, 1),
                    "calls_completed": provider.calls_completed,
                    "calls_failed": provider.calls_failed,
                },
            )

        previous = self._health
        self._health = snapshot
        self._heartbeats += 1
        self._last_heartbeat_at = datetime.now(timezone.utc)

        if depth > threshold:
            alert = Alert(
                severity="warning",
                message=f"Queue depth {depth} exceeds threshold {threshold}",
                details={"queue_depth": depth, "threshold": threshold},
            )
            self._alerts.append(alert)
            logger.warning(alert.message)
            await self._publish(
                EventType.ALERT_RAISED,
                {
                    "alert_id": alert.alert_id,
                    "severity": alert.severity,
                    "message": alert.message,
                    "queue_depth": depth,
                    "threshold": threshold,
                },
            )

        for name, health in snapshot.items():
            before = previous.get(name)
            if before is None or before.state != health.state:
                await self._publish(
                    EventType.HEALTH_CHANGED,
                    {
                        "module": name,
                        "previous": before.state.value if before else None,
                        "current": health.state.value,
                        "details": health.details,
                    },
                )

        return snapshot

    def get_health(self) -> Dict[str, ModuleHealth]:
        return {name: h.model_copy(deep=True) for name, h in self._health.items()}

    def get_alerts(self, limit: int = 50) -> List[Alert]:
        if limit <= 0:
            return []
        return [a.model_copy(deep=True) for a in list(self._alerts)[-limit:]]

    # =========================================================================
    # EVENTS & STATS
    # =========================================================================

    async def _publish(
        self,
        event_type: EventType,
        payload: Dict[str, Any],
        task: Optional[Task] = None,
    ) -> None:
        if self.event_bus is None:
            return
        metadata: Dict[str, Any] = {"source": "task-scheduler"}
        if task is not None:
            metadata.update(
                aggregate_id=task.task_id,
                aggregate_type="task",
                correlation_id=task.correlation_id,
            )
        await self.event_bus.emit(event_type, payload, **metadata)

    def get_stats(self) -> SchedulerStats:
        return self._stats.model_copy()

    @property
    def stats(self) -> Dict[str, Any]:
        """Scheduler statistics."""
        uptime_seconds = None
        if self._started_at:
            uptime_seconds = (datetime.now(timezone.utc) - self._started_at).total_seconds()

        return {
            "running": self._running,
            "started_at": self._started_at.isoformat() if self._started_at else None,
            "uptime_seconds": uptime_seconds,
            "tick_interval": self.config.tick_interval_seconds,
            "heartbeat_interval": self.config.heartbeat_interval_seconds,
            "ticks": self._ticks,
            "heartbeats": self._heartbeats,
            "errors": self._errors,
            "last_tick_at": self._last_tick_at.isoformat() if self._last_tick_at else None,
            "last_heartbeat_at": self._last_heartbeat_at.isoformat() if self._last_heartbeat_at else None,
            "queue_depth": len(self._queue),
            "running_tasks": len(self._inflight),
            "providers": len(self._providers),
            **self._stats.model_dump(),
        }


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "TaskScheduler",
    "DispatchOutcome",
    "ProviderExecutor",
]
