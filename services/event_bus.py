# ============================================================================
# EVENT BUS
# ============================================================================
# EPOCH: 1 - GENERATION CORE
# STATUS: Service - In-process publish/subscribe
# PURPOSE: Decouple the pipeline, scheduler and registry through typed events
# CREATED: 14 OCT 2026
# ============================================================================
"""
Event Bus

In-process publish/subscribe with a bounded history and dead-letter queue.

publish():
    1. Validates the payload against the payload registry
    2. Assigns the next sequence number
    3. Appends to the ring-buffer history (oldest dropped at capacity)
    4. Writes through to the event store, if one is attached
    5. Fans out to type-specific and wildcard ("*") subscribers
       concurrently and awaits them all

Handler failures are isolated: each exception is logged and counted, other
handlers still run, and publish() never raises because of a handler. When
every handler invoked for an event fails, the event is dead-lettered.

Within one publish() every currently subscribed handler receives the event
exactly once. There is no ordering guarantee across concurrent publishes.
"""

import asyncio
import inspect
import logging
import uuid
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Deque, Dict, List, Optional, Union

from core.config import EventBusDefaults
from core.models.events import (
    WILDCARD,
    DomainEvent,
    EventPayloadRegistry,
    EventType,
    default_payload_registry,
)

logger = logging.getLogger(__name__)


EventHandler = Callable[[DomainEvent], Union[None, Awaitable[None]]]
EventFilter = Callable[[DomainEvent], bool]


def _type_key(event_type: Union[str, EventType]) -> str:
    return event_type.value if isinstance(event_type, EventType) else event_type


# ============================================================================
# SUBSCRIPTIONS
# ============================================================================

@dataclass(eq=False)
class Subscription:
    """
    Handle returned by EventBus.subscribe().

    unsubscribe() is idempotent.
    """
    subscription_id: str
    event_type: str
    handler: EventHandler
    filter: Optional[EventFilter] = None
    active: bool = True
    _bus: Optional["EventBus"] = field(default=None, repr=False)

    def unsubscribe(self) -> None:
        if not self.active:
            return
        self.active = False
        if self._bus is not None:
            self._bus._remove(self)

    @property
    def handler_name(self) -> str:
        return getattr(self.handler, "__qualname__", None) or repr(self.handler)


@dataclass
class DeadLetter:
    """An event whose every handler failed."""
    event: DomainEvent
    errors: List[str]
    failed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": self.event.model_dump(mode="json"),
            "errors": self.errors,
            "failed_at": self.failed_at.isoformat(),
        }


# ============================================================================
# BUS
# ============================================================================

class EventBus:
    """
    In-process event bus.

    One instance per application; constructed by the lifespan and passed to
    every service that publishes or subscribes.
    """

    def __init__(
        self,
        config: Optional[EventBusDefaults] = None,
        payloads: Optional[EventPayloadRegistry] = None,
        store: Optional[Any] = None,
    ):
        """
        Args:
            config: Buffer sizes and payload strictness
            payloads: Payload registry; defaults to the built-in event types
            store: Optional EventStore for durable write-through
        """
        self.config = config or EventBusDefaults()
        self.payloads = payloads or default_payload_registry(strict=self.config.strict_payloads)
        self.store = store

        self._subscriptions: Dict[str, List[Subscription]] = {}
        self._history: Deque[DomainEvent] = deque(maxlen=self.config.history_size)
        self._dead_letters: Deque[DeadLetter] = deque(maxlen=self.config.dead_letter_size)
        self._sequence = 0

        # Metrics
        self._published = 0
        self._delivered = 0
        self._handler_errors = 0
        self._store_errors = 0

    async def initialize(self) -> None:
        """Resume sequence numbering from the event store."""
        if self.store is None:
            return
        latest = await self.store.latest_sequence()
        self._sequence = max(self._sequence, latest)
        logger.info(f"Event bus resuming at sequence {self._sequence}")

    # =========================================================================
    # PUBLISH
    # =========================================================================

    async def publish(self, event: DomainEvent) -> DomainEvent:
        """
        Publish an event to all matching subscribers.

        Returns:
            The sequenced event as stored in history

        Raises:
            EventPayloadError: Payload does not match its registered model
        """
        payload = self.payloads.validate(event.event_type, event.payload)

        self._sequence += 1
        event = event.model_copy(update={"payload": payload, "sequence": self._sequence})
        self._history.append(event)
        self._published += 1

        if self.store is not None:
            try:
                await self.store.append(event)
            except Exception as e:
                self._store_errors += 1
                logger.warning(f"Failed to persist event {event.event_type} ({event.event_id}): {e}")

        subscriptions = [
            s
            for s in self._subscriptions.get(event.event_type, []) + self._subscriptions.get(WILDCARD, [])
            if s.active and self._accepts(s, event)
        ]
        if not subscriptions:
            logger.debug(f"Event {event.event_type} #{event.sequence} has no subscribers")
            return event

        results = await asyncio.gather(*(self._invoke(s, event) for s in subscriptions))
        errors = [r for r in results if r is not None]

        if errors and len(errors) == len(subscriptions):
            self._dead_letters.append(DeadLetter(event=event, errors=errors))
            logger.error(
                f"Event {event.event_type} ({event.event_id}) dead-lettered: "
                f"all {len(errors)} handler(s) failed"
            )

        return event

    async def publish_batch(self, events: List[DomainEvent]) -> List[DomainEvent]:
        """Publish events one after another, in order."""
        published = []
        for event in events:
            published.append(await self.publish(event))
        return published

    async def emit(
        self,
        event_type: Union[str, EventType],
        payload: Optional[Dict[str, Any]] = None,
        **metadata: Any,
    ) -> DomainEvent:
        """Shorthand for publish(DomainEvent.create(...))."""
        return await self.publish(DomainEvent.create(event_type, payload, **metadata))

    def _accepts(self, subscription: Subscription, event: DomainEvent) -> bool:
        if subscription.filter is None:
            return True
        try:
            return bool(subscription.filter(event))
        except Exception:
            logger.exception(
                f"Filter for subscription {subscription.subscription_id} raised; skipping"
            )
            return False

    async def _invoke(self, subscription: Subscription, event: DomainEvent) -> Optional[str]:
        """Run one handler. Returns an error description on failure."""
        try:
            result = subscription.handler(event)
            if inspect.isawaitable(result):
                await result
            self._delivered += 1
            return None
        except Exception as e:
            self._handler_errors += 1
            logger.exception(
                f"Handler {subscription.handler_name} failed for "
                f"{event.event_type} ({event.event_id}): {e}"
            )
            return f"{subscription.handler_name}: {type(e).__name__}: {e}"

    # =========================================================================
    # SUBSCRIBE
    # =========================================================================

    def subscribe(
        self,
        event_type: Union[str, EventType],
        handler: EventHandler,
        filter: Optional[EventFilter] = None,
    ) -> Subscription:
        """
        Subscribe a handler to one event type, or to all with "*".

        Handlers may be sync or async. Exceptions they raise are logged and
        never reach the publisher.
        """
        key = _type_key(event_type)
        subscription = Subscription(
            subscription_id=f"sub-{uuid.uuid4().hex[:12]}",
            event_type=key,
            handler=handler,
            filter=filter,
            _bus=self,
        )
        self._subscriptions.setdefault(key, []).append(subscription)
        logger.debug(f"Subscribed {subscription.handler_name} to {key}")
        return subscription

    def subscribe_all(self, handler: EventHandler, filter: Optional[EventFilter] = None) -> Subscription:
        return self.subscribe(WILDCARD, handler, filter)

    def unsubscribe(self, subscription_id: str) -> bool:
        """Remove a subscription by id. Returns False if unknown."""
        for subscriptions in self._subscriptions.values():
            for subscription in subscriptions:
                if subscription.subscription_id == subscription_id:
                    subscription.unsubscribe()
                    return True
        return False

    def _remove(self, subscription: Subscription) -> None:
        subscriptions = self._subscriptions.get(subscription.event_type, [])
        if subscription in subscriptions:
            subscriptions.remove(subscription)
        if not subscriptions:
            self._subscriptions.pop(subscription.event_type, None)

    def subscription_count(self, event_type: Optional[Union[str, EventType]] = None) -> int:
        if event_type is not None:
            return len(self._subscriptions.get(_type_key(event_type), []))
        return sum(len(s) for s in self._subscriptions.values())

    # =========================================================================
    # HISTORY
    # =========================================================================

    def get_event_history(
        self,
        event_type: Optional[Union[str, EventType]] = None,
        limit: Optional[int] = 100,
        tenant_id: Optional[str] = None,
        correlation_id: Optional[str] = None,
        aggregate_id: Optional[str] = None,
        from_sequence: Optional[int] = None,
        to_sequence: Optional[int] = None,
    ) -> List[DomainEvent]:
        """
        Most recent events, oldest first.

        Args:
            event_type: Only this type ("*" or None for all)
            limit: Maximum number of events (most recent kept); None for all
        """
        key = _type_key(event_type) if event_type is not None else None
        events = [
            e
            for e in self._history
            if (key in (None, WILDCARD) or e.event_type == key)
            and (tenant_id is None or e.tenant_id == tenant_id)
            and (correlation_id is None or e.correlation_id == correlation_id)
            and (aggregate_id is None or e.aggregate_id == aggregate_id)
            and (from_sequence is None or e.sequence >= from_sequence)
            and (to_sequence is None or e.sequence <= to_sequence)
        ]
        if limit is not None:
            if limit <= 0:
                return []
            events = events[-limit:]
        return events

    async def replay_events(
        self,
        handler: EventHandler,
        event_type: Optional[Union[str, EventType]] = None,
        from_sequence: Optional[int] = None,
        to_sequence: Optional[int] = None,
    ) -> int:
        """
        Re-deliver historical events to one handler, in sequence order.

        Returns:
            Number of events the handler processed without raising
        """
        events = self.get_event_history(
            event_type=event_type,
            limit=None,
            from_sequence=from_sequence,
            to_sequence=to_sequence,
        )
        replay = Subscription(
            subscription_id=f"replay-{uuid.uuid4().hex[:8]}",
            event_type=_type_key(event_type) if event_type else WILDCARD,
            handler=handler,
        )
        delivered = 0
        for event in events:
            if await self._invoke(replay, event) is None:
                delivered += 1
        logger.info(f"Replayed {delivered}/{len(events)} events to {replay.handler_name}")
        return delivered

    def get_dead_letters(self, limit: int = 100) -> List[DeadLetter]:
        if limit <= 0:
            return []
        return list(self._dead_letters)[-limit:]

    def clear_history(self) -> None:
        self._history.clear()
        self._dead_letters.clear()

    # =========================================================================
    # METRICS
    # =========================================================================

    @property
    def last_sequence(self) -> int:
        return self._sequence

    @property
    def stats(self) -> Dict[str, Any]:
        return {
            "published": self._published,
            "delivered": self._delivered,
            "handler_errors": self._handler_errors,
            "store_errors": self._store_errors,
            "dead_lettered": len(self._dead_letters),
            "history_size": len(self._history),
            "subscriptions": self.subscription_count(),
            "last_sequence": self._sequence,
        }


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "EventBus",
    "EventHandler",
    "EventFilter",
    "Subscription",
    "DeadLetter",
]
