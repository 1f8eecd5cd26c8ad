# ============================================================================
# REPOSITORY INTERFACES
# ============================================================================
# EPOCH: 1 - GENERATION CORE
# STATUS: Core - Persistence ports
# PURPOSE: Storage interfaces for build records, artifacts and events
# CREATED: 15 OCT 2026
# ============================================================================
"""
Repository Interfaces

Two ports:

    Repository[T]   keyed get/put/list/delete of pydantic models
                    (build jobs, artifact bags)
    EventStore      append-only event log ordered by bus sequence

InMemoryRepository is the default for both tests and single-process runs.
The PostgreSQL adapters live in projection_repo.py and event_store.py.
"""

from abc import ABC, abstractmethod
from typing import Dict, Generic, List, Optional, TypeVar

from pydantic import BaseModel

from core.models.events import DomainEvent

T = TypeVar("T", bound=BaseModel)


class Repository(ABC, Generic[T]):
    """Keyed store of pydantic models."""

    @abstractmethod
    async def get(self, key: str) -> Optional[T]:
        """Return the stored value or None."""

    @abstractmethod
    async def put(self, key: str, value: T) -> None:
        """Insert or replace."""

    @abstractmethod
    async def list(self, limit: int = 100) -> List[T]:
        """Most recently written first."""

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Return True if something was removed."""


class InMemoryRepository(Repository[T]):
    """
    Dict-backed repository.

    Values are deep-copied on the way in and out so callers never share
    state with the store.
    """

    def __init__(self):
        self._items: Dict[str, T] = {}

    async def get(self, key: str) -> Optional[T]:
        value = self._items.get(key)
        return value.model_copy(deep=True) if value is not None else None

    async def put(self, key: str, value: T) -> None:
        # Re-insert so iteration order tracks the latest write
        self._items.pop(key, None)
        self._items[key] = value.model_copy(deep=True)

    async def list(self, limit: int = 100) -> List[T]:
        if limit <= 0:
            return []
        values = list(self._items.values())[-limit:]
        return [v.model_copy(deep=True) for v in reversed(values)]

    async def delete(self, key: str) -> bool:
        return self._items.pop(key, None) is not None

    def __len__(self) -> int:
        return len(self._items)


class EventStore(ABC):
    """Append-only event log."""

    @abstractmethod
    async def append(self, event: DomainEvent) -> None:
        """Persist a sequenced event."""

    @abstractmethod
    async def get_events(
        self,
        from_sequence: int = 0,
        event_type: Optional[str] = None,
        correlation_id: Optional[str] = None,
        limit: int = 1000,
    ) -> List[DomainEvent]:
        """Events with sequence > from_sequence, oldest first."""

    @abstractmethod
    async def latest_sequence(self) -> int:
        """Highest stored sequence, 0 when empty."""


__all__ = [
    "Repository",
    "InMemoryRepository",
    "EventStore",
]
