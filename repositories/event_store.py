# ============================================================================
# POSTGRES EVENT STORE
# ============================================================================
# EPOCH: 1 - GENERATION CORE
# STATUS: Persistence - Durable event log
# PURPOSE: Append bus events to forge.events and read them back in order
# CREATED: 15 OCT 2026
# ============================================================================
"""
Postgres Event Store

EventStore adapter the EventBus writes through to. Rows are keyed by the
bus sequence, so replaying ``get_events(from_sequence=n)`` yields events in
publish order, and ``latest_sequence()`` lets a restarted bus continue
numbering where the previous process stopped.
"""

import logging
from typing import Any, Dict, List, Optional

from psycopg import sql
from psycopg.rows import dict_row
from psycopg.types.json import Json
from psycopg_pool import AsyncConnectionPool

from core.models.events import DomainEvent
from .base import EventStore
from .database import DEFAULT_SCHEMA, EVENTS_TABLE, table

logger = logging.getLogger(__name__)


class PostgresEventStore(EventStore):
    """EventStore backed by the forge.events table."""

    def __init__(self, pool: AsyncConnectionPool, schema: str = DEFAULT_SCHEMA):
        self.pool = pool
        self.table = table(schema, EVENTS_TABLE)

    async def append(self, event: DomainEvent) -> None:
        """
        Persist a sequenced event.

        Raises:
            ValueError: If the event has not been sequenced by the bus
        """
        if event.sequence is None:
            raise ValueError(f"Event {event.event_id} has no sequence")

        async with self.pool.connection() as conn:
            await conn.execute(
                sql.SQL(
                    """
                    INSERT INTO {} (
                        sequence, event_id, event_type, version, occurred_at,
                        tenant_id, correlation_id, causation_id, source,
                        aggregate_id, aggregate_type, payload
                    ) VALUES (
                        %(sequence)s, %(event_id)s, %(event_type)s, %(version)s,
                        %(occurred_at)s, %(tenant_id)s, %(correlation_id)s,
                        %(causation_id)s, %(source)s, %(aggregate_id)s,
                        %(aggregate_type)s, %(payload)s
                    )
                    ON CONFLICT (sequence) DO NOTHING
                    """
                ).format(self.table),
                {
                    "sequence": event.sequence,
                    "event_id": event.event_id,
                    "event_type": event.event_type,
                    "version": event.version,
                    "occurred_at": event.timestamp,
                    "tenant_id": event.tenant_id,
                    "correlation_id": event.correlation_id,
                    "causation_id": event.causation_id,
                    "source": event.source,
                    "aggregate_id": event.aggregate_id,
                    "aggregate_type": event.aggregate_type,
                    "payload": Json(event.payload),
                },
            )

    async def get_events(
        self,
        from_sequence: int = 0,
        event_type: Optional[str] = None,
        correlation_id: Optional[str] = None,
        limit: int = 1000,
    ) -> List[DomainEvent]:
        conditions = [sql.SQL("sequence > %(from_sequence)s")]
        params: Dict[str, Any] = {"from_sequence": from_sequence, "limit": limit}

        if event_type:
            conditions.append(sql.SQL("event_type = %(event_type)s"))
            params["event_type"] = event_type
        if correlation_id:
            conditions.append(sql.SQL("correlation_id = %(correlation_id)s"))
            params["correlation_id"] = correlation_id

        query = sql.SQL("SELECT * FROM {} WHERE {} ORDER BY sequence ASC LIMIT %(limit)s").format(
            self.table, sql.SQL(" AND ").join(conditions),
        )

        async with self.pool.connection() as conn:
            conn.row_factory = dict_row
            result = await conn.execute(query, params)
            rows = await result.fetchall()
            return [self._row_to_event(row) for row in rows]

    async def latest_sequence(self) -> int:
        async with self.pool.connection() as conn:
            conn.row_factory = dict_row
            result = await conn.execute(
                sql.SQL("SELECT COALESCE(MAX(sequence), 0) AS latest FROM {}").format(self.table)
            )
            row = await result.fetchone()
            return int(row["latest"]) if row else 0

    def _row_to_event(self, row: Dict[str, Any]) -> DomainEvent:
        """Convert database row to DomainEvent."""
        return DomainEvent(
            event_id=str(row["event_id"]),
            event_type=row["event_type"],
            version=row["version"],
            timestamp=row["occurred_at"],
            tenant_id=row.get("tenant_id"),
            correlation_id=row.get("correlation_id"),
            causation_id=row.get("causation_id"),
            source=row["source"],
            sequence=row["sequence"],
            aggregate_id=row.get("aggregate_id"),
            aggregate_type=row.get("aggregate_type"),
            payload=row.get("payload") or {},
        )


__all__ = ["PostgresEventStore"]
