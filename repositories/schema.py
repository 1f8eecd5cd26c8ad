# ============================================================================
# SCHEMA BOOTSTRAP
# ============================================================================
# EPOCH: 1 - GENERATION CORE
# STATUS: Persistence - Idempotent DDL
# PURPOSE: Create the event log and projection tables on startup
# CREATED: 15 OCT 2026
# ============================================================================
"""
Schema Bootstrap

Two tables under one schema (default ``forge``):

    events       append-only bus log, primary key = bus sequence
    projections  JSONB documents keyed by (projection_name, projection_id,
                 tenant_id), with an optimistic version counter

Every statement is IF NOT EXISTS so ensure_schema() can run on each start.
"""

import logging
from typing import List

from psycopg import sql
from psycopg_pool import AsyncConnectionPool

from .database import DEFAULT_SCHEMA, EVENTS_TABLE, PROJECTIONS_TABLE, table

logger = logging.getLogger(__name__)


def schema_statements(schema: str = DEFAULT_SCHEMA) -> List[sql.Composed]:
    """DDL for the forge schema, in execution order."""
    events = table(schema, EVENTS_TABLE)
    projections = table(schema, PROJECTIONS_TABLE)

    return [
        sql.SQL("CREATE SCHEMA IF NOT EXISTS {}").format(sql.Identifier(schema)),
        sql.SQL(
            """
            CREATE TABLE IF NOT EXISTS {} (
                sequence BIGINT PRIMARY KEY,
                event_id UUID NOT NULL UNIQUE,
                event_type VARCHAR(128) NOT NULL,
                version VARCHAR(16) NOT NULL DEFAULT '1.0',
                occurred_at TIMESTAMPTZ NOT NULL,
                tenant_id VARCHAR(64),
                correlation_id VARCHAR(64),
                causation_id VARCHAR(64),
                source VARCHAR(64) NOT NULL,
                aggregate_id VARCHAR(128),
                aggregate_type VARCHAR(64),
                payload JSONB NOT NULL DEFAULT '{{}}'::jsonb
            )
            """
        ).format(events),
        sql.SQL("CREATE INDEX IF NOT EXISTS {} ON {} (event_type)").format(
            sql.Identifier("idx_events_type"), events,
        ),
        sql.SQL("CREATE INDEX IF NOT EXISTS {} ON {} (correlation_id)").format(
            sql.Identifier("idx_events_correlation"), events,
        ),
        sql.SQL(
            """
            CREATE TABLE IF NOT EXISTS {} (
                projection_name VARCHAR(64) NOT NULL,
                projection_id VARCHAR(128) NOT NULL,
                tenant_id VARCHAR(64) NOT NULL DEFAULT '',
                data JSONB NOT NULL,
                version INTEGER NOT NULL DEFAULT 1,
                updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
                PRIMARY KEY (projection_name, projection_id, tenant_id)
            )
            """
        ).format(projections),
        sql.SQL("CREATE INDEX IF NOT EXISTS {} ON {} (projection_name, updated_at DESC)").format(
            sql.Identifier("idx_projections_recent"), projections,
        ),
    ]


async def ensure_schema(pool: AsyncConnectionPool, schema: str = DEFAULT_SCHEMA) -> int:
    """
    Create the schema and tables if missing.

    Returns:
        Number of statements executed
    """
    statements = schema_statements(schema)
    async with pool.connection() as conn:
        for statement in statements:
            await conn.execute(statement)
    logger.info(f"Schema {schema} ready ({len(statements)} statements)")
    return len(statements)


__all__ = ["schema_statements", "ensure_schema"]
