# ============================================================================
# DATABASE HEALTH CHECKS
# ============================================================================
# EPOCH: 1 - GENERATION CORE
# STATUS: Infrastructure - PostgreSQL checks
# PURPOSE: Database connectivity and schema availability
# CREATED: 15 OCT 2026
# ============================================================================
"""
Database Health Checks

Registered only when PERSISTENCE_BACKEND=postgres (priority 30):
- PostgresCheck: connectivity and presence of the forge tables
"""

import logging

from psycopg.rows import dict_row

from health.core import (
    HealthCheckPlugin,
    HealthCheckResult,
    HealthCheckCategory,
)
from repositories.database import DEFAULT_SCHEMA, EVENTS_TABLE, PROJECTIONS_TABLE

logger = logging.getLogger(__name__)


class PostgresCheck(HealthCheckPlugin):
    """PostgreSQL connectivity and schema check."""

    name = "postgres"
    category = HealthCheckCategory.PERSISTENCE
    timeout_seconds = 5.0

    def __init__(self, pool, schema: str = DEFAULT_SCHEMA):
        self.pool = pool
        self.schema = schema

    async def check(self) -> HealthCheckResult:
        expected = {EVENTS_TABLE, PROJECTIONS_TABLE}
        try:
            async with self.pool.connection() as conn:
                conn.row_factory = dict_row
                result = await conn.execute(
                    "SELECT table_name FROM information_schema.tables WHERE table_schema = %s",
                    (self.schema,),
                )
                rows = await result.fetchall()
        except Exception as e:
            return HealthCheckResult.unhealthy(
                message=f"PostgreSQL connection failed: {e}",
                schema=self.schema,
            )

        found = {row["table_name"] for row in rows}
        missing = sorted(expected - found)
        if missing:
            return HealthCheckResult.unhealthy(
                message=f"Missing tables in {self.schema}: {', '.join(missing)}",
                schema=self.schema,
            )
        return HealthCheckResult.healthy(message="PostgreSQL connected", schema=self.schema)


__all__ = ["PostgresCheck"]
