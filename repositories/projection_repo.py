# ============================================================================
# POSTGRES PROJECTION REPOSITORY
# ============================================================================
# EPOCH: 1 - GENERATION CORE
# STATUS: Persistence - JSONB document store
# PURPOSE: Store build jobs and artifact bags as versioned projections
# CREATED: 15 OCT 2026
# ============================================================================
"""
Postgres Projection Repository

Repository[T] adapter over forge.projections. Each instance owns one
projection name ("build_jobs", "artifacts") and optionally one tenant;
documents are the model's JSON dump. Every put bumps ``version``.

Usage:
    jobs = PostgresProjectionRepository(pool, "build_jobs", BuildJob)
    await jobs.put(job.job_id, job)
"""

import logging
from typing import Any, Dict, List, Optional, Type

from psycopg import sql
from psycopg.rows import dict_row
from psycopg.types.json import Json
from psycopg_pool import AsyncConnectionPool

from .base import Repository, T
from .database import DEFAULT_SCHEMA, PROJECTIONS_TABLE, table

logger = logging.getLogger(__name__)


class PostgresProjectionRepository(Repository[T]):
    """Repository for one projection type."""

    def __init__(
        self,
        pool: AsyncConnectionPool,
        projection_name: str,
        model: Type[T],
        tenant_id: Optional[str] = None,
        schema: str = DEFAULT_SCHEMA,
    ):
        self.pool = pool
        self.projection_name = projection_name
        self.model = model
        # Empty string is the "no tenant" key so the primary key stays NOT NULL
        self.tenant_id = tenant_id or ""
        self.table = table(schema, PROJECTIONS_TABLE)

    def _key(self, key: str) -> Dict[str, Any]:
        return {
            "projection_name": self.projection_name,
            "projection_id": key,
            "tenant_id": self.tenant_id,
        }

    async def get(self, key: str) -> Optional[T]:
        async with self.pool.connection() as conn:
            conn.row_factory = dict_row
            result = await conn.execute(
                sql.SQL(
                    """
                    SELECT data FROM {}
                    WHERE projection_name = %(projection_name)s
                      AND projection_id = %(projection_id)s
                      AND tenant_id = %(tenant_id)s
                    """
                ).format(self.table),
                self._key(key),
            )
            row = await result.fetchone()
            return self._row_to_model(row) if row else None

    async def put(self, key: str, value: T) -> None:
        async with self.pool.connection() as conn:
            await conn.execute(
                sql.SQL(
                    """
                    INSERT INTO {table} (projection_name, projection_id, tenant_id, data)
                    VALUES (%(projection_name)s, %(projection_id)s, %(tenant_id)s, %(data)s)
                    ON CONFLICT (projection_name, projection_id, tenant_id) DO UPDATE
                    SET data = EXCLUDED.data,
                        version = {table}.version + 1,
                        updated_at = NOW()
                    """
                ).format(table=self.table),
                {**self._key(key), "data": Json(value.model_dump(mode="json"))},
            )

    async def list(self, limit: int = 100) -> List[T]:
        if limit <= 0:
            return []
        async with self.pool.connection() as conn:
            conn.row_factory = dict_row
            result = await conn.execute(
                sql.SQL(
                    """
                    SELECT data FROM {}
                    WHERE projection_name = %(projection_name)s
                      AND tenant_id = %(tenant_id)s
                    ORDER BY updated_at DESC
                    LIMIT %(limit)s
                    """
                ).format(self.table),
                {"projection_name": self.projection_name, "tenant_id": self.tenant_id, "limit": limit},
            )
            rows = await result.fetchall()
            return [self._row_to_model(row) for row in rows]

    async def delete(self, key: str) -> bool:
        async with self.pool.connection() as conn:
            result = await conn.execute(
                sql.SQL(
                    """
                    DELETE FROM {}
                    WHERE projection_name = %(projection_name)s
                      AND projection_id = %(projection_id)s
                      AND tenant_id = %(tenant_id)s
                    """
                ).format(self.table),
                self._key(key),
            )
            return result.rowcount > 0

    def _row_to_model(self, row: Dict[str, Any]) -> T:
        """Convert database row to the projection's model."""
        return self.model.model_validate(row["data"])


__all__ = ["PostgresProjectionRepository"]
