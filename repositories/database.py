# ============================================================================
# DATABASE CONNECTION POOL
# ============================================================================
# EPOCH: 1 - GENERATION CORE
# STATUS: Persistence - Async PostgreSQL connection management
# PURPOSE: Provide connection pooling for psycopg3 async
# CREATED: 15 OCT 2026
# ============================================================================
"""
Database Connection Pool

Manages async PostgreSQL connections using psycopg3 and psycopg_pool.
Only used when PERSISTENCE_BACKEND=postgres; one pool per application.

Connection settings come from DATABASE_URL or the individual POSTGRES_*
variables.

Usage:
    from repositories.database import init_pool, close_pool

    pool = await init_pool(min_size=1, max_size=10)
    async with pool.connection() as conn:
        await conn.execute("SELECT 1")
    await close_pool()
"""

import logging
import os
from typing import Optional

from psycopg import sql
from psycopg_pool import AsyncConnectionPool

logger = logging.getLogger(__name__)

# Global pool instance
_pool: Optional[AsyncConnectionPool] = None


def get_connection_string() -> str:
    """
    Get database connection string from environment.

    Priority:
    1. DATABASE_URL environment variable
    2. Individual POSTGRES_* components
    """
    if url := os.environ.get("DATABASE_URL"):
        return url

    host = os.environ.get("POSTGRES_HOST", "localhost")
    port = os.environ.get("POSTGRES_PORT", "5432")
    name = os.environ.get("POSTGRES_DB", "postgres")
    user = os.environ.get("POSTGRES_USER", "postgres")
    password = os.environ.get("POSTGRES_PASSWORD", "")
    sslmode = os.environ.get("POSTGRES_SSLMODE", "prefer")

    return f"postgresql://{user}:{password}@{host}:{port}/{name}?sslmode={sslmode}"


def mask_conninfo(conninfo: str) -> str:
    """Connection string with credentials removed, for logs."""
    if "@" in conninfo:
        return conninfo.split("@")[-1]
    if "password=" in conninfo:
        return conninfo.split("password=")[0] + "password=***"
    return conninfo


async def init_pool(
    min_size: int = 1,
    max_size: int = 10,
    connection_string: Optional[str] = None,
) -> AsyncConnectionPool:
    """
    Initialize the global connection pool.

    Args:
        min_size: Minimum connections to maintain
        max_size: Maximum connections allowed
        connection_string: Override connection string (defaults to env)
    """
    global _pool

    if _pool is not None:
        logger.warning("Pool already initialized, returning existing pool")
        return _pool

    conninfo = connection_string or get_connection_string()
    logger.info(f"Initializing connection pool: {mask_conninfo(conninfo)}")

    _pool = AsyncConnectionPool(
        conninfo=conninfo,
        min_size=min_size,
        max_size=max_size,
        open=False,
    )

    await _pool.open()
    logger.info(f"Connection pool opened (min={min_size}, max={max_size})")

    return _pool


async def get_pool() -> AsyncConnectionPool:
    """Get the global connection pool, initializing if needed."""
    global _pool

    if _pool is None:
        await init_pool()

    return _pool


async def close_pool() -> None:
    """Close the global connection pool."""
    global _pool

    if _pool is not None:
        await _pool.close()
        _pool = None
        logger.info("Connection pool closed")


# ============================================================================
# SCHEMA CONSTANTS
# ============================================================================

DEFAULT_SCHEMA = "forge"

EVENTS_TABLE = "events"
PROJECTIONS_TABLE = "projections"


def table(schema: str, name: str) -> sql.Identifier:
    """Schema-qualified table identifier."""
    return sql.Identifier(schema, name)


__all__ = [
    "get_connection_string",
    "mask_conninfo",
    "init_pool",
    "get_pool",
    "close_pool",
    "DEFAULT_SCHEMA",
    "EVENTS_TABLE",
    "PROJECTIONS_TABLE",
    "table",
]
