# ============================================================================
# REPOSITORIES MODULE
# ============================================================================
# EPOCH: 1 - GENERATION CORE
# STATUS: Persistence - Storage ports and adapters
# PURPOSE: Build job, artifact and event storage
# CREATED: 15 OCT 2026
# ============================================================================
"""
Repositories Module

In-memory storage by default; PostgreSQL (psycopg3 async with connection
pooling) when PERSISTENCE_BACKEND=postgres.

Usage:
    from repositories import init_pool, ensure_schema, PostgresProjectionRepository

    pool = await init_pool()
    await ensure_schema(pool)
    jobs = PostgresProjectionRepository(pool, "build_jobs", BuildJob)
"""

from .base import Repository, InMemoryRepository, EventStore
from .database import init_pool, get_pool, close_pool, get_connection_string
from .event_store import PostgresEventStore
from .projection_repo import PostgresProjectionRepository
from .schema import ensure_schema, schema_statements

__all__ = [
    "Repository",
    "InMemoryRepository",
    "EventStore",
    "init_pool",
    "get_pool",
    "close_pool",
    "get_connection_string",
    "PostgresEventStore",
    "PostgresProjectionRepository",
    "ensure_schema",
    "schema_statements",
]
