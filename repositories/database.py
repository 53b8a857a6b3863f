# ============================================================================
# DATABASE CONNECTION POOL
# ============================================================================
# EPOCH: 1 - JOB CYCLE ENGINE
# STATUS: Core - Async PostgreSQL connection management
# PURPOSE: Provide connection pooling for psycopg3 async
# CREATED: 18 OCT 2026
# ============================================================================
"""
Database Connection Pool

Manages async PostgreSQL connections using psycopg3 and psycopg_pool.
Singleton pattern ensures one pool per application.

Connection settings come from DATABASE_URL, or from the individual
POSTGRES_* variables when DATABASE_URL is unset.

Usage:
    from repositories.database import get_pool

    pool = await get_pool()
    async with pool.connection() as conn:
        async with conn.transaction():
            await repo.insert(row, conn=conn)
"""

import os
import logging
from typing import AsyncIterator, Optional
from contextlib import asynccontextmanager

from psycopg import AsyncConnection
from psycopg import sql as psycopg_sql
from psycopg_pool import AsyncConnectionPool

from core.config import DatabaseDefaults

logger = logging.getLogger(__name__)

# Global pool instance
_pool: Optional[AsyncConnectionPool] = None


def get_connection_string() -> str:
    """
    Get database connection string from environment.

    Priority:
    1. DATABASE_URL environment variable
    2. Individual POSTGRES_* components

    Returns:
        PostgreSQL connection string
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


def _mask(conninfo: str) -> str:
    if "@" in conninfo:
        return conninfo.split("@")[-1]
    if "password=" in conninfo:
        return conninfo.split("password=")[0] + "password=***"
    return conninfo


async def init_pool(
    min_size: Optional[int] = None,
    max_size: Optional[int] = None,
    connection_string: Optional[str] = None,
) -> AsyncConnectionPool:
    """
    Initialize the global connection pool.

    Args:
        min_size: Minimum connections to maintain (default from DatabaseDefaults)
        max_size: Maximum connections allowed (default from DatabaseDefaults)
        connection_string: Override connection string (defaults to env)

    Returns:
        AsyncConnectionPool instance
    """
    global _pool

    if _pool is not None:
        logger.warning("Pool already initialized, returning existing pool")
        return _pool

    defaults = DatabaseDefaults.from_env()
    min_size = min_size if min_size is not None else defaults.pool_min_size
    max_size = max_size if max_size is not None else defaults.pool_max_size
    conninfo = connection_string or get_connection_string()

    logger.info(f"Initializing connection pool: {_mask(conninfo)}")

    _pool = AsyncConnectionPool(
        conninfo=conninfo,
        min_size=min_size,
        max_size=max_size,
        open=False,  # We'll open it explicitly
    )

    await _pool.open()
    logger.info(f"Connection pool opened (min={min_size}, max={max_size})")

    return _pool


async def get_pool() -> AsyncConnectionPool:
    """
    Get the global connection pool, initializing if needed.

    Returns:
        AsyncConnectionPool instance
    """
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


@asynccontextmanager
async def use_connection(
    pool: AsyncConnectionPool,
    conn: Optional[AsyncConnection] = None,
) -> AsyncIterator[AsyncConnection]:
    """
    Yield ``conn`` when the caller already holds one (caller controls the
    transaction), otherwise borrow a connection from ``pool``.
    """
    if conn is not None:
        yield conn
        return
    async with pool.connection() as owned:
        yield owned


@asynccontextmanager
async def transaction(pool: AsyncConnectionPool) -> AsyncIterator[AsyncConnection]:
    """
    Borrow a connection and open a transaction on it.

    Commits on normal exit; any exception rolls back every write made
    through the yielded connection.
    """
    async with pool.connection() as conn:
        async with conn.transaction():
            yield conn


# ============================================================================
# SCHEMA CONSTANTS
# ============================================================================

SCHEMA = DatabaseDefaults.from_env().schema

# Table identifiers: use with psycopg sql.SQL().format() for injection-safe queries
TABLE_GROUP_STATUSES = psycopg_sql.Identifier(SCHEMA, "group_statuses")
TABLE_JOB_DEFINITIONS = psycopg_sql.Identifier(SCHEMA, "job_definitions")
TABLE_TASK_TEMPLATES = psycopg_sql.Identifier(SCHEMA, "task_templates")
TABLE_JOB_INSTANCES = psycopg_sql.Identifier(SCHEMA, "job_instances")
TABLE_GROUP_COUNTERS = psycopg_sql.Identifier(SCHEMA, "group_counters")
TABLE_TASKS = psycopg_sql.Identifier(SCHEMA, "tasks")
