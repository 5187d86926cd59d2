# ============================================================================
# DATABASE CONNECTION POOL
# ============================================================================
# EPOCH: 1 - CLAIM AUTOMATION
# STATUS: Core - Async PostgreSQL connection management
# PURPOSE: psycopg3 pool, UTC session setup, claimflow table identifiers
# CREATED: 19 OCT 2026
# ============================================================================
"""
Database Connection Pool

One psycopg_pool.AsyncConnectionPool per process, shared by every repository.

Every pooled connection runs with TimeZone=UTC and loads TIMESTAMPTZ values
as naive UTC datetimes, the same representation the models stamp with
datetime.utcnow(). Naive values written back are read as UTC by the server.

Connection settings come from DATABASE_URL or the POSTGRES_* variables;
pool size from DB_POOL_MIN_SIZE / DB_POOL_MAX_SIZE.

Usage:
    from repositories.database import init_pool, TABLE_SUBMISSIONS

    pool = await init_pool()
    async with pool.connection() as conn:
        await conn.execute(sql.SQL("SELECT count(*) FROM {}").format(TABLE_SUBMISSIONS))
"""

import os
import logging
from datetime import datetime, timezone
from typing import Optional
from urllib.parse import urlsplit

from psycopg import AsyncConnection, sql
from psycopg.types.datetime import TimestamptzBinaryLoader, TimestamptzLoader
from psycopg_pool import AsyncConnectionPool

logger = logging.getLogger(__name__)

_pool: Optional[AsyncConnectionPool] = None


# ============================================================================
# CONNECTION SETTINGS
# ============================================================================

def get_connection_string() -> str:
    """DATABASE_URL if set, otherwise built from POSTGRES_* components."""
    if url := os.environ.get("DATABASE_URL"):
        return url

    host = os.environ.get("POSTGRES_HOST", "localhost")
    port = os.environ.get("POSTGRES_PORT", "5432")
    name = os.environ.get("POSTGRES_DB", "postgres")
    user = os.environ.get("POSTGRES_USER", "postgres")
    password = os.environ.get("POSTGRES_PASSWORD", "")
    sslmode = os.environ.get("POSTGRES_SSLMODE", "require")

    return f"postgresql://{user}:{password}@{host}:{port}/{name}?sslmode={sslmode}"


def redact_conninfo(conninfo: str) -> str:
    """host:port/db for log lines; never includes credentials."""
    if "://" in conninfo:
        parts = urlsplit(conninfo)
        return f"{parts.hostname}:{parts.port or 5432}{parts.path}"
    fields = dict(
        item.split("=", 1) for item in conninfo.split() if "=" in item
    )
    return f"{fields.get('host', 'localhost')}:{fields.get('port', '5432')}/{fields.get('dbname', '')}"


# ============================================================================
# UTC HANDLING
# ============================================================================

def _as_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class NaiveUTCTimestamptzLoader(TimestamptzLoader):
    def load(self, data) -> datetime:
        return _as_naive_utc(super().load(data))


class NaiveUTCTimestamptzBinaryLoader(TimestamptzBinaryLoader):
    def load(self, data) -> datetime:
        return _as_naive_utc(super().load(data))


async def configure_connection(conn: AsyncConnection) -> None:
    """Pool `configure` hook, run once per new connection."""
    conn.adapters.register_loader("timestamptz", NaiveUTCTimestamptzLoader)
    conn.adapters.register_loader("timestamptz", NaiveUTCTimestamptzBinaryLoader)
    await conn.execute("SET TIME ZONE 'UTC'")
    # The pool rejects connections returned in a transaction
    await conn.commit()


# ============================================================================
# POOL LIFECYCLE
# ============================================================================

async def init_pool(
    min_size: Optional[int] = None,
    max_size: Optional[int] = None,
    connection_string: Optional[str] = None,
) -> AsyncConnectionPool:
    """
    Open the process-wide pool. A second call returns the open pool.
    """
    global _pool

    if _pool is not None:
        logger.warning("Pool already initialized, returning existing pool")
        return _pool

    min_size = min_size if min_size is not None else int(os.environ.get("DB_POOL_MIN_SIZE", 2))
    max_size = max_size if max_size is not None else int(os.environ.get("DB_POOL_MAX_SIZE", 10))
    conninfo = connection_string or get_connection_string()

    logger.info(f"Initializing connection pool: {redact_conninfo(conninfo)}")

    _pool = AsyncConnectionPool(
        conninfo=conninfo,
        min_size=min_size,
        max_size=max_size,
        configure=configure_connection,
        open=False,
    )
    await _pool.open(wait=True)
    logger.info(f"Connection pool opened (min={min_size}, max={max_size})")

    return _pool


async def get_pool() -> AsyncConnectionPool:
    if _pool is None:
        await init_pool()
    return _pool


async def close_pool() -> None:
    global _pool

    if _pool is not None:
        await _pool.close()
        _pool = None
        logger.info("Connection pool closed")


class DatabasePool:
    """
    Pool scoped to an `async with` block (scripts, one-off tasks).

    Usage:
        async with DatabasePool(min_size=1, max_size=2) as pool:
            await PortalConfigRepository(pool).seed_defaults()
    """

    def __init__(
        self,
        min_size: int = 1,
        max_size: int = 2,
        connection_string: Optional[str] = None,
    ):
        self.min_size = min_size
        self.max_size = max_size
        self.connection_string = connection_string

    async def __aenter__(self) -> AsyncConnectionPool:
        return await init_pool(
            min_size=self.min_size,
            max_size=self.max_size,
            connection_string=self.connection_string,
        )

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await close_pool()


# ============================================================================
# TABLE IDENTIFIERS
# ============================================================================
# Use with sql.SQL("...").format(TABLE_X) so identifiers are always quoted.

SCHEMA = "claimflow"

# Case-management tables owned by the surrounding application
CASE_SCHEMA = os.environ.get("CASE_SCHEMA", "public")

TABLE_WORKFLOWS = sql.Identifier(SCHEMA, "workflows")
TABLE_EXECUTIONS = sql.Identifier(SCHEMA, "workflow_executions")
TABLE_STEPS = sql.Identifier(SCHEMA, "workflow_execution_steps")
TABLE_CREDENTIALS = sql.Identifier(SCHEMA, "portal_credentials")
TABLE_PORTAL_CONFIGS = sql.Identifier(SCHEMA, "carrier_portal_configs")
TABLE_SUBMISSIONS = sql.Identifier(SCHEMA, "submission_queue")
TABLE_HISTORY = sql.Identifier(SCHEMA, "submission_history")

TABLE_CASES = sql.Identifier(CASE_SCHEMA, "cases")
TABLE_REMINDERS = sql.Identifier(CASE_SCHEMA, "reminders")
