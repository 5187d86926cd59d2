# ============================================================================
# DISTRIBUTED LOCKING SERVICE
# ============================================================================
# EPOCH: 1 - CLAIM AUTOMATION
# STATUS: Infrastructure - Concurrency control
# PURPOSE: PostgreSQL advisory locks for scheduler, queue and executions
# CREATED: 19 OCT 2026
# ============================================================================
"""
Distributed Locking Service

Uses PostgreSQL advisory locks for coordination:
- Session-level lock for the scheduler (one leader per database)
- Transaction-level lock making process_queue() single-flight
- Transaction-level lock per execution (one driver per execution)
- Optimistic locking via version numbers lives in the repositories

Advisory locks auto-release on disconnect and support non-blocking
try-lock semantics.

Usage:
    from infrastructure.locking import LockService

    lock_service = LockService(pool)

    async with lock_service.queue_lock() as acquired:
        if acquired:
            await process_next_submission()
"""

import hashlib
import logging
from contextlib import asynccontextmanager
from typing import Any

from psycopg_pool import AsyncConnectionPool

logger = logging.getLogger(__name__)


class LockService:
    """PostgreSQL advisory locks keyed by hashed string names."""

    SCHEDULER_LOCK = "claimflow:scheduler"
    QUEUE_LOCK = "claimflow:submission-queue"
    EXECUTION_LOCK_PREFIX = "claimflow:execution:"

    def __init__(self, pool: AsyncConnectionPool):
        self.pool = pool
        self._scheduler_conn = None  # Held connection for the scheduler lock

    @staticmethod
    def _hash_to_lock_id(key: str) -> int:
        """
        Convert string key to int64 for PostgreSQL advisory lock.

        Uses the first 8 bytes of SHA256, interpreted as signed int64.
        """
        h = hashlib.sha256(key.encode()).digest()[:8]
        return int.from_bytes(h, byteorder='big', signed=True)

    @staticmethod
    def _acquired(row: Any) -> bool:
        # Handle both dict_row and tuple row factories
        if not row:
            return False
        return bool(row["acquired"] if hasattr(row, 'keys') else row[0])

    # =========================================================================
    # SCHEDULER LOCK (Session-level)
    # =========================================================================

    async def try_acquire_scheduler_lock(self) -> bool:
        """
        Try to become the scheduler leader.

        The lock is held on a dedicated connection for the scheduler's
        lifetime and released on release_scheduler_lock() or disconnect.
        """
        lock_id = self._hash_to_lock_id(self.SCHEDULER_LOCK)
        self._scheduler_conn = await self.pool.getconn()

        try:
            result = await self._scheduler_conn.execute(
                "SELECT pg_try_advisory_lock(%s) as acquired",
                (lock_id,),
            )
            acquired = self._acquired(await result.fetchone())
        except Exception as e:
            logger.error(f"Error acquiring scheduler lock: {e}")
            await self.pool.putconn(self._scheduler_conn)
            self._scheduler_conn = None
            return False

        if acquired:
            logger.info(f"Acquired scheduler lock (lock_id={lock_id})")
        else:
            logger.warning("Failed to acquire scheduler lock - another instance may be running")
            await self.pool.putconn(self._scheduler_conn)
            self._scheduler_conn = None

        return acquired

    async def release_scheduler_lock(self) -> None:
        if not self._scheduler_conn:
            return

        lock_id = self._hash_to_lock_id(self.SCHEDULER_LOCK)
        try:
            await self._scheduler_conn.execute("SELECT pg_advisory_unlock(%s)", (lock_id,))
            logger.info(f"Released scheduler lock (lock_id={lock_id})")
        except Exception as e:
            logger.warning(f"Error releasing scheduler lock: {e}")
        finally:
            conn, self._scheduler_conn = self._scheduler_conn, None
            await self.pool.putconn(conn)

    @property
    def has_scheduler_lock(self) -> bool:
        return self._scheduler_conn is not None

    # =========================================================================
    # TRANSACTION-LEVEL LOCKS
    # =========================================================================

    @asynccontextmanager
    async def _xact_lock(self, key: str, blocking: bool = False):
        lock_id = self._hash_to_lock_id(key)

        async with self.pool.connection() as conn:
            if blocking:
                await conn.execute("SELECT pg_advisory_xact_lock(%s)", (lock_id,))
                acquired = True
            else:
                result = await conn.execute(
                    "SELECT pg_try_advisory_xact_lock(%s) as acquired",
                    (lock_id,),
                )
                acquired = self._acquired(await result.fetchone())

            if acquired:
                logger.debug(f"Acquired lock {key}")
            else:
                logger.debug(f"Lock {key} held by another process, skipping")

            try:
                yield acquired
            finally:
                # Released when the connection's transaction ends
                if acquired:
                    logger.debug(f"Released lock {key}")

    def queue_lock(self, blocking: bool = False):
        """
        Single-flight guard for process_queue().

        Usage:
            async with lock_service.queue_lock() as acquired:
                if acquired:
                    ...
        """
        return self._xact_lock(self.QUEUE_LOCK, blocking=blocking)

    def execution_lock(self, execution_id: str, blocking: bool = False):
        """Guard that one process drives a given execution."""
        return self._xact_lock(f"{self.EXECUTION_LOCK_PREFIX}{execution_id}", blocking=blocking)


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = ['LockService']
