# ============================================================================
# SUBMISSION REPOSITORY
# ============================================================================
# EPOCH: 1 - CLAIM AUTOMATION
# STATUS: Core - Submission queue persistence
# PURPOSE: Database access for submission_queue table
# CREATED: 19 OCT 2026
# ============================================================================
"""
Submission Repository

CRUD operations for the portal submission queue. The queue processor claims
items by flipping QUEUED -> IN_PROGRESS through `update()`, which uses the
version column for optimistic locking.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from psycopg import sql
from psycopg.rows import dict_row
from psycopg.types.json import Json
from psycopg_pool import AsyncConnectionPool

from core.contracts import Carrier, SubmissionStatus
from core.models import SubmissionQueueItem
from .database import TABLE_SUBMISSIONS

logger = logging.getLogger(__name__)

# URGENT > HIGH > MEDIUM > LOW, independent of enum declaration order
_PRIORITY_RANK_SQL = sql.SQL("""
    CASE priority
        WHEN 'urgent' THEN 0
        WHEN 'high' THEN 1
        WHEN 'medium' THEN 2
        ELSE 3
    END""")


class SubmissionRepository:
    """Repository for SubmissionQueueItem entities."""

    def __init__(self, pool: AsyncConnectionPool):
        self.pool = pool

    @staticmethod
    def _params(item: SubmissionQueueItem) -> Dict[str, Any]:
        return {
            "submission_id": item.submission_id,
            "case_id": item.case_id,
            "carrier": item.carrier.value,
            "credential_id": item.credential_id,
            "submission_type": item.submission_type.value,
            "priority": item.priority.value,
            "form_data": Json(item.form_data),
            "status": item.status.value,
            "attempt_count": item.attempt_count,
            "max_attempts": item.max_attempts,
            "scheduled_for": item.scheduled_for,
            "next_attempt_at": item.next_attempt_at,
            "last_attempt_at": item.last_attempt_at,
            "started_at": item.started_at,
            "completed_at": item.completed_at,
            "confirmation_number": item.confirmation_number,
            "claim_number": item.claim_number,
            "screenshot_path": item.screenshot_path,
            "error_message": item.error_message,
            "error_details": Json(item.error_details) if item.error_details else None,
            "created_by": item.created_by,
            "created_at": item.created_at,
            "updated_at": item.updated_at,
            "version": item.version,
        }

    async def create(self, item: SubmissionQueueItem) -> SubmissionQueueItem:
        async with self.pool.connection() as conn:
            await conn.execute(
                sql.SQL("""
                INSERT INTO {} (
                    submission_id, case_id, carrier, credential_id,
                    submission_type, priority, form_data, status,
                    attempt_count, max_attempts, scheduled_for, next_attempt_at,
                    last_attempt_at, started_at, completed_at,
                    confirmation_number, claim_number, screenshot_path,
                    error_message, error_details, created_by, created_at,
                    updated_at, version
                ) VALUES (
                    %(submission_id)s, %(case_id)s, %(carrier)s, %(credential_id)s,
                    %(submission_type)s, %(priority)s, %(form_data)s, %(status)s,
                    %(attempt_count)s, %(max_attempts)s, %(scheduled_for)s,
                    %(next_attempt_at)s, %(last_attempt_at)s, %(started_at)s,
                    %(completed_at)s, %(confirmation_number)s, %(claim_number)s,
                    %(screenshot_path)s, %(error_message)s, %(error_details)s,
                    %(created_by)s, %(created_at)s, %(updated_at)s, %(version)s
                )
                """).format(TABLE_SUBMISSIONS),
                self._params(item),
            )
            logger.info(
                f"Queued submission {item.submission_id} for case {item.case_id} "
                f"({item.carrier.value}, {item.priority.value})"
            )
            return item

    async def get(self, submission_id: str) -> Optional[SubmissionQueueItem]:
        async with self.pool.connection() as conn:
            conn.row_factory = dict_row
            result = await conn.execute(
                sql.SQL("SELECT * FROM {} WHERE submission_id = %s").format(TABLE_SUBMISSIONS),
                (submission_id,),
            )
            row = await result.fetchone()
            if row is None:
                return None
            return SubmissionQueueItem.model_validate(row)

    async def update(self, item: SubmissionQueueItem) -> bool:
        """
        Update a queue item with optimistic locking.

        Returns:
            True if update succeeded, False if version conflict
        """
        item.updated_at = datetime.utcnow()

        async with self.pool.connection() as conn:
            result = await conn.execute(
                sql.SQL("""
                UPDATE {} SET
                    status = %(status)s,
                    attempt_count = %(attempt_count)s,
                    next_attempt_at = %(next_attempt_at)s,
                    last_attempt_at = %(last_attempt_at)s,
                    started_at = %(started_at)s,
                    completed_at = %(completed_at)s,
                    confirmation_number = %(confirmation_number)s,
                    claim_number = %(claim_number)s,
                    screenshot_path = %(screenshot_path)s,
                    error_message = %(error_message)s,
                    error_details = %(error_details)s,
                    updated_at = %(updated_at)s,
                    version = version + 1
                WHERE submission_id = %(submission_id)s
                  AND version = %(version)s
                """).format(TABLE_SUBMISSIONS),
                self._params(item),
            )

            if result.rowcount == 0:
                logger.warning(
                    f"Version conflict updating submission {item.submission_id} "
                    f"(expected version {item.version})"
                )
                return False

            item.version += 1
            logger.debug(
                f"Updated submission {item.submission_id} status={item.status.value} "
                f"version={item.version}"
            )
            return True

    async def release_claim(self, item: SubmissionQueueItem) -> bool:
        """
        Status-only write of an attempt's outcome, without the version check.

        Fallback for when the full update keeps failing. Only touches the row
        while it is still IN_PROGRESS.

        Returns:
            True if the row left IN_PROGRESS
        """
        item.updated_at = datetime.utcnow()

        async with self.pool.connection() as conn:
            result = await conn.execute(
                sql.SQL("""
                UPDATE {} SET
                    status = %(status)s,
                    next_attempt_at = %(next_attempt_at)s,
                    completed_at = %(completed_at)s,
                    error_message = %(error_message)s,
                    updated_at = %(updated_at)s,
                    version = version + 1
                WHERE submission_id = %(submission_id)s
                  AND status = 'in_progress'
                """).format(TABLE_SUBMISSIONS),
                {
                    "submission_id": item.submission_id,
                    "status": item.status.value,
                    "next_attempt_at": item.next_attempt_at,
                    "completed_at": item.completed_at,
                    "error_message": item.error_message,
                    "updated_at": item.updated_at,
                },
            )
            if result.rowcount == 0:
                return False
            item.version += 1
            return True

    async def list_stale(self, claimed_before: datetime, limit: int = 10) -> List[SubmissionQueueItem]:
        """IN_PROGRESS items whose attempt started before `claimed_before`."""
        async with self.pool.connection() as conn:
            conn.row_factory = dict_row
            result = await conn.execute(
                sql.SQL("""
                SELECT * FROM {}
                WHERE status = 'in_progress'
                  AND (last_attempt_at IS NULL OR last_attempt_at < %s)
                ORDER BY last_attempt_at ASC NULLS FIRST
                LIMIT %s
                """).format(TABLE_SUBMISSIONS),
                (claimed_before, limit),
            )
            rows = await result.fetchall()
            return [SubmissionQueueItem.model_validate(row) for row in rows]

    async def list_ready(self, now: Optional[datetime] = None, limit: int = 10) -> List[SubmissionQueueItem]:
        """
        QUEUED items that are due, in dequeue order.

        Order: priority (URGENT first), then scheduled_for, then created_at.
        """
        now = now or datetime.utcnow()
        async with self.pool.connection() as conn:
            conn.row_factory = dict_row
            result = await conn.execute(
                sql.SQL("""
                SELECT * FROM {table}
                WHERE status = 'queued'
                  AND scheduled_for <= %(now)s
                  AND (next_attempt_at IS NULL OR next_attempt_at <= %(now)s)
                ORDER BY {rank} ASC, scheduled_for ASC, created_at ASC
                LIMIT %(limit)s
                """).format(table=TABLE_SUBMISSIONS, rank=_PRIORITY_RANK_SQL),
                {"now": now, "limit": limit},
            )
            rows = await result.fetchall()
            return [SubmissionQueueItem.model_validate(row) for row in rows]

    async def list_all(
        self,
        status: Optional[SubmissionStatus] = None,
        carrier: Optional[Carrier] = None,
        case_id: Optional[str] = None,
        limit: int = 100,
    ) -> List[SubmissionQueueItem]:
        filters = [sql.SQL("TRUE")]
        params: List[Any] = []
        if status:
            filters.append(sql.SQL("status = %s"))
            params.append(status.value)
        if carrier:
            filters.append(sql.SQL("carrier = %s"))
            params.append(carrier.value)
        if case_id:
            filters.append(sql.SQL("case_id = %s"))
            params.append(case_id)
        params.append(limit)

        async with self.pool.connection() as conn:
            conn.row_factory = dict_row
            result = await conn.execute(
                sql.SQL("""
                SELECT * FROM {table}
                WHERE {filters}
                ORDER BY {rank} ASC, scheduled_for ASC, created_at ASC
                LIMIT %s
                """).format(
                    table=TABLE_SUBMISSIONS,
                    filters=sql.SQL(" AND ").join(filters),
                    rank=_PRIORITY_RANK_SQL,
                ),
                params,
            )
            rows = await result.fetchall()
            return [SubmissionQueueItem.model_validate(row) for row in rows]

    async def count_by_status(self) -> Dict[str, int]:
        async with self.pool.connection() as conn:
            conn.row_factory = dict_row
            result = await conn.execute(
                sql.SQL("SELECT status::text AS status, COUNT(*) AS n FROM {} GROUP BY status").format(
                    TABLE_SUBMISSIONS
                ),
            )
            rows = await result.fetchall()
            return {row["status"]: row["n"] for row in rows}


__all__ = ["SubmissionRepository"]
