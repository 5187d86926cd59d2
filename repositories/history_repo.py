# ============================================================================
# SUBMISSION HISTORY REPOSITORY
# ============================================================================
# EPOCH: 1 - CLAIM AUTOMATION
# STATUS: Core - Append-only automation audit trail
# PURPOSE: Database access for submission_history table
# CREATED: 19 OCT 2026
# ============================================================================
"""
Submission History Repository

Append-only log of browser automation steps (navigate, login, fill_form,
submit, extract, error).
"""

import logging
from typing import List, Optional

from psycopg import sql
from psycopg.rows import dict_row
from psycopg.types.json import Json
from psycopg_pool import AsyncConnectionPool

from core.models import SubmissionHistoryEntry
from .database import TABLE_HISTORY

logger = logging.getLogger(__name__)


class HistoryRepository:
    """Repository for SubmissionHistoryEntry entities."""

    def __init__(self, pool: AsyncConnectionPool):
        self.pool = pool

    async def create(self, entry: SubmissionHistoryEntry) -> SubmissionHistoryEntry:
        """
        Append an entry.

        Returns:
            The entry with history_id populated
        """
        async with self.pool.connection() as conn:
            conn.row_factory = dict_row
            result = await conn.execute(
                sql.SQL("""
                INSERT INTO {} (
                    submission_id, case_id, carrier, action, status,
                    message, details, created_at
                ) VALUES (
                    %(submission_id)s, %(case_id)s, %(carrier)s, %(action)s,
                    %(status)s, %(message)s, %(details)s, %(created_at)s
                )
                RETURNING history_id
                """).format(TABLE_HISTORY),
                {
                    "submission_id": entry.submission_id,
                    "case_id": entry.case_id,
                    "carrier": entry.carrier.value if entry.carrier else None,
                    "action": entry.action.value,
                    "status": entry.status.value,
                    "message": entry.message,
                    "details": Json(entry.details),
                    "created_at": entry.created_at,
                },
            )
            row = await result.fetchone()
            entry.history_id = row["history_id"]
            return entry

    async def list_entries(
        self,
        case_id: Optional[str] = None,
        submission_id: Optional[str] = None,
        limit: int = 200,
    ) -> List[SubmissionHistoryEntry]:
        """Entries newest first, filtered by case and/or submission."""
        filters = [sql.SQL("TRUE")]
        params: list = []
        if case_id:
            filters.append(sql.SQL("case_id = %s"))
            params.append(case_id)
        if submission_id:
            filters.append(sql.SQL("submission_id = %s"))
            params.append(submission_id)
        params.append(limit)

        async with self.pool.connection() as conn:
            conn.row_factory = dict_row
            result = await conn.execute(
                sql.SQL("""
                SELECT * FROM {}
                WHERE {}
                ORDER BY created_at DESC, history_id DESC
                LIMIT %s
                """).format(TABLE_HISTORY, sql.SQL(" AND ").join(filters)),
                params,
            )
            rows = await result.fetchall()
            return [SubmissionHistoryEntry.model_validate(row) for row in rows]


__all__ = ["HistoryRepository"]
