# ============================================================================
# SUBMISSION HISTORY SERVICE
# ============================================================================
# EPOCH: 1 - CLAIM AUTOMATION
# STATUS: Core - Automation step recording and retrieval
# PURPOSE: Append navigate/login/fill_form/submit/error entries per attempt
# CREATED: 19 OCT 2026
# ============================================================================
"""
Submission History Service

Records each browser automation step against its queue item. Recording is
fire-and-forget: a failed history write is logged and never interrupts the
submission it describes.
"""

import logging
from typing import Any, Dict, List, Optional

from psycopg_pool import AsyncConnectionPool

from core.contracts import HistoryAction, HistoryStatus
from core.models import SubmissionHistoryEntry, SubmissionQueueItem
from repositories import HistoryRepository

logger = logging.getLogger(__name__)


class HistoryService:
    """Service for recording and reading submission history."""

    def __init__(self, pool: AsyncConnectionPool):
        self.pool = pool
        self.history_repo = HistoryRepository(pool)

    # =========================================================================
    # CORE RECORD METHOD
    # =========================================================================

    async def record(self, entry: SubmissionHistoryEntry) -> Optional[SubmissionHistoryEntry]:
        """
        Append an entry. Fire-and-forget - logs errors but doesn't raise.

        Returns:
            Created entry or None if the write failed
        """
        try:
            created = await self.history_repo.create(entry)
            logger.debug(
                f"History {entry.action.value}/{entry.status.value} "
                f"for submission={entry.submission_id}"
            )
            return created

        except Exception as e:
            # Fire-and-forget - log but don't raise
            logger.warning(
                f"Failed to record history {entry.action.value} "
                f"for submission {entry.submission_id}: {e}"
            )
            return None

    async def success(
        self,
        item: SubmissionQueueItem,
        action: HistoryAction,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        await self.record(SubmissionHistoryEntry.success(item, action, message, details))

    async def failure(
        self,
        item: SubmissionQueueItem,
        action: HistoryAction,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        await self.record(SubmissionHistoryEntry.failure(item, action, message, details))

    async def warning(
        self,
        item: SubmissionQueueItem,
        action: HistoryAction,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        await self.record(
            SubmissionHistoryEntry(
                submission_id=item.submission_id,
                case_id=item.case_id,
                carrier=item.carrier,
                action=action,
                status=HistoryStatus.WARNING,
                message=message,
                details=details or {},
            )
        )

    # =========================================================================
    # QUERY METHODS
    # =========================================================================

    async def get_history(
        self,
        case_id: Optional[str] = None,
        submission_id: Optional[str] = None,
        limit: int = 200,
    ) -> List[SubmissionHistoryEntry]:
        return await self.history_repo.list_entries(
            case_id=case_id, submission_id=submission_id, limit=limit
        )


__all__ = ["HistoryService"]
