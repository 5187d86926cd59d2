# ============================================================================
# SUBMISSION QUEUE
# ============================================================================
# EPOCH: 1 - CLAIM AUTOMATION
# STATUS: Core - Durable portal submission queue and processor
# PURPOSE: Enqueue claims, run one attempt per tick, apply retry policy
# CREATED: 19 OCT 2026
# ============================================================================
"""
Submission Queue

The only bridge between workflows and the carrier portals. Workflows call
enqueue(); the scheduler calls process_queue() on an interval.

process_queue() is single-flight: an in-process asyncio.Lock plus, when a
LockService is wired, a transaction-level advisory lock shared by every
process on the database. Each call:

    0. releases IN_PROGRESS items whose attempt is older than
       stale_claim_seconds (crashed process, lost outcome write)
    1. selects due QUEUED items (URGENT > HIGH > MEDIUM > LOW, then
       scheduled_for) and claims the first one it wins with optimistic locking
    2. hands it to the browser coordinator
    3. applies the outcome:
         success              -> COMPLETED, case FILED with the claim number
         NeedsCaptcha/2FA     -> NEEDS_CAPTCHA / NEEDS_2FA (operator)
         other failure        -> QUEUED +5 min while attempts remain, else FAILED
       the outcome write is retried, then reduced to a status-only update

process_queue() never raises; the result dict describes what happened.
"""

import asyncio
import logging
import uuid
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from psycopg_pool import AsyncConnectionPool

from core.config import QueueDefaults, get_defaults
from core.contracts import Carrier, HistoryAction, SubmissionPriority, SubmissionStatus, SubmissionType
from core.errors import (
    CaseNotFound,
    InvalidSubmissionTransition,
    SubmissionError,
    SubmissionNotFound,
)
from core.logging import log_context
from core.models import CaseRecord, SubmissionHistoryEntry, SubmissionQueueItem
from repositories import SubmissionRepository
from services.history_service import HistoryService

logger = logging.getLogger(__name__)

IDLE_MESSAGE = "No submissions in queue"
STALE_CLAIM_MESSAGE = "Attempt abandoned without an outcome"


class SubmissionQueue:
    """Service for queueing and processing portal submissions."""

    def __init__(
        self,
        pool: AsyncConnectionPool,
        case_store: Any,
        coordinator: Any = None,
        history: Optional[HistoryService] = None,
        lock_service: Any = None,
        defaults: Optional[QueueDefaults] = None,
    ):
        self.pool = pool
        self.submission_repo = SubmissionRepository(pool)
        self.case_store = case_store
        self.coordinator = coordinator
        self.history = history or HistoryService(pool)
        self.lock_service = lock_service
        self.defaults = defaults or get_defaults().queue
        self._lock = asyncio.Lock()

    # =========================================================================
    # ENQUEUE
    # =========================================================================

    async def enqueue(
        self,
        case_id: str,
        credential_id: str,
        carrier: Optional[Carrier] = None,
        submission_type: SubmissionType = SubmissionType.NEW_CLAIM,
        priority: SubmissionPriority = SubmissionPriority.MEDIUM,
        scheduled_for: Optional[datetime] = None,
        created_by: Optional[str] = None,
        case: Optional[CaseRecord] = None,
    ) -> SubmissionQueueItem:
        """
        Queue a portal submission, snapshotting form data from the case.

        Raises:
            CaseNotFound: the case does not exist
        """
        if case is None:
            case = await self.case_store.get_case(case_id)
            if case is None:
                raise CaseNotFound(case_id)

        item = SubmissionQueueItem(
            submission_id=str(uuid.uuid4()),
            case_id=case_id,
            carrier=carrier or case.carrier,
            credential_id=credential_id,
            submission_type=submission_type,
            priority=priority,
            form_data=case.to_form_data(),
            max_attempts=self.defaults.max_attempts,
            scheduled_for=scheduled_for or datetime.utcnow(),
            created_by=created_by,
        )
        return await self.submission_repo.create(item)

    # =========================================================================
    # PROCESS
    # =========================================================================

    async def process_queue(self) -> Dict[str, Any]:
        """
        Run at most one submission attempt.

        Returns:
            {"processed": False, "message": ...} when idle or busy, otherwise
            {"processed": True, "submission_id", "status", "success", ...}
        """
        if self.coordinator is None:
            return {"processed": False, "message": "Browser automation is not configured"}
        if self._lock.locked():
            return {"processed": False, "message": "Queue processing already in progress"}

        try:
            async with self._lock:
                if self.lock_service is None:
                    return await self._process_next()

                async with self.lock_service.queue_lock() as acquired:
                    if not acquired:
                        return {"processed": False, "message": "Queue processing already in progress"}
                    return await self._process_next()

        except Exception as e:
            logger.exception(f"Queue processing error: {e}")
            return {"processed": False, "message": f"Queue processing error: {e}"}

    async def _claim_next(self) -> Optional[SubmissionQueueItem]:
        candidates = await self.submission_repo.list_ready(
            datetime.utcnow(), limit=self.defaults.candidate_batch_size
        )
        for item in candidates:
            item.mark_in_progress()
            if await self.submission_repo.update(item):
                return item
            logger.debug(f"Submission {item.submission_id} claimed elsewhere, trying next")
        return None

    async def _process_next(self) -> Dict[str, Any]:
        try:
            await self.recover_stale_submissions()
        except Exception as e:
            logger.error(f"Stale submission scan failed: {e}")

        item = await self._claim_next()
        if item is None:
            return {"processed": False, "message": IDLE_MESSAGE}

        with log_context(submission_id=item.submission_id, case_id=item.case_id, carrier=item.carrier.value):
            logger.info(
                f"Processing submission {item.submission_id} "
                f"(attempt {item.attempt_count}/{item.max_attempts})"
            )

            try:
                outcome = await self.coordinator.submit_to_portal(item)

            except SubmissionError as e:
                if e.queue_status is not None:
                    item.mark_needs_operator(e.queue_status, str(e), e.details or None)
                else:
                    item.record_failed_attempt(
                        str(e),
                        {"error_type": type(e).__name__, **e.details},
                        backoff_seconds=self.defaults.retry_backoff_seconds,
                        retryable=e.retryable,
                    )

            except Exception as e:
                logger.exception(f"Submission {item.submission_id} raised: {e}")
                item.record_failed_attempt(
                    str(e) or type(e).__name__,
                    {"error_type": type(e).__name__},
                    backoff_seconds=self.defaults.retry_backoff_seconds,
                )

            else:
                if outcome.success:
                    item.mark_completed(
                        outcome.confirmation_number,
                        claim_number=outcome.claim_number,
                        screenshot_path=outcome.screenshot_path,
                    )
                else:
                    item.record_failed_attempt(
                        outcome.error_message or "Submission failed",
                        outcome.error_details,
                        backoff_seconds=self.defaults.retry_backoff_seconds,
                    )

            await self._save_outcome(item)

            if item.status == SubmissionStatus.COMPLETED:
                await self._mark_case_filed(item)

            logger.info(f"Submission {item.submission_id} -> {item.status.value}")

        return {
            "processed": True,
            "submission_id": item.submission_id,
            "status": item.status.value,
            "success": item.status == SubmissionStatus.COMPLETED,
            "confirmation_number": item.confirmation_number,
            "claim_number": item.claim_number,
            "error_message": item.error_message,
            "next_attempt_at": item.next_attempt_at.isoformat() if item.next_attempt_at else None,
        }

    async def _save_outcome(self, item: SubmissionQueueItem) -> None:
        """
        Persist the attempt's outcome, retrying transient failures and
        falling back to a status-only write so the row never stays claimed.
        """
        attempts = self.defaults.outcome_write_attempts
        for attempt in range(1, attempts + 1):
            try:
                if not await self.submission_repo.update(item):
                    logger.error(f"Lost update on submission {item.submission_id} ({item.status.value})")
                return
            except Exception as e:
                logger.warning(
                    f"Saving outcome of submission {item.submission_id} failed "
                    f"(attempt {attempt}/{attempts}): {e}"
                )
                if attempt < attempts:
                    await asyncio.sleep(self.defaults.outcome_write_retry_seconds)

        if await self.submission_repo.release_claim(item):
            logger.warning(f"Submission {item.submission_id} outcome saved as status only ({item.status.value})")
        else:
            logger.error(f"Submission {item.submission_id} was no longer in progress, outcome not saved")

    async def _mark_case_filed(self, item: SubmissionQueueItem) -> None:
        try:
            await self.case_store.record_claim_filed(item.case_id, item.claim_number)
        except Exception as e:
            logger.warning(f"Submission {item.submission_id} completed but case update failed: {e}")

    # =========================================================================
    # STALE CLAIMS
    # =========================================================================

    async def recover_stale_submissions(self, now: Optional[datetime] = None) -> int:
        """
        Apply the retry policy to attempts that never reported an outcome.

        An item still IN_PROGRESS after stale_claim_seconds belongs to a
        process that crashed or lost its database connection mid-attempt.
        The attempt counts as failed: QUEUED with the usual backoff while
        attempts remain, otherwise FAILED.

        Returns:
            Number of items released
        """
        now = now or datetime.utcnow()
        cutoff = now - timedelta(seconds=self.defaults.stale_claim_seconds)
        stale = await self.submission_repo.list_stale(cutoff, limit=self.defaults.candidate_batch_size)

        recovered = 0
        for item in stale:
            claimed_at = item.last_attempt_at.isoformat() if item.last_attempt_at else None
            item.record_failed_attempt(
                STALE_CLAIM_MESSAGE,
                {"error_type": "StaleClaim", "last_attempt_at": claimed_at},
                backoff_seconds=self.defaults.retry_backoff_seconds,
            )
            if not await self.submission_repo.update(item):
                logger.debug(f"Stale submission {item.submission_id} changed underneath, skipping")
                continue

            recovered += 1
            logger.warning(
                f"Released stale submission {item.submission_id} "
                f"(claimed {claimed_at}) -> {item.status.value}"
            )
            await self.history.failure(
                item, HistoryAction.ERROR, STALE_CLAIM_MESSAGE, {"status": item.status.value},
            )

        return recovered

    # =========================================================================
    # OPERATOR ACTIONS
    # =========================================================================

    async def get_submission(self, submission_id: str) -> SubmissionQueueItem:
        item = await self.submission_repo.get(submission_id)
        if item is None:
            raise SubmissionNotFound(submission_id)
        return item

    async def cancel_submission(self, submission_id: str) -> SubmissionQueueItem:
        """
        Cancel a QUEUED item.

        Raises:
            SubmissionNotFound, InvalidSubmissionTransition
        """
        item = await self.get_submission(submission_id)
        if item.status != SubmissionStatus.QUEUED:
            raise InvalidSubmissionTransition(submission_id, item.status.value, SubmissionStatus.CANCELLED.value)

        item.mark_cancelled()
        await self._save_operator_change(item, SubmissionStatus.CANCELLED)
        logger.info(f"Cancelled submission {submission_id}")
        return item

    async def retry_submission(self, submission_id: str) -> SubmissionQueueItem:
        """
        Put a FAILED / NEEDS_* / CANCELLED item back in the queue with a
        fresh attempt budget.

        Raises:
            SubmissionNotFound, InvalidSubmissionTransition
        """
        item = await self.get_submission(submission_id)
        if not item.can_retry():
            raise InvalidSubmissionTransition(submission_id, item.status.value, SubmissionStatus.QUEUED.value)

        item.reset_for_retry()
        await self._save_operator_change(item, SubmissionStatus.QUEUED)
        logger.info(f"Re-queued submission {submission_id}")
        return item

    async def _save_operator_change(self, item: SubmissionQueueItem, requested: SubmissionStatus) -> None:
        if await self.submission_repo.update(item):
            return
        current = await self.get_submission(item.submission_id)
        raise InvalidSubmissionTransition(item.submission_id, current.status.value, requested.value)

    # =========================================================================
    # QUERIES
    # =========================================================================

    async def list_queue(
        self,
        status: Optional[SubmissionStatus] = None,
        carrier: Optional[Carrier] = None,
        case_id: Optional[str] = None,
        limit: int = 100,
    ) -> List[SubmissionQueueItem]:
        return await self.submission_repo.list_all(
            status=status, carrier=carrier, case_id=case_id, limit=limit
        )

    async def get_history(
        self,
        case_id: Optional[str] = None,
        submission_id: Optional[str] = None,
        limit: int = 200,
    ) -> List[SubmissionHistoryEntry]:
        return await self.history.get_history(case_id=case_id, submission_id=submission_id, limit=limit)

    async def queue_stats(self) -> Dict[str, int]:
        counts = await self.submission_repo.count_by_status()
        return {status.value: counts.get(status.value, 0) for status in SubmissionStatus}


__all__ = ["SubmissionQueue", "IDLE_MESSAGE", "STALE_CLAIM_MESSAGE"]
