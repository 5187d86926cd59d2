# ============================================================================
# CLAUDE CONTEXT - SUBMISSION QUEUE MODELS
# ============================================================================
# EPOCH: 1 - CLAIM AUTOMATION
# STATUS: Core model - Portal submission job + append-only history
# PURPOSE: Durable retry/backoff queue for browser-automated claim filing
# LAST_REVIEWED: 19 OCT 2026
# EXPORTS: SubmissionQueueItem, SubmissionHistoryEntry
# DEPENDENCIES: pydantic
# ============================================================================
"""
Submission Queue Models

SubmissionQueueItem is one attempt-able unit of portal work. The queue
processor picks QUEUED items by (priority rank, scheduled_for, created_at),
claims them with optimistic locking and records the outcome.

Retry policy (record_failed_attempt):
    attempt_count < max_attempts  -> QUEUED, next_attempt_at = now + backoff
    attempt_count >= max_attempts -> FAILED
    non-retryable                 -> FAILED, or the operator status given

SubmissionHistoryEntry is the append-only log of every browser step taken for
an item.
"""

from datetime import datetime, timedelta
from typing import Any, ClassVar, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field, computed_field

from core.contracts import (
    Carrier,
    HistoryAction,
    HistoryStatus,
    SubmissionPriority,
    SubmissionStatus,
    SubmissionType,
)


class SubmissionQueueItem(BaseModel):
    """
    A queued portal submission.

    Maps to: claimflow.submission_queue table
    """

    __sql_table__: ClassVar[str] = "submission_queue"
    __sql_schema__: ClassVar[str] = "claimflow"
    __sql_primary_key__: ClassVar[List[str]] = ["submission_id"]
    __sql_foreign_keys__: ClassVar[Dict[str, str]] = {}
    __sql_indexes__: ClassVar[List[tuple]] = [
        ("idx_submission_queue_status", ["status"]),
        ("idx_submission_queue_case", ["case_id"]),
        ("idx_submission_queue_ready", ["priority", "scheduled_for"], "status = 'queued'"),
    ]

    submission_id: str = Field(..., max_length=64)
    case_id: str = Field(..., max_length=64)
    carrier: Carrier
    credential_id: str = Field(..., max_length=64)

    submission_type: SubmissionType = Field(default=SubmissionType.NEW_CLAIM)
    priority: SubmissionPriority = Field(default=SubmissionPriority.MEDIUM)

    # Snapshot of the case at enqueue time
    form_data: Dict[str, Any] = Field(default_factory=dict)

    status: SubmissionStatus = Field(default=SubmissionStatus.QUEUED)
    attempt_count: int = Field(default=0, ge=0)
    max_attempts: int = Field(default=3, ge=1)

    scheduled_for: datetime = Field(default_factory=datetime.utcnow)
    next_attempt_at: Optional[datetime] = None
    last_attempt_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    confirmation_number: Optional[str] = Field(default=None, max_length=128)
    claim_number: Optional[str] = Field(default=None, max_length=128)
    screenshot_path: Optional[str] = None

    error_message: Optional[str] = Field(default=None, max_length=2000)
    error_details: Optional[Dict[str, Any]] = None

    created_by: Optional[str] = Field(default=None, max_length=64)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    version: int = Field(
        default=1,
        ge=1,
        description="Version for optimistic locking - incremented on each update"
    )

    @computed_field
    @property
    def attempts_remaining(self) -> int:
        return max(self.max_attempts - self.attempt_count, 0)

    @property
    def queue_order(self) -> Tuple[int, datetime, datetime]:
        """Dequeue sort key: priority rank, then schedule, then age."""
        return (self.priority.rank, self.scheduled_for, self.created_at)

    def is_ready(self, now: Optional[datetime] = None) -> bool:
        """QUEUED and both scheduled_for and next_attempt_at are due."""
        now = now or datetime.utcnow()
        if self.status != SubmissionStatus.QUEUED:
            return False
        if self.scheduled_for > now:
            return False
        if self.next_attempt_at is not None and self.next_attempt_at > now:
            return False
        return True

    def mark_in_progress(self) -> None:
        """Claim for an attempt."""
        if self.status != SubmissionStatus.QUEUED:
            raise ValueError(f"Cannot start submission in status {self.status.value}")
        now = datetime.utcnow()
        self.status = SubmissionStatus.IN_PROGRESS
        self.attempt_count += 1
        self.last_attempt_at = now
        self.started_at = self.started_at or now
        self.updated_at = now

    def mark_completed(
        self,
        confirmation_number: Optional[str],
        claim_number: Optional[str] = None,
        screenshot_path: Optional[str] = None,
    ) -> None:
        if self.status != SubmissionStatus.IN_PROGRESS:
            raise ValueError(f"Cannot complete submission in status {self.status.value}")
        self.status = SubmissionStatus.COMPLETED
        self.confirmation_number = confirmation_number
        self.claim_number = claim_number or confirmation_number
        self.screenshot_path = screenshot_path
        self.error_message = None
        self.error_details = None
        self.next_attempt_at = None
        self.completed_at = datetime.utcnow()
        self.updated_at = datetime.utcnow()

    def record_failed_attempt(
        self,
        error_message: str,
        error_details: Optional[Dict[str, Any]] = None,
        backoff_seconds: int = 300,
        retryable: bool = True,
    ) -> SubmissionStatus:
        """
        Apply the retry policy after a failed attempt.

        Returns the resulting status (QUEUED or FAILED).
        """
        now = datetime.utcnow()
        self.error_message = error_message[:2000]
        self.error_details = error_details
        self.updated_at = now

        if retryable and self.attempt_count < self.max_attempts:
            self.status = SubmissionStatus.QUEUED
            self.next_attempt_at = now + timedelta(seconds=backoff_seconds)
        else:
            self.status = SubmissionStatus.FAILED
            self.next_attempt_at = None
            self.completed_at = now

        return self.status

    def mark_needs_operator(
        self,
        status: SubmissionStatus,
        error_message: str,
        error_details: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Park the item until an operator resolves a captcha or second factor."""
        if not status.needs_operator():
            raise ValueError(f"{status.value} is not an operator status")
        self.status = status
        self.error_message = error_message[:2000]
        self.error_details = error_details
        self.next_attempt_at = None
        self.updated_at = datetime.utcnow()

    def mark_cancelled(self) -> None:
        """Only QUEUED items can be cancelled."""
        if self.status != SubmissionStatus.QUEUED:
            raise ValueError(f"Cannot cancel submission in status {self.status.value}")
        self.status = SubmissionStatus.CANCELLED
        self.completed_at = datetime.utcnow()
        self.updated_at = datetime.utcnow()

    def can_retry(self) -> bool:
        return self.status in (
            SubmissionStatus.FAILED,
            SubmissionStatus.CANCELLED,
            SubmissionStatus.NEEDS_CAPTCHA,
            SubmissionStatus.NEEDS_2FA,
        )

    def reset_for_retry(self) -> None:
        """Operator retry: back to QUEUED with a fresh attempt budget."""
        if not self.can_retry():
            raise ValueError(f"Cannot retry submission in status {self.status.value}")
        now = datetime.utcnow()
        self.status = SubmissionStatus.QUEUED
        self.attempt_count = 0
        self.error_message = None
        self.error_details = None
        self.next_attempt_at = now
        self.completed_at = None
        self.updated_at = now


class SubmissionHistoryEntry(BaseModel):
    """
    One browser automation step.

    Maps to: claimflow.submission_history table
    """

    __sql_table__: ClassVar[str] = "submission_history"
    __sql_schema__: ClassVar[str] = "claimflow"
    __sql_primary_key__: ClassVar[List[str]] = ["history_id"]
    __sql_foreign_keys__: ClassVar[Dict[str, str]] = {}
    __sql_indexes__: ClassVar[List[tuple]] = [
        ("idx_submission_history_submission", ["submission_id"]),
        ("idx_submission_history_case", ["case_id"]),
        ("idx_submission_history_created", ["created_at"]),
    ]
    __sql_serial_columns__: ClassVar[List[str]] = ["history_id"]

    history_id: Optional[int] = None
    submission_id: str = Field(..., max_length=64)
    case_id: Optional[str] = Field(default=None, max_length=64)
    carrier: Optional[Carrier] = None

    action: HistoryAction
    status: HistoryStatus
    message: Optional[str] = Field(default=None, max_length=2000)
    details: Dict[str, Any] = Field(default_factory=dict)

    created_at: datetime = Field(default_factory=datetime.utcnow)

    @classmethod
    def success(
        cls,
        item: SubmissionQueueItem,
        action: HistoryAction,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> "SubmissionHistoryEntry":
        return cls(
            submission_id=item.submission_id,
            case_id=item.case_id,
            carrier=item.carrier,
            action=action,
            status=HistoryStatus.SUCCESS,
            message=message,
            details=details or {},
        )

    @classmethod
    def failure(
        cls,
        item: SubmissionQueueItem,
        action: HistoryAction,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> "SubmissionHistoryEntry":
        return cls(
            submission_id=item.submission_id,
            case_id=item.case_id,
            carrier=item.carrier,
            action=action,
            status=HistoryStatus.FAILED,
            message=message[:2000],
            details=details or {},
        )


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = ["SubmissionQueueItem", "SubmissionHistoryEntry"]
