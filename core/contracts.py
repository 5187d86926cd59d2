# ============================================================================
# CLAUDE CONTEXT - BASE CONTRACTS & ENUMS
# ============================================================================
# EPOCH: 1 - CLAIM AUTOMATION
# STATUS: Foundation - Core enums shared by every layer
# PURPOSE: Status, priority and carrier enums for workflows and submissions
# LAST_REVIEWED: 19 OCT 2026
# EXPORTS: ExecutionStatus, StepStatus, SubmissionStatus, SubmissionPriority,
#          SubmissionType, Carrier, ValidationStatus, TwoFactorMethod,
#          CaptchaType, HistoryAction, HistoryStatus, TriggerType,
#          WorkflowCategory, ConditionOperator
# DEPENDENCIES: enum
# ============================================================================
"""
Base contracts for the claim workflow orchestrator.

These enums cross every boundary:
- SQL (PostgreSQL enum types generated from them)
- HTTP (FastAPI request/response schemas)
- Python (executor, queue processor, browser automation)
"""

from enum import Enum


# ============================================================================
# WORKFLOW EXECUTION
# ============================================================================

class ExecutionStatus(str, Enum):
    """
    Workflow execution lifecycle states.

    State transitions:
        PENDING -> RUNNING -> COMPLETED
                           -> FAILED
                           -> CANCELLED
                   RUNNING <-> PAUSED
                   PAUSED  -> CANCELLED
    """
    PENDING = "pending"          # Created, traversal not started
    RUNNING = "running"          # Traversal in progress (or waiting on a WAIT node)
    PAUSED = "paused"            # Operator paused, checkpoint persisted
    COMPLETED = "completed"      # Every reachable node finished
    FAILED = "failed"            # A node action failed
    CANCELLED = "cancelled"      # Operator cancelled

    def is_terminal(self) -> bool:
        """Check if this is a terminal state (no further transitions)."""
        return self in (
            ExecutionStatus.COMPLETED,
            ExecutionStatus.FAILED,
            ExecutionStatus.CANCELLED,
        )


class StepStatus(str, Enum):
    """
    Step (single node visit) states.

    State transitions:
        RUNNING -> COMPLETED
                -> FAILED
    """
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    def is_terminal(self) -> bool:
        """Check if this is a terminal state."""
        return self in (StepStatus.COMPLETED, StepStatus.FAILED)


class TriggerType(str, Enum):
    """What starts a workflow execution."""
    MANUAL = "manual"
    CASE_CREATED = "case_created"
    STATUS_CHANGE = "status_change"
    TIME_BASED = "time_based"
    WEBHOOK = "webhook"


class WorkflowCategory(str, Enum):
    """Workflow categorization for listing and templates."""
    CASE_LIFECYCLE = "case_lifecycle"
    APPEAL_PROCESS = "appeal_process"
    ESCALATION = "escalation"
    CUSTOM = "custom"


class ConditionOperator(str, Enum):
    """Operators supported on edge and CONDITION node conditions."""
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    CONTAINS = "contains"
    EXISTS = "exists"
    NOT_EXISTS = "not_exists"    # The only operator that is true on a missing path


# ============================================================================
# PORTAL SUBMISSIONS
# ============================================================================

class SubmissionStatus(str, Enum):
    """
    Submission queue item states.

    State transitions:
        QUEUED -> IN_PROGRESS -> COMPLETED
                              -> QUEUED (retry with backoff)
                              -> FAILED (attempts exhausted)
                              -> NEEDS_CAPTCHA / NEEDS_2FA (operator input)
        QUEUED -> CANCELLED
        FAILED / NEEDS_* / CANCELLED -> QUEUED (operator retry)
    """
    QUEUED = "queued"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
    NEEDS_CAPTCHA = "needs_captcha"
    NEEDS_2FA = "needs_2fa"
    CANCELLED = "cancelled"

    def is_terminal(self) -> bool:
        """Check if this is a terminal state (no automatic transitions)."""
        return self in (
            SubmissionStatus.COMPLETED,
            SubmissionStatus.FAILED,
            SubmissionStatus.CANCELLED,
        )

    def needs_operator(self) -> bool:
        """Check if a human has to act before the item can move again."""
        return self in (SubmissionStatus.NEEDS_CAPTCHA, SubmissionStatus.NEEDS_2FA)


class SubmissionPriority(str, Enum):
    """Queue priority. Lower rank is served first."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"

    @property
    def rank(self) -> int:
        """Dequeue rank (0 = first)."""
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {
    SubmissionPriority.URGENT: 0,
    SubmissionPriority.HIGH: 1,
    SubmissionPriority.MEDIUM: 2,
    SubmissionPriority.LOW: 3,
}


class SubmissionType(str, Enum):
    """Kind of portal interaction a queue item performs."""
    NEW_CLAIM = "new_claim"
    APPEAL = "appeal"
    FOLLOW_UP = "follow_up"
    DOCUMENT_UPLOAD = "document_upload"


class Carrier(str, Enum):
    """Carriers with a claims portal."""
    FEDEX = "FEDEX"
    UPS = "UPS"
    USPS = "USPS"
    DHL = "DHL"


class ValidationStatus(str, Enum):
    """Result of the last credential login test."""
    NEEDS_VERIFICATION = "needs_verification"
    VALID = "valid"
    INVALID = "invalid"


class TwoFactorMethod(str, Enum):
    """Second factor configured on a portal account."""
    NONE = "none"
    SMS = "sms"
    EMAIL = "email"
    AUTHENTICATOR = "authenticator"


class CaptchaType(str, Enum):
    """Captcha a portal is known to present."""
    NONE = "none"
    RECAPTCHA_V2 = "recaptcha_v2"
    RECAPTCHA_V3 = "recaptcha_v3"
    HCAPTCHA = "hcaptcha"
    IMAGE = "image"


class HistoryAction(str, Enum):
    """Discrete browser automation step recorded in submission history."""
    NAVIGATE = "navigate"
    LOGIN = "login"
    FILL_FORM = "fill_form"
    SUBMIT = "submit"
    EXTRACT = "extract"
    ERROR = "error"


class HistoryStatus(str, Enum):
    """Outcome of a history step."""
    SUCCESS = "success"
    FAILED = "failed"
    WARNING = "warning"


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "ExecutionStatus",
    "StepStatus",
    "TriggerType",
    "WorkflowCategory",
    "ConditionOperator",
    "SubmissionStatus",
    "SubmissionPriority",
    "SubmissionType",
    "Carrier",
    "ValidationStatus",
    "TwoFactorMethod",
    "CaptchaType",
    "HistoryAction",
    "HistoryStatus",
]
