# ============================================================================
# CLAUDE CONTEXT - CORE MODULE
# ============================================================================
# EPOCH: 1 - CLAIM AUTOMATION
# STATUS: Core module initialization
# PURPOSE: Export core contracts, models, and schema utilities
# LAST_REVIEWED: 19 OCT 2026
# ============================================================================

from core.contracts import ExecutionStatus, StepStatus, SubmissionStatus
from core.models import (
    WorkflowDefinition,
    WorkflowExecution,
    WorkflowExecutionStep,
    SubmissionQueueItem,
    PortalCredential,
    PortalConfig,
)
from core.schema import PydanticToSQL

__all__ = [
    # Enums
    "ExecutionStatus",
    "StepStatus",
    "SubmissionStatus",
    # Models
    "WorkflowDefinition",
    "WorkflowExecution",
    "WorkflowExecutionStep",
    "SubmissionQueueItem",
    "PortalCredential",
    "PortalConfig",
    # Schema
    "PydanticToSQL",
]
