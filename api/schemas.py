# ============================================================================
# API SCHEMAS
# ============================================================================
# EPOCH: 1 - CLAIM AUTOMATION
# STATUS: Core - Request/Response schemas
# PURPOSE: Pydantic models for API validation
# CREATED: 19 OCT 2026
# ============================================================================
"""
API Schemas

Request and response models for the API. Workflow definitions and portal
configs are accepted and returned as their domain models; the rest have
dedicated request/response shapes.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field

from core.contracts import (
    Carrier,
    ExecutionStatus,
    StepStatus,
    SubmissionPriority,
    SubmissionType,
    TriggerType,
    TwoFactorMethod,
    ValidationStatus,
    WorkflowCategory,
)


# ============================================================================
# REQUEST SCHEMAS
# ============================================================================

class WorkflowUpdate(BaseModel):
    """Partial update of a workflow definition. Graph changes are re-validated."""
    name: Optional[str] = Field(None, max_length=128)
    description: Optional[str] = None
    category: Optional[WorkflowCategory] = None
    trigger_type: Optional[TriggerType] = None
    trigger_config: Optional[Dict[str, Any]] = None
    tags: Optional[List[str]] = None
    is_active: Optional[bool] = None
    nodes: Optional[List[Dict[str, Any]]] = None
    edges: Optional[List[Dict[str, Any]]] = None


class TemplateInstantiate(BaseModel):
    """Request to copy a template into a new workflow definition."""
    workflow_id: Optional[str] = Field(None, max_length=64)
    name: Optional[str] = Field(None, max_length=128)
    created_by: Optional[str] = Field(None, max_length=64)


class ExecutionCreate(BaseModel):
    """Request to start a workflow execution."""
    context: Dict[str, Any] = Field(
        default_factory=dict,
        description="Initial execution context; case_id identifies the subject case",
    )
    trigger_source: str = Field(default="manual", max_length=64)
    background: bool = Field(
        default=False,
        description="Return immediately and run the traversal in the background",
    )

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "context": {"case_id": "42", "credential_id": "cred-fedex-main"},
                    "trigger_source": "manual",
                }
            ]
        }
    }


class CredentialCreate(BaseModel):
    """Request to store carrier portal credentials. Secrets are encrypted at rest."""
    carrier: Carrier
    account_name: str = Field(..., max_length=128)
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)
    account_number: Optional[str] = None
    security_questions: Optional[Any] = None
    two_factor_method: TwoFactorMethod = TwoFactorMethod.NONE
    two_factor_phone: Optional[str] = None
    two_factor_email: Optional[str] = None
    is_shared: bool = False
    created_by: Optional[str] = Field(None, max_length=64)


class SubmissionCreate(BaseModel):
    """Request to queue a portal submission for a case."""
    case_id: str = Field(..., max_length=64)
    credential_id: str = Field(..., max_length=64)
    carrier: Optional[Carrier] = Field(None, description="Defaults to the case's carrier")
    submission_type: SubmissionType = SubmissionType.NEW_CLAIM
    priority: SubmissionPriority = SubmissionPriority.MEDIUM
    scheduled_for: Optional[datetime] = None
    created_by: Optional[str] = Field(None, max_length=64)


# ============================================================================
# RESPONSE SCHEMAS
# ============================================================================

class ExecutionStartResponse(BaseModel):
    execution_id: str
    status: ExecutionStatus


class ExecutionResponse(BaseModel):
    """Workflow execution response."""
    execution_id: str
    workflow_id: str
    case_id: Optional[str] = None
    status: ExecutionStatus
    trigger_source: str
    context: Dict[str, Any] = Field(default_factory=dict)
    ready_nodes: List[str] = Field(default_factory=list)
    current_node_id: Optional[str] = None
    resume_at: Optional[datetime] = None
    error_message: Optional[str] = None
    error_details: Optional[Dict[str, Any]] = None
    started_at: Optional[datetime] = None
    paused_at: Optional[datetime] = None
    resumed_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: datetime
    duration_seconds: Optional[float] = None
    is_terminal: bool = False

    model_config = {"from_attributes": True}


class StepResponse(BaseModel):
    """Execution step (audit record) response."""
    step_id: str
    node_id: str
    node_type: str
    node_name: Optional[str] = None
    status: StepStatus
    input: Dict[str, Any] = Field(default_factory=dict)
    output: Optional[Dict[str, Any]] = None
    error_message: Optional[str] = None
    error_details: Optional[Dict[str, Any]] = None
    started_at: datetime
    completed_at: Optional[datetime] = None
    duration_ms: Optional[int] = None

    model_config = {"from_attributes": True}


class ExecutionDetailResponse(BaseModel):
    """Execution with its steps."""
    execution: ExecutionResponse
    steps: List[StepResponse]
    step_summary: Dict[str, int] = Field(default_factory=dict)


class ExecutionListResponse(BaseModel):
    executions: List[ExecutionResponse]
    total: int


class CredentialResponse(BaseModel):
    """Stored credential without any secret material."""
    credential_id: str
    carrier: Carrier
    account_name: str
    two_factor_method: TwoFactorMethod
    is_shared: bool
    validation_status: ValidationStatus
    last_validated: Optional[datetime] = None
    created_by: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class CredentialTestResponse(BaseModel):
    success: bool
    message: str


class ErrorResponse(BaseModel):
    """Error response."""
    error: str
    detail: Optional[str] = None


__all__ = [
    "WorkflowUpdate",
    "TemplateInstantiate",
    "ExecutionCreate",
    "CredentialCreate",
    "SubmissionCreate",
    "ExecutionStartResponse",
    "ExecutionResponse",
    "StepResponse",
    "ExecutionDetailResponse",
    "ExecutionListResponse",
    "CredentialResponse",
    "CredentialTestResponse",
    "ErrorResponse",
]
