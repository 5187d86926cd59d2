# ============================================================================
# CLAUDE CONTEXT - WORKFLOW EXECUTION MODELS
# ============================================================================
# EPOCH: 1 - CLAIM AUTOMATION
# STATUS: Core model - Execution instance + step audit trail
# PURPOSE: Track one run of a workflow graph and every node visit in it
# LAST_REVIEWED: 19 OCT 2026
# EXPORTS: WorkflowExecution, WorkflowExecutionStep
# DEPENDENCIES: pydantic
# ============================================================================
"""
Workflow Execution Models

A WorkflowExecution is one run of a WorkflowDefinition. Besides status and
the shared context it carries a checkpoint:

- ready_nodes: nodes whose incoming edges are all resolved and not yet run
- edge_state: edge_id -> taken (True) / not taken (False)
- current_node_id: node in flight at the last boundary
- resume_at: set while a long WAIT is pending

The checkpoint is written at every node boundary, so a paused or suspended
execution continues exactly where it stopped.

A WorkflowExecutionStep is the append-only audit record of a single node
visit. It is written (RUNNING) before the node action runs.
"""

from datetime import datetime
from typing import Any, ClassVar, Dict, List, Optional

from pydantic import BaseModel, Field, computed_field

from core.contracts import ExecutionStatus, StepStatus


class WorkflowExecution(BaseModel):
    """
    One execution of a workflow.

    Maps to: claimflow.workflow_executions table

    Lifecycle:
        PENDING -> RUNNING -> COMPLETED / FAILED / CANCELLED
        RUNNING <-> PAUSED, PAUSED -> CANCELLED
    """

    __sql_table__: ClassVar[str] = "workflow_executions"
    __sql_schema__: ClassVar[str] = "claimflow"
    __sql_primary_key__: ClassVar[List[str]] = ["execution_id"]
    __sql_foreign_keys__: ClassVar[Dict[str, str]] = {
        "workflow_id": "claimflow.workflows(workflow_id)",
    }
    __sql_indexes__: ClassVar[List[tuple]] = [
        ("idx_executions_workflow", ["workflow_id"]),
        ("idx_executions_case", ["case_id"]),
        ("idx_executions_status", ["status"]),
        ("idx_executions_resume", ["resume_at"], "resume_at IS NOT NULL"),
    ]

    execution_id: str = Field(..., max_length=64)
    workflow_id: str = Field(..., max_length=64)
    case_id: Optional[str] = Field(default=None, max_length=64)

    status: ExecutionStatus = Field(default=ExecutionStatus.PENDING)
    trigger_source: str = Field(default="manual", max_length=64)

    input_context: Dict[str, Any] = Field(default_factory=dict)
    context: Dict[str, Any] = Field(default_factory=dict)

    # Checkpoint
    ready_nodes: List[str] = Field(default_factory=list)
    edge_state: Dict[str, bool] = Field(default_factory=dict)
    current_node_id: Optional[str] = Field(default=None, max_length=64)
    resume_at: Optional[datetime] = None

    error_message: Optional[str] = Field(default=None, max_length=2000)
    error_details: Optional[Dict[str, Any]] = None

    started_at: Optional[datetime] = None
    paused_at: Optional[datetime] = None
    resumed_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    version: int = Field(
        default=1,
        ge=1,
        description="Version for optimistic locking - incremented on each update"
    )

    @computed_field
    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal()

    @computed_field
    @property
    def duration_seconds(self) -> Optional[float]:
        if not self.started_at:
            return None
        end_time = self.completed_at or datetime.utcnow()
        return (end_time - self.started_at).total_seconds()

    def can_transition_to(self, new_status: ExecutionStatus) -> bool:
        """
        Validate if a status transition is allowed.

        Valid transitions:
            PENDING -> RUNNING, CANCELLED
            RUNNING -> PAUSED, COMPLETED, FAILED, CANCELLED
            PAUSED -> RUNNING, CANCELLED
            COMPLETED, FAILED, CANCELLED -> (none, terminal)
        """
        if self.status == new_status:
            return True

        allowed = {
            ExecutionStatus.PENDING: {ExecutionStatus.RUNNING, ExecutionStatus.CANCELLED},
            ExecutionStatus.RUNNING: {
                ExecutionStatus.PAUSED,
                ExecutionStatus.COMPLETED,
                ExecutionStatus.FAILED,
                ExecutionStatus.CANCELLED,
            },
            ExecutionStatus.PAUSED: {ExecutionStatus.RUNNING, ExecutionStatus.CANCELLED},
            ExecutionStatus.COMPLETED: set(),
            ExecutionStatus.FAILED: set(),
            ExecutionStatus.CANCELLED: set(),
        }

        return new_status in allowed.get(self.status, set())

    def _require(self, new_status: ExecutionStatus) -> None:
        if not self.can_transition_to(new_status):
            raise ValueError(f"Cannot transition from {self.status.value} to {new_status.value}")

    def mark_running(self) -> None:
        """Start traversal."""
        self._require(ExecutionStatus.RUNNING)
        self.status = ExecutionStatus.RUNNING
        self.started_at = self.started_at or datetime.utcnow()
        self.updated_at = datetime.utcnow()

    def mark_paused(self) -> None:
        self._require(ExecutionStatus.PAUSED)
        self.status = ExecutionStatus.PAUSED
        self.paused_at = datetime.utcnow()
        self.updated_at = datetime.utcnow()

    def mark_resumed(self) -> None:
        if self.status != ExecutionStatus.PAUSED:
            raise ValueError(f"Cannot resume execution in status {self.status.value}")
        self.status = ExecutionStatus.RUNNING
        self.resumed_at = datetime.utcnow()
        self.updated_at = datetime.utcnow()

    def mark_completed(self) -> None:
        self._require(ExecutionStatus.COMPLETED)
        self.status = ExecutionStatus.COMPLETED
        self.current_node_id = None
        self.resume_at = None
        self.completed_at = datetime.utcnow()
        self.updated_at = datetime.utcnow()

    def mark_failed(self, error_message: str, error_details: Optional[Dict[str, Any]] = None) -> None:
        self._require(ExecutionStatus.FAILED)
        self.status = ExecutionStatus.FAILED
        self.error_message = error_message[:2000]
        self.error_details = error_details
        self.completed_at = datetime.utcnow()
        self.updated_at = datetime.utcnow()

    def mark_cancelled(self) -> None:
        self._require(ExecutionStatus.CANCELLED)
        self.status = ExecutionStatus.CANCELLED
        self.resume_at = None
        self.completed_at = datetime.utcnow()
        self.updated_at = datetime.utcnow()


class WorkflowExecutionStep(BaseModel):
    """
    Audit record of a single node visit.

    Maps to: claimflow.workflow_execution_steps table
    """

    __sql_table__: ClassVar[str] = "workflow_execution_steps"
    __sql_schema__: ClassVar[str] = "claimflow"
    __sql_primary_key__: ClassVar[List[str]] = ["step_id"]
    __sql_foreign_keys__: ClassVar[Dict[str, str]] = {
        "execution_id": "claimflow.workflow_executions(execution_id)",
    }
    __sql_indexes__: ClassVar[List[tuple]] = [
        ("idx_execution_steps_execution", ["execution_id"]),
        ("idx_execution_steps_started", ["started_at"]),
    ]

    step_id: str = Field(..., max_length=64)
    execution_id: str = Field(..., max_length=64)
    node_id: str = Field(..., max_length=64)
    node_type: str = Field(..., max_length=32)
    node_name: Optional[str] = Field(default=None, max_length=128)

    status: StepStatus = Field(default=StepStatus.RUNNING)

    input: Dict[str, Any] = Field(default_factory=dict)
    output: Optional[Dict[str, Any]] = None

    error_message: Optional[str] = Field(default=None, max_length=2000)
    error_details: Optional[Dict[str, Any]] = None

    started_at: datetime = Field(default_factory=datetime.utcnow)
    completed_at: Optional[datetime] = None
    duration_ms: Optional[int] = None

    def mark_completed(self, output: Dict[str, Any]) -> None:
        if self.status != StepStatus.RUNNING:
            raise ValueError(f"Cannot complete step in status {self.status.value}")
        self.status = StepStatus.COMPLETED
        self.output = output
        self._stamp_completion()

    def mark_failed(self, error_message: str, error_details: Optional[Dict[str, Any]] = None) -> None:
        if self.status != StepStatus.RUNNING:
            raise ValueError(f"Cannot fail step in status {self.status.value}")
        self.status = StepStatus.FAILED
        self.error_message = error_message[:2000]
        self.error_details = error_details
        self._stamp_completion()

    def _stamp_completion(self) -> None:
        self.completed_at = datetime.utcnow()
        self.duration_ms = int((self.completed_at - self.started_at).total_seconds() * 1000)


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = ["WorkflowExecution", "WorkflowExecutionStep"]
