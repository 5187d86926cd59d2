# ============================================================================
# CLAUDE CONTEXT - ERROR TAXONOMY
# ============================================================================
# EPOCH: 1 - CLAIM AUTOMATION
# STATUS: Foundation - Typed exceptions for every failure path
# PURPOSE: Distinguish invocation, node, submission and vault failures
# LAST_REVIEWED: 19 OCT 2026
# EXPORTS: WorkflowError, NodeActionError, SubmissionError, VaultError + subclasses
# DEPENDENCIES: none
# ============================================================================
"""
Error Taxonomy

Four families, each handled at a different layer:

- WorkflowError: raised at invocation / control time. An execution is never
  created for MalformedGraph, WorkflowInactive or WorkflowNotFound.
- NodeActionError: raised by node actions. Aborts the execution; recorded on
  both the step and the execution first.
- SubmissionError: raised during browser automation. The queue processor turns
  every one of them into a queue item transition. `retryable` decides between
  backoff and a terminal state; `queue_status` is set for the states that need
  an operator (captcha, second factor).
- VaultError: credential lookup and decryption failures.
"""

from typing import Any, Dict, List, Optional

from core.contracts import SubmissionStatus


# ============================================================================
# WORKFLOW INVOCATION / CONTROL
# ============================================================================

class WorkflowError(Exception):
    """Base exception for workflow invocation and control errors."""
    pass


class WorkflowNotFound(WorkflowError):
    """Raised when a workflow definition does not exist."""
    def __init__(self, workflow_id: str):
        self.workflow_id = workflow_id
        super().__init__(f"Workflow not found: {workflow_id}")


class WorkflowInactive(WorkflowError):
    """Raised when executing a disabled workflow."""
    def __init__(self, workflow_id: str):
        self.workflow_id = workflow_id
        super().__init__(f"Workflow is not active: {workflow_id}")


class MalformedGraph(WorkflowError):
    """Raised when a workflow graph violates its structural invariants."""
    def __init__(self, workflow_id: str, errors: List[str]):
        self.workflow_id = workflow_id
        self.errors = errors
        super().__init__(f"Workflow {workflow_id} is malformed: {'; '.join(errors)}")


class ExecutionNotFound(WorkflowError):
    """Raised when an execution id is unknown."""
    def __init__(self, execution_id: str):
        self.execution_id = execution_id
        super().__init__(f"Execution not found: {execution_id}")


class InvalidExecutionTransition(WorkflowError):
    """Raised when a pause/resume/cancel is not allowed from the current status."""
    def __init__(self, execution_id: str, current: str, requested: str):
        self.execution_id = execution_id
        self.current = current
        self.requested = requested
        super().__init__(
            f"Execution {execution_id} cannot move from {current} to {requested}"
        )


# ============================================================================
# NODE ACTIONS
# ============================================================================

class NodeActionError(Exception):
    """
    Failure inside a node action.

    Wrapped collaborator failures keep the original exception in `cause`.
    `execution_id` is filled in by the executor once the failure is persisted.
    """

    def __init__(
        self,
        message: str,
        node_id: Optional[str] = None,
        node_type: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ):
        self.node_id = node_id
        self.node_type = node_type
        self.cause = cause
        self.execution_id: Optional[str] = None
        super().__init__(message)

    def to_details(self) -> Dict[str, Any]:
        """Serializable error details for step/execution records."""
        details: Dict[str, Any] = {
            "error_type": type(self).__name__,
            "node_id": self.node_id,
            "node_type": self.node_type,
        }
        if self.cause is not None:
            details["cause_type"] = type(self.cause).__name__
            details["cause"] = str(self.cause)
        return details


class MissingCaseId(NodeActionError):
    """Raised when an action needs `case_id` in the context and it is absent."""
    def __init__(self, node_id: Optional[str] = None, node_type: Optional[str] = None):
        super().__init__("case_id is required in the execution context", node_id, node_type)


class MissingCredential(NodeActionError):
    """Raised when a portal action has no credential_id to submit with."""
    def __init__(self, node_id: Optional[str] = None, node_type: Optional[str] = None):
        super().__init__("credential_id is required for portal submissions", node_id, node_type)


class MissingParameter(NodeActionError):
    """Raised when a required node parameter is absent."""
    def __init__(self, parameter: str, node_id: Optional[str] = None, node_type: Optional[str] = None):
        self.parameter = parameter
        super().__init__(f"Missing required parameter: {parameter}", node_id, node_type)


class CaseNotFound(NodeActionError):
    """Raised when the subject case does not exist."""
    def __init__(self, case_id: str, node_id: Optional[str] = None, node_type: Optional[str] = None):
        self.case_id = case_id
        super().__init__(f"Case not found: {case_id}", node_id, node_type)


# ============================================================================
# PORTAL SUBMISSIONS
# ============================================================================

class SubmissionError(Exception):
    """Base exception for browser automation failures."""
    retryable: bool = True
    queue_status: Optional[SubmissionStatus] = None

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.details = details or {}
        super().__init__(message)


class PortalConfigMissing(SubmissionError):
    """Raised when a carrier has no (enabled) portal configuration."""
    def __init__(self, carrier: str):
        self.carrier = carrier
        super().__init__(f"Portal configuration not found for {carrier}")


class LoginFailure(SubmissionError):
    """Raised when login cannot be verified."""
    pass


class FormFillFailure(SubmissionError):
    """Raised when the claim form cannot be filled or submitted."""
    pass


class ConfirmationExtractionFailure(SubmissionError):
    """Raised when no confirmation number can be read after submit."""
    pass


class NeedsCaptcha(SubmissionError):
    """The portal presented a captcha; an operator has to resolve it."""
    retryable = False
    queue_status = SubmissionStatus.NEEDS_CAPTCHA


class Needs2FA(SubmissionError):
    """The portal asked for a second factor; an operator has to resolve it."""
    retryable = False
    queue_status = SubmissionStatus.NEEDS_2FA


class SubmissionNotFound(Exception):
    """Raised when a queue item id is unknown."""
    def __init__(self, submission_id: str):
        self.submission_id = submission_id
        super().__init__(f"Submission not found: {submission_id}")


class InvalidSubmissionTransition(Exception):
    """Raised when cancel/retry is not allowed from the current status."""
    def __init__(self, submission_id: str, current: str, requested: str):
        self.submission_id = submission_id
        self.current = current
        self.requested = requested
        super().__init__(
            f"Submission {submission_id} cannot move from {current} to {requested}"
        )


# ============================================================================
# CREDENTIAL VAULT
# ============================================================================

class VaultError(Exception):
    """Base exception for credential vault errors."""
    pass


class CredentialNotFound(VaultError):
    """Raised when a credential id is unknown."""
    def __init__(self, credential_id: str):
        self.credential_id = credential_id
        super().__init__("Credentials not found")


class VaultDecryptionError(VaultError):
    """Raised when a stored token cannot be authenticated or decoded."""
    pass


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "WorkflowError",
    "WorkflowNotFound",
    "WorkflowInactive",
    "MalformedGraph",
    "ExecutionNotFound",
    "InvalidExecutionTransition",
    "NodeActionError",
    "MissingCaseId",
    "MissingCredential",
    "MissingParameter",
    "CaseNotFound",
    "SubmissionError",
    "PortalConfigMissing",
    "LoginFailure",
    "FormFillFailure",
    "ConfirmationExtractionFailure",
    "NeedsCaptcha",
    "Needs2FA",
    "SubmissionNotFound",
    "InvalidSubmissionTransition",
    "VaultError",
    "CredentialNotFound",
    "VaultDecryptionError",
]
