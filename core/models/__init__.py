# ============================================================================
# CLAUDE CONTEXT - MODELS MODULE
# ============================================================================
# EPOCH: 1 - CLAIM AUTOMATION
# STATUS: Model exports
# PURPOSE: Central export point for all Pydantic models
# LAST_REVIEWED: 19 OCT 2026
# ============================================================================
"""
Models Module - Central Export Point

All Pydantic models for the claim workflow orchestrator.
Models define SQL metadata via __sql_* ClassVar attributes for DDL generation.

Single Source of Truth Pattern:
    - Pydantic models define structure
    - PydanticToSQL reads __sql_* metadata
    - PostgreSQL schema generated from models
"""

from core.models.workflow import (
    WorkflowDefinition,
    WorkflowNode,
    BaseNode,
    EdgeDefinition,
    Condition,
    NodeType,
    node_params,
)
from core.models.execution import WorkflowExecution, WorkflowExecutionStep
from core.models.credential import PortalCredential, CredentialSecrets
from core.models.submission import SubmissionQueueItem, SubmissionHistoryEntry
from core.models.portal_config import (
    PortalConfig,
    LoginSelectors,
    ClaimFormSelectors,
    DEFAULT_PORTAL_CONFIGS,
)
from core.models.case import CaseRecord

__all__ = [
    # Workflow
    "WorkflowDefinition",
    "WorkflowNode",
    "BaseNode",
    "EdgeDefinition",
    "Condition",
    "NodeType",
    "node_params",
    # Execution
    "WorkflowExecution",
    "WorkflowExecutionStep",
    # Vault
    "PortalCredential",
    "CredentialSecrets",
    # Queue
    "SubmissionQueueItem",
    "SubmissionHistoryEntry",
    # Portal reference data
    "PortalConfig",
    "LoginSelectors",
    "ClaimFormSelectors",
    "DEFAULT_PORTAL_CONFIGS",
    # Collaborator view
    "CaseRecord",
]
