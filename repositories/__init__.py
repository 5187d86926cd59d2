# ============================================================================
# REPOSITORIES MODULE
# ============================================================================
# EPOCH: 1 - CLAIM AUTOMATION
# STATUS: Core - Database access layer
# PURPOSE: CRUD operations for workflow and submission entities
# CREATED: 19 OCT 2026
# ============================================================================
"""
Repositories Module

Provides database access for workflows, executions, credentials, portal
configs, the submission queue and its history, plus the narrow case view.
Uses psycopg3 async with connection pooling.

Usage:
    from repositories import get_pool, ExecutionRepository

    pool = await get_pool()
    repo = ExecutionRepository(pool)
    execution = await repo.get(execution_id)
"""

from .database import get_pool, init_pool, close_pool, DatabasePool
from .workflow_repo import WorkflowRepository
from .execution_repo import ExecutionRepository, StepRepository
from .credential_repo import CredentialRepository
from .portal_config_repo import PortalConfigRepository
from .submission_repo import SubmissionRepository
from .history_repo import HistoryRepository
from .case_repo import CaseRepository

__all__ = [
    "get_pool",
    "init_pool",
    "close_pool",
    "DatabasePool",
    "WorkflowRepository",
    "ExecutionRepository",
    "StepRepository",
    "CredentialRepository",
    "PortalConfigRepository",
    "SubmissionRepository",
    "HistoryRepository",
    "CaseRepository",
]
