# ============================================================================
# SERVICES MODULE
# ============================================================================
# EPOCH: 1 - CLAIM AUTOMATION
# STATUS: Core - Business logic layer
# PURPOSE: Workflow definitions, submission queue, credential vault
# CREATED: 19 OCT 2026
# ============================================================================
"""
Services Module

Business logic for workflow definitions and carrier portal submissions.
Services coordinate between repositories, the browser coordinator and the
collaborator interfaces.

Usage:
    from services import SubmissionQueue, CredentialVault

    vault = CredentialVault(pool)
    queue = SubmissionQueue(pool, case_store, coordinator=coordinator)
    await queue.process_queue()
"""

from .collaborators import (
    CaseStore,
    LetterGenerator,
    Notifier,
    ReminderStore,
    EvidencePackager,
    TemplateLetterGenerator,
    LoggingNotifier,
    LoggingEvidencePackager,
)
from .history_service import HistoryService
from .workflow_service import WorkflowService
from .credential_vault import CredentialVault
from .submission_queue import SubmissionQueue

__all__ = [
    "CaseStore",
    "LetterGenerator",
    "Notifier",
    "ReminderStore",
    "EvidencePackager",
    "TemplateLetterGenerator",
    "LoggingNotifier",
    "LoggingEvidencePackager",
    "HistoryService",
    "WorkflowService",
    "CredentialVault",
    "SubmissionQueue",
]
