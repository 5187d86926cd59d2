# ============================================================================
# API MODULE
# ============================================================================
# EPOCH: 1 - CLAIM AUTOMATION
# STATUS: Core - FastAPI routes
# PURPOSE: HTTP API for workflows, executions and carrier portal submissions
# CREATED: 19 OCT 2026
# ============================================================================
"""
API Module

FastAPI routes for the claim workflow orchestrator.
"""

from .routes import router
from .portal_routes import portal_router
from .schemas import (
    ExecutionCreate,
    ExecutionResponse,
    CredentialCreate,
    SubmissionCreate,
)

__all__ = [
    "router",
    "portal_router",
    "ExecutionCreate",
    "ExecutionResponse",
    "CredentialCreate",
    "SubmissionCreate",
]
