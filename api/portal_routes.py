# ============================================================================
# PORTAL API ROUTES
# ============================================================================
# EPOCH: 1 - CLAIM AUTOMATION
# STATUS: Core - Carrier portal HTTP endpoints
# PURPOSE: Credentials, submission queue, history and portal configs
# CREATED: 19 OCT 2026
# ============================================================================
"""
Portal API Routes

Mounted under /api/v1/portal. Credential responses never carry secrets,
encrypted or otherwise.
"""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Query

from core.contracts import Carrier, SubmissionStatus
from core.errors import CaseNotFound, InvalidSubmissionTransition, SubmissionNotFound
from core.models import PortalConfig, SubmissionQueueItem
from .schemas import (
    CredentialCreate,
    CredentialResponse,
    CredentialTestResponse,
    ErrorResponse,
    SubmissionCreate,
)

logger = logging.getLogger(__name__)

portal_router = APIRouter(prefix="/portal")


# ============================================================================
# DEPENDENCY INJECTION
# ============================================================================

_vault = None
_submission_queue = None
_portal_config_repo = None


def set_services(vault, submission_queue, portal_config_repo):
    """Set service instances for dependency injection."""
    global _vault, _submission_queue, _portal_config_repo
    _vault = vault
    _submission_queue = submission_queue
    _portal_config_repo = portal_config_repo


def get_vault():
    if _vault is None:
        raise HTTPException(500, "Credential vault not initialized")
    return _vault


def get_submission_queue():
    if _submission_queue is None:
        raise HTTPException(500, "Submission queue not initialized")
    return _submission_queue


def get_portal_config_repo():
    if _portal_config_repo is None:
        raise HTTPException(500, "Services not initialized")
    return _portal_config_repo


# ============================================================================
# CREDENTIALS
# ============================================================================

@portal_router.post(
    "/credentials",
    response_model=CredentialResponse,
    status_code=201,
    tags=["Credentials"],
)
async def store_credentials(request: CredentialCreate):
    """Encrypt and store portal credentials. Status starts as needs_verification."""
    vault = get_vault()
    credential = await vault.store_credentials(
        carrier=request.carrier,
        account_name=request.account_name,
        username=request.username,
        password=request.password,
        account_number=request.account_number,
        security_questions=request.security_questions,
        two_factor_method=request.two_factor_method,
        two_factor_phone=request.two_factor_phone,
        two_factor_email=request.two_factor_email,
        is_shared=request.is_shared,
        created_by=request.created_by,
    )
    logger.info(f"Stored {request.carrier.value} credentials {credential.credential_id}")
    return CredentialResponse.model_validate(credential)


@portal_router.get("/credentials", tags=["Credentials"])
async def list_credentials(carrier: Optional[Carrier] = Query(None)):
    vault = get_vault()
    credentials = await vault.list_credentials(carrier)
    return {
        "credentials": [CredentialResponse.model_validate(c) for c in credentials],
        "total": len(credentials),
    }


@portal_router.delete(
    "/credentials/{credential_id}",
    status_code=204,
    tags=["Credentials"],
    responses={404: {"model": ErrorResponse}},
)
async def delete_credentials(credential_id: str):
    vault = get_vault()
    if not await vault.delete_credentials(credential_id):
        raise HTTPException(404, f"Credentials not found: {credential_id}")


@portal_router.post(
    "/credentials/{credential_id}/test",
    response_model=CredentialTestResponse,
    tags=["Credentials"],
)
async def test_credentials(credential_id: str):
    """
    Log in to the carrier portal once with the stored credentials and record
    VALID / INVALID. Always answers 200; the body says what happened.
    """
    vault = get_vault()
    result = await vault.test_credentials(credential_id)
    return CredentialTestResponse(**result)


# ============================================================================
# SUBMISSION QUEUE
# ============================================================================

@portal_router.post(
    "/queue",
    response_model=SubmissionQueueItem,
    status_code=201,
    tags=["Queue"],
    responses={404: {"model": ErrorResponse, "description": "Case not found"}},
)
async def enqueue_submission(request: SubmissionCreate):
    """Queue a portal submission; form data is snapshotted from the case now."""
    queue = get_submission_queue()
    try:
        return await queue.enqueue(
            case_id=request.case_id,
            credential_id=request.credential_id,
            carrier=request.carrier,
            submission_type=request.submission_type,
            priority=request.priority,
            scheduled_for=request.scheduled_for,
            created_by=request.created_by,
        )
    except CaseNotFound as e:
        raise HTTPException(404, str(e))


@portal_router.get("/queue", tags=["Queue"])
async def list_queue(
    status: Optional[SubmissionStatus] = Query(None),
    carrier: Optional[Carrier] = Query(None),
    case_id: Optional[str] = Query(None),
    limit: int = Query(100, ge=1, le=1000),
):
    queue = get_submission_queue()
    items = await queue.list_queue(status=status, carrier=carrier, case_id=case_id, limit=limit)
    return {"submissions": items, "total": len(items)}


@portal_router.get("/queue/stats", tags=["Queue"])
async def queue_stats():
    """Submission counts per status."""
    queue = get_submission_queue()
    return {"counts": await queue.queue_stats()}


@portal_router.post("/queue/process", tags=["Queue"])
async def process_queue():
    """
    Run one queue attempt now instead of waiting for the scheduler.

    Shares the single-flight guard with the scheduler, so a concurrent tick
    answers "already in progress".
    """
    queue = get_submission_queue()
    return await queue.process_queue()


@portal_router.get(
    "/queue/{submission_id}",
    response_model=SubmissionQueueItem,
    tags=["Queue"],
    responses={404: {"model": ErrorResponse}},
)
async def get_submission(submission_id: str):
    queue = get_submission_queue()
    try:
        return await queue.get_submission(submission_id)
    except SubmissionNotFound as e:
        raise HTTPException(404, str(e))


@portal_router.post(
    "/queue/{submission_id}/cancel",
    response_model=SubmissionQueueItem,
    tags=["Queue"],
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def cancel_submission(submission_id: str):
    """Cancel a queued submission. Items already being processed cannot be cancelled."""
    queue = get_submission_queue()
    try:
        return await queue.cancel_submission(submission_id)
    except SubmissionNotFound as e:
        raise HTTPException(404, str(e))
    except InvalidSubmissionTransition as e:
        raise HTTPException(409, str(e))


@portal_router.post(
    "/queue/{submission_id}/retry",
    response_model=SubmissionQueueItem,
    tags=["Queue"],
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def retry_submission(submission_id: str):
    """Re-queue a failed, cancelled or operator-blocked submission."""
    queue = get_submission_queue()
    try:
        return await queue.retry_submission(submission_id)
    except SubmissionNotFound as e:
        raise HTTPException(404, str(e))
    except InvalidSubmissionTransition as e:
        raise HTTPException(409, str(e))


# ============================================================================
# HISTORY
# ============================================================================

@portal_router.get("/history", tags=["History"])
async def get_history(
    case_id: Optional[str] = Query(None),
    submission_id: Optional[str] = Query(None),
    limit: int = Query(200, ge=1, le=1000),
):
    """Automation steps recorded per submission attempt, newest first."""
    queue = get_submission_queue()
    entries = await queue.get_history(case_id=case_id, submission_id=submission_id, limit=limit)
    return {"entries": entries, "total": len(entries)}


# ============================================================================
# PORTAL CONFIGS
# ============================================================================

@portal_router.get("/configs", tags=["Portal Configs"])
async def list_portal_configs():
    repo = get_portal_config_repo()
    configs = await repo.list_all()
    return {"configs": configs, "total": len(configs)}


@portal_router.get(
    "/configs/{carrier}",
    response_model=PortalConfig,
    tags=["Portal Configs"],
    responses={404: {"model": ErrorResponse}},
)
async def get_portal_config(carrier: Carrier):
    repo = get_portal_config_repo()
    config = await repo.get(carrier)
    if config is None:
        raise HTTPException(404, f"Portal configuration not found for {carrier.value}")
    return config


@portal_router.put(
    "/configs/{carrier}",
    response_model=PortalConfig,
    tags=["Portal Configs"],
    responses={400: {"model": ErrorResponse}},
)
async def put_portal_config(carrier: Carrier, config: PortalConfig):
    """Create or replace a carrier's portal configuration."""
    if config.carrier != carrier:
        raise HTTPException(400, f"Body carrier {config.carrier.value} does not match path {carrier.value}")

    repo = get_portal_config_repo()
    await repo.upsert(config, overwrite=True)
    logger.info(f"Portal configuration for {carrier.value} updated")
    return config


__all__ = ["portal_router", "set_services"]
