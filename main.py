# ============================================================================
# CLAIM WORKFLOW ORCHESTRATOR - MAIN APPLICATION
# ============================================================================
# EPOCH: 1 - CLAIM AUTOMATION
# STATUS: Core - FastAPI application entry point
# PURPOSE: Main application with workflow executor and scheduler
# CREATED: 19 OCT 2026
# ============================================================================
"""
Claim Workflow Orchestrator Main Application

FastAPI application that:
1. Provides HTTP API for workflows, executions and portal submissions
2. Runs the scheduler (submission queue + suspended WAIT resumption)
3. Owns the database pool and the shared Playwright browser

Usage:
    uvicorn main:app --host 0.0.0.0 --port 8000
"""

import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from __version__ import __version__, BUILD_DATE, EPOCH
from repositories.database import init_pool, close_pool
from repositories import CaseRepository, PortalConfigRepository
from services import (
    CredentialVault,
    HistoryService,
    LoggingEvidencePackager,
    LoggingNotifier,
    SubmissionQueue,
    TemplateLetterGenerator,
    WorkflowService,
)
from services.credential_vault import build_cipher
from automation import BrowserCoordinator, BrowserPool
from handlers import ActionServices
from infrastructure import LockService
from orchestrator import GraphExecutor, Scheduler
from core.config import get_defaults
from core.schema import PydanticToSQL
from api.routes import router, set_services
from api.portal_routes import portal_router, set_services as set_portal_services

from core.logging import configure_logging, get_logger, log_checkpoint

configure_logging(
    level=os.environ.get("LOG_LEVEL", "INFO"),
    json_output=os.environ.get("LOG_FORMAT", "").lower() == "json",
)
logger = get_logger(__name__)

# Global instances
_scheduler: Scheduler = None
_executor: GraphExecutor = None
_coordinator: BrowserCoordinator = None


async def _bootstrap_schema(pool) -> None:
    """Create the orchestrator schema from the models (development only)."""
    statements = PydanticToSQL().generate_all()
    async with pool.connection() as conn:
        for stmt in statements:
            await conn.execute(stmt)
    logger.info(f"Schema bootstrap executed {len(statements)} statements")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Initializes services on startup, cleans up on shutdown.
    """
    global _scheduler, _executor, _coordinator

    logger.info(f"Starting Claim Workflow Orchestrator v{__version__} (Epoch {EPOCH}, Build {BUILD_DATE})")
    defaults = get_defaults()

    pool = await init_pool()
    logger.info("Database pool initialized")

    # Optional: Bootstrap schema on startup (for development)
    if os.environ.get("AUTO_BOOTSTRAP_SCHEMA", "").lower() == "true":
        logger.info("Auto-bootstrap enabled, deploying schema...")
        await _bootstrap_schema(pool)

    lock_service = LockService(pool)

    # Workflow definitions and templates
    workflow_service = WorkflowService(pool, os.environ.get("WORKFLOWS_DIR"))
    count = workflow_service.load_templates()
    logger.info(f"Loaded {count} workflow templates")

    # Portal configs: built-in carriers are inserted once, edits are kept
    portal_config_repo = PortalConfigRepository(pool)
    if os.environ.get("SEED_PORTAL_CONFIGS", "true").lower() == "true":
        await portal_config_repo.seed_defaults()

    # Portal automation
    case_store = CaseRepository(pool)
    history = HistoryService(pool)
    vault = CredentialVault(pool, build_cipher(defaults.vault))
    browser_pool = BrowserPool(defaults.browser)
    _coordinator = BrowserCoordinator(pool, vault, browser_pool, history, defaults.browser)
    vault.coordinator = _coordinator

    submission_queue = SubmissionQueue(
        pool,
        case_store,
        coordinator=_coordinator,
        history=history,
        lock_service=lock_service,
        defaults=defaults.queue,
    )

    # Workflow execution
    action_services = ActionServices(
        case_store=case_store,
        submission_queue=submission_queue,
        letter_generator=TemplateLetterGenerator(),
        notifier=LoggingNotifier(),
        reminder_store=case_store,
        evidence_packager=LoggingEvidencePackager(),
        defaults=defaults.executor,
    )
    _executor = GraphExecutor(
        pool,
        workflow_service,
        services=action_services,
        lock_service=lock_service,
        defaults=defaults.executor,
    )

    _scheduler = Scheduler(_executor, submission_queue, lock_service, defaults=defaults.queue)

    set_services(workflow_service, _executor, _scheduler)
    set_portal_services(vault, submission_queue, portal_config_repo)

    await _scheduler.start()
    log_checkpoint("application_started", {"version": __version__, "role": _scheduler.stats["role"]})

    yield

    # Shutdown
    logger.info("Shutting down Claim Workflow Orchestrator...")

    await _scheduler.stop()
    await _executor.shutdown()
    await _coordinator.close()
    await close_pool()

    logger.info("Claim Workflow Orchestrator stopped")


# Create FastAPI app
app = FastAPI(
    title="Claim Workflow Orchestrator",
    description=f"Epoch {EPOCH} claim workflow automation and carrier portal submissions",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=os.environ.get("CORS_ORIGINS", "*").split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router, prefix="/api/v1")
app.include_router(portal_router, prefix="/api/v1")


@app.get("/health")
async def health():
    """Liveness plus a short view of the background components."""
    scheduler_stats = _scheduler.stats if _scheduler is not None else None
    return {
        "status": "healthy" if _scheduler is not None and _scheduler.is_running else "starting",
        "version": __version__,
        "scheduler": {
            "role": scheduler_stats["role"],
            "cycles": scheduler_stats["cycles"],
            "errors": scheduler_stats["errors"],
        } if scheduler_stats else None,
        "active_executions": len(_executor.active_executions) if _executor is not None else 0,
    }


# Root endpoint
@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "service": "Claim Workflow Orchestrator",
        "version": __version__,
        "epoch": EPOCH,
        "build_date": BUILD_DATE,
        "status": "running",
        "docs": "/docs",
    }


# ============================================================================
# MAIN ENTRY POINT
# ============================================================================

if __name__ == "__main__":
    import uvicorn

    host = os.environ.get("HOST", "0.0.0.0")
    port = int(os.environ.get("PORT", "8000"))

    uvicorn.run(
        "main:app",
        host=host,
        port=port,
        reload=os.environ.get("RELOAD", "false").lower() == "true",
    )
