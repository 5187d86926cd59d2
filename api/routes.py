# ============================================================================
# API ROUTES
# ============================================================================
# EPOCH: 1 - CLAIM AUTOMATION
# STATUS: Core - FastAPI route definitions
# PURPOSE: HTTP endpoints for workflows, templates and executions
# CREATED: 19 OCT 2026
# ============================================================================
"""
API Routes

Workflow definition management, template instantiation and execution
control. Portal credentials and the submission queue live in
api.portal_routes.

Error mapping:
    WorkflowNotFound / ExecutionNotFound  -> 404
    MalformedGraph                        -> 400
    WorkflowInactive / invalid transition -> 409
    NodeActionError (execution FAILED)    -> 422, body carries execution_id
"""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Query
from fastapi.responses import JSONResponse

from core.contracts import ExecutionStatus, WorkflowCategory
from core.errors import (
    ExecutionNotFound,
    InvalidExecutionTransition,
    MalformedGraph,
    NodeActionError,
    WorkflowError,
    WorkflowInactive,
    WorkflowNotFound,
)
from core.models import WorkflowDefinition
from handlers import list_actions
from .schemas import (
    ErrorResponse,
    ExecutionCreate,
    ExecutionDetailResponse,
    ExecutionListResponse,
    ExecutionResponse,
    ExecutionStartResponse,
    StepResponse,
    TemplateInstantiate,
    WorkflowUpdate,
)

logger = logging.getLogger(__name__)

router = APIRouter()


# ============================================================================
# DEPENDENCY INJECTION
# ============================================================================
# These will be set by the main app at startup

_workflow_service = None
_executor = None
_scheduler = None


def set_services(workflow_service, executor, scheduler=None):
    """Set service instances for dependency injection."""
    global _workflow_service, _executor, _scheduler
    _workflow_service = workflow_service
    _executor = executor
    _scheduler = scheduler


def get_workflow_service():
    if _workflow_service is None:
        raise HTTPException(500, "Services not initialized")
    return _workflow_service


def get_executor():
    if _executor is None:
        raise HTTPException(500, "Executor not initialized")
    return _executor


# ============================================================================
# SCHEDULER STATUS
# ============================================================================

@router.get("/scheduler/status", tags=["Scheduler"])
async def get_scheduler_status():
    """
    Get scheduler status and statistics.

    Returns leader/standby role, cycle count, submissions processed and
    executions resumed.
    """
    if _scheduler is None:
        raise HTTPException(500, "Scheduler not initialized")

    stats = _scheduler.stats
    executor = get_executor()

    return {
        "status": "running" if stats["running"] else "stopped",
        "role": stats["role"],
        "started_at": stats["started_at"],
        "uptime_seconds": stats["uptime_seconds"],
        "poll_interval_seconds": stats["poll_interval"],
        "metrics": {
            "cycles": stats["cycles"],
            "last_cycle_at": stats["last_cycle_at"],
            "submissions_processed": stats["submissions_processed"],
            "executions_resumed": stats["executions_resumed"],
            "active_executions": len(executor.active_executions),
            "errors": stats["errors"],
        },
    }


@router.get("/actions", tags=["Workflows"])
async def get_actions():
    """List registered node actions."""
    actions = list_actions()
    return {
        "actions": [
            {k: v for k, v in action.items() if k in ("node_type", "description", "is_async")}
            for action in actions
        ],
        "count": len(actions),
    }


# ============================================================================
# WORKFLOWS
# ============================================================================

@router.get("/workflows", tags=["Workflows"])
async def list_workflows(
    category: Optional[WorkflowCategory] = Query(None, description="Filter by category"),
    active_only: bool = Query(False),
    limit: int = Query(100, ge=1, le=1000),
):
    """List workflow definitions."""
    service = get_workflow_service()
    workflows = await service.list_workflows(category=category, active_only=active_only, limit=limit)
    return {
        "workflows": [w.model_dump(mode="json") for w in workflows],
        "total": len(workflows),
    }


@router.post(
    "/workflows",
    response_model=WorkflowDefinition,
    status_code=201,
    tags=["Workflows"],
    responses={400: {"model": ErrorResponse, "description": "Malformed graph"}},
)
async def create_workflow(workflow: WorkflowDefinition):
    """
    Create a workflow definition.

    The graph is validated before it is stored: unique ids, edges between
    existing nodes, exactly one start node, no cycles.
    """
    service = get_workflow_service()

    if await service.get(workflow.workflow_id) is not None:
        raise HTTPException(409, f"Workflow already exists: {workflow.workflow_id}")

    try:
        return await service.create(workflow)
    except MalformedGraph as e:
        raise HTTPException(400, str(e))


@router.get(
    "/workflows/{workflow_id}",
    response_model=WorkflowDefinition,
    tags=["Workflows"],
    responses={404: {"model": ErrorResponse}},
)
async def get_workflow(workflow_id: str):
    """Get a workflow definition."""
    service = get_workflow_service()
    workflow = await service.get(workflow_id)

    if workflow is None:
        raise HTTPException(404, f"Workflow not found: {workflow_id}")
    return workflow


@router.patch(
    "/workflows/{workflow_id}",
    response_model=WorkflowDefinition,
    tags=["Workflows"],
    responses={404: {"model": ErrorResponse}, 400: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def update_workflow(workflow_id: str, request: WorkflowUpdate):
    """Partially update a workflow definition."""
    service = get_workflow_service()

    try:
        return await service.update(workflow_id, request.model_dump(mode="json", exclude_unset=True))
    except WorkflowNotFound as e:
        raise HTTPException(404, str(e))
    except MalformedGraph as e:
        raise HTTPException(400, str(e))
    except WorkflowError as e:
        raise HTTPException(409, str(e))


@router.delete(
    "/workflows/{workflow_id}",
    status_code=204,
    tags=["Workflows"],
    responses={404: {"model": ErrorResponse}},
)
async def delete_workflow(workflow_id: str):
    """Delete a workflow definition."""
    service = get_workflow_service()
    if not await service.delete(workflow_id):
        raise HTTPException(404, f"Workflow not found: {workflow_id}")


# ============================================================================
# TEMPLATES
# ============================================================================

@router.get("/templates", tags=["Templates"])
async def list_templates():
    """List the workflow templates shipped in workflows/."""
    service = get_workflow_service()
    templates = service.list_templates()
    return {
        "templates": [
            {
                "template_id": t.workflow_id,
                "name": t.name,
                "description": t.description,
                "category": t.category.value,
                "node_count": t.node_count,
                "tags": t.tags,
            }
            for t in templates
        ],
        "total": len(templates),
    }


@router.get(
    "/templates/{template_id}",
    response_model=WorkflowDefinition,
    tags=["Templates"],
    responses={404: {"model": ErrorResponse}},
)
async def get_template(template_id: str):
    service = get_workflow_service()
    template = service.get_template(template_id)
    if template is None:
        raise HTTPException(404, f"Template not found: {template_id}")
    return template


@router.post(
    "/templates/{template_id}/instantiate",
    response_model=WorkflowDefinition,
    status_code=201,
    tags=["Templates"],
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def instantiate_template(template_id: str, request: TemplateInstantiate):
    """Copy a template into a new workflow definition."""
    service = get_workflow_service()

    if request.workflow_id and await service.get(request.workflow_id) is not None:
        raise HTTPException(409, f"Workflow already exists: {request.workflow_id}")

    try:
        return await service.create_from_template(
            template_id,
            workflow_id=request.workflow_id,
            name=request.name,
            created_by=request.created_by,
        )
    except WorkflowNotFound:
        raise HTTPException(404, f"Template not found: {template_id}")
    except MalformedGraph as e:
        raise HTTPException(400, str(e))


@router.post("/templates/reload", tags=["Templates"])
async def reload_templates():
    service = get_workflow_service()
    count = service.reload_templates()
    return {"loaded": count}


# ============================================================================
# EXECUTIONS
# ============================================================================

@router.post(
    "/workflows/{workflow_id}/execute",
    response_model=ExecutionStartResponse,
    status_code=201,
    tags=["Executions"],
    responses={
        400: {"model": ErrorResponse, "description": "Malformed graph"},
        404: {"model": ErrorResponse, "description": "Workflow not found"},
        409: {"model": ErrorResponse, "description": "Workflow inactive"},
        422: {"description": "A node failed; the execution is FAILED"},
    },
)
async def execute_workflow(workflow_id: str, request: ExecutionCreate):
    """
    Start a workflow execution.

    By default the traversal runs before the response is returned (portal
    submissions are only queued, so this is quick). With background=true the
    response is immediate; poll GET /executions/{execution_id}.
    """
    executor = get_executor()

    try:
        execution_id = await executor.execute_workflow(
            workflow_id,
            request.context,
            trigger_source=request.trigger_source,
            wait=not request.background,
        )
    except WorkflowNotFound as e:
        raise HTTPException(404, str(e))
    except MalformedGraph as e:
        raise HTTPException(400, str(e))
    except WorkflowInactive as e:
        raise HTTPException(409, str(e))
    except NodeActionError as e:
        return JSONResponse(
            status_code=422,
            content={
                "error": type(e).__name__,
                "detail": str(e),
                "execution_id": e.execution_id,
                "node_id": e.node_id,
                "node_type": e.node_type,
            },
        )

    status = await executor.get_execution_status(execution_id)
    return ExecutionStartResponse(execution_id=execution_id, status=status["execution"].status)


@router.get("/executions", response_model=ExecutionListResponse, tags=["Executions"])
async def list_executions(
    workflow_id: Optional[str] = Query(None),
    status: Optional[ExecutionStatus] = Query(None, description="Filter by status"),
    limit: int = Query(100, ge=1, le=1000),
):
    """List executions, newest first."""
    executor = get_executor()
    executions = await executor.list_executions(workflow_id=workflow_id, status=status, limit=limit)
    return ExecutionListResponse(
        executions=[ExecutionResponse.model_validate(e) for e in executions],
        total=len(executions),
    )


@router.get(
    "/executions/{execution_id}",
    response_model=ExecutionDetailResponse,
    tags=["Executions"],
    responses={404: {"model": ErrorResponse}},
)
async def get_execution(execution_id: str):
    """Get an execution with its step audit trail."""
    executor = get_executor()

    try:
        result = await executor.get_execution_status(execution_id)
    except ExecutionNotFound as e:
        raise HTTPException(404, str(e))

    steps = result["steps"]
    step_summary = {}
    for step in steps:
        key = step.status.value
        step_summary[key] = step_summary.get(key, 0) + 1

    return ExecutionDetailResponse(
        execution=ExecutionResponse.model_validate(result["execution"]),
        steps=[StepResponse.model_validate(s) for s in steps],
        step_summary=step_summary,
    )


async def _control(action, execution_id: str) -> ExecutionResponse:
    try:
        execution = await action(execution_id)
    except ExecutionNotFound as e:
        raise HTTPException(404, str(e))
    except InvalidExecutionTransition as e:
        raise HTTPException(409, str(e))
    return ExecutionResponse.model_validate(execution)


@router.post(
    "/executions/{execution_id}/pause",
    response_model=ExecutionResponse,
    tags=["Executions"],
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def pause_execution(execution_id: str):
    """Pause a running execution at the next node boundary."""
    return await _control(get_executor().pause_execution, execution_id)


@router.post(
    "/executions/{execution_id}/resume",
    response_model=ExecutionResponse,
    tags=["Executions"],
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def resume_execution(execution_id: str):
    """Resume a paused execution from its checkpoint."""
    return await _control(get_executor().resume_execution, execution_id)


@router.post(
    "/executions/{execution_id}/cancel",
    response_model=ExecutionResponse,
    tags=["Executions"],
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def cancel_execution(execution_id: str):
    """Cancel an execution. Traversal stops at the next node boundary."""
    return await _control(get_executor().cancel_execution, execution_id)
