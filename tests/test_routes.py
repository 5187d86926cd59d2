# ============================================================================
# WORKFLOW + EXECUTION ROUTES TESTS
# ============================================================================
# EPOCH: 1 - CLAIM AUTOMATION
# STATUS: Tests - Workflow, template and execution HTTP endpoints
# PURPOSE: Verify api/routes.py status codes and payloads with mocked services
# CREATED: 19 OCT 2026
# ============================================================================
"""
Workflow Routes Tests

Uses FastAPI TestClient against a small app with only the workflow router
mounted; the workflow service and executor are mocks.

Run with:
    pytest tests/test_routes.py -v
"""

import pytest
from unittest.mock import AsyncMock, MagicMock

from fastapi import FastAPI
from fastapi.testclient import TestClient

from api.routes import router, set_services
from core.contracts import ExecutionStatus, StepStatus
from core.errors import (
    ExecutionNotFound,
    InvalidExecutionTransition,
    MalformedGraph,
    MissingCaseId,
    WorkflowInactive,
    WorkflowNotFound,
)
from core.models import WorkflowDefinition, WorkflowExecution, WorkflowExecutionStep


# ============================================================================
# FIXTURES
# ============================================================================

def _make_workflow(workflow_id="wf-1"):
    return WorkflowDefinition(
        workflow_id=workflow_id,
        name="Simple",
        nodes=[{"id": "start", "type": "start"}, {"id": "end", "type": "end"}],
        edges=[{"id": "e1", "source": "start", "target": "end"}],
    )


def _make_execution(status=ExecutionStatus.COMPLETED, execution_id="exec-1"):
    return WorkflowExecution(
        execution_id=execution_id,
        workflow_id="wf-1",
        case_id="42",
        status=status,
        context={"case_id": "42"},
    )


def _make_step(node_id="start", status=StepStatus.COMPLETED):
    return WorkflowExecutionStep(
        step_id=f"step-{node_id}",
        execution_id="exec-1",
        node_id=node_id,
        node_type=node_id,
        status=status,
    )


@pytest.fixture
def services():
    workflow_service = MagicMock()
    for name in ("get", "create", "update", "delete", "list_workflows", "create_from_template"):
        setattr(workflow_service, name, AsyncMock())
    workflow_service.get.return_value = None

    executor = MagicMock()
    for name in (
        "execute_workflow", "get_execution_status", "list_executions",
        "pause_execution", "resume_execution", "cancel_execution",
    ):
        setattr(executor, name, AsyncMock())
    executor.active_executions = {}

    scheduler = MagicMock()
    scheduler.stats = {
        "running": True,
        "role": "leader",
        "started_at": "2026-10-19T08:00:00+00:00",
        "uptime_seconds": 12.5,
        "poll_interval": 30.0,
        "cycles": 3,
        "last_cycle_at": None,
        "submissions_processed": 1,
        "executions_resumed": 0,
        "errors": 0,
    }
    return workflow_service, executor, scheduler


@pytest.fixture
def client(services):
    app = FastAPI()
    app.include_router(router, prefix="/api/v1")
    set_services(*services)
    return TestClient(app)


# ============================================================================
# WORKFLOWS
# ============================================================================

class TestWorkflowRoutes:

    def test_create_workflow(self, client, services):
        workflow_service, _, _ = services
        workflow_service.create.side_effect = lambda wf: wf

        resp = client.post("/api/v1/workflows", json=_make_workflow().model_dump(mode="json"))

        assert resp.status_code == 201
        assert resp.json()["workflow_id"] == "wf-1"
        assert resp.json()["node_count"] == 2

    def test_create_duplicate(self, client, services):
        workflow_service, _, _ = services
        workflow_service.get.return_value = _make_workflow()

        resp = client.post("/api/v1/workflows", json=_make_workflow().model_dump(mode="json"))

        assert resp.status_code == 409
        workflow_service.create.assert_not_awaited()

    def test_create_malformed(self, client, services):
        workflow_service, _, _ = services
        workflow_service.create.side_effect = MalformedGraph("wf-1", ["Workflow graph contains a cycle"])

        resp = client.post("/api/v1/workflows", json=_make_workflow().model_dump(mode="json"))

        assert resp.status_code == 400
        assert "cycle" in resp.json()["detail"]

    def test_unknown_node_type_rejected_by_validation(self, client):
        body = _make_workflow().model_dump(mode="json")
        body["nodes"].append({"id": "x", "type": "teleport"})

        resp = client.post("/api/v1/workflows", json=body)

        assert resp.status_code == 422

    def test_get_missing(self, client):
        resp = client.get("/api/v1/workflows/nope")
        assert resp.status_code == 404

    def test_patch_maps_errors(self, client, services):
        workflow_service, _, _ = services

        workflow_service.update.side_effect = WorkflowNotFound("wf-1")
        assert client.patch("/api/v1/workflows/wf-1", json={"name": "x"}).status_code == 404

        workflow_service.update.side_effect = MalformedGraph("wf-1", ["bad"])
        assert client.patch("/api/v1/workflows/wf-1", json={"name": "x"}).status_code == 400

    def test_patch_sends_only_set_fields(self, client, services):
        workflow_service, _, _ = services
        workflow_service.update.return_value = _make_workflow()

        resp = client.patch("/api/v1/workflows/wf-1", json={"is_active": False})

        assert resp.status_code == 200
        workflow_service.update.assert_awaited_once_with("wf-1", {"is_active": False})

    def test_delete(self, client, services):
        workflow_service, _, _ = services
        workflow_service.delete.return_value = True
        assert client.delete("/api/v1/workflows/wf-1").status_code == 204

        workflow_service.delete.return_value = False
        assert client.delete("/api/v1/workflows/wf-1").status_code == 404

    def test_list_actions(self, client):
        resp = client.get("/api/v1/actions")

        assert resp.status_code == 200
        node_types = {a["node_type"] for a in resp.json()["actions"]}
        assert {"file_claim", "generate_letter", "wait", "update_status"} <= node_types


# ============================================================================
# TEMPLATES
# ============================================================================

class TestTemplateRoutes:

    def test_list_templates(self, client, services):
        workflow_service, _, _ = services
        workflow_service.list_templates.return_value = [_make_workflow("claim-lifecycle")]

        resp = client.get("/api/v1/templates")

        assert resp.status_code == 200
        assert resp.json()["templates"][0]["template_id"] == "claim-lifecycle"
        assert resp.json()["total"] == 1

    def test_instantiate(self, client, services):
        workflow_service, _, _ = services
        workflow_service.create_from_template.return_value = _make_workflow("acme")

        resp = client.post("/api/v1/templates/claim-lifecycle/instantiate", json={"workflow_id": "acme"})

        assert resp.status_code == 201
        workflow_service.create_from_template.assert_awaited_once_with(
            "claim-lifecycle", workflow_id="acme", name=None, created_by=None,
        )

    def test_instantiate_unknown_template(self, client, services):
        workflow_service, _, _ = services
        workflow_service.create_from_template.side_effect = WorkflowNotFound("nope")

        resp = client.post("/api/v1/templates/nope/instantiate", json={})

        assert resp.status_code == 404

    def test_get_unknown_template(self, client, services):
        workflow_service, _, _ = services
        workflow_service.get_template.return_value = None

        assert client.get("/api/v1/templates/nope").status_code == 404


# ============================================================================
# EXECUTIONS
# ============================================================================

class TestExecutionRoutes:

    def test_execute(self, client, services):
        _, executor, _ = services
        executor.execute_workflow.return_value = "exec-1"
        executor.get_execution_status.return_value = {"execution": _make_execution(), "steps": []}

        resp = client.post("/api/v1/workflows/wf-1/execute", json={"context": {"case_id": "42"}})

        assert resp.status_code == 201
        assert resp.json() == {"execution_id": "exec-1", "status": "completed"}
        executor.execute_workflow.assert_awaited_once_with(
            "wf-1", {"case_id": "42"}, trigger_source="manual", wait=True,
        )

    def test_execute_in_background(self, client, services):
        _, executor, _ = services
        executor.execute_workflow.return_value = "exec-1"
        executor.get_execution_status.return_value = {
            "execution": _make_execution(ExecutionStatus.RUNNING), "steps": [],
        }

        resp = client.post("/api/v1/workflows/wf-1/execute", json={"context": {}, "background": True})

        assert resp.json()["status"] == "running"
        assert executor.execute_workflow.await_args.kwargs["wait"] is False

    @pytest.mark.parametrize("error, status", [
        (WorkflowNotFound("wf-1"), 404),
        (MalformedGraph("wf-1", ["bad"]), 400),
        (WorkflowInactive("wf-1"), 409),
    ])
    def test_execute_errors(self, client, services, error, status):
        _, executor, _ = services
        executor.execute_workflow.side_effect = error

        resp = client.post("/api/v1/workflows/wf-1/execute", json={})

        assert resp.status_code == status

    def test_failed_node_reports_execution(self, client, services):
        _, executor, _ = services
        error = MissingCaseId(node_id="letter", node_type="generate_letter")
        error.execution_id = "exec-9"
        executor.execute_workflow.side_effect = error

        resp = client.post("/api/v1/workflows/wf-1/execute", json={"context": {}})

        assert resp.status_code == 422
        body = resp.json()
        assert body["error"] == "MissingCaseId"
        assert body["execution_id"] == "exec-9"
        assert body["node_id"] == "letter"

    def test_get_execution_with_steps(self, client, services):
        _, executor, _ = services
        executor.get_execution_status.return_value = {
            "execution": _make_execution(),
            "steps": [_make_step("start"), _make_step("end")],
        }

        resp = client.get("/api/v1/executions/exec-1")

        assert resp.status_code == 200
        body = resp.json()
        assert body["execution"]["is_terminal"] is True
        assert [s["node_id"] for s in body["steps"]] == ["start", "end"]
        assert body["step_summary"] == {"completed": 2}

    def test_get_missing_execution(self, client, services):
        _, executor, _ = services
        executor.get_execution_status.side_effect = ExecutionNotFound("nope")

        assert client.get("/api/v1/executions/nope").status_code == 404

    def test_list_executions(self, client, services):
        _, executor, _ = services
        executor.list_executions.return_value = [_make_execution()]

        resp = client.get("/api/v1/executions?status=completed&workflow_id=wf-1")

        assert resp.json()["total"] == 1
        executor.list_executions.assert_awaited_once_with(
            workflow_id="wf-1", status=ExecutionStatus.COMPLETED, limit=100,
        )

    def test_pause(self, client, services):
        _, executor, _ = services
        executor.pause_execution.return_value = _make_execution(ExecutionStatus.PAUSED)

        resp = client.post("/api/v1/executions/exec-1/pause")

        assert resp.status_code == 200
        assert resp.json()["status"] == "paused"

    def test_invalid_transition_conflict(self, client, services):
        _, executor, _ = services
        executor.resume_execution.side_effect = InvalidExecutionTransition("exec-1", "completed", "running")

        resp = client.post("/api/v1/executions/exec-1/resume")

        assert resp.status_code == 409

    def test_cancel_unknown(self, client, services):
        _, executor, _ = services
        executor.cancel_execution.side_effect = ExecutionNotFound("nope")

        assert client.post("/api/v1/executions/nope/cancel").status_code == 404


# ============================================================================
# SCHEDULER
# ============================================================================

class TestSchedulerStatus:

    def test_status(self, client):
        resp = client.get("/api/v1/scheduler/status")

        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "running"
        assert body["role"] == "leader"
        assert body["metrics"]["cycles"] == 3
        assert body["metrics"]["active_executions"] == 0

    def test_uninitialized_services(self):
        app = FastAPI()
        app.include_router(router, prefix="/api/v1")
        set_services(None, None, None)

        resp = TestClient(app).get("/api/v1/workflows")

        assert resp.status_code == 500
