# ============================================================================
# WORKFLOW SERVICE TESTS
# ============================================================================
# EPOCH: 1 - CLAIM AUTOMATION
# STATUS: Tests - Definition validation, updates and YAML templates
# PURPOSE: Verify WorkflowService with a mocked repository
# CREATED: 19 OCT 2026
# ============================================================================
"""
Workflow Service Tests

Templates are loaded from the real workflows/ directory, so these tests also
guard the shipped YAML files.

Run with:
    pytest tests/test_workflow_service.py -v
"""

import asyncio
import pytest
from unittest.mock import AsyncMock, MagicMock

from core.contracts import ExecutionStatus, WorkflowCategory
from core.errors import MalformedGraph, WorkflowError, WorkflowNotFound
from core.models import NodeType, WorkflowDefinition
from services.workflow_service import WorkflowService


# ============================================================================
# HELPERS
# ============================================================================

def _make_workflow(workflow_id="wf-1", **overrides):
    data = dict(
        workflow_id=workflow_id,
        name="Simple",
        nodes=[
            {"id": "start", "type": "start"},
            {"id": "status", "type": "update_status", "status": "REVIEW"},
            {"id": "end", "type": "end"},
        ],
        edges=[
            {"id": "e1", "source": "start", "target": "status"},
            {"id": "e2", "source": "status", "target": "end"},
        ],
    )
    data.update(overrides)
    return WorkflowDefinition(**data)


def _build_service(templates_dir=None):
    svc = WorkflowService(MagicMock(), templates_dir)
    svc.workflow_repo = AsyncMock()
    svc.workflow_repo.create = AsyncMock(side_effect=lambda wf: wf)
    svc.workflow_repo.update = AsyncMock(return_value=True)
    return svc


# ============================================================================
# DEFINITIONS
# ============================================================================

class TestDefinitions:

    def test_create_validates_graph(self):
        svc = _build_service()
        broken = _make_workflow(edges=[{"id": "e1", "source": "start", "target": "nowhere"}])

        with pytest.raises(MalformedGraph) as exc_info:
            asyncio.run(svc.create(broken))

        assert any("nowhere" in e for e in exc_info.value.errors)
        svc.workflow_repo.create.assert_not_awaited()

    def test_create_valid(self):
        svc = _build_service()
        created = asyncio.run(svc.create(_make_workflow()))
        assert created.workflow_id == "wf-1"
        assert created.node_count == 3

    def test_get_or_raise(self):
        svc = _build_service()
        svc.workflow_repo.get = AsyncMock(return_value=None)

        with pytest.raises(WorkflowNotFound):
            asyncio.run(svc.get_or_raise("missing"))

    def test_update_applies_changes_and_keeps_identity(self):
        svc = _build_service()
        svc.workflow_repo.get = AsyncMock(return_value=_make_workflow(execution_count=7))

        updated = asyncio.run(svc.update("wf-1", {
            "name": "Renamed",
            "is_active": False,
            "workflow_id": "hijacked",
            "execution_count": 0,
        }))

        assert updated.name == "Renamed"
        assert updated.is_active is False
        assert updated.workflow_id == "wf-1"
        assert updated.execution_count == 7

    def test_update_rejects_broken_graph(self):
        svc = _build_service()
        svc.workflow_repo.get = AsyncMock(return_value=_make_workflow())

        with pytest.raises(MalformedGraph):
            asyncio.run(svc.update("wf-1", {"edges": [
                {"id": "e1", "source": "start", "target": "status"},
                {"id": "e2", "source": "status", "target": "start"},
            ]}))
        svc.workflow_repo.update.assert_not_awaited()

    def test_update_rejects_invalid_node_payload(self):
        svc = _build_service()
        svc.workflow_repo.get = AsyncMock(return_value=_make_workflow())

        with pytest.raises(MalformedGraph):
            asyncio.run(svc.update("wf-1", {"nodes": [{"id": "start", "type": "teleport"}]}))

    def test_update_conflict(self):
        svc = _build_service()
        svc.workflow_repo.get = AsyncMock(return_value=_make_workflow())
        svc.workflow_repo.update = AsyncMock(return_value=False)

        with pytest.raises(WorkflowError):
            asyncio.run(svc.update("wf-1", {"name": "Renamed"}))

    def test_record_outcome_never_raises(self):
        svc = _build_service()
        svc.workflow_repo.record_outcome = AsyncMock(side_effect=ConnectionError("db gone"))

        asyncio.run(svc.record_outcome("wf-1", ExecutionStatus.COMPLETED))

        svc.workflow_repo.record_outcome.assert_awaited_once()

    def test_list_passes_category_value(self):
        svc = _build_service()
        svc.workflow_repo.list_all = AsyncMock(return_value=[])

        asyncio.run(svc.list_workflows(category=WorkflowCategory.CASE_LIFECYCLE, active_only=True))

        svc.workflow_repo.list_all.assert_awaited_once_with(
            category="case_lifecycle", active_only=True, limit=100
        )


# ============================================================================
# TEMPLATES
# ============================================================================

class TestTemplates:

    def test_shipped_templates_load(self):
        svc = _build_service()

        assert svc.load_templates() == 2
        ids = {t.workflow_id for t in svc.list_templates()}
        assert ids == {"claim-lifecycle", "appeal-process"}

    def test_claim_lifecycle_template_shape(self):
        svc = _build_service()
        template = svc.get_template("claim-lifecycle")

        assert template.get_start_nodes() == ["start"]
        types = [n.type for n in template.nodes]
        assert NodeType.FILE_CLAIM in types
        assert NodeType.GENERATE_LETTER in types
        conditional = [e for e in template.edges if e.condition is not None]
        assert [e.target for e in conditional] == ["notify_customer"]

    def test_appeal_template_waits_three_days(self):
        svc = _build_service()
        template = svc.get_template("appeal-process")

        wait = template.get_node("wait_for_carrier")
        assert wait.duration_ms == 3 * 24 * 60 * 60 * 1000

    def test_invalid_yaml_skipped(self, tmp_path):
        (tmp_path / "good.yaml").write_text(
            "workflow_id: good\nname: Good\n"
            "nodes:\n  - {id: start, type: start}\n  - {id: end, type: end}\n"
            "edges:\n  - {id: e1, source: start, target: end}\n"
        )
        (tmp_path / "cycle.yaml").write_text(
            "workflow_id: cycle\nname: Cycle\n"
            "nodes:\n  - {id: start, type: start}\n  - {id: a, type: wait}\n  - {id: b, type: wait}\n"
            "edges:\n"
            "  - {id: e1, source: start, target: a}\n"
            "  - {id: e2, source: a, target: b}\n"
            "  - {id: e3, source: b, target: a}\n"
        )
        (tmp_path / "broken.yml").write_text("workflow_id: [unclosed\n")

        svc = _build_service(str(tmp_path))

        assert svc.load_templates() == 1
        assert svc.get_template("good") is not None
        assert svc.get_template("cycle") is None

    def test_missing_templates_dir(self, tmp_path):
        svc = _build_service(str(tmp_path / "nope"))
        assert svc.load_templates() == 0
        assert svc.list_templates() == []

    def test_create_from_template_copies_definition(self):
        svc = _build_service()

        workflow = asyncio.run(svc.create_from_template(
            "claim-lifecycle", workflow_id="acme-claims", name="Acme claims", created_by="ops",
        ))

        assert workflow.workflow_id == "acme-claims"
        assert workflow.name == "Acme claims"
        assert workflow.created_by == "ops"
        assert workflow.version == 1
        assert svc.get_template("claim-lifecycle").workflow_id == "claim-lifecycle"

    def test_create_from_template_generates_id(self):
        svc = _build_service()
        workflow = asyncio.run(svc.create_from_template("appeal-process"))
        assert workflow.workflow_id.startswith("appeal-process-")

    def test_create_from_unknown_template(self):
        svc = _build_service()
        with pytest.raises(WorkflowNotFound):
            asyncio.run(svc.create_from_template("nope"))

    def test_reload_templates(self, tmp_path):
        svc = _build_service(str(tmp_path))
        assert svc.load_templates() == 0

        (tmp_path / "late.yaml").write_text(
            "workflow_id: late\nname: Late\nnodes:\n  - {id: start, type: start}\n"
        )
        assert svc.reload_templates() == 1
