# ============================================================================
# WORKFLOW ENGINE TESTS
# ============================================================================
# EPOCH: 1 - CLAIM AUTOMATION
# STATUS: Tests - Graph validation, conditions, join gating, templates
# PURPOSE: Verify the pure parts of workflow traversal without a database
# CREATED: 19 OCT 2026
# ============================================================================
"""
Workflow Engine Tests

Covers:
1. WorkflowDefinition.validate_structure (ids, edges, start node, cycles)
2. Tagged node payloads rejected at parse time
3. ConditionEvaluator operators and fail-closed behaviour
4. DAGEvaluator.advance: in-degree gating, diamond joins, skip propagation
5. TemplateResolver

Run with:
    pytest tests/test_workflow_engine.py -v
"""

import pytest
from pydantic import ValidationError

from core.contracts import ConditionOperator
from core.models import Condition, WorkflowDefinition
from core.models.workflow import FileClaimNode, WaitNode, node_params
from orchestrator.engine.evaluator import ConditionEvaluator, DAGEvaluator
from orchestrator.engine.templates import TemplateResolutionError, TemplateResolver


# ============================================================================
# HELPERS
# ============================================================================

def _make_workflow(nodes, edges, workflow_id="wf-test"):
    """Build a WorkflowDefinition from compact node/edge tuples."""
    return WorkflowDefinition(
        workflow_id=workflow_id,
        name="Test Workflow",
        nodes=[{"id": node_id, "type": node_type} for node_id, node_type in nodes],
        edges=[
            {"id": f"e{i}", "source": src, "target": dst, **({"condition": cond} if cond else {})}
            for i, (src, dst, cond) in enumerate(edges, start=1)
        ],
    )


def _diamond():
    """start -> a, start -> b, a -> join, b -> join, join -> end."""
    return _make_workflow(
        nodes=[("start", "start"), ("a", "wait"), ("b", "wait"), ("join", "update_status"), ("end", "end")],
        edges=[
            ("start", "a", None),
            ("start", "b", None),
            ("a", "join", None),
            ("b", "join", None),
            ("join", "end", None),
        ],
    )


# ============================================================================
# STRUCTURE VALIDATION
# ============================================================================

class TestValidateStructure:

    def test_linear_workflow_is_valid(self):
        wf = _make_workflow(
            nodes=[("start", "start"), ("letter", "generate_letter"), ("end", "end")],
            edges=[("start", "letter", None), ("letter", "end", None)],
        )
        assert wf.validate_structure() == []
        assert wf.get_start_nodes() == ["start"]

    def test_empty_workflow_rejected(self):
        wf = WorkflowDefinition(workflow_id="empty", name="Empty")
        assert wf.validate_structure() == ["Workflow must have at least one node"]

    def test_two_start_nodes_rejected(self):
        wf = _make_workflow(
            nodes=[("s1", "start"), ("s2", "start"), ("end", "end")],
            edges=[("s1", "end", None), ("s2", "end", None)],
        )
        errors = wf.validate_structure()
        assert any("multiple start nodes" in e for e in errors)

    def test_unknown_edge_endpoint_rejected(self):
        wf = _make_workflow(
            nodes=[("start", "start"), ("end", "end")],
            edges=[("start", "end", None), ("start", "ghost", None)],
        )
        errors = wf.validate_structure()
        assert any("unknown target node 'ghost'" in e for e in errors)

    def test_duplicate_node_ids_rejected(self):
        wf = _make_workflow(
            nodes=[("start", "start"), ("x", "wait"), ("x", "end")],
            edges=[("start", "x", None)],
        )
        assert any("Duplicate node ids" in e for e in wf.validate_structure())

    def test_cycle_rejected(self):
        wf = _make_workflow(
            nodes=[("start", "start"), ("a", "wait"), ("b", "wait")],
            edges=[("start", "a", None), ("a", "b", None), ("b", "a", None)],
        )
        assert "Workflow graph contains a cycle" in wf.validate_structure()

    def test_unknown_node_type_rejected_at_parse_time(self):
        with pytest.raises(ValidationError):
            WorkflowDefinition(
                workflow_id="bad",
                name="Bad",
                nodes=[{"id": "start", "type": "teleport"}],
            )

    def test_negative_wait_rejected_at_parse_time(self):
        with pytest.raises(ValidationError):
            WaitNode(id="w", duration_ms=-1)

    def test_node_params_exclude_structural_fields(self):
        node = FileClaimNode(id="file", label="File it", credential_id="cred-1")
        params = node_params(node)
        assert params["credential_id"] == "cred-1"
        assert params["priority"] == "high"
        assert "id" not in params and "type" not in params and "label" not in params


# ============================================================================
# CONDITIONS
# ============================================================================

class TestConditionEvaluator:

    def setup_method(self):
        self.evaluator = ConditionEvaluator()
        self.context = {
            "analysis": {"claim_amount": 250, "tags": ["fragile", "insured"]},
            "status": "OPEN",
            "note": None,
        }

    def _eval(self, field, op, value=None):
        return self.evaluator.evaluate(Condition(field=field, operator=op, value=value), self.context)

    def test_none_condition_is_true(self):
        assert self.evaluator.evaluate(None, self.context) is True

    def test_equals_and_not_equals(self):
        assert self._eval("status", ConditionOperator.EQUALS, "OPEN")
        assert self._eval("status", ConditionOperator.NOT_EQUALS, "FILED")

    def test_nested_comparison(self):
        assert self._eval("analysis.claim_amount", ConditionOperator.GREATER_THAN, 100)
        assert not self._eval("analysis.claim_amount", ConditionOperator.LESS_THAN, 100)

    def test_contains_on_list_and_string(self):
        assert self._eval("analysis.tags", ConditionOperator.CONTAINS, "fragile")
        assert self._eval("status", ConditionOperator.CONTAINS, "PE")

    def test_missing_path_is_false_except_not_exists(self):
        assert not self._eval("analysis.missing", ConditionOperator.EQUALS, None)
        assert not self._eval("analysis.missing", ConditionOperator.NOT_EQUALS, "x")
        assert not self._eval("analysis.missing", ConditionOperator.EXISTS)
        assert self._eval("analysis.missing", ConditionOperator.NOT_EXISTS)

    def test_null_value_counts_as_absent_for_exists(self):
        assert not self._eval("note", ConditionOperator.EXISTS)
        assert self._eval("note", ConditionOperator.NOT_EXISTS)

    def test_type_error_is_false(self):
        assert not self._eval("status", ConditionOperator.GREATER_THAN, 5)


# ============================================================================
# ADVANCE / JOIN GATING
# ============================================================================

class TestAdvance:

    def setup_method(self):
        self.evaluator = DAGEvaluator()

    def test_start_node_detection(self):
        assert self.evaluator.get_start_node(_diamond()) == "start"

    def test_diamond_join_waits_for_both_branches(self):
        graph = self.evaluator.build_graph(_diamond())
        edge_state = {}

        result = self.evaluator.advance(graph, "start", {"e1": True, "e2": True}, edge_state)
        assert result.ready_nodes == ["a", "b"]

        result = self.evaluator.advance(graph, "a", {"e3": True}, edge_state)
        assert result.ready_nodes == []

        result = self.evaluator.advance(graph, "b", {"e4": True}, edge_state)
        assert result.ready_nodes == ["join"]

    def test_join_runs_when_one_branch_not_taken(self):
        graph = self.evaluator.build_graph(_diamond())
        edge_state = {}

        self.evaluator.advance(graph, "start", {"e1": True, "e2": False}, edge_state)
        # b is skipped, so e4 resolves as not taken and join only waits on a
        result = self.evaluator.advance(graph, "a", {"e3": True}, edge_state)
        assert result.ready_nodes == ["join"]
        assert edge_state["e4"] is False

    def test_skip_propagates_to_end(self):
        wf = _make_workflow(
            nodes=[("start", "start"), ("gate", "update_status"), ("end", "end")],
            edges=[("start", "gate", None), ("gate", "end", None)],
        )
        graph = self.evaluator.build_graph(wf)
        result = self.evaluator.advance(graph, "start", {"e1": False}, {})

        assert result.ready_nodes == []
        assert result.skipped_nodes == ["gate", "end"]

    def test_conditioned_edges_evaluated_against_context(self):
        wf = _make_workflow(
            nodes=[("start", "start"), ("big", "wait"), ("small", "wait")],
            edges=[
                ("start", "big", {"field": "amount", "operator": "greater_than", "value": 100}),
                ("start", "small", {"field": "amount", "operator": "less_than", "value": 100}),
            ],
        )
        graph = self.evaluator.build_graph(wf)
        outcomes = self.evaluator.evaluate_outgoing(graph, "start", {"amount": 500})
        assert outcomes == {"e1": True, "e2": False}

    def test_validate_workflow_reports_cycle(self):
        wf = _make_workflow(
            nodes=[("start", "start"), ("a", "wait"), ("b", "wait")],
            edges=[("start", "a", None), ("a", "b", None), ("b", "a", None)],
        )
        is_valid, errors = self.evaluator.validate_workflow(wf)
        assert not is_valid
        assert errors


# ============================================================================
# TEMPLATES
# ============================================================================

class TestTemplateResolver:

    def setup_method(self):
        self.resolver = TemplateResolver()

    def test_params_without_templates_returned_as_copy(self):
        params = {"status": "FILED"}
        resolved = self.resolver.resolve(params, {})
        assert resolved == params
        assert resolved is not params

    def test_single_expression_keeps_type(self):
        resolved = self.resolver.resolve({"amount": "{{ analysis.claim_amount }}"}, {"analysis": {"claim_amount": 42}})
        assert resolved["amount"] == 42

    def test_mixed_string_rendered(self):
        resolved = self.resolver.resolve(
            {"subject": "Claim {{ claim_number }} filed"},
            {"claim_number": "FX-1"},
        )
        assert resolved["subject"] == "Claim FX-1 filed"

    def test_context_alias_and_nested_lists(self):
        resolved = self.resolver.resolve(
            {"to": ["{{ context.recipient_email }}"]},
            {"recipient_email": "a@example.com"},
        )
        assert resolved["to"] == ["a@example.com"]

    def test_env_accessor_reads_prefixed_variable(self, monkeypatch):
        monkeypatch.setenv("CLAIMFLOW_SUPPORT_EMAIL", "support@example.com")
        resolved = self.resolver.resolve({"to": "{{ env.SUPPORT_EMAIL }}"}, {})
        assert resolved["to"] == "support@example.com"

    @pytest.mark.parametrize("name", ["PORTAL_ENCRYPTION_KEY", "DATABASE_URL", "POSTGRES_PASSWORD"])
    def test_env_accessor_never_reads_unprefixed_secrets(self, monkeypatch, name):
        monkeypatch.setenv(name, "0" * 64)
        monkeypatch.delenv(f"CLAIMFLOW_{name}", raising=False)

        with pytest.raises(TemplateResolutionError) as exc_info:
            self.resolver.resolve({"subject": f"{{{{ env.{name} }}}}"}, {})

        assert "0" * 64 not in str(exc_info.value)

    def test_runtime_error_in_expression_is_resolution_error(self):
        with pytest.raises(TemplateResolutionError) as exc_info:
            self.resolver.resolve({"subject": "{{ case_id + 1 }}"}, {"case_id": "42"})

        assert isinstance(exc_info.value.cause, TypeError)

    def test_dollars_filter_rejects_non_numeric(self):
        with pytest.raises(TemplateResolutionError) as exc_info:
            self.resolver.resolve({"body": "Claimed ${{ claimed_amount|dollars }}"}, {"claimed_amount": "lots"})

        assert isinstance(exc_info.value.cause, ValueError)

    def test_undefined_variable_raises(self):
        with pytest.raises(TemplateResolutionError):
            self.resolver.resolve({"to": "{{ nobody }}"}, {})

    def test_dollars_filter(self):
        resolved = self.resolver.resolve(
            {"body": "Claimed ${{ claimed_amount|dollars }}"},
            {"claimed_amount": 12550},
        )
        assert resolved["body"] == "Claimed $125.50"
