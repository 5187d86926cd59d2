# ============================================================================
# DAG EVALUATOR
# ============================================================================
# EPOCH: 1 - CLAIM AUTOMATION
# STATUS: Core - Graph validation, edge conditions and join gating
# PURPOSE: Decide which nodes run next given resolved edges and context
# CREATED: 19 OCT 2026
# ============================================================================
"""
DAG Evaluator

Core logic for workflow graph traversal.

Features:
- Dependency graph construction from edges
- Topological sort validation (cycle detection)
- Start node detection (exactly one node without incoming edges)
- Edge condition evaluation (fail-closed)
- In-degree gated readiness with skip propagation

Gating rule: a node becomes ready once every incoming edge is resolved and at
least one of them was taken. A node whose incoming edges all resolve as not
taken is skipped, and all of its outgoing edges resolve as not taken. A node
reached by several taken edges (a diamond join) therefore runs exactly once.

The evaluator is stateless - it takes the workflow, the edge resolution state
and the context as input and returns decisions about what should happen next.
"""

import logging
import operator
from collections import defaultdict, deque
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set, Tuple

from core.contracts import ConditionOperator
from core.models import Condition, EdgeDefinition, WorkflowDefinition

logger = logging.getLogger(__name__)


# ============================================================================
# DATA STRUCTURES
# ============================================================================

@dataclass
class DependencyGraph:
    """
    Dependency graph for a workflow.

    A -> B means "B depends on A" (A must be resolved before B).
    """
    # Node ID -> outgoing edges
    forward_edges: Dict[str, List[EdgeDefinition]] = field(default_factory=lambda: defaultdict(list))

    # Node ID -> incoming edges
    backward_edges: Dict[str, List[EdgeDefinition]] = field(default_factory=lambda: defaultdict(list))

    # All node IDs
    nodes: Set[str] = field(default_factory=set)

    def add_edge(self, edge: EdgeDefinition) -> None:
        self.forward_edges[edge.source].append(edge)
        self.backward_edges[edge.target].append(edge)

    def get_dependencies(self, node_id: str) -> List[str]:
        """Get nodes that this node depends on."""
        return [e.source for e in self.backward_edges.get(node_id, [])]

    def get_dependents(self, node_id: str) -> List[str]:
        """Get nodes that depend on this node."""
        return [e.target for e in self.forward_edges.get(node_id, [])]

    def in_degree(self, node_id: str) -> int:
        return len(self.backward_edges.get(node_id, []))


@dataclass
class AdvanceResult:
    """Result of resolving a node's outgoing edges."""
    # Nodes whose incoming edges are now all resolved with at least one taken
    ready_nodes: List[str] = field(default_factory=list)

    # Nodes whose incoming edges all resolved as not taken
    skipped_nodes: List[str] = field(default_factory=list)

    # edge_id -> taken, for every edge resolved by this call
    resolved_edges: Dict[str, bool] = field(default_factory=dict)


# ============================================================================
# GRAPH BUILDER
# ============================================================================

class GraphBuilder:
    """Builds dependency graph from workflow definition."""

    def build(self, workflow: WorkflowDefinition) -> DependencyGraph:
        graph = DependencyGraph()

        for node in workflow.nodes:
            graph.nodes.add(node.id)

        for edge in workflow.edges:
            graph.add_edge(edge)

        return graph


# ============================================================================
# TOPOLOGICAL SORT / CYCLE DETECTION
# ============================================================================

class TopologicalSorter:
    """Validates DAG structure and provides topological ordering."""

    def validate(self, graph: DependencyGraph) -> Tuple[bool, List[str], Optional[str]]:
        """
        Validate that graph is a DAG (no cycles).

        Returns:
            Tuple of (is_valid, sorted_nodes, error_message)
        """
        in_degree = {node: 0 for node in graph.nodes}

        for node in graph.nodes:
            for dep in graph.get_dependencies(node):
                if dep in in_degree:
                    in_degree[node] += 1

        queue = deque(sorted(node for node, degree in in_degree.items() if degree == 0))
        sorted_nodes = []

        while queue:
            node = queue.popleft()
            sorted_nodes.append(node)

            for dependent in graph.get_dependents(node):
                if dependent not in in_degree:
                    continue
                in_degree[dependent] -= 1
                if in_degree[dependent] == 0:
                    queue.append(dependent)

        if len(sorted_nodes) != len(graph.nodes):
            remaining = sorted(n for n in graph.nodes if n not in sorted_nodes)
            return False, sorted_nodes, f"Cycle detected involving nodes: {remaining}"

        return True, sorted_nodes, None


# ============================================================================
# CONDITION EVALUATOR
# ============================================================================

_MISSING = object()


def _contains(actual: Any, expected: Any) -> bool:
    if isinstance(actual, str):
        return str(expected) in actual
    if isinstance(actual, (list, tuple, set, dict)):
        return expected in actual
    return str(expected) in str(actual)


class ConditionEvaluator:
    """
    Evaluates {field, operator, value} conditions against a context.

    - A path that does not resolve is false for every operator except
      not_exists.
    - Any evaluation error (e.g. comparing str with int) is logged and
      treated as false.
    """

    OPERATORS = {
        ConditionOperator.EQUALS: operator.eq,
        ConditionOperator.NOT_EQUALS: operator.ne,
        ConditionOperator.GREATER_THAN: operator.gt,
        ConditionOperator.LESS_THAN: operator.lt,
        ConditionOperator.CONTAINS: _contains,
    }

    def evaluate(self, condition: Optional[Condition], context: Dict[str, Any]) -> bool:
        """
        Evaluate a condition.

        Args:
            condition: Condition (None is always true)
            context: Execution context

        Returns:
            True if condition is met
        """
        if condition is None:
            return True

        try:
            value = self._get_value(condition.field, context)
            present = value is not _MISSING and value is not None

            if condition.operator == ConditionOperator.EXISTS:
                return present
            if condition.operator == ConditionOperator.NOT_EXISTS:
                return not present

            if value is _MISSING:
                return False

            op_func = self.OPERATORS[condition.operator]
            return bool(op_func(value, condition.value))

        except Exception as e:
            logger.warning(
                f"Failed to evaluate condition {condition.field} "
                f"{condition.operator.value} {condition.value!r}: {e}"
            )
            return False

    def _get_value(self, path: str, context: Dict[str, Any]) -> Any:
        """Get value from context using dot notation (_MISSING if unresolvable)."""
        value: Any = context

        for part in path.split("."):
            if isinstance(value, dict) and part in value:
                value = value[part]
            elif isinstance(value, list) and part.isdigit() and int(part) < len(value):
                value = value[int(part)]
            else:
                return _MISSING

        return value


# ============================================================================
# DAG EVALUATOR
# ============================================================================

class DAGEvaluator:
    """
    Main evaluator for workflow graphs.

    Combines graph building, validation, condition evaluation and
    readiness gating.
    """

    def __init__(self):
        self.graph_builder = GraphBuilder()
        self.sorter = TopologicalSorter()
        self.condition_evaluator = ConditionEvaluator()

    def build_graph(self, workflow: WorkflowDefinition) -> DependencyGraph:
        return self.graph_builder.build(workflow)

    def validate_workflow(self, workflow: WorkflowDefinition) -> Tuple[bool, List[str]]:
        """
        Validate workflow structure.

        Returns:
            Tuple of (is_valid, errors)
        """
        errors = workflow.validate_structure()
        if errors:
            return False, errors

        graph = self.build_graph(workflow)
        is_valid, _, error = self.sorter.validate(graph)
        if not is_valid:
            return False, [error]

        return True, []

    def get_start_node(self, workflow: WorkflowDefinition) -> str:
        """The single node with no incoming edges. Assumes a validated workflow."""
        start_nodes = workflow.get_start_nodes()
        if len(start_nodes) != 1:
            raise ValueError(
                f"Workflow {workflow.workflow_id} must have exactly one start node, "
                f"found {len(start_nodes)}"
            )
        return start_nodes[0]

    def evaluate_outgoing(
        self,
        graph: DependencyGraph,
        node_id: str,
        context: Dict[str, Any],
    ) -> Dict[str, bool]:
        """Decide taken / not taken for every outgoing edge of a completed node."""
        return {
            edge.id: self.condition_evaluator.evaluate(edge.condition, context)
            for edge in graph.forward_edges.get(node_id, [])
        }

    def advance(
        self,
        graph: DependencyGraph,
        node_id: str,
        outcomes: Dict[str, bool],
        edge_state: Dict[str, bool],
    ) -> AdvanceResult:
        """
        Record edge outcomes for a node and work out what becomes ready.

        Skips propagate transitively: a skipped node resolves all of its
        outgoing edges as not taken.

        Args:
            graph: Dependency graph
            node_id: Node whose outgoing edges were just decided
            outcomes: edge_id -> taken for that node's outgoing edges
            edge_state: Resolution state so far (updated in place)

        Returns:
            AdvanceResult
        """
        result = AdvanceResult()
        pending = deque([(node_id, outcomes)])

        while pending:
            current, current_outcomes = pending.popleft()

            for edge in graph.forward_edges.get(current, []):
                taken = current_outcomes.get(edge.id, False)
                edge_state[edge.id] = taken
                result.resolved_edges[edge.id] = taken

            for target in dict.fromkeys(graph.get_dependents(current)):
                incoming = graph.backward_edges.get(target, [])
                if not all(e.id in edge_state for e in incoming):
                    continue

                if any(edge_state[e.id] for e in incoming):
                    if target not in result.ready_nodes:
                        result.ready_nodes.append(target)
                elif target not in result.skipped_nodes:
                    result.skipped_nodes.append(target)
                    pending.append((target, {}))

        return result


# ============================================================================
# CONVENIENCE FUNCTIONS
# ============================================================================

_evaluator: Optional[DAGEvaluator] = None


def get_evaluator() -> DAGEvaluator:
    """Get shared evaluator instance."""
    global _evaluator
    if _evaluator is None:
        _evaluator = DAGEvaluator()
    return _evaluator


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "DependencyGraph",
    "AdvanceResult",
    "GraphBuilder",
    "TopologicalSorter",
    "ConditionEvaluator",
    "DAGEvaluator",
    "get_evaluator",
]
