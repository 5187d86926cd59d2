# ============================================================================
# CLAUDE CONTEXT - WORKFLOW DEFINITION MODEL
# ============================================================================
# EPOCH: 1 - CLAIM AUTOMATION
# STATUS: Core model - Workflow graph (nodes + edges)
# PURPOSE: Define a case-handling procedure as a directed acyclic graph
# LAST_REVIEWED: 19 OCT 2026
# EXPORTS: WorkflowDefinition, WorkflowNode, EdgeDefinition, Condition, NodeType
# DEPENDENCIES: pydantic, enum
# ============================================================================
"""
Workflow Definition Models

A WorkflowDefinition is a graph:
- nodes: typed steps (tagged union keyed by `type`)
- edges: source -> target, optionally guarded by a Condition

Node payloads are validated when the definition is parsed, so an unknown
node type or a malformed parameter is rejected at save time rather than
discovered mid-execution.

Structural invariants (validate_structure):
- node ids and edge ids are unique
- every edge endpoint references an existing node
- exactly one node has no incoming edges (the start node)
- the graph is acyclic
"""

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, ClassVar, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, computed_field

from core.contracts import (
    ConditionOperator,
    SubmissionPriority,
    SubmissionType,
    TriggerType,
    WorkflowCategory,
)


class NodeType(str, Enum):
    """Types of nodes in a workflow."""
    START = "start"
    END = "end"
    GENERATE_LETTER = "generate_letter"
    FILE_CLAIM = "file_claim"
    SUBMIT_TO_PORTAL = "submit_to_portal"
    SEND_EMAIL = "send_email"
    UPDATE_STATUS = "update_status"
    WAIT = "wait"
    CONDITION = "condition"
    CREATE_REMINDER = "create_reminder"
    GENERATE_EVIDENCE_PACKAGE = "generate_evidence_package"


class Condition(BaseModel):
    """
    A predicate over the execution context.

    `field` is a dotted path (e.g. "analysis.claim_amount").
    """
    field: str = Field(..., min_length=1)
    operator: ConditionOperator = Field(default=ConditionOperator.EQUALS)
    value: Optional[Any] = None


class EdgeDefinition(BaseModel):
    """A directed edge. Unconditioned edges are always taken."""
    id: str = Field(..., max_length=64)
    source: str = Field(..., max_length=64)
    target: str = Field(..., max_length=64)
    condition: Optional[Condition] = None
    label: Optional[str] = None


# ============================================================================
# NODE VARIANTS
# ============================================================================

class BaseNode(BaseModel):
    """Fields shared by every node variant."""
    id: str = Field(..., max_length=64)
    label: Optional[str] = Field(default=None, max_length=128)

    # Editor layout only, ignored by the executor
    position: Optional[Dict[str, float]] = None

    @property
    def display_name(self) -> str:
        return self.label or self.id


class StartNode(BaseNode):
    type: Literal["start"] = "start"


class EndNode(BaseNode):
    type: Literal["end"] = "end"


class GenerateLetterNode(BaseNode):
    type: Literal["generate_letter"] = "generate_letter"
    tone: str = "professional"
    format: str = "markdown"
    template: Optional[str] = None


class FileClaimNode(BaseNode):
    """Enqueue a portal submission for the case's carrier."""
    type: Literal["file_claim"] = "file_claim"
    credential_id: Optional[str] = None
    submission_type: SubmissionType = SubmissionType.NEW_CLAIM
    priority: SubmissionPriority = SubmissionPriority.HIGH


class SubmitToPortalNode(FileClaimNode):
    type: Literal["submit_to_portal"] = "submit_to_portal"


class SendEmailNode(BaseNode):
    type: Literal["send_email"] = "send_email"
    to: Optional[str] = None
    subject: str = "Claim Update"
    body: Optional[str] = None


class UpdateStatusNode(BaseNode):
    type: Literal["update_status"] = "update_status"
    status: Optional[str] = None


class WaitNode(BaseNode):
    type: Literal["wait"] = "wait"
    duration_ms: int = Field(default=1000, ge=0)


class ConditionNode(BaseNode):
    type: Literal["condition"] = "condition"
    condition: Optional[Condition] = None


class CreateReminderNode(BaseNode):
    type: Literal["create_reminder"] = "create_reminder"
    days_from_now: int = Field(default=7, ge=0)
    message: str = "Follow up on case"


class GenerateEvidencePackageNode(BaseNode):
    type: Literal["generate_evidence_package"] = "generate_evidence_package"


WorkflowNode = Annotated[
    Union[
        StartNode,
        EndNode,
        GenerateLetterNode,
        FileClaimNode,
        SubmitToPortalNode,
        SendEmailNode,
        UpdateStatusNode,
        WaitNode,
        ConditionNode,
        CreateReminderNode,
        GenerateEvidencePackageNode,
    ],
    Field(discriminator="type"),
]

# Fields that are structural, not action parameters
_NODE_STRUCTURAL_FIELDS = {"id", "type", "label", "position"}


def node_params(node: BaseNode) -> Dict[str, Any]:
    """Action parameters of a node (everything except id/type/label/position)."""
    return node.model_dump(mode="json", exclude=_NODE_STRUCTURAL_FIELDS)


# ============================================================================
# WORKFLOW DEFINITION
# ============================================================================

class WorkflowDefinition(BaseModel):
    """
    A stored workflow graph.

    Maps to: claimflow.workflows table
    """

    __sql_table__: ClassVar[str] = "workflows"
    __sql_schema__: ClassVar[str] = "claimflow"
    __sql_primary_key__: ClassVar[List[str]] = ["workflow_id"]
    __sql_foreign_keys__: ClassVar[Dict[str, str]] = {}
    __sql_indexes__: ClassVar[List[tuple]] = [
        ("idx_workflows_category", ["category"]),
        ("idx_workflows_active", ["is_active"]),
    ]

    workflow_id: str = Field(..., max_length=64)
    name: str = Field(..., max_length=128)
    description: Optional[str] = None
    category: WorkflowCategory = Field(default=WorkflowCategory.CUSTOM)

    trigger_type: TriggerType = Field(default=TriggerType.MANUAL)
    trigger_config: Dict[str, Any] = Field(default_factory=dict)
    tags: List[str] = Field(default_factory=list)
    is_active: bool = True

    nodes: List[WorkflowNode] = Field(default_factory=list)
    edges: List[EdgeDefinition] = Field(default_factory=list)

    # Counters (COMPLETED / FAILED executions only)
    execution_count: int = Field(default=0, ge=0)
    success_count: int = Field(default=0, ge=0)
    failure_count: int = Field(default=0, ge=0)

    created_by: Optional[str] = Field(default=None, max_length=64)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    version: int = Field(default=1, ge=1)

    @computed_field
    @property
    def node_count(self) -> int:
        return len(self.nodes)

    def get_node(self, node_id: str) -> BaseNode:
        """Get a node by ID."""
        for node in self.nodes:
            if node.id == node_id:
                return node
        raise KeyError(f"Node '{node_id}' not found in workflow '{self.workflow_id}'")

    def incoming_edges(self, node_id: str) -> List[EdgeDefinition]:
        return [e for e in self.edges if e.target == node_id]

    def outgoing_edges(self, node_id: str) -> List[EdgeDefinition]:
        return [e for e in self.edges if e.source == node_id]

    def get_start_nodes(self) -> List[str]:
        """Nodes with zero incoming edges (a valid graph has exactly one)."""
        targets = {e.target for e in self.edges}
        return [n.id for n in self.nodes if n.id not in targets]

    def validate_structure(self) -> List[str]:
        """
        Validate workflow structure.

        Returns list of validation errors (empty if valid).
        """
        errors = []

        node_ids = [n.id for n in self.nodes]
        if not node_ids:
            errors.append("Workflow must have at least one node")
            return errors

        duplicates = sorted({n for n in node_ids if node_ids.count(n) > 1})
        if duplicates:
            errors.append(f"Duplicate node ids: {duplicates}")

        edge_ids = [e.id for e in self.edges]
        duplicate_edges = sorted({e for e in edge_ids if edge_ids.count(e) > 1})
        if duplicate_edges:
            errors.append(f"Duplicate edge ids: {duplicate_edges}")

        known = set(node_ids)
        for edge in self.edges:
            if edge.source not in known:
                errors.append(f"Edge '{edge.id}' references unknown source node '{edge.source}'")
            if edge.target not in known:
                errors.append(f"Edge '{edge.id}' references unknown target node '{edge.target}'")

        start_nodes = self.get_start_nodes()
        if len(start_nodes) == 0:
            errors.append("Workflow has no start node (every node has an incoming edge)")
        elif len(start_nodes) > 1:
            errors.append(f"Workflow has multiple start nodes: {start_nodes}")

        if not errors and self._has_cycle():
            errors.append("Workflow graph contains a cycle")

        return errors

    def _has_cycle(self) -> bool:
        indegree = {n.id: 0 for n in self.nodes}
        for edge in self.edges:
            indegree[edge.target] += 1

        queue = [n for n, d in indegree.items() if d == 0]
        visited = 0
        while queue:
            current = queue.pop()
            visited += 1
            for edge in self.outgoing_edges(current):
                indegree[edge.target] -= 1
                if indegree[edge.target] == 0:
                    queue.append(edge.target)

        return visited != len(indegree)


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "NodeType",
    "Condition",
    "EdgeDefinition",
    "BaseNode",
    "StartNode",
    "EndNode",
    "GenerateLetterNode",
    "FileClaimNode",
    "SubmitToPortalNode",
    "SendEmailNode",
    "UpdateStatusNode",
    "WaitNode",
    "ConditionNode",
    "CreateReminderNode",
    "GenerateEvidencePackageNode",
    "WorkflowNode",
    "WorkflowDefinition",
    "node_params",
]
