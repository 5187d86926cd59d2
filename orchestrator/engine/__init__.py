# ============================================================================
# ORCHESTRATOR ENGINE
# ============================================================================
# EPOCH: 1 - CLAIM AUTOMATION
# STATUS: Core - Stateless graph helpers used by the executor
# PURPOSE: Join gating, edge conditions, parameter templates
# CREATED: 19 OCT 2026
# ============================================================================
"""
Orchestrator Engine

Pure functions over a WorkflowDefinition and an execution context; nothing
here touches the database or the browser.

    evaluator   in-degree gated advance, edge conditions, structure checks
    templates   {{ }} resolution of node parameters (Jinja2)
"""

from orchestrator.engine.evaluator import (
    AdvanceResult,
    ConditionEvaluator,
    DAGEvaluator,
    DependencyGraph,
    get_evaluator,
)
from orchestrator.engine.templates import (
    TemplateResolutionError,
    TemplateResolver,
    get_resolver,
)

__all__ = [
    "AdvanceResult",
    "ConditionEvaluator",
    "DAGEvaluator",
    "DependencyGraph",
    "get_evaluator",
    "TemplateResolutionError",
    "TemplateResolver",
    "get_resolver",
]
