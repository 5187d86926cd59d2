# ============================================================================
# NODE ACTION REGISTRY
# ============================================================================
# EPOCH: 1 - CLAIM AUTOMATION
# STATUS: Core - Node action registration and dispatch
# PURPOSE: Map node types to the coroutine that performs them
# CREATED: 19 OCT 2026
# ============================================================================
"""
Node Action Registry

Central registry of node actions. The graph executor looks up the action for
a node's type and invokes it with an ActionContext.

Design:
- Actions are registered at import time via decorator
- Registry is a simple dict (node_type -> action_func)
- Fail-fast on duplicate registration
- Supports both sync and async actions
- A node type without a registered action is skipped, not failed
- Every failure leaves as a NodeActionError carrying node id and type
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from core.config import ExecutorDefaults
from core.errors import MissingCaseId, MissingParameter, NodeActionError
from core.models import BaseNode

logger = logging.getLogger(__name__)


# ============================================================================
# ACTION TYPES
# ============================================================================

@dataclass
class ActionServices:
    """
    Collaborators available to node actions.

    Everything is optional so tests can wire only what a node needs; an
    action that needs a missing collaborator fails with NodeActionError.
    """
    case_store: Any = None
    submission_queue: Any = None
    letter_generator: Any = None
    notifier: Any = None
    reminder_store: Any = None
    evidence_packager: Any = None
    condition_evaluator: Any = None
    defaults: ExecutorDefaults = field(default_factory=ExecutorDefaults)

    def require(self, name: str, ctx: "ActionContext") -> Any:
        service = getattr(self, name)
        if service is None:
            raise NodeActionError(
                f"Service '{name}' is not configured",
                node_id=ctx.node.id,
                node_type=ctx.node_type,
            )
        return service


@dataclass
class ActionContext:
    """
    Context passed to node actions.

    `params` are the node's parameters after template resolution.
    `context` is a copy of the execution context; actions return output
    instead of mutating it.
    """
    execution_id: str
    workflow_id: str
    node: BaseNode
    params: Dict[str, Any]
    context: Dict[str, Any]
    services: ActionServices

    @property
    def node_type(self) -> str:
        return self.node.type

    def require_case_id(self) -> str:
        case_id = self.context.get("case_id")
        if case_id in (None, ""):
            raise MissingCaseId(node_id=self.node.id, node_type=self.node_type)
        return str(case_id)

    def require_param(self, name: str) -> Any:
        value = self.params.get(name)
        if value in (None, ""):
            raise MissingParameter(name, node_id=self.node.id, node_type=self.node_type)
        return value


@dataclass
class ActionResult:
    """
    Result returned by node actions.

    suspend_until is set by actions that ask the executor to release the
    worker and continue later (long waits).
    """
    output: Dict[str, Any] = field(default_factory=dict)
    suspend_until: Optional[datetime] = None

    @classmethod
    def ok(cls, **output: Any) -> "ActionResult":
        return cls(output=output)

    @classmethod
    def suspended(cls, until: datetime, **output: Any) -> "ActionResult":
        return cls(output=output, suspend_until=until)


# Action function type
ActionFunc = Callable[[ActionContext], Union[ActionResult, Awaitable[ActionResult]]]


# ============================================================================
# EXCEPTIONS
# ============================================================================

class DuplicateActionError(Exception):
    """Raised when a node type already has an action."""
    def __init__(self, node_type: str):
        self.node_type = node_type
        super().__init__(f"Action already registered for node type: {node_type}")


# ============================================================================
# REGISTRY
# ============================================================================

_actions: Dict[str, ActionFunc] = {}
_action_metadata: Dict[str, Dict[str, Any]] = {}


def register_action(
    *node_types: str,
    description: str = "",
) -> Callable[[ActionFunc], ActionFunc]:
    """
    Decorator to register an action for one or more node types.

    Example:
        @register_action("send_email", description="Notify the recipient")
        async def send_email(ctx: ActionContext) -> ActionResult:
            ...
            return ActionResult.ok(email_sent=True)
    """
    def decorator(func: ActionFunc) -> ActionFunc:
        for node_type in node_types:
            key = getattr(node_type, "value", node_type)
            if key in _actions:
                raise DuplicateActionError(key)

            _actions[key] = func
            _action_metadata[key] = {
                "node_type": key,
                "description": description,
                "function": func.__name__,
                "module": func.__module__,
                "is_async": asyncio.iscoroutinefunction(func),
                "registered_at": datetime.utcnow().isoformat(),
            }
            logger.debug(f"Registered action: {key} ({func.__module__}.{func.__name__})")
        return func

    return decorator


def get_action(node_type: str) -> Optional[ActionFunc]:
    return _actions.get(node_type)


def list_actions() -> List[Dict[str, Any]]:
    """List all registered actions with metadata."""
    return list(_action_metadata.values())


def clear_actions() -> None:
    """
    Clear all registered actions.

    Primarily for testing.
    """
    _actions.clear()
    _action_metadata.clear()


# ============================================================================
# ASYNC ACTION EXECUTION
# ============================================================================

async def execute_action(ctx: ActionContext) -> ActionResult:
    """
    Execute the action registered for ctx.node's type.

    Returns:
        ActionResult ({"skipped": True} for an unregistered node type)

    Raises:
        NodeActionError for every action failure
    """
    action = get_action(ctx.node_type)
    if action is None:
        logger.warning(f"No action registered for node type '{ctx.node_type}', skipping {ctx.node.id}")
        return ActionResult.ok(skipped=True)

    try:
        if asyncio.iscoroutinefunction(action):
            result = await action(ctx)
        else:
            loop = asyncio.get_running_loop()
            result = await loop.run_in_executor(None, action, ctx)

    except NodeActionError as e:
        e.node_id = e.node_id or ctx.node.id
        e.node_type = e.node_type or ctx.node_type
        raise

    except Exception as e:
        logger.exception(f"Action {ctx.node_type} failed on node {ctx.node.id}: {e}")
        raise NodeActionError(
            str(e) or type(e).__name__,
            node_id=ctx.node.id,
            node_type=ctx.node_type,
            cause=e,
        ) from e

    if result is None:
        return ActionResult()
    return result


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "register_action",
    "get_action",
    "list_actions",
    "clear_actions",
    "execute_action",
    "ActionFunc",
    "ActionContext",
    "ActionResult",
    "ActionServices",
    "DuplicateActionError",
]
