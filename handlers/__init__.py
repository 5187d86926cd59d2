# ============================================================================
# NODE ACTIONS
# ============================================================================
# EPOCH: 1 - CLAIM AUTOMATION
# STATUS: Core - Action registration and lookup
# PURPOSE: Register and discover workflow node actions
# CREATED: 19 OCT 2026
# ============================================================================
"""
Node Actions

Decorator-based registration of the coroutine behind each workflow node type.

Usage:
    from handlers import register_action, execute_action

    @register_action("my_node")
    async def my_node(ctx: ActionContext) -> ActionResult:
        return ActionResult.ok(key="value")

    result = await execute_action(ctx)
"""

from handlers.registry import (
    register_action,
    get_action,
    list_actions,
    clear_actions,
    execute_action,
    ActionFunc,
    ActionContext,
    ActionResult,
    ActionServices,
    DuplicateActionError,
)

# Import action modules to trigger registration
import handlers.actions  # noqa: F401 - import for side effects
import handlers.claims  # noqa: F401 - import for side effects

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
