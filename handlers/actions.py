# ============================================================================
# FLOW + NOTIFICATION ACTIONS
# ============================================================================
# EPOCH: 1 - CLAIM AUTOMATION
# STATUS: Handlers - Control-flow and notification node actions
# PURPOSE: start, end, wait, condition, send_email, create_reminder
# CREATED: 19 OCT 2026
# ============================================================================
"""
Flow and Notification Actions

Node actions that do not touch the carrier portal:

    start / end        markers
    wait               inline sleep, or a scheduled continuation when long
    condition          evaluates a Condition and exposes the result
    send_email         hands a message to the Notifier
    create_reminder    schedules a follow-up in the ReminderStore
"""

import asyncio
import logging
from datetime import datetime, timedelta

from core.models import Condition
from core.errors import MissingParameter
from handlers.registry import register_action, ActionContext, ActionResult
from orchestrator.engine.evaluator import ConditionEvaluator

logger = logging.getLogger(__name__)


# ============================================================================
# MARKERS
# ============================================================================

@register_action("start", description="Entry marker")
async def start_action(ctx: ActionContext) -> ActionResult:
    return ActionResult.ok(started=True)


@register_action("end", description="Exit marker")
async def end_action(ctx: ActionContext) -> ActionResult:
    return ActionResult.ok(completed=True)


# ============================================================================
# WAIT
# ============================================================================

@register_action("wait", description="Delay the workflow")
async def wait_action(ctx: ActionContext) -> ActionResult:
    """
    Short waits are awaited in place. Waits longer than
    ExecutorDefaults.inline_wait_max_ms return a suspend_until so the
    executor persists resume_at and releases the worker.
    """
    defaults = ctx.services.defaults
    duration_ms = ctx.params.get("duration_ms")
    if duration_ms is None:
        duration_ms = defaults.default_wait_ms
    duration_ms = int(duration_ms)

    if duration_ms <= defaults.inline_wait_max_ms:
        await asyncio.sleep(duration_ms / 1000)
        return ActionResult.ok(waited=True, duration_ms=duration_ms)

    resume_at = datetime.utcnow() + timedelta(milliseconds=duration_ms)
    logger.info(f"Wait node {ctx.node.id} suspends execution until {resume_at.isoformat()}")
    return ActionResult.suspended(
        resume_at,
        waited=True,
        duration_ms=duration_ms,
        resume_at=resume_at.isoformat(),
    )


# ============================================================================
# CONDITION
# ============================================================================

_default_evaluator = ConditionEvaluator()


@register_action("condition", description="Evaluate a condition against the context")
async def condition_action(ctx: ActionContext) -> ActionResult:
    raw = ctx.params.get("condition")
    if not raw:
        raise MissingParameter("condition", node_id=ctx.node.id, node_type=ctx.node_type)

    condition = raw if isinstance(raw, Condition) else Condition.model_validate(raw)
    evaluator = ctx.services.condition_evaluator or _default_evaluator
    result = evaluator.evaluate(condition, ctx.context)

    return ActionResult.ok(condition_evaluated=True, result=result)


# ============================================================================
# NOTIFICATIONS
# ============================================================================

@register_action("send_email", description="Send an email through the Notifier")
async def send_email_action(ctx: ActionContext) -> ActionResult:
    to = ctx.params.get("to") or ctx.context.get("recipient_email")
    if not to:
        raise MissingParameter("to", node_id=ctx.node.id, node_type=ctx.node_type)

    subject = ctx.params.get("subject") or "Claim Update"
    body = ctx.params.get("body") or ""

    notifier = ctx.services.require("notifier", ctx)
    await notifier.send_email(to, subject, body)

    return ActionResult.ok(email_sent=True, to=to, subject=subject)


@register_action("create_reminder", description="Schedule a follow-up reminder")
async def create_reminder_action(ctx: ActionContext) -> ActionResult:
    case_id = ctx.require_case_id()

    days = ctx.params.get("days_from_now")
    if days is None:
        days = ctx.services.defaults.reminder_days
    message = ctx.params.get("message") or "Follow up on case"
    reminder_date = datetime.utcnow() + timedelta(days=int(days))

    store = ctx.services.require("reminder_store", ctx)
    reminder_id = await store.create_reminder(case_id, reminder_date, message)

    return ActionResult.ok(
        reminder_created=True,
        reminder_id=reminder_id,
        reminder_date=reminder_date.isoformat(),
        message=message,
    )


__all__ = [
    "start_action",
    "end_action",
    "wait_action",
    "condition_action",
    "send_email_action",
    "create_reminder_action",
]
