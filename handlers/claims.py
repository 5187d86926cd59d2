# ============================================================================
# CLAIM ACTIONS
# ============================================================================
# EPOCH: 1 - CLAIM AUTOMATION
# STATUS: Handlers - Case and carrier claim node actions
# PURPOSE: generate_letter, file_claim, submit_to_portal, update_status,
#          generate_evidence_package
# CREATED: 19 OCT 2026
# ============================================================================
"""
Claim Actions

Node actions that read or advance a case. All of them require `case_id` in
the execution context.

file_claim and submit_to_portal do not drive the browser themselves: they
enqueue a submission and return immediately. The submission queue files the
claim in the background and records the claim number on the case.
"""

import logging

from core.contracts import SubmissionPriority, SubmissionType
from core.errors import CaseNotFound, MissingCredential
from core.models import CaseRecord
from handlers.registry import register_action, ActionContext, ActionResult

logger = logging.getLogger(__name__)


async def _load_case(ctx: ActionContext) -> CaseRecord:
    case_id = ctx.require_case_id()
    store = ctx.services.require("case_store", ctx)
    case = await store.get_case(case_id)
    if case is None:
        raise CaseNotFound(case_id, node_id=ctx.node.id, node_type=ctx.node_type)
    return case


# ============================================================================
# LETTERS
# ============================================================================

@register_action("generate_letter", description="Generate a dispute letter for the case")
async def generate_letter_action(ctx: ActionContext) -> ActionResult:
    case = await _load_case(ctx)

    tone = ctx.params.get("tone") or "professional"
    fmt = ctx.params.get("format") or "markdown"
    generator = ctx.services.require("letter_generator", ctx)

    content = await generator.generate(
        case, tone=tone, format=fmt, template=ctx.params.get("template")
    )

    return ActionResult.ok(
        letter_generated=True,
        letter_content=content,
        tone=tone,
        format=fmt,
    )


# ============================================================================
# PORTAL SUBMISSION
# ============================================================================

@register_action(
    "file_claim",
    "submit_to_portal",
    description="Queue a carrier portal submission for the case",
)
async def file_claim_action(ctx: ActionContext) -> ActionResult:
    """
    Enqueue a portal submission.

    The credential comes from the node's credential_id, falling back to
    credential_id in the execution context.
    """
    case = await _load_case(ctx)

    credential_id = ctx.params.get("credential_id") or ctx.context.get("credential_id")
    if not credential_id:
        raise MissingCredential(node_id=ctx.node.id, node_type=ctx.node_type)

    queue = ctx.services.require("submission_queue", ctx)
    item = await queue.enqueue(
        case_id=case.case_id,
        credential_id=credential_id,
        carrier=case.carrier,
        submission_type=SubmissionType(ctx.params.get("submission_type") or SubmissionType.NEW_CLAIM),
        priority=SubmissionPriority(ctx.params.get("priority") or SubmissionPriority.HIGH),
        created_by=f"workflow:{ctx.execution_id}",
        case=case,
    )

    logger.info(
        f"Queued submission {item.submission_id} for case {case.case_id} "
        f"({item.carrier.value}, priority={item.priority.value})"
    )
    return ActionResult.ok(
        queued=True,
        claim_filed=True,
        submission_id=item.submission_id,
        carrier=item.carrier.value,
    )


# ============================================================================
# CASE UPDATES
# ============================================================================

@register_action("update_status", description="Set the case status")
async def update_status_action(ctx: ActionContext) -> ActionResult:
    case_id = ctx.require_case_id()
    status = ctx.require_param("status")

    store = ctx.services.require("case_store", ctx)
    await store.update_status(case_id, status)

    return ActionResult.ok(status_updated=True, new_status=status)


@register_action("generate_evidence_package", description="Assemble the case evidence package")
async def generate_evidence_package_action(ctx: ActionContext) -> ActionResult:
    case = await _load_case(ctx)
    packager = ctx.services.require("evidence_packager", ctx)
    package_id = await packager.build_package(case)

    return ActionResult.ok(
        evidence_package_generated=True,
        case_id=case.case_id,
        package_id=package_id,
    )


__all__ = [
    "generate_letter_action",
    "file_claim_action",
    "update_status_action",
    "generate_evidence_package_action",
]
