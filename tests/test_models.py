# ============================================================================
# MODEL TESTS
# ============================================================================
# EPOCH: 1 - CLAIM AUTOMATION
# STATUS: Tests - State transitions and helpers on the Pydantic models
# PURPOSE: Verify submission, execution, step, credential and case models
# CREATED: 19 OCT 2026
# ============================================================================
"""
Model Tests

Run with:
    pytest tests/test_models.py -v
"""

import pytest
from datetime import datetime, timedelta

from core.contracts import (
    Carrier,
    ExecutionStatus,
    HistoryAction,
    HistoryStatus,
    StepStatus,
    SubmissionPriority,
    SubmissionStatus,
)
from core.models import (
    CaseRecord,
    CredentialSecrets,
    PortalCredential,
    SubmissionHistoryEntry,
    SubmissionQueueItem,
    WorkflowExecution,
    WorkflowExecutionStep,
)
from core.models.portal_config import DEFAULT_PORTAL_CONFIGS, default_config_for


# ============================================================================
# HELPERS
# ============================================================================

def _make_item(**overrides):
    data = dict(
        submission_id="sub-1",
        case_id="42",
        carrier=Carrier.FEDEX,
        credential_id="cred-1",
    )
    data.update(overrides)
    return SubmissionQueueItem(**data)


def _make_execution(status=ExecutionStatus.PENDING):
    return WorkflowExecution(execution_id="exec-1", workflow_id="wf-1", status=status)


# ============================================================================
# SUBMISSION QUEUE ITEM
# ============================================================================

class TestSubmissionQueueItem:

    def test_defaults(self):
        item = _make_item()
        assert item.status == SubmissionStatus.QUEUED
        assert item.priority == SubmissionPriority.MEDIUM
        assert item.attempt_count == 0
        assert item.attempts_remaining == 3
        assert item.version == 1

    def test_is_ready(self):
        now = datetime.utcnow()
        assert _make_item(scheduled_for=now - timedelta(seconds=1)).is_ready(now)
        assert not _make_item(scheduled_for=now + timedelta(minutes=5)).is_ready(now)
        assert not _make_item(
            scheduled_for=now - timedelta(minutes=1),
            next_attempt_at=now + timedelta(minutes=1),
        ).is_ready(now)
        assert not _make_item(status=SubmissionStatus.FAILED).is_ready(now)

    def test_queue_order_prefers_priority_then_schedule(self):
        now = datetime.utcnow()
        items = [
            _make_item(submission_id="low", priority=SubmissionPriority.LOW, scheduled_for=now - timedelta(hours=1)),
            _make_item(submission_id="urgent-late", priority=SubmissionPriority.URGENT, scheduled_for=now),
            _make_item(submission_id="urgent-early", priority=SubmissionPriority.URGENT, scheduled_for=now - timedelta(minutes=1)),
            _make_item(submission_id="high", priority=SubmissionPriority.HIGH, scheduled_for=now - timedelta(hours=2)),
        ]

        ordered = [i.submission_id for i in sorted(items, key=lambda i: i.queue_order)]

        assert ordered == ["urgent-early", "urgent-late", "high", "low"]

    def test_mark_in_progress_counts_attempt(self):
        item = _make_item()
        item.mark_in_progress()

        assert item.status == SubmissionStatus.IN_PROGRESS
        assert item.attempt_count == 1
        assert item.started_at is not None
        with pytest.raises(ValueError):
            item.mark_in_progress()

    def test_retryable_failure_backs_off(self):
        item = _make_item()
        item.mark_in_progress()

        status = item.record_failed_attempt("Portal timeout", backoff_seconds=300)

        assert status == SubmissionStatus.QUEUED
        delay = item.next_attempt_at - datetime.utcnow()
        assert timedelta(seconds=295) < delay <= timedelta(seconds=300)
        assert item.error_message == "Portal timeout"
        assert not item.is_ready()

    def test_failure_after_last_attempt(self):
        item = _make_item(max_attempts=1)
        item.mark_in_progress()

        status = item.record_failed_attempt("Login failed")

        assert status == SubmissionStatus.FAILED
        assert item.next_attempt_at is None
        assert item.completed_at is not None
        assert item.attempts_remaining == 0

    def test_non_retryable_failure(self):
        item = _make_item()
        item.mark_in_progress()
        assert item.record_failed_attempt("No config", retryable=False) == SubmissionStatus.FAILED

    def test_error_message_truncated(self):
        item = _make_item()
        item.mark_in_progress()
        item.record_failed_attempt("x" * 5000)
        assert len(item.error_message) == 2000

    def test_completed_claim_number_falls_back_to_confirmation(self):
        item = _make_item()
        item.mark_in_progress()

        item.mark_completed("CONF-123")

        assert item.status == SubmissionStatus.COMPLETED
        assert item.claim_number == "CONF-123"
        assert item.completed_at is not None

    def test_needs_operator(self):
        item = _make_item()
        item.mark_in_progress()

        item.mark_needs_operator(SubmissionStatus.NEEDS_CAPTCHA, "CAPTCHA detected")

        assert item.status == SubmissionStatus.NEEDS_CAPTCHA
        assert item.can_retry()
        with pytest.raises(ValueError):
            item.mark_needs_operator(SubmissionStatus.FAILED, "not an operator status")

    def test_cancel_only_when_queued(self):
        item = _make_item()
        item.mark_cancelled()
        assert item.status == SubmissionStatus.CANCELLED

        running = _make_item()
        running.mark_in_progress()
        with pytest.raises(ValueError):
            running.mark_cancelled()

    def test_reset_for_retry_restores_attempt_budget(self):
        item = _make_item(max_attempts=1)
        item.mark_in_progress()
        item.record_failed_attempt("Login failed")

        item.reset_for_retry()

        assert item.status == SubmissionStatus.QUEUED
        assert item.attempt_count == 0
        assert item.error_message is None
        assert item.completed_at is None
        assert item.is_ready(datetime.utcnow() + timedelta(seconds=1))

    def test_reset_rejected_while_queued(self):
        with pytest.raises(ValueError):
            _make_item().reset_for_retry()

    def test_history_entries(self):
        item = _make_item()

        ok = SubmissionHistoryEntry.success(item, HistoryAction.LOGIN, "Login successful")
        bad = SubmissionHistoryEntry.failure(item, HistoryAction.SUBMIT, "y" * 3000, {"step": "submit"})

        assert ok.status == HistoryStatus.SUCCESS
        assert ok.case_id == "42" and ok.carrier == Carrier.FEDEX
        assert bad.status == HistoryStatus.FAILED
        assert len(bad.message) == 2000
        assert bad.details == {"step": "submit"}


# ============================================================================
# WORKFLOW EXECUTION
# ============================================================================

class TestWorkflowExecution:

    @pytest.mark.parametrize("current, target, allowed", [
        (ExecutionStatus.PENDING, ExecutionStatus.RUNNING, True),
        (ExecutionStatus.PENDING, ExecutionStatus.PAUSED, False),
        (ExecutionStatus.RUNNING, ExecutionStatus.PAUSED, True),
        (ExecutionStatus.RUNNING, ExecutionStatus.FAILED, True),
        (ExecutionStatus.PAUSED, ExecutionStatus.RUNNING, True),
        (ExecutionStatus.PAUSED, ExecutionStatus.COMPLETED, False),
        (ExecutionStatus.COMPLETED, ExecutionStatus.RUNNING, False),
        (ExecutionStatus.CANCELLED, ExecutionStatus.RUNNING, False),
        (ExecutionStatus.FAILED, ExecutionStatus.FAILED, True),
    ])
    def test_can_transition_to(self, current, target, allowed):
        assert _make_execution(current).can_transition_to(target) is allowed

    def test_full_lifecycle(self):
        execution = _make_execution()

        execution.mark_running()
        started = execution.started_at
        execution.mark_paused()
        execution.mark_resumed()
        execution.mark_completed()

        assert execution.status == ExecutionStatus.COMPLETED
        assert execution.started_at == started
        assert execution.paused_at is not None and execution.resumed_at is not None
        assert execution.is_terminal
        assert execution.duration_seconds >= 0

    def test_pause_keeps_resume_at(self):
        execution = _make_execution(ExecutionStatus.RUNNING)
        resume_at = datetime.utcnow() + timedelta(hours=1)
        execution.resume_at = resume_at

        execution.mark_paused()

        assert execution.resume_at == resume_at

    def test_cancel_clears_resume_at(self):
        execution = _make_execution(ExecutionStatus.PAUSED)
        execution.resume_at = datetime.utcnow()

        execution.mark_cancelled()

        assert execution.resume_at is None
        assert execution.completed_at is not None

    def test_resume_requires_paused(self):
        with pytest.raises(ValueError):
            _make_execution(ExecutionStatus.RUNNING).mark_resumed()

    def test_completed_cannot_fail(self):
        execution = _make_execution(ExecutionStatus.COMPLETED)
        with pytest.raises(ValueError, match="Cannot transition from completed to failed"):
            execution.mark_failed("late failure")

    def test_duration_none_before_start(self):
        assert _make_execution().duration_seconds is None

    def test_computed_fields_serialized(self):
        data = _make_execution(ExecutionStatus.FAILED).model_dump(mode="json")
        assert data["is_terminal"] is True
        assert data["duration_seconds"] is None


# ============================================================================
# EXECUTION STEP
# ============================================================================

class TestWorkflowExecutionStep:

    def _make_step(self):
        return WorkflowExecutionStep(
            step_id="step-1",
            execution_id="exec-1",
            node_id="letter",
            node_type="generate_letter",
            started_at=datetime.utcnow() - timedelta(milliseconds=250),
        )

    def test_completed_step_duration(self):
        step = self._make_step()

        step.mark_completed({"letter_generated": True})

        assert step.status == StepStatus.COMPLETED
        assert step.output == {"letter_generated": True}
        assert step.duration_ms >= 250

    def test_failed_step(self):
        step = self._make_step()

        step.mark_failed("Case not found: 42", {"error_type": "CaseNotFound"})

        assert step.status == StepStatus.FAILED
        assert step.error_details == {"error_type": "CaseNotFound"}
        with pytest.raises(ValueError):
            step.mark_completed({})


# ============================================================================
# CREDENTIALS + CASES + PORTAL CONFIGS
# ============================================================================

class TestCredentialModels:

    def test_public_view_excludes_encrypted_columns(self):
        credential = PortalCredential(
            credential_id="cred-1",
            carrier=Carrier.UPS,
            account_name="Warehouse",
            encrypted_username="dXNlcg==",
            encrypted_password="cGFzcw==",
            encrypted_two_factor_phone="cGhvbmU=",
        )

        view = credential.public_view()

        assert view["credential_id"] == "cred-1"
        assert not any(key.startswith("encrypted_") for key in view)

    def test_secrets_repr_is_masked(self):
        secrets = CredentialSecrets(
            credential_id="cred-1",
            carrier=Carrier.UPS,
            username="shipper@example.com",
            password="hunter2",
        )

        assert "hunter2" not in repr(secrets)
        assert "shipper@example.com" not in str(secrets)
        assert "'***'" in repr(secrets)


class TestCaseRecord:

    def test_form_data_snapshot(self):
        case = CaseRecord(
            case_id="42",
            carrier=Carrier.FEDEX,
            tracking_id="794600000000",
            claimed_amount=12550,
            damage_description="Crushed box",
        )

        form = case.to_form_data()

        assert form["tracking_number"] == "794600000000"
        assert form["claim_amount"] == 125.5
        assert form["damage_description"] == "Crushed box"


class TestPortalConfigDefaults:

    def test_every_carrier_has_a_default(self):
        assert {c.carrier for c in DEFAULT_PORTAL_CONFIGS} == set(Carrier)

    def test_default_is_a_copy(self):
        config = default_config_for(Carrier.FEDEX)
        config.login_selectors.username = "#changed"

        assert default_config_for(Carrier.FEDEX).login_selectors.username != "#changed"
