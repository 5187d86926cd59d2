# ============================================================================
# PORTAL ROUTES TESTS
# ============================================================================
# EPOCH: 1 - CLAIM AUTOMATION
# STATUS: Tests - Credential, queue, history and portal config endpoints
# PURPOSE: Verify api/portal_routes.py with mocked vault, queue and repo
# CREATED: 19 OCT 2026
# ============================================================================
"""
Portal Routes Tests

Run with:
    pytest tests/test_portal_routes.py -v
"""

import pytest
from datetime import datetime
from unittest.mock import AsyncMock, MagicMock

from fastapi import FastAPI
from fastapi.testclient import TestClient

from api.portal_routes import portal_router, set_services
from core.contracts import (
    Carrier,
    HistoryAction,
    HistoryStatus,
    SubmissionPriority,
    SubmissionStatus,
    ValidationStatus,
)
from core.errors import CaseNotFound, InvalidSubmissionTransition, SubmissionNotFound
from core.models import PortalCredential, SubmissionHistoryEntry, SubmissionQueueItem
from core.models.portal_config import default_config_for


# ============================================================================
# FIXTURES
# ============================================================================

def _make_credential():
    return PortalCredential(
        credential_id="cred-1",
        carrier=Carrier.FEDEX,
        account_name="Main",
        encrypted_username="ZW5jLXVzZXI=",
        encrypted_password="ZW5jLXBhc3M=",
        validation_status=ValidationStatus.VALID,
        last_validated=datetime(2026, 10, 18, 9, 30),
    )


def _make_item(status=SubmissionStatus.QUEUED):
    return SubmissionQueueItem(
        submission_id="sub-1",
        case_id="42",
        carrier=Carrier.FEDEX,
        credential_id="cred-1",
        status=status,
    )


@pytest.fixture
def services():
    vault = MagicMock()
    for name in ("store_credentials", "list_credentials", "delete_credentials", "test_credentials"):
        setattr(vault, name, AsyncMock())

    queue = MagicMock()
    for name in (
        "enqueue", "list_queue", "queue_stats", "process_queue", "get_submission",
        "cancel_submission", "retry_submission", "get_history",
    ):
        setattr(queue, name, AsyncMock())

    config_repo = MagicMock()
    for name in ("get", "list_all", "upsert"):
        setattr(config_repo, name, AsyncMock())

    return vault, queue, config_repo


@pytest.fixture
def client(services):
    app = FastAPI()
    app.include_router(portal_router, prefix="/api/v1")
    set_services(*services)
    return TestClient(app)


# ============================================================================
# CREDENTIALS
# ============================================================================

class TestCredentialRoutes:

    def test_store_never_echoes_secrets(self, client, services):
        vault, _, _ = services
        vault.store_credentials.return_value = _make_credential()

        resp = client.post("/api/v1/portal/credentials", json={
            "carrier": "FEDEX",
            "account_name": "Main",
            "username": "shipper@example.com",
            "password": "hunter2",
        })

        assert resp.status_code == 201
        body = resp.json()
        assert body["credential_id"] == "cred-1"
        assert "password" not in body and "encrypted_password" not in body
        assert "hunter2" not in resp.text
        assert vault.store_credentials.await_args.kwargs["password"] == "hunter2"

    def test_store_requires_password(self, client):
        resp = client.post("/api/v1/portal/credentials", json={
            "carrier": "FEDEX", "account_name": "Main", "username": "u", "password": "",
        })
        assert resp.status_code == 422

    def test_list_by_carrier(self, client, services):
        vault, _, _ = services
        vault.list_credentials.return_value = [_make_credential()]

        resp = client.get("/api/v1/portal/credentials?carrier=FEDEX")

        assert resp.json()["total"] == 1
        assert "encrypted_username" not in resp.json()["credentials"][0]
        vault.list_credentials.assert_awaited_once_with(Carrier.FEDEX)

    def test_delete(self, client, services):
        vault, _, _ = services
        vault.delete_credentials.return_value = True
        assert client.delete("/api/v1/portal/credentials/cred-1").status_code == 204

        vault.delete_credentials.return_value = False
        resp = client.delete("/api/v1/portal/credentials/cred-1")
        assert resp.status_code == 404
        assert resp.json()["detail"] == "Credentials not found: cred-1"

    def test_live_test(self, client, services):
        vault, _, _ = services
        vault.test_credentials.return_value = {"success": False, "message": "Login failed - credentials may be invalid"}

        resp = client.post("/api/v1/portal/credentials/cred-1/test")

        assert resp.status_code == 200
        assert resp.json()["success"] is False


# ============================================================================
# QUEUE
# ============================================================================

class TestQueueRoutes:

    def test_enqueue(self, client, services):
        _, queue, _ = services
        queue.enqueue.return_value = _make_item()

        resp = client.post("/api/v1/portal/queue", json={
            "case_id": "42", "credential_id": "cred-1", "priority": "urgent",
        })

        assert resp.status_code == 201
        assert resp.json()["submission_id"] == "sub-1"
        kwargs = queue.enqueue.await_args.kwargs
        assert kwargs["priority"] == SubmissionPriority.URGENT
        assert kwargs["carrier"] is None

    def test_enqueue_unknown_case(self, client, services):
        _, queue, _ = services
        queue.enqueue.side_effect = CaseNotFound("404")

        resp = client.post("/api/v1/portal/queue", json={"case_id": "404", "credential_id": "cred-1"})

        assert resp.status_code == 404
        assert resp.json()["detail"] == "Case not found: 404"

    def test_list_with_filters(self, client, services):
        _, queue, _ = services
        queue.list_queue.return_value = [_make_item(SubmissionStatus.FAILED)]

        resp = client.get("/api/v1/portal/queue?status=failed&carrier=FEDEX&limit=5")

        assert resp.json()["total"] == 1
        queue.list_queue.assert_awaited_once_with(
            status=SubmissionStatus.FAILED, carrier=Carrier.FEDEX, case_id=None, limit=5,
        )

    def test_stats_route_not_shadowed_by_item_route(self, client, services):
        _, queue, _ = services
        queue.queue_stats.return_value = {"queued": 2, "failed": 0}

        resp = client.get("/api/v1/portal/queue/stats")

        assert resp.status_code == 200
        assert resp.json() == {"counts": {"queued": 2, "failed": 0}}
        queue.get_submission.assert_not_awaited()

    def test_process_now(self, client, services):
        _, queue, _ = services
        queue.process_queue.return_value = {"processed": False, "message": "No submissions in queue"}

        resp = client.post("/api/v1/portal/queue/process")

        assert resp.json()["processed"] is False

    def test_get_missing_submission(self, client, services):
        _, queue, _ = services
        queue.get_submission.side_effect = SubmissionNotFound("nope")

        assert client.get("/api/v1/portal/queue/nope").status_code == 404

    def test_cancel_in_progress_conflict(self, client, services):
        _, queue, _ = services
        queue.cancel_submission.side_effect = InvalidSubmissionTransition("sub-1", "in_progress", "cancelled")

        resp = client.post("/api/v1/portal/queue/sub-1/cancel")

        assert resp.status_code == 409

    def test_retry(self, client, services):
        _, queue, _ = services
        queue.retry_submission.return_value = _make_item()

        resp = client.post("/api/v1/portal/queue/sub-1/retry")

        assert resp.status_code == 200
        assert resp.json()["status"] == "queued"

    def test_history(self, client, services):
        _, queue, _ = services
        queue.get_history.return_value = [
            SubmissionHistoryEntry(
                history_id=1,
                submission_id="sub-1",
                case_id="42",
                carrier=Carrier.FEDEX,
                action=HistoryAction.LOGIN,
                status=HistoryStatus.SUCCESS,
                message="Login successful",
            )
        ]

        resp = client.get("/api/v1/portal/history?case_id=42")

        assert resp.json()["total"] == 1
        assert resp.json()["entries"][0]["action"] == "login"
        queue.get_history.assert_awaited_once_with(case_id="42", submission_id=None, limit=200)


# ============================================================================
# PORTAL CONFIGS
# ============================================================================

class TestPortalConfigRoutes:

    def test_get_config(self, client, services):
        _, _, config_repo = services
        config_repo.get.return_value = default_config_for(Carrier.UPS)

        resp = client.get("/api/v1/portal/configs/UPS")

        assert resp.status_code == 200
        assert resp.json()["has_captcha"] is True

    def test_get_missing_config(self, client, services):
        _, _, config_repo = services
        config_repo.get.return_value = None

        resp = client.get("/api/v1/portal/configs/DHL")

        assert resp.status_code == 404
        assert resp.json()["detail"] == "Portal configuration not found for DHL"

    def test_unknown_carrier_rejected(self, client):
        assert client.get("/api/v1/portal/configs/ACME").status_code == 422

    def test_put_config(self, client, services):
        _, _, config_repo = services
        body = default_config_for(Carrier.USPS).model_dump(mode="json")
        body["max_concurrent_sessions"] = 2

        resp = client.put("/api/v1/portal/configs/USPS", json=body)

        assert resp.status_code == 200
        saved, = config_repo.upsert.await_args.args
        assert saved.max_concurrent_sessions == 2
        assert config_repo.upsert.await_args.kwargs == {"overwrite": True}

    def test_put_carrier_mismatch(self, client, services):
        _, _, config_repo = services
        body = default_config_for(Carrier.USPS).model_dump(mode="json")

        resp = client.put("/api/v1/portal/configs/FEDEX", json=body)

        assert resp.status_code == 400
        config_repo.upsert.assert_not_awaited()

    def test_list_configs(self, client, services):
        _, _, config_repo = services
        config_repo.list_all.return_value = [default_config_for(Carrier.FEDEX)]

        resp = client.get("/api/v1/portal/configs")

        assert resp.json()["total"] == 1
        assert resp.json()["configs"][0]["carrier"] == "FEDEX"
