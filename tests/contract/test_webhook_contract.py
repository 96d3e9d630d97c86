"""Contract tests for the Stripe webhook HTTP endpoint.

Covers the HTTP surface: signature checks, status codes, error bodies and
the duplicate response. Requests are signed with the test secret the same
way Stripe signs them; DynamoDB is mocked with moto.
"""

import json
from typing import Any
from unittest.mock import MagicMock

import httpx
import pytest
from fastapi.testclient import TestClient

from conftest import create_stripe_signature
from portal_api.dependencies import Services, build_services
from portal_api.main import create_app
from portal_shared.config import WebhookSettings
from portal_shared.models import ProcessingResult
from portal_shared.services import StripeService, WebhookHandler
from portal_shared.services.event_ledger import WEBHOOK_EVENTS_TABLE
from portal_shared.services.user_service import USERS_TABLE

WEBHOOK_URL = "/api/webhooks/stripe"


@pytest.fixture
def services(settings, db) -> Services:
    alerts = httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(200)))
    return build_services(
        settings,
        db=db,
        stripe_service=StripeService(settings, client=MagicMock()),
        http_client=alerts,
    )


@pytest.fixture
def client(settings, services) -> TestClient:
    return TestClient(create_app(settings, services=services))


@pytest.fixture
def stored_user(db, sample_user) -> None:
    db.put_item(USERS_TABLE, sample_user)


def _account_event(event_id: str = "evt_acct_1") -> dict[str, Any]:
    return {
        "id": event_id,
        "object": "event",
        "type": "account.updated",
        "data": {
            "object": {
                "id": "acct_1",
                "object": "account",
                "metadata": {"userId": "user1"},
                "details_submitted": True,
                "payouts_enabled": True,
                "charges_enabled": True,
            }
        },
    }


def _post(client: TestClient, event: dict[str, Any], signature: str | None = "sign") -> httpx.Response:
    payload = json.dumps(event).encode()
    headers = {"Content-Type": "application/json"}
    if signature == "sign":
        headers["Stripe-Signature"] = create_stripe_signature(payload)
    elif signature is not None:
        headers["Stripe-Signature"] = signature
    return client.post(WEBHOOK_URL, content=payload, headers=headers)


class TestSignature:
    def test_missing_signature_is_rejected(self, client, db):
        response = _post(client, _account_event(), signature=None)

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["error_code"] == "ERR_WEBHOOK_002"
        assert db.get_item(WEBHOOK_EVENTS_TABLE, {"event_id": "evt_acct_1"}) is None

    def test_invalid_signature_is_rejected(self, client, db):
        response = _post(client, _account_event(), signature="t=1,v1=deadbeef")

        assert response.status_code == 400
        assert response.json()["error_code"] == "ERR_WEBHOOK_002"
        assert db.get_item(WEBHOOK_EVENTS_TABLE, {"event_id": "evt_acct_1"}) is None

    def test_missing_secret_is_server_error(self, db):
        settings = WebhookSettings()
        services = build_services(settings, db=db, stripe_service=StripeService(settings))
        client = TestClient(create_app(settings, services=services))

        response = _post(client, _account_event())

        assert response.status_code == 500
        assert response.json()["error_code"] == "ERR_WEBHOOK_001"


class TestProcessing:
    def test_valid_event_is_processed(self, client, db, stored_user):
        response = _post(client, _account_event())

        assert response.status_code == 200
        body = response.json()
        assert body["received"] is True
        assert body["event_id"] == "evt_acct_1"
        assert body["event_type"] == "account.updated"
        assert body["processing_result"] == "success"
        marker = db.get_item(WEBHOOK_EVENTS_TABLE, {"event_id": "evt_acct_1"})
        assert marker["processing_result"] == "success"
        assert marker["event_type"] == "account.updated"
        assert db.get_item(USERS_TABLE, {"user_id": "user1"})["stripe_onboarding_complete"] is True

    def test_redelivery_is_duplicate(self, client, stored_user):
        first = _post(client, _account_event())
        second = _post(client, _account_event())

        assert first.json()["processing_result"] == "success"
        assert second.status_code == 200
        assert second.json()["processing_result"] == ProcessingResult.DUPLICATE.value
        assert second.json()["message"] == "Event already processed"

    def test_unhandled_type_is_acknowledged(self, client):
        event = {"id": "evt_x", "type": "customer.created", "data": {"object": {"id": "cus_1"}}}

        response = _post(client, event)

        assert response.status_code == 200
        assert response.json()["processing_result"] == "skipped"

    def test_malformed_event_is_rejected(self, client, db):
        event = {"id": "evt_bad", "type": "payment_intent.succeeded", "data": {"object": {"amount": 100}}}

        response = _post(client, event)

        assert response.status_code == 400
        assert response.json()["error_code"] == "ERR_WEBHOOK_003"
        assert db.get_item(WEBHOOK_EVENTS_TABLE, {"event_id": "evt_bad"}) is None

    def test_handler_failure_is_server_error(self, client, services):
        failing = MagicMock(spec=WebhookHandler)
        failing.process.side_effect = RuntimeError("table unavailable")
        services.webhook_handler = failing

        response = _post(client, _account_event())

        assert response.status_code == 500
        body = response.json()
        assert body["error_code"] == "ERR_WEBHOOK_004"
        assert body["details"]["message"] == "table unavailable"


def test_ping(client):
    response = client.get("/api/ping")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    assert response.json()["service"] == "portal-billing"
