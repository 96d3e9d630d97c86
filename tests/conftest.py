"""Pytest configuration and fixtures for the billing webhook tests.

This module provides reusable fixtures for testing:
- DynamoDB mocking with moto (users, jobs, quotes, webhook events)
- Settings with a known webhook secret and price IDs
- Mocked Stripe and email collaborators
- Stripe-style webhook signatures
"""

import hashlib
import hmac
import os
import time
from typing import Any, Generator
from unittest.mock import MagicMock

import boto3
import pytest
import stripe
from moto import mock_aws

# === Environment Setup ===

# Set before any service is constructed so table names resolve to test-portal-*
os.environ.setdefault("AWS_DEFAULT_REGION", "eu-west-1")
os.environ["DYNAMODB_TABLE_PREFIX"] = "test-portal"
os.environ.setdefault("AWS_ACCESS_KEY_ID", "testing")
os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "testing")

from portal_shared.config import WebhookSettings  # noqa: E402
from portal_shared.services import (  # noqa: E402
    DynamoDBService,
    EmailService,
    ResilientWriter,
    StripeService,
)

TEST_WEBHOOK_SECRET = "whsec_test_secret_for_testing"
PRO_MONTHLY = "price_pro_monthly"
PRO_YEARLY = "price_pro_yearly"
BUSINESS_MONTHLY = "price_business_monthly"
BUSINESS_YEARLY = "price_business_yearly"


def create_stripe_signature(payload: bytes, secret: str = TEST_WEBHOOK_SECRET) -> str:
    """Create a valid Stripe webhook signature.

    Stripe signatures use HMAC-SHA256 with format: t={timestamp},v1={signature}
    """
    timestamp = str(int(time.time()))
    signed_payload = f"{timestamp}.{payload.decode('utf-8')}"
    signature = hmac.new(
        secret.encode("utf-8"),
        signed_payload.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()
    return f"t={timestamp},v1={signature}"


# === Settings ===


@pytest.fixture
def settings() -> WebhookSettings:
    return WebhookSettings(
        environment="test",
        stripe_secret_key="sk_test_abc123",
        stripe_webhook_secret=TEST_WEBHOOK_SECRET,
        stripe_pro_price_monthly=PRO_MONTHLY,
        stripe_pro_price_yearly=PRO_YEARLY,
        stripe_business_price_monthly=BUSINESS_MONTHLY,
        stripe_business_price_yearly=BUSINESS_YEARLY,
    )


# === DynamoDB Fixtures ===


@pytest.fixture
def dynamodb_client() -> Generator[Any, None, None]:
    """Create a mocked DynamoDB client."""
    with mock_aws():
        yield boto3.client("dynamodb", region_name="eu-west-1")


@pytest.fixture
def create_tables(dynamodb_client: Any) -> None:
    """Create all tables the webhook pipeline uses."""
    tables = [
        {
            "TableName": "test-portal-users",
            "KeySchema": [{"AttributeName": "user_id", "KeyType": "HASH"}],
            "AttributeDefinitions": [
                {"AttributeName": "user_id", "AttributeType": "S"},
                {"AttributeName": "stripe_customer_id", "AttributeType": "S"},
            ],
            "GlobalSecondaryIndexes": [
                {
                    "IndexName": "stripe_customer_id-index",
                    "KeySchema": [{"AttributeName": "stripe_customer_id", "KeyType": "HASH"}],
                    "Projection": {"ProjectionType": "ALL"},
                },
            ],
            "BillingMode": "PAY_PER_REQUEST",
        },
        {
            "TableName": "test-portal-jobs",
            "KeySchema": [{"AttributeName": "job_id", "KeyType": "HASH"}],
            "AttributeDefinitions": [{"AttributeName": "job_id", "AttributeType": "S"}],
            "BillingMode": "PAY_PER_REQUEST",
        },
        {
            "TableName": "test-portal-quotes",
            "KeySchema": [
                {"AttributeName": "job_id", "KeyType": "HASH"},
                {"AttributeName": "quote_id", "KeyType": "RANGE"},
            ],
            "AttributeDefinitions": [
                {"AttributeName": "job_id", "AttributeType": "S"},
                {"AttributeName": "quote_id", "AttributeType": "S"},
            ],
            "BillingMode": "PAY_PER_REQUEST",
        },
        {
            "TableName": "test-portal-stripe-webhook-events",
            "KeySchema": [{"AttributeName": "event_id", "KeyType": "HASH"}],
            "AttributeDefinitions": [{"AttributeName": "event_id", "AttributeType": "S"}],
            "BillingMode": "PAY_PER_REQUEST",
        },
    ]
    for table_config in tables:
        dynamodb_client.create_table(**table_config)


@pytest.fixture
def db(create_tables: None) -> DynamoDBService:
    """DynamoDBService bound to the mocked tables."""
    return DynamoDBService(environment="test", region_name="eu-west-1")


# === Collaborators ===


@pytest.fixture
def sleeps() -> list[float]:
    return []


@pytest.fixture
def writer(sleeps: list[float]) -> ResilientWriter:
    """Writer that records backoff delays instead of sleeping."""
    return ResilientWriter(sleep=sleeps.append)


@pytest.fixture
def mock_stripe() -> MagicMock:
    return MagicMock(spec=StripeService)


@pytest.fixture
def mock_emails() -> MagicMock:
    emails = MagicMock(spec=EmailService)
    emails.send_subscription_upgraded_email.return_value = True
    emails.send_deposit_paid_email.return_value = True
    emails.send_job_complete_email.return_value = True
    emails.send_final_payment_paid_email.return_value = True
    emails.send_stripe_onboarding_success_email.return_value = True
    return emails


# === Sample Data ===


@pytest.fixture
def sample_user() -> dict[str, Any]:
    return {
        "user_id": "user1",
        "email": "sam@example.com",
        "name": "Sam Plumber",
        "role": "tradesperson",
        "subscription_tier": "basic",
        "stripe_customer_id": "cus_1",
    }


def make_subscription(
    subscription_id: str = "sub_1",
    *,
    user_id: str | None = "user1",
    customer: str = "cus_1",
    status: str = "active",
    tier: str | None = None,
    price_id: str | None = None,
    price_tier: str | None = None,
    current_period_end: int | None = 1767225600,
    cancel_at: int | None = None,
    cancel_at_period_end: bool = False,
) -> dict[str, Any]:
    """A subscription as returned by the Stripe API (plain dict)."""
    metadata: dict[str, str] = {}
    if user_id:
        metadata["userId"] = user_id
    if tier:
        metadata["tier"] = tier
    price: dict[str, Any] = {"id": price_id, "metadata": {}}
    if price_tier:
        price["metadata"]["tier"] = price_tier
    return {
        "id": subscription_id,
        "object": "subscription",
        "customer": customer,
        "status": status,
        "metadata": metadata,
        "items": {"object": "list", "data": [{"price": price}]},
        "current_period_end": current_period_end,
        "cancel_at": cancel_at,
        "cancel_at_period_end": cancel_at_period_end,
    }


def as_stripe_object(values: dict[str, Any]) -> stripe.StripeObject:
    """Wrap a payload the way StripeClient returns it."""
    return stripe.StripeObject.construct_from(values, None)
