"""Unit tests for checkout.session.completed handling."""

from datetime import datetime, timezone

import pytest

from conftest import make_subscription
from portal_shared.models import CheckoutSession, ProcessingResult
from portal_shared.services.checkout_handler import SUBSCRIPTION_EXPAND, CheckoutHandler
from portal_shared.services.stripe_service import StripeServiceError
from portal_shared.services.tier_resolution import TierResolver
from portal_shared.services.user_service import USERS_TABLE, UserService


@pytest.fixture
def users(db) -> UserService:
    return UserService(db)


@pytest.fixture
def handler(settings, mock_stripe, users, writer) -> CheckoutHandler:
    return CheckoutHandler(
        mock_stripe, TierResolver(settings.price_tiers(), mock_stripe), users, writer
    )


@pytest.fixture(autouse=True)
def stored_user(db, sample_user):
    user = dict(sample_user)
    del user["stripe_customer_id"]
    db.put_item(USERS_TABLE, user)


def _session(**overrides) -> CheckoutSession:
    payload = {
        "id": "cs_1",
        "mode": "subscription",
        "customer": "cus_9",
        "subscription": "sub_1",
        "metadata": {"userId": "user1", "tier": "business"},
    }
    payload.update(overrides)
    return CheckoutSession.model_validate(payload)


def test_subscription_checkout_seeds_state(handler, mock_stripe, users):
    mock_stripe.retrieve_subscription.return_value = make_subscription(
        cancel_at_period_end=True, cancel_at=1767225600
    )

    result = handler.handle_checkout_completed(_session())

    assert result == (ProcessingResult.SUCCESS, None)
    mock_stripe.retrieve_subscription.assert_called_once_with("sub_1", expand=SUBSCRIPTION_EXPAND)
    user = users.get_user_by_id("user1")
    assert user.subscription_status == "active"
    assert user.subscription_tier == "business"
    assert user.role == "business_owner"
    assert user.stripe_customer_id == "cus_9"
    assert user.stripe_subscription_id == "sub_1"
    assert user.stripe_cancel_at_period_end is True
    assert user.stripe_cancel_at == datetime(2026, 1, 1, tzinfo=timezone.utc)


def test_subscription_lookup_failure_uses_defaults(handler, mock_stripe, users):
    mock_stripe.retrieve_subscription.side_effect = StripeServiceError("timeout")

    result = handler.handle_checkout_completed(_session())

    assert result[0] == ProcessingResult.SUCCESS
    user = users.get_user_by_id("user1")
    assert user.subscription_status == "active"
    assert user.stripe_current_period_end is None
    assert user.stripe_cancel_at_period_end is False


def test_unresolved_tier_leaves_tier(handler, mock_stripe, users):
    mock_stripe.retrieve_subscription.return_value = make_subscription()
    mock_stripe.retrieve_checkout_session.return_value = {"id": "cs_1", "line_items": {"data": []}}

    handler.handle_checkout_completed(_session(metadata={"userId": "user1"}))

    user = users.get_user_by_id("user1")
    assert user.subscription_tier == "basic"
    assert user.role == "tradesperson"
    assert user.subscription_status == "active"


def test_missing_user_id_skips(handler, mock_stripe, users):
    result = handler.handle_checkout_completed(_session(metadata={"tier": "pro"}))

    assert result[0] == ProcessingResult.SKIPPED
    mock_stripe.retrieve_subscription.assert_not_called()
    assert users.get_user_by_id("user1").subscription_status is None


def test_payment_mode_is_deferred(handler, mock_stripe, users):
    result = handler.handle_checkout_completed(_session(mode="payment", subscription=None))

    assert result[0] == ProcessingResult.SKIPPED
    mock_stripe.retrieve_subscription.assert_not_called()
    assert users.get_user_by_id("user1").subscription_status is None


def test_unknown_mode_is_ignored(handler, users):
    result = handler.handle_checkout_completed(_session(mode="setup"))

    assert result == (ProcessingResult.SKIPPED, "Unhandled session mode: setup")
    assert users.get_user_by_id("user1").subscription_tier == "basic"


def test_unknown_user_is_error(handler, mock_stripe, users):
    result = handler.handle_checkout_completed(_session(metadata={"userId": "ghost"}))

    assert result[0] == ProcessingResult.ERROR
    assert users.get_user_by_id("ghost") is None
