"""Unit tests for settings, Stripe event parsing and user models."""

import pytest
from pydantic import ValidationError

from conftest import make_subscription
from portal_shared.config import WebhookSettings
from portal_shared.models import (
    AccountUpdatedEvent,
    CheckoutSessionCompletedEvent,
    FullSubscription,
    InvoicePaymentProblemEvent,
    PaymentIntentSucceededEvent,
    SubscriptionChangedEvent,
    Tier,
    UnhandledEvent,
    User,
    UserUpdate,
    parse_event,
)


class TestWebhookSettings:
    def test_from_env(self):
        settings = WebhookSettings.from_env(
            {
                "ENVIRONMENT": "prod",
                "STRIPE_WEBHOOK_SECRET": "whsec_1",
                "STRIPE_PRO_PRICE_MONTHLY": "price_pm",
                "STRIPE_BUSINESS_PRICE_YEARLY": "price_by",
                "ALERT_WEBHOOK_URL": "  ",
            }
        )

        assert settings.environment == "prod"
        assert settings.stripe_webhook_secret == "whsec_1"
        assert settings.alert_webhook_url is None
        assert settings.app_url == "http://localhost:3000"

    def test_price_tiers_skip_unset_prices(self):
        settings = WebhookSettings(stripe_pro_price_monthly="price_pm", stripe_business_price_yearly="price_by")

        assert settings.price_tiers() == {"price_pm": Tier.PRO, "price_by": Tier.BUSINESS}


class TestParseEvent:
    @pytest.mark.parametrize(
        ("event_type", "obj", "expected"),
        [
            ("checkout.session.completed", {"id": "cs_1"}, CheckoutSessionCompletedEvent),
            ("customer.subscription.created", {"id": "sub_1"}, SubscriptionChangedEvent),
            ("customer.subscription.deleted", {"id": "sub_1"}, SubscriptionChangedEvent),
            ("payment_intent.succeeded", {"id": "pi_1", "created": 1}, PaymentIntentSucceededEvent),
            ("invoice.payment_action_required", {"id": "in_1"}, InvoicePaymentProblemEvent),
            ("account.updated", {"id": "acct_1"}, AccountUpdatedEvent),
            ("payment_intent.created", {"id": "pi_1"}, UnhandledEvent),
        ],
    )
    def test_variant_by_type(self, event_type, obj, expected):
        event = parse_event({"id": "evt_1", "type": event_type, "data": {"object": obj}})

        assert isinstance(event, expected)
        assert event.id == "evt_1"

    def test_partial_subscription_payload(self):
        event = parse_event(
            {"id": "evt_1", "type": "customer.subscription.updated", "data": {"object": {"id": "sub_1"}}}
        )

        assert event.data.object.id == "sub_1"
        assert event.data.object.customer is None

    def test_null_metadata_is_empty(self):
        event = parse_event(
            {
                "id": "evt_1",
                "type": "payment_intent.succeeded",
                "data": {"object": {"id": "pi_1", "created": 1, "metadata": None}},
            }
        )

        assert event.data.object.metadata == {}

    def test_malformed_known_type_raises(self):
        with pytest.raises(ValidationError):
            parse_event({"id": "evt_1", "type": "payment_intent.succeeded", "data": {}})

    def test_missing_id_parses_as_empty(self):
        event = parse_event({"type": "account.updated", "data": {"object": {"id": "acct_1"}}})

        assert event.id == ""


class TestFullSubscription:
    def test_requires_customer_and_status(self):
        with pytest.raises(ValidationError):
            FullSubscription.model_validate({"id": "sub_1"})

    def test_embedded_customer_id(self):
        payload = make_subscription()
        payload["customer"] = {"id": "cus_embedded", "object": "customer"}

        assert FullSubscription.model_validate(payload).customer_id == "cus_embedded"


class TestUser:
    @pytest.mark.parametrize(
        ("fields", "expected"),
        [
            ({"name": "  Sam  "}, "Sam"),
            ({"name": " ", "first_name": "Toni", "last_name": "Pipe"}, "Toni Pipe"),
            ({"first_name": "Toni"}, "Toni"),
            ({}, "there"),
        ],
    )
    def test_display_name(self, fields, expected):
        assert User(user_id="u1", **fields).display_name == expected

    def test_update_serialises_only_set_fields(self):
        update = UserUpdate(subscription_status="past_due")
        update.subscription_tier = Tier.PRO

        assert update.to_item_fields() == {"subscription_status": "past_due", "subscription_tier": "pro"}
