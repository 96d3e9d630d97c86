"""Runtime settings for the billing webhook service."""

import os
from typing import Mapping

from pydantic import BaseModel

from .models.enums import Tier


class WebhookSettings(BaseModel):
    """Environment-derived configuration.

    Stripe secrets may also live in SSM Parameter Store; an empty value
    here means "look it up in SSM" (see StripeService).
    """

    environment: str = "dev"
    stripe_secret_key: str | None = None
    stripe_webhook_secret: str | None = None

    stripe_pro_price_monthly: str | None = None
    stripe_pro_price_yearly: str | None = None
    stripe_business_price_monthly: str | None = None
    stripe_business_price_yearly: str | None = None

    alert_webhook_url: str | None = None

    resend_api_key: str | None = None
    email_from: str = "Plumbers Portal <noreply@plumbersportal.co.uk>"
    app_url: str = "http://localhost:3000"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "WebhookSettings":
        """Read settings from environment variables (blank values count as unset)."""
        env = os.environ if environ is None else environ

        def read(name: str) -> str | None:
            value = env.get(name, "").strip()
            return value or None

        values = {
            "environment": read("ENVIRONMENT"),
            "stripe_secret_key": read("STRIPE_SECRET_KEY"),
            "stripe_webhook_secret": read("STRIPE_WEBHOOK_SECRET"),
            "stripe_pro_price_monthly": read("STRIPE_PRO_PRICE_MONTHLY"),
            "stripe_pro_price_yearly": read("STRIPE_PRO_PRICE_YEARLY"),
            "stripe_business_price_monthly": read("STRIPE_BUSINESS_PRICE_MONTHLY"),
            "stripe_business_price_yearly": read("STRIPE_BUSINESS_PRICE_YEARLY"),
            "alert_webhook_url": read("ALERT_WEBHOOK_URL"),
            "resend_api_key": read("RESEND_API_KEY"),
            "email_from": read("EMAIL_FROM"),
            "app_url": read("APP_URL"),
        }
        return cls(**{key: value for key, value in values.items() if value is not None})

    def price_tiers(self) -> dict[str, Tier]:
        """Static Price ID -> Tier table for the configured paid prices.

        Basic has no paid price, so this table can never resolve it.
        """
        pairs = [
            (self.stripe_pro_price_monthly, Tier.PRO),
            (self.stripe_pro_price_yearly, Tier.PRO),
            (self.stripe_business_price_monthly, Tier.BUSINESS),
            (self.stripe_business_price_yearly, Tier.BUSINESS),
        ]
        return {price_id: tier for price_id, tier in pairs if price_id}
