"""User profile models (the subscription-relevant subset)."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .enums import SubscriptionStatus, Tier, UserRole


class User(BaseModel):
    """A marketplace user as stored in the users table.

    Only the fields the billing pipeline reads or writes are modelled;
    anything else on the item is ignored.
    """

    model_config = ConfigDict(extra="ignore")

    user_id: str = Field(..., description="Primary key")
    email: str | None = None
    name: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    role: UserRole | None = None

    # Stored as free text so an unknown legacy value never breaks a read;
    # callers normalise it with tier_resolution.as_tier().
    subscription_tier: str | None = None
    subscription_status: SubscriptionStatus | None = None
    stripe_customer_id: str | None = None
    stripe_subscription_id: str | None = None
    stripe_current_period_end: datetime | None = None
    stripe_cancel_at_period_end: bool = False
    stripe_cancel_at: datetime | None = None

    stripe_onboarding_complete: bool = False
    stripe_charges_enabled: bool = False

    @property
    def display_name(self) -> str:
        """Name used in email greetings, falling back to "there"."""
        if self.name and self.name.strip():
            return self.name.strip()
        joined = " ".join(part for part in (self.first_name, self.last_name) if part).strip()
        return joined or "there"

    @classmethod
    def from_item(cls, item: dict[str, Any]) -> "User":
        """Build a User from a raw DynamoDB item."""
        return cls.model_validate(item)


class UserUpdate(BaseModel):
    """Partial update for a user profile.

    Only fields that were explicitly set are written, so an explicit
    ``None`` clears the stored value while an omitted field is untouched.
    """

    subscription_tier: Tier | None = None
    subscription_status: SubscriptionStatus | None = None
    stripe_customer_id: str | None = None
    stripe_subscription_id: str | None = None
    stripe_current_period_end: datetime | None = None
    stripe_cancel_at_period_end: bool | None = None
    stripe_cancel_at: datetime | None = None
    role: UserRole | None = None
    stripe_onboarding_complete: bool | None = None
    stripe_charges_enabled: bool | None = None

    def to_item_fields(self) -> dict[str, Any]:
        """Serialise set fields for storage (datetimes as ISO strings)."""
        return self.model_dump(mode="json", exclude_unset=True)
