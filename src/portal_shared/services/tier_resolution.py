"""Subscription tier resolution and role derivation.

Tier sources, first match wins:

1. ``metadata.tier`` on the subscription or checkout session
2. ``price.metadata.tier`` on the first subscription item or line item
3. (subscriptions) the configured price ID table, which cannot yield basic
4. (checkout sessions) a re-fetch with line items expanded, feeding step 2

``None`` means "unknown, leave the stored tier alone", never "basic".
"""

from typing import Any

from ..models.enums import Tier, UserRole
from ..models.stripe_events import CheckoutSession, FullSubscription, Price
from ..utils.logging import get_logger
from .stripe_service import StripeService

logger = get_logger(__name__)

LINE_ITEM_EXPAND = ["line_items.data.price"]


def as_tier(value: Any) -> Tier | None:
    """Normalise a raw tier string; anything unrecognised is None."""
    if isinstance(value, Tier):
        return value
    if not isinstance(value, str):
        return None
    try:
        return Tier(value.strip().lower())
    except ValueError:
        return None


def _price_metadata_tier(price: Price | None) -> Tier | None:
    if price is None:
        return None
    return as_tier(price.metadata.get("tier"))


def derive_role_from_tier(tier: Tier, current_role: UserRole | None) -> UserRole | None:
    """Role a user should hold after moving to ``tier``.

    Admins and customers are never touched. Business grants
    business_owner; dropping to pro or basic demotes business roles to
    tradesperson.
    """
    if current_role in (UserRole.ADMIN, UserRole.CUSTOMER):
        return current_role
    if tier == Tier.BUSINESS:
        return UserRole.BUSINESS_OWNER
    if current_role in (UserRole.BUSINESS_OWNER, UserRole.MANAGER):
        return UserRole.TRADESPERSON
    return current_role or UserRole.TRADESPERSON


class TierResolver:
    """Resolves the tier implied by a Stripe subscription or checkout session."""

    def __init__(self, price_tiers: dict[str, Tier], stripe_service: StripeService) -> None:
        self._price_tiers = price_tiers
        self._stripe = stripe_service

    def tier_from_subscription(self, subscription: FullSubscription) -> Tier | None:
        tier = as_tier(subscription.metadata.get("tier"))
        if tier:
            return tier

        price = subscription.first_price
        tier = _price_metadata_tier(price)
        if tier:
            return tier

        if price is not None and price.id:
            return self._price_tiers.get(price.id)
        return None

    def tier_from_checkout_session(self, session: CheckoutSession) -> Tier | None:
        """Resolve the tier for a completed checkout session.

        May call Stripe to expand the session's line items. A failed
        lookup is logged and resolves to None.
        """
        tier = as_tier(session.metadata.get("tier"))
        if tier:
            return tier

        tier = _price_metadata_tier(session.first_line_price)
        if tier:
            return tier

        try:
            expanded = CheckoutSession.model_validate(
                self._stripe.retrieve_checkout_session(session.id, expand=LINE_ITEM_EXPAND)
            )
        except Exception as e:
            logger.warning("Could not expand checkout session %s: %s", session.id, e)
            return None
        return _price_metadata_tier(expanded.first_line_price)
