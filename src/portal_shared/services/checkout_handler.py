"""Checkout completion.

Subscription checkouts seed the user's subscription state straight away;
the follow-up ``customer.subscription.*`` event confirms it and is the only
place that sends the upgrade email. Payment-mode checkouts are settled by
``payment_intent.succeeded`` instead.
"""

from ..models.enums import ProcessingResult, SubscriptionStatus
from ..models.stripe_events import CheckoutSession, FullSubscription, SubscriptionPeriod, ref_id
from ..models.stripe_webhook import HandlerResult
from ..models.user import UserUpdate
from ..utils.logging import get_logger
from .resilient_write import ResilientWriter
from .stripe_service import StripeService
from .tier_resolution import TierResolver, derive_role_from_tier
from .user_service import UserService

logger = get_logger(__name__)

SUBSCRIPTION_EXPAND = ["items.data.price"]


class CheckoutHandler:
    def __init__(
        self,
        stripe_service: StripeService,
        tier_resolver: TierResolver,
        users: UserService,
        writer: ResilientWriter,
    ) -> None:
        self._stripe = stripe_service
        self._tiers = tier_resolver
        self._users = users
        self._writer = writer

    def handle_checkout_completed(self, session: CheckoutSession) -> HandlerResult:
        user_id = session.metadata.get("userId")
        if not user_id:
            logger.warning("Checkout session %s has no metadata.userId", session.id)
            return ProcessingResult.SKIPPED, "Missing userId in session metadata"

        if session.mode == "subscription":
            return self._handle_subscription_checkout(session, user_id)
        if session.mode == "payment":
            logger.info("Checkout session %s is a one-off payment; settled on payment_intent", session.id)
            return ProcessingResult.SKIPPED, "Payment checkout settled by payment_intent.succeeded"

        logger.warning("Unhandled checkout session mode %r for %s", session.mode, session.id)
        return ProcessingResult.SKIPPED, f"Unhandled session mode: {session.mode}"

    def _subscription_period(self, subscription_id: str | None, session_id: str) -> SubscriptionPeriod:
        """Period fields for the new subscription; defaults if Stripe can't say."""
        if not subscription_id:
            logger.warning("Checkout session %s has no subscription ID", session_id)
            return SubscriptionPeriod()
        try:
            subscription = FullSubscription.model_validate(
                self._stripe.retrieve_subscription(subscription_id, expand=SUBSCRIPTION_EXPAND)
            )
        except Exception as e:
            logger.warning(
                "Could not retrieve subscription %s for checkout %s: %s",
                subscription_id,
                session_id,
                e,
            )
            return SubscriptionPeriod()
        return subscription.period_fields()

    def _handle_subscription_checkout(self, session: CheckoutSession, user_id: str) -> HandlerResult:
        tier = self._tiers.tier_from_checkout_session(session)
        current = self._users.get_user_by_id(user_id)
        if current is None:
            logger.error("No user %s for checkout session %s", user_id, session.id)
            return ProcessingResult.ERROR, f"User {user_id} not found"

        subscription_id = ref_id(session.subscription)
        period = self._subscription_period(subscription_id, session.id)

        update = UserUpdate(
            stripe_customer_id=ref_id(session.customer),
            subscription_status=SubscriptionStatus.ACTIVE,
            stripe_subscription_id=subscription_id,
            stripe_current_period_end=period.current_period_end,
            stripe_cancel_at_period_end=period.cancel_at_period_end,
            stripe_cancel_at=period.cancel_at,
        )
        if tier:
            update.subscription_tier = tier
            update.role = derive_role_from_tier(tier, current.role)
        else:
            logger.error("No tier resolved for checkout session %s", session.id)

        self._writer.execute(
            lambda: self._users.update_user(user_id, update),
            f"Update user {user_id} from checkout {session.id}",
        )
        return ProcessingResult.SUCCESS, None
