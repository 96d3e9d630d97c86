"""Subscription reconciliation.

Keeps a user's stored subscription state in line with what Stripe reports,
and sends the upgrade email when (and only when) the tier moves to a paid
plan. Checkout completion never sends that email, so one
logical upgrade produces one message.
"""

from pydantic import ValidationError

from ..models.enums import ProcessingResult, SubscriptionStatus, Tier
from ..models.stripe_events import FullSubscription, Invoice, PartialSubscription, ref_id
from ..models.stripe_webhook import HandlerResult
from ..models.user import User, UserUpdate
from ..utils.logging import get_logger
from .email_service import EmailService
from .resilient_write import ResilientWriter
from .stripe_service import StripeService
from .tier_resolution import TierResolver, as_tier, derive_role_from_tier
from .user_service import UserService

logger = get_logger(__name__)


class SubscriptionHandler:
    """Handles ``customer.subscription.*`` and invoice payment problems."""

    def __init__(
        self,
        stripe_service: StripeService,
        tier_resolver: TierResolver,
        users: UserService,
        emails: EmailService,
        writer: ResilientWriter,
    ) -> None:
        self._stripe = stripe_service
        self._tiers = tier_resolver
        self._users = users
        self._emails = emails
        self._writer = writer

    def _retrieve(self, subscription_id: str) -> FullSubscription:
        return FullSubscription.model_validate(self._stripe.retrieve_subscription(subscription_id))

    def handle_subscription_change(self, subscription: PartialSubscription) -> HandlerResult:
        """Reconcile the owning user with the authoritative subscription.

        Status, IDs and period fields are always written. Tier and role
        are written only when a tier can be resolved.
        """
        try:
            full = self._retrieve(subscription.id)
        except Exception as e:
            logger.error("Failed to retrieve full subscription %s: %s", subscription.id, e)
            return ProcessingResult.ERROR, f"Could not retrieve subscription {subscription.id}"

        customer_id = full.customer_id
        user_id = full.metadata.get("userId")
        period = full.period_fields()
        tier = self._tiers.tier_from_subscription(full)

        if not user_id:
            logger.warning(
                "Subscription %s (customer %s) has no metadata.userId", full.id, customer_id
            )
            return ProcessingResult.SKIPPED, "Missing userId in subscription metadata"

        current = self._users.get_user_by_id(user_id)
        if current is None:
            logger.error(
                "No user %s for subscription %s (customer %s)", user_id, full.id, customer_id
            )
            return ProcessingResult.ERROR, f"User {user_id} not found"

        previous_tier = as_tier(current.subscription_tier)

        update = UserUpdate(
            subscription_status=full.status,
            stripe_subscription_id=full.id,
            stripe_customer_id=customer_id or current.stripe_customer_id,
            stripe_current_period_end=period.current_period_end,
            stripe_cancel_at=period.cancel_at,
            stripe_cancel_at_period_end=period.cancel_at_period_end,
        )
        if tier:
            update.subscription_tier = tier
            update.role = derive_role_from_tier(tier, current.role)
        else:
            logger.warning(
                "No tier resolved for subscription %s (status %s); tier left unchanged",
                full.id,
                full.status,
            )

        outcome = self._writer.execute(
            lambda: self._users.update_user(user_id, update),
            f"Update subscription {full.id} for user {user_id}",
        )
        if not outcome.succeeded:
            logger.error(
                "Subscription %s not stored for user %s after %d attempts; no email",
                full.id,
                user_id,
                outcome.attempts,
            )
            return ProcessingResult.ERROR, f"Failed to update user {user_id}"

        if tier and tier != previous_tier:
            if tier != Tier.BASIC:
                logger.info("User %s moved from %s to %s", user_id, previous_tier, tier.value)
                self._notify_upgrade(user_id, tier, outcome.value)
            else:
                logger.info("User %s downgraded to basic from %s; no email", user_id, previous_tier)
        else:
            logger.info("No tier change for user %s (tier %s)", user_id, tier)

        return ProcessingResult.SUCCESS, None

    def _notify_upgrade(self, user_id: str, tier: Tier, updated: User | None) -> None:
        try:
            recipient = updated or self._users.get_user_by_id(user_id)
        except Exception as e:
            logger.error("Could not load user %s for upgrade email: %s", user_id, e)
            return
        if recipient is None or not recipient.email:
            logger.warning("User %s has no email; upgrade email not sent", user_id)
            return
        self._emails.send_subscription_upgraded_email(
            recipient.email, recipient.display_name, tier.value
        )

    def handle_invoice_payment_problem(self, invoice: Invoice) -> HandlerResult:
        """Mark the subscription owner ``past_due`` after a failed invoice payment.

        Problems here are logged and reported, never raised.
        """
        ref = invoice.subscription_ref()
        subscription_id = ref_id(ref)

        try:
            subscription: FullSubscription | None = None
            if isinstance(ref, dict):
                try:
                    subscription = FullSubscription.model_validate(ref)
                except ValidationError:
                    subscription = None
            if subscription is None and subscription_id:
                subscription = self._retrieve(subscription_id)

            if subscription is None or not subscription.customer_id:
                logger.warning("Invoice %s has no resolvable subscription", invoice.id)
                return ProcessingResult.SKIPPED, "No subscription on invoice"

            user = self._users.find_user_by_customer_id(subscription.customer_id)
            if user is None:
                logger.warning("No user for Stripe customer %s", subscription.customer_id)
                return ProcessingResult.SKIPPED, "No user for customer"

            self._writer.execute(
                lambda: self._users.update_user(
                    user.user_id, UserUpdate(subscription_status=SubscriptionStatus.PAST_DUE)
                ),
                f"Mark user {user.user_id} past_due",
            )
            logger.info("User %s marked past_due (invoice %s)", user.user_id, invoice.id)
            return ProcessingResult.SUCCESS, None
        except Exception as e:
            logger.error(
                "Error handling invoice %s (subscription %s): %s", invoice.id, subscription_id, e
            )
            return ProcessingResult.ERROR, str(e)
