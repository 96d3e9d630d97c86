"""Webhook handler for processing verified Stripe events.

Provides the business logic separate from HTTP routing concerns:
deduplication against the event ledger, dispatch on the event variant,
and an audit record of the outcome on the ledger marker.
"""

from ..models.enums import ProcessingResult
from ..models.stripe_events import (
    AccountUpdatedEvent,
    CheckoutSessionCompletedEvent,
    InvoicePaymentProblemEvent,
    PaymentIntentFailedEvent,
    PaymentIntentSucceededEvent,
    StripeEvent,
    SubscriptionChangedEvent,
)
from ..models.stripe_webhook import HandlerResult
from ..utils.logging import get_logger, log_webhook_event
from .account_handler import AccountHandler
from .checkout_handler import CheckoutHandler
from .event_ledger import EventLedger
from .payment_settlement import PaymentSettlementHandler
from .subscription_handler import SubscriptionHandler

logger = get_logger(__name__)


class WebhookHandler:
    """Routes each Stripe event to its handler exactly once."""

    def __init__(
        self,
        ledger: EventLedger,
        checkout: CheckoutHandler,
        subscriptions: SubscriptionHandler,
        settlement: PaymentSettlementHandler,
        accounts: AccountHandler,
    ) -> None:
        self._ledger = ledger
        self._checkout = checkout
        self._subscriptions = subscriptions
        self._settlement = settlement
        self._accounts = accounts

    def process(self, event: StripeEvent) -> HandlerResult:
        """Deduplicate, dispatch and record one event.

        Returns:
            Tuple of (processing_result, message)

        Raises:
            Exception: Whatever the handler raised, after recording it.
        """
        if self._ledger.is_event_processed(event.id, event.type):
            log_webhook_event(logger, event.type, event.id, result=ProcessingResult.DUPLICATE.value)
            return ProcessingResult.DUPLICATE, "Event already processed"

        log_webhook_event(logger, event.type, event.id, result="received")
        try:
            result, message = self.dispatch(event)
        except Exception as e:
            log_webhook_event(
                logger, event.type, event.id, result=ProcessingResult.ERROR.value, error=str(e)
            )
            self._ledger.record_result(event.id, ProcessingResult.ERROR, str(e))
            raise

        log_webhook_event(
            logger,
            event.type,
            event.id,
            result=result.value,
            error=message if result == ProcessingResult.ERROR else None,
        )
        self._ledger.record_result(event.id, result, message)
        return result, message

    def dispatch(self, event: StripeEvent) -> HandlerResult:
        """Run the handler for the event's variant, without deduplication."""
        if isinstance(event, CheckoutSessionCompletedEvent):
            return self._checkout.handle_checkout_completed(event.data.object)
        if isinstance(event, SubscriptionChangedEvent):
            return self._subscriptions.handle_subscription_change(event.data.object)
        if isinstance(event, InvoicePaymentProblemEvent):
            return self._subscriptions.handle_invoice_payment_problem(event.data.object)
        if isinstance(event, PaymentIntentSucceededEvent):
            return self._settlement.handle_payment_succeeded(event.data.object)
        if isinstance(event, PaymentIntentFailedEvent):
            return self._settlement.handle_payment_failed(event.data.object)
        if isinstance(event, AccountUpdatedEvent):
            return self._accounts.handle_account_updated(event.data.object)

        logger.info("Unhandled event type: %s", event.type)
        return ProcessingResult.SKIPPED, f"Unhandled event type: {event.type}"
