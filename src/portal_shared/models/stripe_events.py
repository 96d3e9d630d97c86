"""Typed views of the Stripe objects the webhook pipeline consumes.

Stripe payloads carry far more than we read, so every model ignores
unknown fields. Expandable references (``customer``, ``subscription``,
``latest_charge``) arrive either as an ID string or as an embedded
object; ``ref_id`` normalises both to the ID.

Events are parsed into a tagged union keyed on ``type``. Any type we do
not route parses to ``UnhandledEvent`` so the dispatcher always has a
default arm.
"""

from datetime import datetime, timezone
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, BeforeValidator, ConfigDict, Discriminator, Field, Tag, TypeAdapter


def ref_id(value: str | dict[str, Any] | None) -> str | None:
    """Return the ID of an expandable Stripe reference."""
    if value is None:
        return None
    if isinstance(value, str):
        return value or None
    ref = value.get("id")
    return ref if isinstance(ref, str) and ref else None


def from_unix(seconds: int | None) -> datetime | None:
    """Convert a Stripe unix timestamp (seconds) to an aware UTC datetime."""
    if seconds is None:
        return None
    return datetime.fromtimestamp(seconds, tz=timezone.utc)


# Stripe sends metadata as a string map; tolerate an explicit null.
Metadata = Annotated[dict[str, str], BeforeValidator(lambda value: value or {})]


class _StripeModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


# === Prices and line items ===


class Price(_StripeModel):
    id: str | None = None
    metadata: Metadata = Field(default_factory=dict)


class SubscriptionItem(_StripeModel):
    price: Price | None = None
    current_period_end: int | None = None


class SubscriptionItemList(_StripeModel):
    data: list[SubscriptionItem] = Field(default_factory=list)


class LineItem(_StripeModel):
    price: Price | None = None


class LineItemList(_StripeModel):
    data: list[LineItem] = Field(default_factory=list)


# === Subscriptions ===


class PartialSubscription(_StripeModel):
    """Subscription as delivered in a webhook payload.

    Webhook payloads may be partial, so only the ID is guaranteed; the
    reconciliation handler always re-fetches a FullSubscription.
    """

    id: str
    customer: str | dict[str, Any] | None = None
    status: str | None = None
    metadata: Metadata = Field(default_factory=dict)
    items: SubscriptionItemList = Field(default_factory=SubscriptionItemList)
    current_period_end: int | None = None
    cancel_at: int | None = None
    cancel_at_period_end: bool = False


class FullSubscription(PartialSubscription):
    """Authoritative subscription retrieved from the Stripe API."""

    customer: str | dict[str, Any]
    status: str

    @property
    def customer_id(self) -> str | None:
        return ref_id(self.customer)

    @property
    def first_price(self) -> Price | None:
        return self.items.data[0].price if self.items.data else None

    @property
    def period_end_unix(self) -> int | None:
        """Current period end, falling back to the first item's value."""
        if self.current_period_end is not None:
            return self.current_period_end
        if self.items.data:
            return self.items.data[0].current_period_end
        return None

    def period_fields(self) -> "SubscriptionPeriod":
        return SubscriptionPeriod(
            current_period_end=from_unix(self.period_end_unix),
            cancel_at=from_unix(self.cancel_at),
            cancel_at_period_end=bool(self.cancel_at_period_end),
        )


class SubscriptionPeriod(BaseModel):
    """Period and cancellation fields persisted on the user profile."""

    current_period_end: datetime | None = None
    cancel_at: datetime | None = None
    cancel_at_period_end: bool = False


# === Checkout, payments, invoices, accounts ===


class CheckoutSession(_StripeModel):
    id: str
    mode: str | None = None
    customer: str | dict[str, Any] | None = None
    subscription: str | dict[str, Any] | None = None
    metadata: Metadata = Field(default_factory=dict)
    line_items: LineItemList | None = None

    @property
    def first_line_price(self) -> Price | None:
        if self.line_items and self.line_items.data:
            return self.line_items.data[0].price
        return None


class PaymentIntent(_StripeModel):
    id: str
    amount: int = 0
    created: int
    status: str | None = None
    metadata: Metadata = Field(default_factory=dict)
    latest_charge: str | dict[str, Any] | None = None


class InvoiceLine(_StripeModel):
    subscription: str | dict[str, Any] | None = None


class InvoiceLineList(_StripeModel):
    data: list[InvoiceLine] = Field(default_factory=list)


class Invoice(_StripeModel):
    id: str | None = None
    customer: str | dict[str, Any] | None = None
    subscription: str | dict[str, Any] | None = None
    lines: InvoiceLineList = Field(default_factory=InvoiceLineList)
    parent: dict[str, Any] | None = None

    def subscription_ref(self) -> str | dict[str, Any] | None:
        """Locate the subscription this invoice belongs to.

        Checks the top-level field, then the first line item, then the
        ``parent.subscription_details`` block used by newer API versions.
        """
        if self.subscription:
            return self.subscription
        if self.lines.data and self.lines.data[0].subscription:
            return self.lines.data[0].subscription
        details = (self.parent or {}).get("subscription_details") or {}
        return details.get("subscription")


class ConnectedAccount(_StripeModel):
    id: str
    metadata: Metadata = Field(default_factory=dict)
    details_submitted: bool = False
    payouts_enabled: bool = False
    charges_enabled: bool = False

    @property
    def onboarding_complete(self) -> bool:
        return bool(self.details_submitted and (self.payouts_enabled or self.charges_enabled))


# === Event envelope ===


class _EventBase(_StripeModel):
    id: str = ""
    type: str
    created: int | None = None


class CheckoutSessionData(_StripeModel):
    object: CheckoutSession


class SubscriptionData(_StripeModel):
    object: PartialSubscription


class PaymentIntentData(_StripeModel):
    object: PaymentIntent


class InvoiceData(_StripeModel):
    object: Invoice


class AccountData(_StripeModel):
    object: ConnectedAccount


class CheckoutSessionCompletedEvent(_EventBase):
    type: Literal["checkout.session.completed"]
    data: CheckoutSessionData


class SubscriptionChangedEvent(_EventBase):
    type: Literal[
        "customer.subscription.created",
        "customer.subscription.updated",
        "customer.subscription.deleted",
    ]
    data: SubscriptionData


class PaymentIntentSucceededEvent(_EventBase):
    type: Literal["payment_intent.succeeded"]
    data: PaymentIntentData


class PaymentIntentFailedEvent(_EventBase):
    type: Literal["payment_intent.payment_failed"]
    data: PaymentIntentData


class InvoicePaymentProblemEvent(_EventBase):
    type: Literal["invoice.payment_failed", "invoice.payment_action_required"]
    data: InvoiceData


class AccountUpdatedEvent(_EventBase):
    type: Literal["account.updated"]
    data: AccountData


class UnhandledEvent(_EventBase):
    """Any event type the pipeline does not act on."""

    data: dict[str, Any] = Field(default_factory=dict)


EVENT_KINDS: dict[str, str] = {
    "checkout.session.completed": "checkout_completed",
    "customer.subscription.created": "subscription_changed",
    "customer.subscription.updated": "subscription_changed",
    "customer.subscription.deleted": "subscription_changed",
    "payment_intent.succeeded": "payment_intent_succeeded",
    "payment_intent.payment_failed": "payment_intent_failed",
    "invoice.payment_failed": "invoice_payment_problem",
    "invoice.payment_action_required": "invoice_payment_problem",
    "account.updated": "account_updated",
}


def _event_kind(value: Any) -> str:
    event_type = value.get("type") if isinstance(value, dict) else getattr(value, "type", None)
    return EVENT_KINDS.get(event_type, "unhandled")


StripeEvent = Annotated[
    Union[
        Annotated[CheckoutSessionCompletedEvent, Tag("checkout_completed")],
        Annotated[SubscriptionChangedEvent, Tag("subscription_changed")],
        Annotated[PaymentIntentSucceededEvent, Tag("payment_intent_succeeded")],
        Annotated[PaymentIntentFailedEvent, Tag("payment_intent_failed")],
        Annotated[InvoicePaymentProblemEvent, Tag("invoice_payment_problem")],
        Annotated[AccountUpdatedEvent, Tag("account_updated")],
        Annotated[UnhandledEvent, Tag("unhandled")],
    ],
    Discriminator(_event_kind),
]

_event_adapter: TypeAdapter[StripeEvent] = TypeAdapter(StripeEvent)


def parse_event(payload: dict[str, Any]) -> StripeEvent:
    """Parse a verified event envelope into its typed variant.

    Raises:
        pydantic.ValidationError: If a known event type has a malformed body.
    """
    return _event_adapter.validate_python(payload)
