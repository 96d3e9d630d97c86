"""Pydantic models for Plumbers Portal billing."""

from .enums import (
    JobPaymentStatus,
    PaymentType,
    ProcessingResult,
    SubscriptionStatus,
    Tier,
    UserRole,
)
from .errors import ERROR_MESSAGES, ErrorCode, ErrorResponse, WebhookError
from .job import Job, PaymentRecord, QuotePaymentMirror
from .stripe_events import (
    AccountUpdatedEvent,
    CheckoutSession,
    CheckoutSessionCompletedEvent,
    ConnectedAccount,
    FullSubscription,
    Invoice,
    InvoicePaymentProblemEvent,
    PartialSubscription,
    PaymentIntent,
    PaymentIntentFailedEvent,
    PaymentIntentSucceededEvent,
    StripeEvent,
    SubscriptionChangedEvent,
    SubscriptionPeriod,
    UnhandledEvent,
    parse_event,
)
from .stripe_webhook import HandlerResult, ProcessedEventMarker
from .user import User, UserUpdate

__all__ = [
    # Enums
    "JobPaymentStatus",
    "PaymentType",
    "ProcessingResult",
    "SubscriptionStatus",
    "Tier",
    "UserRole",
    # Errors
    "ERROR_MESSAGES",
    "ErrorCode",
    "ErrorResponse",
    "WebhookError",
    # Jobs
    "Job",
    "PaymentRecord",
    "QuotePaymentMirror",
    # Stripe objects and events
    "AccountUpdatedEvent",
    "CheckoutSession",
    "CheckoutSessionCompletedEvent",
    "ConnectedAccount",
    "FullSubscription",
    "Invoice",
    "InvoicePaymentProblemEvent",
    "PartialSubscription",
    "PaymentIntent",
    "PaymentIntentFailedEvent",
    "PaymentIntentSucceededEvent",
    "StripeEvent",
    "SubscriptionChangedEvent",
    "SubscriptionPeriod",
    "UnhandledEvent",
    "parse_event",
    # Ledger
    "HandlerResult",
    "ProcessedEventMarker",
    # Users
    "User",
    "UserUpdate",
]
