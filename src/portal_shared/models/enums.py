"""Enumeration types for Plumbers Portal billing models."""

from enum import Enum


class Tier(str, Enum):
    """Subscription plan level, ordered from free to highest."""

    BASIC = "basic"
    PRO = "pro"
    BUSINESS = "business"


class SubscriptionStatus(str, Enum):
    """Stripe subscription status as mirrored on the user profile."""

    ACTIVE = "active"
    CANCELED = "canceled"
    INCOMPLETE = "incomplete"
    INCOMPLETE_EXPIRED = "incomplete_expired"
    PAST_DUE = "past_due"
    TRIALING = "trialing"
    UNPAID = "unpaid"
    PAUSED = "paused"


class UserRole(str, Enum):
    """Marketplace user roles."""

    ADMIN = "admin"
    TRADESPERSON = "tradesperson"
    CUSTOMER = "customer"
    USER = "user"
    BUSINESS_OWNER = "business_owner"
    MANAGER = "manager"


class PaymentType(str, Enum):
    """Kind of one-off job payment."""

    DEPOSIT = "deposit"
    FINAL = "final"


class JobPaymentStatus(str, Enum):
    """Top-level payment status of a job."""

    PENDING = "pending"
    DEPOSIT_PAID = "deposit_paid"
    FULLY_PAID = "fully_paid"


class ProcessingResult(str, Enum):
    """Outcome of processing a single webhook event."""

    PROCESSING = "processing"
    SUCCESS = "success"
    SKIPPED = "skipped"
    ERROR = "error"
    DUPLICATE = "duplicate"
