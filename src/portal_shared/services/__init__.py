"""Services for Stripe webhook processing."""

from .account_handler import AccountHandler
from .checkout_handler import CheckoutHandler
from .dynamodb import DynamoDBService
from .email_service import EmailService
from .event_ledger import EventLedger
from .job_service import JobService
from .payment_settlement import PaymentSettlementHandler
from .resilient_write import ResilientWriter, WriteOutcome
from .ssm_service import SSMService, SSMServiceError
from .stripe_service import StripeService, StripeServiceError
from .subscription_handler import SubscriptionHandler
from .tier_resolution import TierResolver, as_tier, derive_role_from_tier
from .user_service import UserService
from .webhook_handler import WebhookHandler

__all__ = [
    "AccountHandler",
    "CheckoutHandler",
    "DynamoDBService",
    "EmailService",
    "EventLedger",
    "JobService",
    "PaymentSettlementHandler",
    "ResilientWriter",
    "SSMService",
    "SSMServiceError",
    "StripeService",
    "StripeServiceError",
    "SubscriptionHandler",
    "TierResolver",
    "UserService",
    "WebhookHandler",
    "WriteOutcome",
    "as_tier",
    "derive_role_from_tier",
]
