"""Service construction and FastAPI dependency providers.

Every service is built once by ``build_services`` when the application is
created and kept on ``app.state.services``; routes reach them through the
providers below, so tests can hand ``create_app`` their own settings or
swap single services on the container.

Service Dependency Graph:
    DynamoDBService
        ├── UserService
        ├── JobService
        └── EventLedger ── ResilientWriter (httpx alert client)
    StripeService (SSMService fallback for secrets)
        └── TierResolver (price ID table from settings)
    EmailService (Resend)

    WebhookHandler
        ├── CheckoutHandler
        ├── SubscriptionHandler
        ├── PaymentSettlementHandler
        └── AccountHandler
"""

from dataclasses import dataclass

import httpx
from fastapi import Request

from portal_shared.config import WebhookSettings
from portal_shared.services import (
    AccountHandler,
    CheckoutHandler,
    DynamoDBService,
    EmailService,
    EventLedger,
    JobService,
    PaymentSettlementHandler,
    ResilientWriter,
    SSMService,
    StripeService,
    SubscriptionHandler,
    TierResolver,
    UserService,
    WebhookHandler,
)

ALERT_TIMEOUT_SECONDS = 5.0


@dataclass
class Services:
    settings: WebhookSettings
    db: DynamoDBService
    stripe: StripeService
    users: UserService
    jobs: JobService
    emails: EmailService
    writer: ResilientWriter
    ledger: EventLedger
    webhook_handler: WebhookHandler


def build_services(
    settings: WebhookSettings,
    *,
    db: DynamoDBService | None = None,
    stripe_service: StripeService | None = None,
    http_client: httpx.Client | None = None,
) -> Services:
    """Wire up every service for one process."""
    db = db or DynamoDBService(environment=settings.environment)
    stripe_service = stripe_service or StripeService(settings, ssm=SSMService())
    writer = ResilientWriter(
        alert_webhook_url=settings.alert_webhook_url,
        http_client=http_client or httpx.Client(timeout=ALERT_TIMEOUT_SECONDS),
    )
    users = UserService(db)
    jobs = JobService(db)
    emails = EmailService(settings.resend_api_key, settings.email_from, settings.app_url)
    ledger = EventLedger(db, writer)
    tiers = TierResolver(settings.price_tiers(), stripe_service)

    handler = WebhookHandler(
        ledger=ledger,
        checkout=CheckoutHandler(stripe_service, tiers, users, writer),
        subscriptions=SubscriptionHandler(stripe_service, tiers, users, emails, writer),
        settlement=PaymentSettlementHandler(stripe_service, jobs, users, emails, writer),
        accounts=AccountHandler(users, emails, writer),
    )
    return Services(
        settings=settings,
        db=db,
        stripe=stripe_service,
        users=users,
        jobs=jobs,
        emails=emails,
        writer=writer,
        ledger=ledger,
        webhook_handler=handler,
    )


def get_services(request: Request) -> Services:
    services: Services = request.app.state.services
    return services


def get_stripe_service(request: Request) -> StripeService:
    return get_services(request).stripe


def get_webhook_handler(request: Request) -> WebhookHandler:
    return get_services(request).webhook_handler
