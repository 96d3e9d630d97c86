"""Webhook endpoint for Stripe.

Receives signed Stripe events for subscriptions, checkout sessions,
one-off job payments, invoices and connected accounts.

This endpoint does NOT require authentication; the payload signature is
verified with the Stripe webhook signing secret.
"""

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, ValidationError
from starlette.concurrency import run_in_threadpool

from portal_shared.models.enums import ProcessingResult
from portal_shared.models.errors import ErrorCode, ErrorResponse, WebhookError
from portal_shared.models.stripe_events import parse_event
from portal_shared.services import StripeService, WebhookHandler
from portal_shared.utils.logging import clear_correlation_id, get_logger, set_correlation_id

from ..dependencies import get_stripe_service, get_webhook_handler

logger = get_logger(__name__)

router = APIRouter(tags=["webhooks"])

SIGNATURE_HEADER = "stripe-signature"


class WebhookResponse(BaseModel):
    """Standard webhook response."""

    received: bool
    event_id: str | None = None
    event_type: str | None = None
    processing_result: ProcessingResult
    message: str | None = None


@router.post(
    "/webhooks/stripe",
    summary="Receive Stripe webhook events",
    description="""
Endpoint for Stripe webhook events. Handles:
- checkout.session.completed: seeds subscription state for subscription checkouts
- customer.subscription.created/updated/deleted: reconciles the user's plan
- payment_intent.succeeded: records a job deposit or final payment
- invoice.payment_failed / invoice.payment_action_required: marks the plan past_due
- account.updated: syncs tradesperson payout onboarding

**Idempotent**: an event ID is processed at most once; repeats return 200
with the 'duplicate' result.
""",
    response_model=WebhookResponse,
    responses={
        400: {"description": "Missing or invalid signature, malformed event", "model": ErrorResponse},
        500: {"description": "Webhook secret not configured, or processing failed", "model": ErrorResponse},
    },
)
async def handle_stripe_webhook(
    request: Request,
    stripe_service: StripeService = Depends(get_stripe_service),
    handler: WebhookHandler = Depends(get_webhook_handler),
) -> WebhookResponse:
    """Verify, deduplicate and process one Stripe event."""
    # Raw bytes: signature verification must see the body unparsed
    payload = await request.body()
    signature = request.headers.get(SIGNATURE_HEADER)

    envelope = await run_in_threadpool(stripe_service.verify_webhook_signature, payload, signature)
    try:
        event = parse_event(envelope)
    except ValidationError as e:
        logger.warning("Malformed %s event %s: %s", envelope.get("type"), envelope.get("id"), e)
        raise WebhookError(
            ErrorCode.MALFORMED_EVENT,
            {"event_type": str(envelope.get("type"))},
        ) from e

    set_correlation_id(event.id or None)
    try:
        result, message = await run_in_threadpool(handler.process, event)
    except Exception as e:
        logger.exception("Error handling event %s (%s)", event.id, event.type)
        raise WebhookError(
            ErrorCode.EVENT_PROCESSING_FAILED,
            {"event_type": event.type, "message": str(e)},
        ) from e
    finally:
        clear_correlation_id()

    return WebhookResponse(
        received=True,
        event_id=event.id or None,
        event_type=event.type,
        processing_result=result,
        message=message,
    )
