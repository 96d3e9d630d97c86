"""Stripe service for webhook verification and read-only lookups.

Uses the StripeClient interface. The API key and webhook signing secret
come from settings, falling back to SSM Parameter Store when unset.
Nothing here mutates state at Stripe.
"""

import json
from collections.abc import Callable
from typing import Any

import stripe
from stripe import StripeClient

from ..config import WebhookSettings
from ..models.errors import ErrorCode, WebhookError
from ..utils.logging import get_logger
from .ssm_service import SSMService, SSMServiceError

logger = get_logger(__name__)


class StripeServiceError(Exception):
    """A Stripe API lookup failed.

    ``stripe_error_code`` carries Stripe's own code (``resource_missing``
    and the like) when the API returned one.
    """

    def __init__(self, message: str, stripe_error_code: str | None = None) -> None:
        super().__init__(message)
        self.stripe_error_code = stripe_error_code


def _to_plain(obj: Any) -> Any:
    """Recursively convert StripeObjects to plain dicts and lists."""
    if isinstance(obj, stripe.StripeObject):
        return _to_plain(obj.to_dict())
    if isinstance(obj, dict):
        return {key: _to_plain(value) for key, value in obj.items()}
    if isinstance(obj, list):
        return [_to_plain(value) for value in obj]
    return obj


def _expand_params(expand: list[str] | None) -> dict[str, Any]:
    return {"expand": expand} if expand else {}


class StripeService:
    """The Stripe calls made while processing webhooks.

    Covers signature verification of incoming events and the lookups the
    handlers need: subscriptions, checkout sessions and charges. Lookups
    return plain dicts so callers can validate them with pydantic.

    Usage:
        stripe_svc = StripeService(settings, ssm=SSMService())
        event = stripe_svc.verify_webhook_signature(body, signature_header)
    """

    def __init__(
        self,
        settings: WebhookSettings,
        ssm: SSMService | None = None,
        client: StripeClient | None = None,
    ) -> None:
        self._settings = settings
        self._ssm = ssm
        self._client = client
        self._webhook_secret: str | None = settings.stripe_webhook_secret

    def _parameter_path(self, name: str) -> str:
        return f"/portal/{self._settings.environment}/stripe/{name}"

    def _from_ssm(self, name: str) -> str | None:
        if self._ssm is None:
            return None
        return self._ssm.get_parameter(self._parameter_path(name))

    def _get_client(self) -> StripeClient:
        """The StripeClient, built on first use from settings or SSM.

        Raises:
            StripeServiceError: No API key is available.
        """
        if self._client is not None:
            return self._client
        try:
            secret_key = self._settings.stripe_secret_key or self._from_ssm("secret_key")
        except SSMServiceError as e:
            raise StripeServiceError(f"Stripe API key unavailable: {e}") from e
        if not secret_key:
            raise StripeServiceError("Stripe secret key is not configured")
        self._client = StripeClient(secret_key)
        logger.info("Stripe client ready (environment %s)", self._settings.environment)
        return self._client

    def get_webhook_secret(self) -> str:
        """The signing secret for this endpoint.

        Raises:
            WebhookError: WEBHOOK_SECRET_NOT_CONFIGURED when no source has it.
        """
        if self._webhook_secret is None:
            try:
                self._webhook_secret = self._from_ssm("webhook_secret")
            except SSMServiceError as e:
                logger.error("Webhook secret lookup failed: %s", e)
                raise WebhookError(ErrorCode.WEBHOOK_SECRET_NOT_CONFIGURED) from e
        if not self._webhook_secret:
            raise WebhookError(ErrorCode.WEBHOOK_SECRET_NOT_CONFIGURED)
        return self._webhook_secret

    def verify_webhook_signature(self, payload: bytes, signature: str | None) -> dict[str, Any]:
        """Check the ``Stripe-Signature`` header against the raw body.

        The secret is resolved first, so a misconfigured endpoint reports
        a configuration error rather than a signature failure.

        Returns:
            The event envelope as a plain dictionary.

        Raises:
            WebhookError: Secret missing, signature missing or invalid, or
                a body that is not a JSON object.
        """
        webhook_secret = self.get_webhook_secret()
        if not signature:
            raise WebhookError(
                ErrorCode.INVALID_WEBHOOK_SIGNATURE,
                {"reason": "missing stripe-signature header"},
            )

        try:
            stripe.WebhookSignature.verify_header(
                payload.decode("utf-8"), signature, webhook_secret
            )
        except (stripe.SignatureVerificationError, UnicodeDecodeError) as e:
            logger.warning("Rejected webhook signature: %s", e)
            raise WebhookError(ErrorCode.INVALID_WEBHOOK_SIGNATURE) from e

        try:
            event = json.loads(payload)
        except ValueError as e:
            raise WebhookError(ErrorCode.MALFORMED_EVENT, {"reason": "body is not JSON"}) from e
        if not isinstance(event, dict):
            raise WebhookError(ErrorCode.MALFORMED_EVENT, {"reason": "body is not an object"})

        logger.info("Verified webhook event %s", event.get("id"))
        return event

    def _lookup(self, kind: str, object_id: str, fetch: Callable[[StripeClient], Any]) -> dict[str, Any]:
        try:
            found = fetch(self._get_client())
        except stripe.StripeError as e:
            code = getattr(e, "code", None)
            logger.error("Stripe %s lookup for %s failed: %s (code: %s)", kind, object_id, e, code)
            raise StripeServiceError(
                f"Failed to retrieve {kind} {object_id}: {e}", stripe_error_code=code
            ) from e
        plain: dict[str, Any] = _to_plain(found)
        return plain

    def retrieve_subscription(
        self, subscription_id: str, expand: list[str] | None = None
    ) -> dict[str, Any]:
        """Fetch the authoritative subscription.

        Raises:
            StripeServiceError: If the lookup fails.
        """
        return self._lookup(
            "subscription",
            subscription_id,
            lambda client: client.subscriptions.retrieve(
                subscription_id, params=_expand_params(expand)
            ),
        )

    def retrieve_checkout_session(
        self, session_id: str, expand: list[str] | None = None
    ) -> dict[str, Any]:
        """Fetch a checkout session, optionally with expanded fields."""
        return self._lookup(
            "checkout session",
            session_id,
            lambda client: client.checkout.sessions.retrieve(
                session_id, params=_expand_params(expand)
            ),
        )

    def retrieve_charge(self, charge_id: str) -> dict[str, Any]:
        """Fetch a charge (used for its receipt URL)."""
        return self._lookup(
            "charge", charge_id, lambda client: client.charges.retrieve(charge_id)
        )
