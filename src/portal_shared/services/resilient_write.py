"""Bounded retry for store writes, with an alert when retries run out."""

import time
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

import httpx
from pydantic import BaseModel

from ..utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_ATTEMPTS = 3
DEFAULT_BASE_DELAY = 0.1


class WriteOutcome(BaseModel):
    """What happened to one retried operation."""

    succeeded: bool
    attempts: int
    value: Any = None
    error: str | None = None


class ResilientWriter:
    """Runs a write up to N times with linear backoff (base_delay * attempt).

    ``execute`` never raises. Callers that do not care whether the write
    landed simply ignore the returned ``WriteOutcome``.
    """

    def __init__(
        self,
        alert_webhook_url: str | None = None,
        http_client: httpx.Client | None = None,
        sleep: Callable[[float], None] = time.sleep,
        base_delay: float = DEFAULT_BASE_DELAY,
    ) -> None:
        self._alert_webhook_url = alert_webhook_url
        self._http_client = http_client
        self._sleep = sleep
        self._base_delay = base_delay

    def execute(
        self,
        operation: Callable[[], Any],
        description: str,
        attempts: int = DEFAULT_ATTEMPTS,
    ) -> WriteOutcome:
        """Run ``operation`` until it returns without raising.

        Args:
            operation: Zero-argument callable performing the write
            description: Human label used in logs and the alert
            attempts: Maximum number of tries

        Returns:
            WriteOutcome with the operation's return value on success
        """
        last_error: Exception | None = None
        for attempt in range(1, attempts + 1):
            try:
                value = operation()
                return WriteOutcome(succeeded=True, attempts=attempt, value=value)
            except Exception as e:
                last_error = e
                logger.warning(
                    "%s failed (attempt %d/%d): %s", description, attempt, attempts, e
                )
                if attempt < attempts:
                    self._sleep(self._base_delay * attempt)

        message = str(last_error)
        logger.error(
            "%s failed after %d attempts: %s",
            description,
            attempts,
            message,
            extra={"operation": description, "attempts": attempts},
        )
        self._send_alert(description, message)
        return WriteOutcome(succeeded=False, attempts=attempts, error=message)

    def _send_alert(self, description: str, message: str) -> None:
        """POST a failure notice to the alert webhook, if configured."""
        if not self._alert_webhook_url:
            return
        payload = {
            "text": f"Stripe webhook write failed: {description}",
            "context": {
                "description": description,
                "ts": datetime.now(timezone.utc).isoformat(),
                "message": message,
            },
        }
        try:
            if self._http_client is not None:
                self._http_client.post(self._alert_webhook_url, json=payload)
            else:
                httpx.post(self._alert_webhook_url, json=payload, timeout=5.0)
        except Exception as e:
            # alert failures are logged only
            logger.error("Failed to send write-failure alert: %s", e)
