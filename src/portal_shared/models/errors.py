"""Standard error codes for the billing webhook pipeline.

Only request-level failures are modelled here. Problems inside a handler
(missing metadata, orphaned subscriptions, failed writes) are logged and
reported through ``ProcessingResult`` rather than raised.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict


class ErrorCode(str, Enum):
    """Error codes surfaced to the webhook sender."""

    WEBHOOK_SECRET_NOT_CONFIGURED = "ERR_WEBHOOK_001"
    INVALID_WEBHOOK_SIGNATURE = "ERR_WEBHOOK_002"
    MALFORMED_EVENT = "ERR_WEBHOOK_003"
    EVENT_PROCESSING_FAILED = "ERR_WEBHOOK_004"


ERROR_MESSAGES: dict[ErrorCode, str] = {
    ErrorCode.WEBHOOK_SECRET_NOT_CONFIGURED: "Webhook secret not configured",
    ErrorCode.INVALID_WEBHOOK_SIGNATURE: "Invalid webhook signature",
    ErrorCode.MALFORMED_EVENT: "Malformed webhook event",
    ErrorCode.EVENT_PROCESSING_FAILED: "Webhook event processing failed",
}


class ErrorResponse(BaseModel):
    """JSON body returned for a failed webhook request."""

    model_config = ConfigDict(strict=True)

    success: bool = False
    error_code: ErrorCode
    message: str
    details: Optional[dict[str, str]] = None

    @classmethod
    def from_code(
        cls,
        code: ErrorCode,
        details: Optional[dict[str, str]] = None,
    ) -> "ErrorResponse":
        return cls(error_code=code, message=ERROR_MESSAGES[code], details=details)


class WebhookError(Exception):
    """Request-level webhook failure, converted to an HTTP response by the API."""

    def __init__(
        self,
        code: ErrorCode,
        details: Optional[dict[str, str]] = None,
    ):
        self.code = code
        self.message = ERROR_MESSAGES[code]
        self.details = details
        super().__init__(self.message)

    def to_response(self) -> ErrorResponse:
        return ErrorResponse.from_code(self.code, self.details)
