"""Structured logging utilities with correlation ID support.

Provides:
- Correlation ID context management (the webhook route uses the Stripe
  event ID so every line for one delivery can be grepped together)
- Structured formatter for consistent log output
- Helpers for webhook and settlement logging

Usage:
    from portal_shared.utils.logging import get_logger, set_correlation_id

    set_correlation_id(event_id)
    logger = get_logger(__name__)
    logger.info("Job updated", extra={"job_id": "job1"})
"""

import logging
import uuid
from contextvars import ContextVar
from typing import Any

_correlation_id: ContextVar[str | None] = ContextVar("correlation_id", default=None)

NO_CORRELATION_ID = "no-correlation-id"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def set_correlation_id(correlation_id: str | None = None) -> str:
    """Set the correlation ID for the current context, generating one if absent."""
    cid = correlation_id or str(uuid.uuid4())
    _correlation_id.set(cid)
    return cid


def get_correlation_id() -> str | None:
    return _correlation_id.get()


def clear_correlation_id() -> None:
    _correlation_id.set(None)


class CorrelationIdFilter(logging.Filter):
    """Logging filter that adds correlation_id to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_correlation_id() or NO_CORRELATION_ID
        return True


class StructuredFormatter(logging.Formatter):
    """Formatter that prefixes each line with its correlation ID."""

    def format(self, record: logging.LogRecord) -> str:
        if not hasattr(record, "correlation_id"):
            record.correlation_id = get_correlation_id() or NO_CORRELATION_ID
        base = super().format(record)
        return f"[{record.correlation_id}] {base}"


def configure_logging(level: int | str = logging.INFO) -> None:
    """Install the structured formatter on the root logger.

    Safe to call more than once; an existing stream handler is reused.
    """
    root = logging.getLogger()
    root.setLevel(level)
    handler = next(
        (h for h in root.handlers if isinstance(h, logging.StreamHandler)),
        None,
    )
    if handler is None:
        handler = logging.StreamHandler()
        root.addHandler(handler)
    handler.setFormatter(StructuredFormatter(LOG_FORMAT))


def get_logger(name: str) -> logging.Logger:
    """Get a logger with correlation ID support."""
    logger = logging.getLogger(name)
    if not any(isinstance(f, CorrelationIdFilter) for f in logger.filters):
        logger.addFilter(CorrelationIdFilter())
    return logger


def _emit(logger: logging.Logger, level: int, headline: str, context: dict[str, Any]) -> None:
    """Log ``headline | key=value ...`` with the same fields as ``extra``."""
    fields = {key: value for key, value in context.items() if value is not None and value != ""}
    details = " | ".join(f"{key}={value}" for key, value in fields.items())
    logger.log(level, f"{headline} | {details}" if details else headline, extra=fields)


def log_webhook_event(
    logger: logging.Logger,
    event_type: str,
    event_id: str,
    *,
    user_id: str | None = None,
    job_id: str | None = None,
    result: str | None = None,
    error: str | None = None,
    **extra: Any,
) -> None:
    """Log one step in the life of a Stripe event.

    ``result`` is one of received, success, duplicate, skipped or error and
    picks the level: error logs at ERROR, duplicate and skipped at WARNING.
    """
    if result == "error":
        level = logging.ERROR
    elif result in ("duplicate", "skipped"):
        level = logging.WARNING
    else:
        level = logging.INFO
    context = {"result": result, "user_id": user_id, "job_id": job_id, "error": error, **extra}
    _emit(logger, level, f"Webhook event: {event_type} ({event_id})", context)


def log_settlement(
    logger: logging.Logger,
    operation: str,
    *,
    job_id: str | None = None,
    quote_id: str | None = None,
    payment_intent_id: str | None = None,
    payment_type: str | None = None,
    amount: int | None = None,
    error: str | None = None,
    **extra: Any,
) -> None:
    """Log a job payment settlement step (amounts in minor units)."""
    context = {
        "job_id": job_id,
        "quote_id": quote_id,
        "payment_intent_id": payment_intent_id,
        "payment_type": payment_type,
        "amount": amount,
        "error": error,
        **extra,
    }
    _emit(logger, logging.ERROR if error else logging.INFO, f"Settlement: {operation}", context)
