"""Settlement of one-off job payments (deposit and final).

A succeeded PaymentIntent is recorded twice: as a mirror on the accepted
quote (plain overwrite) and as an entry in the job's ``payments`` list,
which holds at most one entry per ``(payment_intent_id, type)``. Both
parties are then emailed. Emails are best-effort.
"""

from datetime import datetime, timezone
from typing import Any

from ..models.enums import JobPaymentStatus, PaymentType, ProcessingResult
from ..models.job import PaymentRecord, QuotePaymentMirror
from ..models.stripe_events import PaymentIntent, from_unix
from ..models.stripe_webhook import HandlerResult
from ..utils.logging import get_logger, log_settlement
from .email_service import EmailService
from .job_service import JobService
from .resilient_write import ResilientWriter
from .stripe_service import StripeService
from .user_service import UserService

logger = get_logger(__name__)

REQUIRED_METADATA = ("jobId", "quoteId", "paymentType")

_STATUS_BY_TYPE = {
    PaymentType.DEPOSIT: JobPaymentStatus.DEPOSIT_PAID,
    PaymentType.FINAL: JobPaymentStatus.FULLY_PAID,
}
_INTENT_FIELD_BY_TYPE = {
    PaymentType.DEPOSIT: "deposit_payment_intent_id",
    PaymentType.FINAL: "final_payment_intent_id",
}


def merge_payment(existing: list[dict[str, Any]], record: PaymentRecord) -> list[dict[str, Any]]:
    """Put ``record`` into a stored payments list without duplicating it.

    Any entry for the same (intent, type) is replaced by the new record
    laid over it; a receipt URL already on file survives if the new
    record has none.
    """
    previous = next((item for item in existing if record.matches(item)), None)
    merged = {**(previous or {}), **record.to_item()}
    merged["receipt_url"] = record.receipt_url or (previous or {}).get("receipt_url")
    return [item for item in existing if not record.matches(item)] + [merged]


class PaymentSettlementHandler:
    def __init__(
        self,
        stripe_service: StripeService,
        jobs: JobService,
        users: UserService,
        emails: EmailService,
        writer: ResilientWriter,
    ) -> None:
        self._stripe = stripe_service
        self._jobs = jobs
        self._users = users
        self._emails = emails
        self._writer = writer

    def handle_payment_succeeded(self, intent: PaymentIntent) -> HandlerResult:
        missing = [key for key in REQUIRED_METADATA if not intent.metadata.get(key)]
        if missing:
            logger.warning(
                "PaymentIntent %s missing metadata %s", intent.id, ", ".join(missing)
            )
            return ProcessingResult.SKIPPED, f"Missing metadata: {', '.join(missing)}"

        job_id = intent.metadata["jobId"]
        quote_id = intent.metadata["quoteId"]
        try:
            payment_type = PaymentType(intent.metadata["paymentType"])
        except ValueError:
            logger.warning(
                "PaymentIntent %s has unknown paymentType %r",
                intent.id,
                intent.metadata["paymentType"],
            )
            return ProcessingResult.SKIPPED, "Unknown paymentType"

        record = PaymentRecord(
            type=payment_type,
            payment_intent_id=intent.id,
            amount=intent.amount,
            paid_at=from_unix(intent.created),
            receipt_url=self._receipt_url(intent),
        )

        mirror = QuotePaymentMirror(payment_intent_id=intent.id, paid_at=record.paid_at)
        self._writer.execute(
            lambda: self._jobs.merge_quote(job_id, quote_id, mirror.to_item_fields()),
            f"Update quote {quote_id} for job {job_id}",
        )

        def update_job() -> dict[str, Any] | None:
            item = self._jobs.get_job_item(job_id) or {}
            payments = merge_payment(list(item.get("payments") or []), record)
            return self._jobs.merge_job(
                job_id,
                {
                    "payment_status": _STATUS_BY_TYPE[payment_type].value,
                    _INTENT_FIELD_BY_TYPE[payment_type]: intent.id,
                    "payments": payments,
                    "updated_at": datetime.now(timezone.utc).isoformat(),
                },
            )

        outcome = self._writer.execute(
            update_job, f"Update job {job_id} with payment {intent.id} (deduped)"
        )
        log_settlement(
            logger,
            "job_payment_recorded",
            job_id=job_id,
            quote_id=quote_id,
            payment_intent_id=intent.id,
            payment_type=payment_type.value,
            amount=intent.amount,
            error=outcome.error,
        )

        self._notify(job_id, payment_type, intent.amount)
        return ProcessingResult.SUCCESS, None

    def handle_payment_failed(self, intent: PaymentIntent) -> HandlerResult:
        logger.info(
            "payment_intent.payment_failed for %s (status %s, metadata %s)",
            intent.id,
            intent.status,
            intent.metadata,
        )
        return ProcessingResult.SKIPPED, "Payment failure logged"

    def _receipt_url(self, intent: PaymentIntent) -> str | None:
        charge = intent.latest_charge
        try:
            if isinstance(charge, str):
                charge = self._stripe.retrieve_charge(charge)
            receipt_url = charge.get("receipt_url") if isinstance(charge, dict) else None
        except Exception as e:
            logger.error("Could not load receipt URL for %s: %s", intent.id, e)
            return None
        if not receipt_url:
            logger.warning("No receipt URL on the latest charge of %s", intent.id)
        return receipt_url

    def _notify(self, job_id: str, payment_type: PaymentType, amount: int) -> None:
        """Email both parties about the settled payment."""
        try:
            job = self._jobs.get_job(job_id)
            if job is None:
                logger.warning("Job %s not found; payment emails not sent", job_id)
                return
            customer = self._users.get_user_by_id(job.customer_id) if job.customer_id else None
            tradesperson = (
                self._users.get_user_by_id(job.tradesperson_id) if job.tradesperson_id else None
            )
        except Exception as e:
            logger.error("Could not load parties for job %s: %s", job_id, e)
            return

        pounds = amount / 100
        if payment_type == PaymentType.DEPOSIT:
            if customer and customer.email:
                self._emails.send_deposit_paid_email(
                    customer.email, "customer", job.title, pounds, customer.display_name
                )
            if tradesperson and tradesperson.email:
                self._emails.send_deposit_paid_email(
                    tradesperson.email, "tradesperson", job.title, pounds, tradesperson.display_name
                )
        else:
            if customer and customer.email:
                self._emails.send_job_complete_email(customer.email, job_id, customer.display_name)
            if tradesperson and tradesperson.email:
                self._emails.send_final_payment_paid_email(
                    tradesperson.email, job.title, pounds, tradesperson.display_name
                )
