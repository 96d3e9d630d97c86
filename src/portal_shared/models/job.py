"""Job and quote payment models."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .enums import JobPaymentStatus, PaymentType


class PaymentRecord(BaseModel):
    """One settled payment appended to a job's payment list.

    ``(payment_intent_id, type)`` identifies a record; a job holds at most
    one record per pair.
    """

    model_config = ConfigDict(extra="ignore")

    type: PaymentType
    payment_intent_id: str
    amount: int = Field(..., ge=0, description="Amount in minor units (pence)")
    paid_at: datetime
    receipt_url: str | None = None

    def matches(self, item: dict[str, Any]) -> bool:
        """Whether a stored payment item is this record's (intent, type) pair."""
        return (
            item.get("payment_intent_id") == self.payment_intent_id
            and item.get("type") == self.type.value
        )

    def to_item(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


class QuotePaymentMirror(BaseModel):
    """Payment fields mirrored onto the accepted quote."""

    payment_status: str = "succeeded"
    payment_intent_id: str
    paid_at: datetime

    def to_item_fields(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


class Job(BaseModel):
    """A job as stored in the jobs table (billing subset)."""

    model_config = ConfigDict(extra="ignore")

    job_id: str
    title: str = ""
    customer_id: str | None = None
    tradesperson_id: str | None = None
    payment_status: JobPaymentStatus | None = None
    deposit_payment_intent_id: str | None = None
    final_payment_intent_id: str | None = None
    payments: list[PaymentRecord] = Field(default_factory=list)
