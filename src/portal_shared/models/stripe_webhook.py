"""Processed-event marker stored in the dedup ledger."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .enums import ProcessingResult


class ProcessedEventMarker(BaseModel):
    """Claim on a Stripe event ID.

    Written before the event is dispatched; its existence alone means the
    event must not be dispatched again. The result fields are filled in
    afterwards as an audit trail and play no part in deduplication.
    """

    model_config = ConfigDict(extra="ignore")

    event_id: str = Field(..., description="Stripe event ID (evt_xxx)")
    event_type: str | None = Field(default=None, description="Stripe event type")
    processed_at: datetime = Field(..., description="When the event was claimed")
    processing_result: ProcessingResult = Field(default=ProcessingResult.PROCESSING)
    error_message: str | None = None
    completed_at: datetime | None = None

    def to_item(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


# (result, message) returned by every event handler
HandlerResult = tuple[ProcessingResult, str | None]
