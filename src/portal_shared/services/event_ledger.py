"""Deduplication ledger of Stripe event IDs.

A marker is claimed before an event is dispatched. Once claimed the event
is never dispatched again, even if its handler later fails. Every lookup
or write problem is treated as "already processed": dropping a webhook is
preferred to applying a payment side effect twice.
"""

from datetime import datetime, timezone

from ..models.enums import ProcessingResult
from ..models.stripe_webhook import ProcessedEventMarker
from ..utils.logging import get_logger
from .dynamodb import DynamoDBService
from .resilient_write import ResilientWriter

logger = get_logger(__name__)

WEBHOOK_EVENTS_TABLE = "stripe-webhook-events"

_CLAIM_CONDITION = "attribute_not_exists(event_id)"


class EventLedger:
    """Processed-event markers stored in the ``stripe-webhook-events`` table."""

    def __init__(self, db: DynamoDBService, writer: ResilientWriter) -> None:
        self._db = db
        self._writer = writer

    def is_event_processed(self, event_id: str | None, event_type: str | None = None) -> bool:
        """Check for a marker and claim the event if there is none.

        Returns:
            False only when this call created the marker.
        """
        if not event_id:
            logger.warning("Event without an ID treated as processed")
            return True

        try:
            existing = self._db.get_item(WEBHOOK_EVENTS_TABLE, {"event_id": event_id})
        except Exception as e:
            logger.error("Ledger lookup failed for %s, skipping event: %s", event_id, e)
            return True
        if existing is not None:
            return True

        marker = ProcessedEventMarker(
            event_id=event_id,
            event_type=event_type,
            processed_at=datetime.now(timezone.utc),
        )

        outcome = self._writer.execute(
            lambda: self._db.put_item(
                WEBHOOK_EVENTS_TABLE, marker.to_item(), condition_expression=_CLAIM_CONDITION
            ),
            f"claim webhook event {event_id}",
        )
        if not outcome.succeeded:
            logger.error("Could not claim event %s, skipping: %s", event_id, outcome.error)
            return True
        if not outcome.value:
            # Another delivery created the marker between the read and the put.
            logger.info("Event %s claimed concurrently, skipping", event_id)
            return True
        return False

    def record_result(
        self,
        event_id: str,
        result: ProcessingResult,
        error_message: str | None = None,
    ) -> None:
        """Store the handler outcome on the marker (audit only)."""
        fields: dict[str, str] = {
            "processing_result": result.value,
            "completed_at": datetime.now(timezone.utc).isoformat(),
        }
        if error_message:
            fields["error_message"] = error_message
        self._writer.execute(
            lambda: self._db.merge_item(WEBHOOK_EVENTS_TABLE, {"event_id": event_id}, fields),
            f"record result for webhook event {event_id}",
        )
