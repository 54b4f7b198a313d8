"""Event publisher - writes domain events to the transactional outbox."""
from datetime import date, datetime, time
import logging
from typing import Any, Dict, Protocol

from app.models.event_outbox import EventOutbox
from app.repositories.event_outbox_repository import EventOutboxRepository

logger = logging.getLogger(__name__)


class Event(Protocol):
    """Protocol for event types."""

    topic: str
    school_id: str

    def to_dict(self) -> Dict[str, Any]:
        ...


def _json_ready(payload: Dict[str, Any]) -> Dict[str, Any]:
    # Convert date/time objects to ISO strings for JSON serialization
    return {
        key: value.isoformat() if isinstance(value, (datetime, date, time)) else value
        for key, value in payload.items()
    }


class EventPublisher:
    """Publishes domain events to the outbox for async relay.

    ``publish`` must run inside the caller's transaction: the event row
    commits or rolls back together with the change it describes.
    """

    def __init__(self, outbox_repository: EventOutboxRepository):
        self.outbox_repo = outbox_repository

    def publish(self, event: Event) -> EventOutbox:
        event_type = type(event).__name__
        payload = _json_ready(event.to_dict())
        aggregate_id = str(payload.get("slot_id") or payload.get("payment_id") or "")

        key_fn = getattr(event, "idempotency_key", None)
        key = (
            key_fn()
            if callable(key_fn)
            else f"{event_type}:{aggregate_id}:{payload.get('occurred_at', '')}"
        )

        row = self.outbox_repo.enqueue(
            event_type=event_type,
            topic=event.topic,
            aggregate_id=aggregate_id,
            school_id=event.school_id,
            payload=payload,
            idempotency_key=key,
        )
        logger.debug("Queued %s for %s", event_type, aggregate_id)
        return row
