"""Domain events, the outbox publisher and the Redis relay."""

from app.events.payment_events import PaymentReconciled
from app.events.publisher import EventPublisher
from app.events.slot_events import (
    SlotCancelled,
    SlotCommented,
    SlotCreated,
    SlotDeleted,
    SlotReserved,
    SlotSwept,
)

__all__ = [
    "EventPublisher",
    "PaymentReconciled",
    "SlotCancelled",
    "SlotCommented",
    "SlotCreated",
    "SlotDeleted",
    "SlotReserved",
    "SlotSwept",
]
