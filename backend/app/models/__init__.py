"""
Database models for the auto-école backend.

The models are organized by functionality:
- Tenancy and users (School, User)
- Lesson slots and the hours ledger audit trail
- Packages, price list and payments
- Learning booklet (evaluation points and appreciations)
- Event outbox for change notification
"""

from .evaluation import Appreciation, EvaluationPoint
from .event_outbox import EventOutbox, EventOutboxStatus
from .hours_ledger import HoursLedgerEntry
from .package import Package, PriceListEntry
from .payment import Payment, StripeCustomer
from .school import School
from .slot import Slot
from .user import User

__all__ = [
    "Appreciation",
    "EvaluationPoint",
    "EventOutbox",
    "EventOutboxStatus",
    "HoursLedgerEntry",
    "Package",
    "Payment",
    "PriceListEntry",
    "School",
    "Slot",
    "StripeCustomer",
    "User",
]
