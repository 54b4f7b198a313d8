# backend/app/repositories/__init__.py
"""
Repository layer for the auto-école backend.

Repositories own every query; services own the transaction. Build them
through ``RepositoryFactory``:

    repository = RepositoryFactory.create_slot_repository(db)
    slot = repository.get_for_school(slot_id, actor.school_id)
"""

from .base_repository import BaseRepository
from .evaluation_repository import EvaluationRepository
from .event_outbox_repository import EventOutboxRepository
from .factory import RepositoryFactory
from .hours_ledger_repository import HoursLedgerRepository
from .package_repository import PackageRepository
from .payment_repository import PaymentRepository
from .slot_repository import SlotRepository
from .user_repository import UserRepository

__all__ = [
    "BaseRepository",
    "EvaluationRepository",
    "EventOutboxRepository",
    "HoursLedgerRepository",
    "PackageRepository",
    "PaymentRepository",
    "RepositoryFactory",
    "SlotRepository",
    "UserRepository",
]
