# backend/app/repositories/factory.py
"""
Repository Factory for the auto-école backend

Provides centralized creation of repository instances,
ensuring consistent initialization and dependency injection.
"""

from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

from .base_repository import BaseRepository

# Avoid circular imports
if TYPE_CHECKING:
    from .evaluation_repository import EvaluationRepository
    from .event_outbox_repository import EventOutboxRepository
    from .hours_ledger_repository import HoursLedgerRepository
    from .package_repository import PackageRepository
    from .payment_repository import PaymentRepository
    from .slot_repository import SlotRepository
    from .user_repository import UserRepository


class RepositoryFactory:
    """
    Factory class for creating repository instances.

    Centralizes repository creation to ensure consistent initialization
    and makes it easy to swap implementations if needed.
    """

    @staticmethod
    def create_base_repository(db: Session, model) -> BaseRepository:
        """Create a generic base repository for any model."""
        return BaseRepository(db, model)

    @staticmethod
    def create_slot_repository(db: Session) -> "SlotRepository":
        """Create repository for lesson slots."""
        from .slot_repository import SlotRepository

        return SlotRepository(db)

    @staticmethod
    def create_user_repository(db: Session) -> "UserRepository":
        """Create repository for school members and hours balances."""
        from .user_repository import UserRepository

        return UserRepository(db)

    @staticmethod
    def create_hours_ledger_repository(db: Session) -> "HoursLedgerRepository":
        from .hours_ledger_repository import HoursLedgerRepository

        return HoursLedgerRepository(db)

    @staticmethod
    def create_package_repository(db: Session) -> "PackageRepository":
        from .package_repository import PackageRepository

        return PackageRepository(db)

    @staticmethod
    def create_payment_repository(db: Session) -> "PaymentRepository":
        """Create repository for payments and Stripe customer mapping."""
        from .payment_repository import PaymentRepository

        return PaymentRepository(db)

    @staticmethod
    def create_event_outbox_repository(db: Session) -> "EventOutboxRepository":
        from .event_outbox_repository import EventOutboxRepository

        return EventOutboxRepository(db)

    @staticmethod
    def create_evaluation_repository(db: Session) -> "EvaluationRepository":
        from .evaluation_repository import EvaluationRepository

        return EvaluationRepository(db)
