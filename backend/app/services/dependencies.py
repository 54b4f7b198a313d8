# backend/app/services/dependencies.py
"""
Dependency injection functions for services.

Usage in routes:
    slot_service: SlotService = Depends(get_slot_service)
"""

from fastapi import Depends
from sqlalchemy.orm import Session

from ..database import get_db
from .evaluation_service import EvaluationService
from .hours_ledger_service import HoursLedgerService
from .package_service import PackageService
from .payment_reconciliation_service import PaymentReconciliationService
from .slot_service import SlotService
from .stripe_service import StripeService


def get_hours_ledger_service(db: Session = Depends(get_db)) -> HoursLedgerService:
    return HoursLedgerService(db)


def get_slot_service(
    db: Session = Depends(get_db),
    hours_service: HoursLedgerService = Depends(get_hours_ledger_service),
) -> SlotService:
    return SlotService(db, hours_service=hours_service)


def get_stripe_service(db: Session = Depends(get_db)) -> StripeService:
    return StripeService(db)


def get_payment_reconciliation_service(
    db: Session = Depends(get_db),
    stripe_service: StripeService = Depends(get_stripe_service),
    hours_service: HoursLedgerService = Depends(get_hours_ledger_service),
) -> PaymentReconciliationService:
    return PaymentReconciliationService(db, stripe_service=stripe_service, hours_service=hours_service)


def get_evaluation_service(db: Session = Depends(get_db)) -> EvaluationService:
    return EvaluationService(db)


def get_package_service(db: Session = Depends(get_db)) -> PackageService:
    return PackageService(db)
