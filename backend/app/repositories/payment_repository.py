# backend/app/repositories/payment_repository.py
"""
Payment Repository

Payments, and the Stripe customer mapping used to find out who paid.
"""

from __future__ import annotations

import logging
from typing import List, Optional, cast

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.exceptions import RepositoryException
from app.models.payment import Payment, StripeCustomer

from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class PaymentRepository(BaseRepository[Payment]):
    """Repository for payment records."""

    def __init__(self, db: Session):
        super().__init__(db, Payment)
        self.logger = logging.getLogger(__name__)

    def get_by_provider_payment_id(self, provider_payment_id: str) -> Optional[Payment]:
        try:
            return cast(
                Optional[Payment],
                self.db.query(Payment)
                .filter(Payment.provider_payment_id == provider_payment_id)
                .one_or_none(),
            )
        except SQLAlchemyError as exc:
            self.logger.error("Failed to load payment %s: %s", provider_payment_id, exc)
            raise RepositoryException("Failed to load payment") from exc

    def find_user_id_by_customer(self, stripe_customer_id: str) -> Optional[str]:
        try:
            row = (
                self.db.query(StripeCustomer.user_id)
                .filter(StripeCustomer.stripe_customer_id == stripe_customer_id)
                .one_or_none()
            )
            return None if row is None else str(row[0])
        except SQLAlchemyError as exc:
            self.logger.error("Failed to resolve customer %s: %s", stripe_customer_id, exc)
            raise RepositoryException("Failed to resolve customer") from exc

    def get_customer_by_user_id(self, user_id: str) -> Optional[StripeCustomer]:
        try:
            return cast(
                Optional[StripeCustomer],
                self.db.query(StripeCustomer)
                .filter(StripeCustomer.user_id == user_id)
                .one_or_none(),
            )
        except SQLAlchemyError as exc:
            self.logger.error("Failed to load Stripe customer of %s: %s", user_id, exc)
            raise RepositoryException("Failed to load Stripe customer") from exc

    def create_customer_record(self, *, user_id: str, stripe_customer_id: str) -> StripeCustomer:
        """Map a user to their Stripe customer (one customer per user)."""
        try:
            record = StripeCustomer(user_id=user_id, stripe_customer_id=stripe_customer_id)
            self.db.add(record)
            self.db.flush()
            return record
        except IntegrityError as exc:
            self.logger.info("Stripe customer already mapped for %s: %s", user_id, exc.orig)
            self.db.rollback()
            raise RepositoryException(f"Integrity constraint violated: {exc.orig}") from exc
        except SQLAlchemyError as exc:
            self.logger.error("Failed to store Stripe customer of %s: %s", user_id, exc)
            self.db.rollback()
            raise RepositoryException("Failed to store Stripe customer") from exc

    def set_receipt_url(self, *, payment_id: str, receipt_url: str) -> int:
        try:
            result = self.db.execute(
                update(Payment)
                .where(Payment.id == payment_id)
                .values(receipt_url=receipt_url)
                .execution_options(synchronize_session="fetch")
            )
            return int(result.rowcount or 0)
        except SQLAlchemyError as exc:
            self.logger.error("Failed to store receipt for %s: %s", payment_id, exc)
            raise RepositoryException("Failed to store receipt url") from exc

    def list_for_school(
        self, *, school_id: str, user_id: Optional[str] = None, limit: int = 100
    ) -> List[Payment]:
        """Invoices, newest first; restricted to one user when ``user_id`` is given."""
        try:
            query = self.db.query(Payment).filter(Payment.school_id == school_id)
            if user_id is not None:
                query = query.filter(Payment.user_id == user_id)
            return cast(
                List[Payment],
                query.order_by(Payment.created_at.desc(), Payment.id.desc()).limit(limit).all(),
            )
        except SQLAlchemyError as exc:
            self.logger.error("Failed to list payments: %s", exc)
            raise RepositoryException("Failed to list payments") from exc


__all__ = ["PaymentRepository"]
