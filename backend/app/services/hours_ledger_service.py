"""
Hours ledger service.

The only code path that changes ``users.hours_remaining``. Both directions
are single conditional UPDATE statements evaluated by the database, and
every successful move appends an ``hours_ledger_entries`` row.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from app.core.enums import LedgerReason, RoleName
from app.core.exceptions import (
    InsufficientHoursException,
    NotFoundException,
    UnauthorizedActionException,
    ValidationException,
)
from app.models.hours_ledger import HoursLedgerEntry
from app.monitoring.prometheus_metrics import prometheus_metrics
from app.principal import Actor
from app.repositories.factory import RepositoryFactory

from .base import BaseService

logger = logging.getLogger(__name__)


def _validate_amount(amount: int) -> None:
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise ValidationException(
            "Amount must be a positive whole number of hours",
            code="INVALID_AMOUNT",
            details={"amount": amount},
        )


class HoursLedgerService(BaseService):
    """Atomic decrement/increment of a student's hours balance."""

    def __init__(self, db: Session):
        super().__init__(db)
        self.user_repository = RepositoryFactory.create_user_repository(db)
        self.ledger_repository = RepositoryFactory.create_hours_ledger_repository(db)

    @BaseService.measure_operation("hours_decrement")
    def decrement(
        self,
        *,
        school_id: str,
        user_id: str,
        amount: int = 1,
        reason: LedgerReason,
        slot_id: Optional[str] = None,
        use_transaction: bool = True,
    ) -> int:
        """Debit ``amount`` hours; returns the new balance.

        Raises InsufficientHoursException when the balance would go negative.
        With ``use_transaction=False`` the caller owns commit and rollback.
        """
        _validate_amount(amount)

        def _decrement() -> int:
            changed = self.user_repository.decrement_hours(
                user_id=user_id, school_id=school_id, amount=amount
            )
            if changed == 0:
                raise InsufficientHoursException(user_id, requested=amount)
            return self._append_entry(
                school_id=school_id,
                user_id=user_id,
                delta=-amount,
                reason=reason,
                slot_id=slot_id,
            )

        if use_transaction:
            with self.transaction():
                balance = _decrement()
        else:
            balance = _decrement()
        prometheus_metrics.inc_hours_move(LedgerReason(reason).value)
        return balance

    @BaseService.measure_operation("hours_increment")
    def increment(
        self,
        *,
        school_id: str,
        user_id: str,
        amount: int,
        reason: LedgerReason,
        slot_id: Optional[str] = None,
        payment_id: Optional[str] = None,
        use_transaction: bool = True,
    ) -> int:
        """Credit ``amount`` hours; returns the new balance."""
        _validate_amount(amount)

        def _increment() -> int:
            changed = self.user_repository.increment_hours(
                user_id=user_id, school_id=school_id, amount=amount
            )
            if changed == 0:
                raise NotFoundException(
                    "User not found", code="USER_NOT_FOUND", details={"user_id": user_id}
                )
            return self._append_entry(
                school_id=school_id,
                user_id=user_id,
                delta=amount,
                reason=reason,
                slot_id=slot_id,
                payment_id=payment_id,
            )

        if use_transaction:
            with self.transaction():
                balance = _increment()
        else:
            balance = _increment()
        prometheus_metrics.inc_hours_move(LedgerReason(reason).value)
        return balance

    # ------------------------------------------------------------ read models
    @BaseService.measure_operation("hours_get_balance")
    def get_balance(self, actor: Actor, user_id: str) -> int:
        self._authorize_read(actor, user_id)
        balance = self.user_repository.get_hours_remaining(
            user_id=user_id, school_id=actor.school_id
        )
        if balance is None:
            raise NotFoundException("User not found", code="USER_NOT_FOUND")
        return balance

    @BaseService.measure_operation("hours_list_entries")
    def list_entries(self, actor: Actor, user_id: str, limit: int = 100) -> List[HoursLedgerEntry]:
        self._authorize_read(actor, user_id)
        if self.user_repository.get_in_school(user_id, actor.school_id) is None:
            raise NotFoundException("User not found", code="USER_NOT_FOUND")
        return self.ledger_repository.list_for_user(
            user_id=user_id, school_id=actor.school_id, limit=limit
        )

    def _authorize_read(self, actor: Actor, user_id: str) -> None:
        if actor.is_student and actor.user_id != user_id:
            raise UnauthorizedActionException("Students can only view their own hours")
        actor.require_role(RoleName.STUDENT, RoleName.INSTRUCTOR, RoleName.ADMIN)

    def _append_entry(
        self,
        *,
        school_id: str,
        user_id: str,
        delta: int,
        reason: LedgerReason,
        slot_id: Optional[str] = None,
        payment_id: Optional[str] = None,
    ) -> int:
        balance = self.user_repository.get_hours_remaining(user_id=user_id, school_id=school_id)
        self.ledger_repository.create(
            school_id=school_id,
            user_id=user_id,
            delta=delta,
            balance_after=int(balance or 0),
            reason=LedgerReason(reason).value,
            slot_id=slot_id,
            payment_id=payment_id,
        )
        self.logger.info(
            "Hours %+d for user %s (%s), balance now %s",
            delta,
            user_id,
            LedgerReason(reason).value,
            balance,
        )
        return int(balance or 0)
