# backend/app/repositories/slot_repository.py
"""
Slot Repository

Data access for lesson slots. State transitions are written as conditional
UPDATE/DELETE statements (compare-and-swap): each returns the number of rows
it changed, and zero means another request got there first. Callers run
them inside the service's transaction.
"""

from __future__ import annotations

from datetime import date, datetime
import logging
from typing import List, Optional, Sequence, Tuple, cast

from sqlalchemy import delete, or_, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.exceptions import RepositoryException
from app.models.school import School
from app.models.slot import Slot

from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class SlotRepository(BaseRepository[Slot]):
    """Repository for lesson slots."""

    def __init__(self, db: Session):
        super().__init__(db, Slot)
        self.logger = logging.getLogger(__name__)

    def get_for_school(self, slot_id: str, school_id: str) -> Optional[Slot]:
        """Return the slot only if it belongs to the given school."""
        try:
            return cast(
                Optional[Slot],
                self.db.query(Slot)
                .filter(Slot.id == slot_id, Slot.school_id == school_id)
                .one_or_none(),
            )
        except SQLAlchemyError as exc:
            self.logger.error("Failed to load slot %s: %s", slot_id, exc)
            raise RepositoryException("Failed to load slot") from exc

    # ------------------------------------------------------------ transitions
    def claim_for_student(self, *, slot_id: str, school_id: str, student_id: str) -> int:
        """open -> reserved, only if nobody holds it and it is not completed."""
        stmt = (
            update(Slot)
            .where(
                Slot.id == slot_id,
                Slot.school_id == school_id,
                Slot.reserved.is_(False),
                Slot.passed.is_(False),
            )
            .values(reserved=True, student_id=student_id)
            .execution_options(synchronize_session="fetch")
        )
        return self._execute_rowcount(stmt, "claim slot")

    def release_reservation(self, *, slot_id: str, school_id: str, student_id: str) -> int:
        """reserved -> open, only if the same student still holds it."""
        stmt = (
            update(Slot)
            .where(
                Slot.id == slot_id,
                Slot.school_id == school_id,
                Slot.reserved.is_(True),
                Slot.passed.is_(False),
                Slot.student_id == student_id,
            )
            .values(reserved=False, student_id=None)
            .execution_options(synchronize_session="fetch")
        )
        return self._execute_rowcount(stmt, "release slot")

    def delete_open(self, *, slot_id: str, school_id: str) -> int:
        """Delete a slot nobody reserved."""
        stmt = (
            delete(Slot)
            .where(
                Slot.id == slot_id,
                Slot.school_id == school_id,
                Slot.reserved.is_(False),
                Slot.passed.is_(False),
            )
            .execution_options(synchronize_session="fetch")
        )
        return self._execute_rowcount(stmt, "delete slot")

    def set_comment_once(
        self, *, slot_id: str, school_id: str, comment: str, commented_at: datetime
    ) -> int:
        """Write the instructor comment on a completed slot that has none yet."""
        stmt = (
            update(Slot)
            .where(
                Slot.id == slot_id,
                Slot.school_id == school_id,
                Slot.passed.is_(True),
                Slot.instructor_comment.is_(None),
            )
            .values(instructor_comment=comment, commented_at=commented_at)
            .execution_options(synchronize_session="fetch")
        )
        return self._execute_rowcount(stmt, "comment slot")

    def mark_passed(self, slot_ids: Sequence[str]) -> int:
        """Flip ``passed`` on reserved slots; already-passed rows are left alone."""
        if not slot_ids:
            return 0
        stmt = (
            update(Slot)
            .where(
                Slot.id.in_(list(slot_ids)),
                Slot.reserved.is_(True),
                Slot.passed.is_(False),
            )
            .values(passed=True)
            .execution_options(synchronize_session="fetch")
        )
        return self._execute_rowcount(stmt, "mark slots passed")

    # ---------------------------------------------------------------- queries
    def find_sweep_candidates(
        self, *, up_to: date, school_id: Optional[str] = None
    ) -> List[Tuple[Slot, str]]:
        """Reserved, not yet passed slots dated on or before ``up_to`` with their school timezone."""
        try:
            query = (
                self.db.query(Slot, School.timezone)
                .join(School, School.id == Slot.school_id)
                .filter(
                    Slot.reserved.is_(True),
                    Slot.passed.is_(False),
                    Slot.date <= up_to,
                )
            )
            if school_id:
                query = query.filter(Slot.school_id == school_id)
            return [(slot, tz) for slot, tz in query.order_by(Slot.date, Slot.start_time).all()]
        except SQLAlchemyError as exc:
            self.logger.error("Failed to load sweep candidates: %s", exc)
            raise RepositoryException("Failed to load sweep candidates") from exc

    def list_calendar(
        self, *, school_id: str, from_date: date, student_id: Optional[str] = None
    ) -> List[Slot]:
        """Slots from ``from_date`` on; a student only sees open slots and their own."""
        try:
            query = self.db.query(Slot).filter(
                Slot.school_id == school_id,
                Slot.date >= from_date,
            )
            if student_id is not None:
                query = query.filter(or_(Slot.reserved.is_(False), Slot.student_id == student_id))
            return cast(List[Slot], query.order_by(Slot.date, Slot.start_time).all())
        except SQLAlchemyError as exc:
            self.logger.error("Failed to load calendar: %s", exc)
            raise RepositoryException("Failed to load calendar") from exc

    def list_for_participant(
        self,
        *,
        school_id: str,
        student_id: Optional[str] = None,
        instructor_id: Optional[str] = None,
        reserved: Optional[bool] = None,
        passed: Optional[bool] = None,
    ) -> List[Slot]:
        """Slots of one student or instructor, newest first."""
        try:
            query = self.db.query(Slot).filter(Slot.school_id == school_id)
            if student_id is not None:
                query = query.filter(Slot.student_id == student_id)
            if instructor_id is not None:
                query = query.filter(Slot.instructor_id == instructor_id)
            if reserved is not None:
                query = query.filter(Slot.reserved.is_(reserved))
            if passed is not None:
                query = query.filter(Slot.passed.is_(passed))
            return cast(
                List[Slot],
                query.order_by(Slot.date.desc(), Slot.start_time.desc()).all(),
            )
        except SQLAlchemyError as exc:
            self.logger.error("Failed to list slots: %s", exc)
            raise RepositoryException("Failed to list slots") from exc

    def _execute_rowcount(self, stmt, op: str) -> int:
        try:
            result = self.db.execute(stmt)
            return int(result.rowcount or 0)
        except SQLAlchemyError as exc:
            self.logger.error("Failed to %s: %s", op, exc)
            raise RepositoryException(f"Failed to {op}") from exc


__all__ = ["SlotRepository"]
