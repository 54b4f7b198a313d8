# backend/app/models/slot.py
"""
Lesson slot model ("heure").

A slot is a single fixed-length lesson an instructor offers. Its state is
carried by two flags:

    open       reserved=False, passed=False, student_id NULL
    reserved   reserved=True,  passed=False, student_id set
    completed  reserved=True,  passed=True   (terminal)

``passed`` only ever moves from False to True. Cancelling a reservation
returns the slot to open; cancelling an open slot deletes the row.
"""

from datetime import date, datetime, time
from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    Time,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
import ulid

from ..database import Base

if TYPE_CHECKING:
    from .school import School
    from .user import User


class Slot(Base):
    """One bookable lesson owned by an instructor."""

    __tablename__ = "slots"

    __table_args__ = (
        CheckConstraint(
            "NOT reserved OR student_id IS NOT NULL", name="ck_slots_reserved_has_student"
        ),
        CheckConstraint("end_time > start_time", name="ck_slots_time_order"),
        Index("ix_slots_school_date", "school_id", "date"),
        Index("ix_slots_sweep", "reserved", "passed", "date"),
        Index("ix_slots_instructor_date", "instructor_id", "date"),
        Index("ix_slots_student_date", "student_id", "date"),
    )

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    school_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("schools.id", ondelete="CASCADE"), nullable=False
    )
    instructor_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    student_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    date: Mapped[date] = mapped_column(Date, nullable=False)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)

    vehicle: Mapped[str] = mapped_column(String(100), nullable=False)
    transmission: Mapped[str] = mapped_column(String(20), nullable=False)

    reserved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    passed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    instructor_comment: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    commented_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), onupdate=func.now()
    )

    school: Mapped["School"] = relationship("School")
    instructor: Mapped["User"] = relationship("User", foreign_keys=[instructor_id])
    student: Mapped[Optional["User"]] = relationship("User", foreign_keys=[student_id])

    @property
    def state(self) -> str:
        if self.passed:
            return "completed"
        if self.reserved:
            return "reserved"
        return "open"

    def __repr__(self) -> str:
        return (
            f"<Slot(id={self.id}, date={self.date}, start={self.start_time}, state={self.state})>"
        )
