"""
Learning booklet ("livret d'apprentissage") models.

Evaluation points are a fixed rubric shared by every school. Appreciations
are append-only; the latest one per (student, point) is the current rating.
"""

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship
import ulid

from ..database import Base

if TYPE_CHECKING:
    from .user import User


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class EvaluationPoint(Base):
    __tablename__ = "evaluation_points"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    code: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)
    label: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class Appreciation(Base):
    __tablename__ = "appreciations"

    __table_args__ = (
        Index("ix_appreciations_student_point", "student_id", "point_id", "created_at"),
    )

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    school_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("schools.id", ondelete="CASCADE"), nullable=False
    )
    student_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    instructor_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    point_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("evaluation_points.id", ondelete="CASCADE"), nullable=False
    )
    level: Mapped[str] = mapped_column(String(20), nullable=False)
    comment: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_now_utc, server_default=func.now(), nullable=False
    )

    point: Mapped[EvaluationPoint] = relationship("EvaluationPoint")
    instructor: Mapped["User"] = relationship("User", foreign_keys=[instructor_id])
