# backend/app/models/user.py
"""
User model for the auto-école backend.

Students, instructors and admins share one table, differentiated by
``role``. Authentication lives with the external auth provider; ``id`` is
the provider's subject claim.

``hours_remaining`` is the student's hours ledger balance. It is only ever
changed by ``HoursLedgerService`` through single-statement SQL updates.
"""

from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship
import ulid

from ..core.enums import RoleName
from ..database import Base

if TYPE_CHECKING:
    from .package import Package
    from .school import School


class User(Base):
    """A member of a school."""

    __tablename__ = "users"

    __table_args__ = (
        CheckConstraint("hours_remaining >= 0", name="ck_users_hours_remaining_non_negative"),
        Index("ix_users_school_role", "school_id", "role"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(ulid.ULID()))
    school_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("schools.id", ondelete="CASCADE"), nullable=False
    )
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    first_name: Mapped[str] = mapped_column(String(50), nullable=False, default="")
    last_name: Mapped[str] = mapped_column(String(50), nullable=False, default="")
    role: Mapped[str] = mapped_column(String(20), nullable=False, default=RoleName.STUDENT.value)
    hours_remaining: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    active_package_id: Mapped[Optional[str]] = mapped_column(
        String(26), ForeignKey("packages.id", ondelete="SET NULL"), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), onupdate=func.now()
    )

    school: Mapped["School"] = relationship("School")
    active_package: Mapped[Optional["Package"]] = relationship("Package")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def __repr__(self) -> str:
        return f"<User(id={self.id}, role={self.role}, hours={self.hours_remaining})>"
