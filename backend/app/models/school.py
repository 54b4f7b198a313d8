# backend/app/models/school.py
"""
School (tenant) model.

Every user, slot, package and payment belongs to exactly one school; core
queries are always filtered on ``school_id``.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, String, func
from sqlalchemy.orm import Mapped, mapped_column
import ulid

from ..core.constants import DEFAULT_CURRENCY, DEFAULT_SCHOOL_TIMEZONE
from ..database import Base


class School(Base):
    """A driving school ("auto-école")."""

    __tablename__ = "schools"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    # Plain column: users.school_id already points here
    admin_id: Mapped[Optional[str]] = mapped_column(String(26), nullable=True)
    timezone: Mapped[str] = mapped_column(
        String(64), nullable=False, default=DEFAULT_SCHOOL_TIMEZONE
    )
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default=DEFAULT_CURRENCY)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), onupdate=func.now()
    )

    def __repr__(self) -> str:
        return f"<School(slug={self.slug}, timezone={self.timezone})>"
