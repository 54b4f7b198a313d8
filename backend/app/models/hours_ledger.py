"""Append-only audit trail of hours balance movements."""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column
import ulid

from ..database import Base


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class HoursLedgerEntry(Base):
    """One signed delta applied to ``users.hours_remaining``."""

    __tablename__ = "hours_ledger_entries"

    __table_args__ = (Index("ix_hours_ledger_user_created", "user_id", "created_at"),)

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    school_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("schools.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    delta: Mapped[int] = mapped_column(Integer, nullable=False)
    balance_after: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[str] = mapped_column(String(30), nullable=False)
    # No FK: the slot may be deleted later, the audit line stays
    slot_id: Mapped[Optional[str]] = mapped_column(String(26), nullable=True)
    payment_id: Mapped[Optional[str]] = mapped_column(String(26), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_now_utc, server_default=func.now(), nullable=False
    )

    def __repr__(self) -> str:
        return f"<HoursLedgerEntry(user={self.user_id}, delta={self.delta}, reason={self.reason})>"
