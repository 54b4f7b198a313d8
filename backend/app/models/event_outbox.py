# backend/app/models/event_outbox.py
"""
Event outbox persistence model.

Domain events are written here inside the same transaction as the change
they describe; the relay task later pushes them to subscribers so views can
invalidate their caches.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from sqlalchemy import DateTime, Integer, String, Text, UniqueConstraint, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import JSON
import ulid

from app.database import Base


def _now_utc() -> datetime:
    """Return timezone-aware UTC timestamp for default factories."""
    return datetime.now(timezone.utc)


class EventOutboxStatus(str, Enum):
    """Lifecycle states for an outbox event."""

    PENDING = "PENDING"
    SENT = "SENT"
    FAILED = "FAILED"


class EventOutbox(Base):
    """Transactional outbox entry pending delivery."""

    __tablename__ = "event_outbox"

    __table_args__ = (UniqueConstraint("idempotency_key", name="uq_event_outbox_idempotency_key"),)

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    school_id: Mapped[Optional[str]] = mapped_column(String(26), nullable=True, index=True)
    # Table whose rows changed ("slots", "users", "payments"); used as channel suffix
    topic: Mapped[str] = mapped_column(String(50), nullable=False)
    event_type: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    aggregate_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    idempotency_key: Mapped[str] = mapped_column(String(255), nullable=False)
    payload: Mapped[Dict[str, Any]] = mapped_column(
        JSONB(astext_type=Text()).with_variant(JSON(), "sqlite"),
        nullable=False,
        default=dict,
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=EventOutboxStatus.PENDING.value, index=True
    )
    attempt_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    next_attempt_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True, default=_now_utc, index=True
    )
    last_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now_utc, server_default=func.now()
    )

    @property
    def channel(self) -> str:
        return f"school:{self.school_id or 'all'}:{self.topic}"

    def mark_sent(self, attempt_count: int) -> None:
        """Mark the event as successfully delivered."""
        self.status = EventOutboxStatus.SENT.value
        self.attempt_count = attempt_count
        self.last_error = None
        self.next_attempt_at = _now_utc()

    def mark_retry(self, attempt_count: int, next_attempt_at: datetime, error: str) -> None:
        """Keep the event pending for another delivery attempt."""
        self.status = EventOutboxStatus.PENDING.value
        self.attempt_count = attempt_count
        self.next_attempt_at = next_attempt_at
        self.last_error = error[:1000]

    def mark_failed(self, attempt_count: int, error: str | None = None) -> None:
        """Mark the event as permanently failed."""
        self.status = EventOutboxStatus.FAILED.value
        self.attempt_count = attempt_count
        if error:
            self.last_error = error[:1000]
