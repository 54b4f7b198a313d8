# backend/app/repositories/event_outbox_repository.py
"""
Repository for the domain event outbox.

Implements transactional enqueue, pending fetch with locking, and status
updates required by the outbox relay.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
import logging
from typing import Any, Optional, cast

from sqlalchemy import Select, insert, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.orm import Session
import ulid

from app.models.event_outbox import EventOutbox, EventOutboxStatus

logger = logging.getLogger(__name__)


def _now_utc() -> datetime:
    """Return timezone-aware utcnow suitable for DB comparisons."""
    return datetime.now(timezone.utc)


def _dialect_name(db: Session) -> str:
    bind = db.get_bind()
    return bind.dialect.name.lower() if bind is not None else "postgresql"


class EventOutboxRepository:
    """Data access helpers for event outbox rows."""

    def __init__(self, db: Session):
        self.db = db
        self._dialect = _dialect_name(db)

    # ------------------------------------------------------------------ enqueue
    def enqueue(
        self,
        *,
        event_type: str,
        topic: str,
        aggregate_id: str,
        school_id: Optional[str],
        payload: Optional[dict[str, Any]] = None,
        idempotency_key: Optional[str] = None,
    ) -> EventOutbox:
        """
        Insert a new outbox row unless one already exists for the idempotency key.

        Returns the persisted row (existing or newly created).
        """
        payload = payload or {}
        now = _now_utc()
        key = idempotency_key or f"{event_type}:{aggregate_id}:{int(now.timestamp() * 1000)}"
        event_id = str(ulid.ULID())
        values = dict(
            id=event_id,
            school_id=school_id,
            topic=topic,
            event_type=event_type,
            aggregate_id=aggregate_id,
            payload=payload,
            idempotency_key=key,
            status=EventOutboxStatus.PENDING.value,
            attempt_count=0,
            next_attempt_at=now,
            created_at=now,
        )

        if self._dialect == "postgresql":
            pg_stmt = (
                pg_insert(EventOutbox)
                .values(**values)
                .on_conflict_do_nothing(index_elements=["idempotency_key"])
                .returning(EventOutbox.id)
            )
            inserted = self.db.execute(pg_stmt).scalar_one_or_none() is not None
        else:
            stmt = insert(EventOutbox).values(**values)
            if self._dialect == "sqlite":
                stmt = stmt.prefix_with("OR IGNORE")
            inserted = bool(getattr(self.db.execute(stmt), "rowcount", 0))

        if inserted:
            row = cast(Optional[EventOutbox], self.db.get(EventOutbox, event_id))
            if row is None:
                raise RuntimeError("Inserted outbox row could not be reloaded")
            return row

        # Existing row - return it without touching attempt counters
        existing = cast(
            Optional[EventOutbox],
            self.db.execute(
                select(EventOutbox).where(EventOutbox.idempotency_key == key)
            ).scalar_one_or_none(),
        )
        if existing is None:
            raise RuntimeError("Outbox row not found after enqueue conflict")
        return existing

    # ---------------------------------------------------------------- fetchers
    def fetch_pending(self, limit: int = 200) -> list[EventOutbox]:
        """Return pending events eligible for delivery ordered by attempt time."""
        stmt: Select[Any] = (
            select(EventOutbox)
            .where(EventOutbox.status == EventOutboxStatus.PENDING.value)
            .where(EventOutbox.next_attempt_at <= _now_utc())
            .order_by(EventOutbox.next_attempt_at.asc(), EventOutbox.id.asc())
            .limit(limit)
        )
        if self._dialect == "postgresql":
            stmt = stmt.with_for_update(skip_locked=True)
        return cast(list[EventOutbox], self.db.execute(stmt).scalars().all())

    def list_for_aggregate(self, aggregate_id: str) -> list[EventOutbox]:
        stmt = (
            select(EventOutbox)
            .where(EventOutbox.aggregate_id == aggregate_id)
            .order_by(EventOutbox.created_at.asc(), EventOutbox.id.asc())
        )
        return cast(list[EventOutbox], self.db.execute(stmt).scalars().all())

    # ------------------------------------------------------------- state updates
    def mark_sent(self, event_id: str, attempt_count: int) -> None:
        """Update row to SENT state."""
        self.db.execute(
            update(EventOutbox)
            .where(EventOutbox.id == event_id)
            .values(
                status=EventOutboxStatus.SENT.value,
                attempt_count=attempt_count,
                last_error=None,
                next_attempt_at=_now_utc(),
            )
            .execution_options(synchronize_session="fetch")
        )

    def mark_failed(
        self,
        event_id: str,
        *,
        attempt_count: int,
        backoff_seconds: int,
        error: str | None = None,
        terminal: bool = False,
    ) -> None:
        """Update row after delivery failure."""
        now = _now_utc()
        values: dict[str, Any] = {
            "attempt_count": attempt_count,
            "last_error": (error[:1000] if error else None),
        }
        if terminal:
            values["status"] = EventOutboxStatus.FAILED.value
            values["next_attempt_at"] = now
        else:
            values["status"] = EventOutboxStatus.PENDING.value
            values["next_attempt_at"] = now + timedelta(seconds=max(backoff_seconds, 1))

        self.db.execute(
            update(EventOutbox)
            .where(EventOutbox.id == event_id)
            .values(**values)
            .execution_options(synchronize_session="fetch")
        )
