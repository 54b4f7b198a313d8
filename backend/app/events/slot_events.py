"""Slot lifecycle domain events."""
from dataclasses import asdict, dataclass, field
from datetime import date, datetime, time, timezone
from typing import Any, ClassVar, Dict, Optional


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class SlotCreated:
    """Fired after an instructor opens a new slot."""

    topic: ClassVar[str] = "slots"

    slot_id: str
    school_id: str
    instructor_id: str
    date: date
    start_time: time
    end_time: time
    occurred_at: datetime = field(default_factory=_now_utc)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class SlotReserved:
    """Fired after a student books a slot and one hour was debited."""

    topic: ClassVar[str] = "slots"

    slot_id: str
    school_id: str
    student_id: str
    hours_remaining: int
    occurred_at: datetime = field(default_factory=_now_utc)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class SlotCancelled:
    """Fired after a reservation is released and the hour refunded."""

    topic: ClassVar[str] = "slots"

    slot_id: str
    school_id: str
    student_id: str
    cancelled_by: str  # role of the actor
    hours_remaining: int
    occurred_at: datetime = field(default_factory=_now_utc)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class SlotDeleted:
    """Fired after an open slot is withdrawn."""

    topic: ClassVar[str] = "slots"

    slot_id: str
    school_id: str
    deleted_by: str
    occurred_at: datetime = field(default_factory=_now_utc)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class SlotSwept:
    """Fired once per reserved slot the sweep marked as passed."""

    topic: ClassVar[str] = "slots"

    slot_id: str
    school_id: str
    student_id: Optional[str]
    occurred_at: datetime = field(default_factory=_now_utc)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def idempotency_key(self) -> str:
        # passed is monotonic, so a slot is swept at most once
        return f"SlotSwept:{self.slot_id}"


@dataclass
class SlotCommented:
    """Fired after the instructor recorded their comment on a passed lesson."""

    topic: ClassVar[str] = "slots"

    slot_id: str
    school_id: str
    instructor_id: str
    occurred_at: datetime = field(default_factory=_now_utc)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def idempotency_key(self) -> str:
        return f"SlotCommented:{self.slot_id}"
