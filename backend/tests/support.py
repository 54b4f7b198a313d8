"""Shared test constants and helpers."""

from datetime import date, datetime, time, timezone

from app.core.enums import RoleName
from app.models.user import User
from app.principal import Actor

# 14 May 2030, 10:00-11:00 in Paris (08:00-09:00 UTC)
LESSON_DAY = date(2030, 5, 14)
LESSON_START = time(10, 0)
LESSON_END = time(11, 0)
BEFORE_LESSON = datetime(2030, 5, 13, 12, 0, tzinfo=timezone.utc)
DURING_LESSON = datetime(2030, 5, 14, 8, 30, tzinfo=timezone.utc)
LESSON_END_UTC = datetime(2030, 5, 14, 9, 0, tzinfo=timezone.utc)
AFTER_LESSON = datetime(2030, 5, 14, 9, 0, 1, tzinfo=timezone.utc)


def actor_for(user: User) -> Actor:
    return Actor(user_id=user.id, role=RoleName(user.role), school_id=user.school_id)
