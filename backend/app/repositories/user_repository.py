# backend/app/repositories/user_repository.py
"""
User Repository

Besides lookups, this is where the two atomic hours-balance procedures
live. Both are single UPDATE statements evaluated by the database, so
concurrent reservations and refunds can never lose an update.
"""

from __future__ import annotations

import logging
from typing import Optional, cast

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.exceptions import RepositoryException
from app.models.user import User

from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class UserRepository(BaseRepository[User]):
    """Repository for school members and their hours balance."""

    def __init__(self, db: Session):
        super().__init__(db, User)
        self.logger = logging.getLogger(__name__)

    def get_in_school(self, user_id: str, school_id: str) -> Optional[User]:
        try:
            return cast(
                Optional[User],
                self.db.query(User)
                .filter(User.id == user_id, User.school_id == school_id)
                .one_or_none(),
            )
        except SQLAlchemyError as exc:
            self.logger.error("Failed to load user %s: %s", user_id, exc)
            raise RepositoryException("Failed to load user") from exc

    def get_hours_remaining(self, *, user_id: str, school_id: str) -> Optional[int]:
        try:
            value = self.db.execute(
                select(User.hours_remaining).where(
                    User.id == user_id, User.school_id == school_id
                )
            ).scalar_one_or_none()
            return None if value is None else int(value)
        except SQLAlchemyError as exc:
            self.logger.error("Failed to read hours for %s: %s", user_id, exc)
            raise RepositoryException("Failed to read hours balance") from exc

    def decrement_hours(self, *, user_id: str, school_id: str, amount: int) -> int:
        """Subtract ``amount`` if the balance covers it; returns rows changed (0 or 1)."""
        stmt = (
            update(User)
            .where(
                User.id == user_id,
                User.school_id == school_id,
                User.hours_remaining >= amount,
            )
            .values(hours_remaining=User.hours_remaining - amount)
            .execution_options(synchronize_session="fetch")
        )
        return self._execute_rowcount(stmt, "decrement hours")

    def increment_hours(self, *, user_id: str, school_id: str, amount: int) -> int:
        """Add ``amount`` unconditionally; returns rows changed (0 when unknown user)."""
        stmt = (
            update(User)
            .where(User.id == user_id, User.school_id == school_id)
            .values(hours_remaining=User.hours_remaining + amount)
            .execution_options(synchronize_session="fetch")
        )
        return self._execute_rowcount(stmt, "increment hours")

    def set_active_package(self, *, user_id: str, school_id: str, package_id: str) -> int:
        stmt = (
            update(User)
            .where(User.id == user_id, User.school_id == school_id)
            .values(active_package_id=package_id)
            .execution_options(synchronize_session="fetch")
        )
        return self._execute_rowcount(stmt, "set active package")

    def _execute_rowcount(self, stmt, op: str) -> int:
        try:
            return int(self.db.execute(stmt).rowcount or 0)
        except SQLAlchemyError as exc:
            self.logger.error("Failed to %s: %s", op, exc)
            raise RepositoryException(f"Failed to {op}") from exc


__all__ = ["UserRepository"]
