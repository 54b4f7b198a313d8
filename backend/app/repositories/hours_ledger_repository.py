"""Repository for the hours ledger audit trail."""

from __future__ import annotations

import logging
from typing import List, cast

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.exceptions import RepositoryException
from app.models.hours_ledger import HoursLedgerEntry

from .base_repository import BaseRepository


class HoursLedgerRepository(BaseRepository[HoursLedgerEntry]):
    def __init__(self, db: Session):
        super().__init__(db, HoursLedgerEntry)
        self.logger = logging.getLogger(__name__)

    def list_for_user(
        self, *, user_id: str, school_id: str, limit: int = 100
    ) -> List[HoursLedgerEntry]:
        """Most recent movements first."""
        try:
            return cast(
                List[HoursLedgerEntry],
                self.db.query(HoursLedgerEntry)
                .filter(
                    HoursLedgerEntry.user_id == user_id,
                    HoursLedgerEntry.school_id == school_id,
                )
                .order_by(HoursLedgerEntry.created_at.desc(), HoursLedgerEntry.id.desc())
                .limit(limit)
                .all(),
            )
        except SQLAlchemyError as exc:
            self.logger.error("Failed to list ledger entries for %s: %s", user_id, exc)
            raise RepositoryException("Failed to list ledger entries") from exc


__all__ = ["HoursLedgerRepository"]
