"""Repository for the learning booklet (rubric points and appreciations)."""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, cast

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from app.core.exceptions import RepositoryException
from app.models.evaluation import Appreciation, EvaluationPoint

from .base_repository import BaseRepository


class EvaluationRepository(BaseRepository[Appreciation]):
    def __init__(self, db: Session):
        super().__init__(db, Appreciation)
        self.logger = logging.getLogger(__name__)

    def get_point(self, point_id: int) -> Optional[EvaluationPoint]:
        try:
            return cast(Optional[EvaluationPoint], self.db.get(EvaluationPoint, point_id))
        except SQLAlchemyError as exc:
            self.logger.error("Failed to load evaluation point %s: %s", point_id, exc)
            raise RepositoryException("Failed to load evaluation point") from exc

    def list_points(self) -> List[EvaluationPoint]:
        try:
            return cast(
                List[EvaluationPoint],
                self.db.query(EvaluationPoint)
                .order_by(EvaluationPoint.position, EvaluationPoint.id)
                .all(),
            )
        except SQLAlchemyError as exc:
            self.logger.error("Failed to list evaluation points: %s", exc)
            raise RepositoryException("Failed to list evaluation points") from exc

    def latest_by_point(self, *, student_id: str, school_id: str) -> Dict[int, Appreciation]:
        """Most recent appreciation for each rubric point the student was rated on."""
        try:
            rows = (
                self.db.query(Appreciation)
                .options(joinedload(Appreciation.instructor))
                .filter(
                    Appreciation.student_id == student_id,
                    Appreciation.school_id == school_id,
                )
                .order_by(Appreciation.created_at.desc(), Appreciation.id.desc())
                .all()
            )
        except SQLAlchemyError as exc:
            self.logger.error("Failed to load appreciations for %s: %s", student_id, exc)
            raise RepositoryException("Failed to load appreciations") from exc

        latest: Dict[int, Appreciation] = {}
        for row in rows:
            latest.setdefault(row.point_id, row)
        return latest


__all__ = ["EvaluationRepository"]
