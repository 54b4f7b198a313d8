"""Learning booklet: instructors rate students on a fixed rubric."""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from ..core.constants import MAX_APPRECIATION_COMMENT_LENGTH
from ..core.enums import AppreciationLevel, RoleName
from ..core.exceptions import NotFoundException, UnauthorizedActionException, ValidationException
from ..models.evaluation import Appreciation, EvaluationPoint
from ..models.user import User
from ..principal import Actor
from ..repositories.factory import RepositoryFactory
from .base import BaseService

logger = logging.getLogger(__name__)


class EvaluationService(BaseService):
    def __init__(self, db: Session):
        super().__init__(db)
        self.evaluation_repository = RepositoryFactory.create_evaluation_repository(db)
        self.user_repository = RepositoryFactory.create_user_repository(db)

    @BaseService.measure_operation("record_appreciation")
    def record_appreciation(
        self,
        actor: Actor,
        student_id: str,
        point_id: int,
        level: str,
        comment: Optional[str] = None,
    ) -> Appreciation:
        """Append a rating; earlier ratings of the same point stay as history."""
        actor.require_role(RoleName.INSTRUCTOR, RoleName.ADMIN)
        self._get_student(actor, student_id)

        try:
            rating = AppreciationLevel(level)
        except ValueError:
            raise ValidationException(
                "Unknown appreciation level", code="INVALID_LEVEL", details={"level": level}
            )
        if self.evaluation_repository.get_point(point_id) is None:
            raise NotFoundException(
                "Evaluation point not found",
                code="EVALUATION_POINT_NOT_FOUND",
                details={"point_id": point_id},
            )
        text = (comment or "").strip() or None
        if text is not None and len(text) > MAX_APPRECIATION_COMMENT_LENGTH:
            raise ValidationException(
                "Comment is too long",
                code="COMMENT_TOO_LONG",
                details={"max_length": MAX_APPRECIATION_COMMENT_LENGTH},
            )

        with self.transaction():
            appreciation = self.evaluation_repository.create(
                school_id=actor.school_id,
                student_id=student_id,
                instructor_id=actor.user_id,
                point_id=point_id,
                level=rating.value,
                comment=text,
            )
        self.logger.info(
            "Point %s rated %s for student %s by %s", point_id, rating.value, student_id, actor.user_id
        )
        return appreciation

    @BaseService.measure_operation("latest_appreciations")
    def latest_appreciations(
        self, actor: Actor, student_id: str
    ) -> List[Tuple[EvaluationPoint, Optional[Appreciation]]]:
        """Every rubric point paired with the student's current rating (or None)."""
        if actor.is_student and actor.user_id != student_id:
            raise UnauthorizedActionException("Students can only view their own booklet")
        self._get_student(actor, student_id)

        latest: Dict[int, Appreciation] = self.evaluation_repository.latest_by_point(
            student_id=student_id, school_id=actor.school_id
        )
        return [(point, latest.get(point.id)) for point in self.evaluation_repository.list_points()]

    def _get_student(self, actor: Actor, student_id: str) -> User:
        student = self.user_repository.get_in_school(student_id, actor.school_id)
        if student is None or student.role != RoleName.STUDENT.value:
            raise NotFoundException(
                "Student not found", code="STUDENT_NOT_FOUND", details={"student_id": student_id}
            )
        return student
