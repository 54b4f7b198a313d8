# backend/app/routes/v1/evaluations.py
"""
Learning booklet routes - API v1

Endpoints:
    GET /{student_id} - Rubric with the student's current ratings
    POST /{student_id} - Record a rating (instructor/admin)
"""

from typing import List

from fastapi import APIRouter, Depends, status

from ...core.exceptions import DomainException
from ...dependencies.auth import get_current_actor
from ...principal import Actor
from ...schemas.evaluation import AppreciationCreate, AppreciationResponse, BookletLine
from ...services.dependencies import get_evaluation_service
from ...services.evaluation_service import EvaluationService

router = APIRouter(tags=["evaluations-v1"])


@router.get("/{student_id}", response_model=List[BookletLine])
def get_booklet(
    student_id: str,
    actor: Actor = Depends(get_current_actor),
    service: EvaluationService = Depends(get_evaluation_service),
) -> List[BookletLine]:
    try:
        lines = service.latest_appreciations(actor, student_id)
    except DomainException as e:
        raise e.to_http_exception()
    return [
        BookletLine(
            point_id=point.id,
            code=point.code,
            label=point.label,
            category=point.category,
            appreciation=(
                AppreciationResponse.model_validate(appreciation) if appreciation else None
            ),
        )
        for point, appreciation in lines
    ]


@router.post(
    "/{student_id}", response_model=AppreciationResponse, status_code=status.HTTP_201_CREATED
)
def record_appreciation(
    student_id: str,
    payload: AppreciationCreate,
    actor: Actor = Depends(get_current_actor),
    service: EvaluationService = Depends(get_evaluation_service),
) -> AppreciationResponse:
    try:
        appreciation = service.record_appreciation(
            actor,
            student_id,
            point_id=payload.point_id,
            level=payload.level,
            comment=payload.comment,
        )
    except DomainException as e:
        raise e.to_http_exception()
    return AppreciationResponse.model_validate(appreciation)
