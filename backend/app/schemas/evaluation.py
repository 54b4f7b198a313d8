"""Learning booklet DTOs."""
from datetime import datetime
from typing import Optional

from pydantic import Field

from ..core.constants import MAX_APPRECIATION_COMMENT_LENGTH
from ..core.enums import AppreciationLevel
from .base import StandardizedModel, StrictRequestModel


class AppreciationCreate(StrictRequestModel):
    point_id: int
    level: AppreciationLevel
    comment: Optional[str] = Field(default=None, max_length=MAX_APPRECIATION_COMMENT_LENGTH)


class AppreciationResponse(StandardizedModel):
    id: str
    point_id: int
    level: str
    comment: Optional[str] = None
    instructor_id: str
    created_at: datetime


class BookletLine(StandardizedModel):
    point_id: int
    code: str
    label: str
    category: str
    appreciation: Optional[AppreciationResponse] = None
