"""Slot request/response DTOs."""
from datetime import date, datetime, time
from typing import Optional

from pydantic import Field

from ..core.constants import MAX_SLOT_COMMENT_LENGTH, MAX_VEHICLE_LENGTH
from ..core.enums import Transmission
from .base import StandardizedModel, StrictRequestModel


class SlotCreate(StrictRequestModel):
    date: date
    start_time: time
    vehicle: str = Field(..., min_length=1, max_length=MAX_VEHICLE_LENGTH)
    transmission: Transmission


class SlotCommentCreate(StrictRequestModel):
    comment: str = Field(..., min_length=1, max_length=MAX_SLOT_COMMENT_LENGTH)


class SlotResponse(StandardizedModel):
    id: str
    instructor_id: str
    student_id: Optional[str] = None
    date: date
    start_time: time
    end_time: time
    vehicle: str
    transmission: str
    reserved: bool
    passed: bool
    state: str
    instructor_comment: Optional[str] = None
    commented_at: Optional[datetime] = None


class SlotCancelResponse(StandardizedModel):
    slot_id: str
    deleted: bool
    slot: Optional[SlotResponse] = None
