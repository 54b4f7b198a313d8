"""
Base schemas shared by request and response DTOs.
"""
from pydantic import BaseModel, ConfigDict


class StandardizedModel(BaseModel):
    """Response base: reads ORM objects, serializes enums by value."""

    model_config = ConfigDict(from_attributes=True, use_enum_values=True, populate_by_name=True)


class StrictRequestModel(BaseModel):
    """Request base that forbids unexpected fields."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)
