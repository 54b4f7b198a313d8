"""Package and checkout DTOs."""
from typing import Optional

from pydantic import Field

from .base import StandardizedModel, StrictRequestModel


class PackageResponse(StandardizedModel):
    id: str
    name: str
    description: Optional[str] = None
    price_cents: int
    hours: int


class CheckoutSessionRequest(StrictRequestModel):
    package_id: str = Field(..., min_length=1, max_length=26)
    success_url: str = Field(..., min_length=1, max_length=2048)
    cancel_url: str = Field(..., min_length=1, max_length=2048)


class CheckoutSessionResponse(StandardizedModel):
    session_id: str
    url: str
