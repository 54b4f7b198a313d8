"""Hours balance DTOs."""
from datetime import datetime
from typing import List, Optional

from .base import StandardizedModel


class HoursLedgerEntryResponse(StandardizedModel):
    id: str
    delta: int
    balance_after: int
    reason: str
    slot_id: Optional[str] = None
    payment_id: Optional[str] = None
    created_at: datetime


class HoursBalanceResponse(StandardizedModel):
    user_id: str
    hours_remaining: int
    entries: List[HoursLedgerEntryResponse] = []
