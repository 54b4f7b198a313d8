"""Payment (invoice) and webhook DTOs."""
from datetime import datetime
from typing import Optional

from .base import StandardizedModel


class PaymentResponse(StandardizedModel):
    id: str
    user_id: str
    package_id: Optional[str] = None
    amount_cents: int
    currency: str
    method: str
    status: str
    receipt_url: Optional[str] = None
    created_at: datetime


class WebhookAck(StandardizedModel):
    ok: bool = True
