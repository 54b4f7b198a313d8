"""Payment domain events."""
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, ClassVar, Dict, Optional


@dataclass
class PaymentReconciled:
    """Fired after a checkout granted hours to a student."""

    topic: ClassVar[str] = "payments"

    payment_id: str
    school_id: str
    user_id: str
    package_id: str
    provider_payment_id: str
    hours_granted: int
    hours_remaining: Optional[int]
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def idempotency_key(self) -> str:
        return f"PaymentReconciled:{self.provider_payment_id}"
