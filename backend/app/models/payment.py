"""
Payment models for the Stripe checkout integration.

``payments.provider_payment_id`` is unique: it is the idempotency key that
guarantees a Stripe payment grants hours at most once, however many times
the webhook is delivered.
"""

from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import DateTime, ForeignKey, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship
import ulid

from ..core.constants import PAYMENT_METHOD_STRIPE
from ..core.enums import PaymentStatus
from ..database import Base

if TYPE_CHECKING:
    from .package import Package
    from .user import User


class StripeCustomer(Base):
    """Maps users to their Stripe customer IDs."""

    __tablename__ = "stripe_customers"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    stripe_customer_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    user: Mapped["User"] = relationship("User")

    def __repr__(self) -> str:
        return f"<StripeCustomer(user_id={self.user_id}, stripe_id={self.stripe_customer_id})>"


class Payment(Base):
    """A completed package purchase (an invoice line for the student)."""

    __tablename__ = "payments"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    school_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("schools.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    package_id: Mapped[Optional[str]] = mapped_column(
        String(26), ForeignKey("packages.id", ondelete="SET NULL"), nullable=True
    )
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False, comment="Amount in cents")
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    method: Mapped[str] = mapped_column(String(20), nullable=False, default=PAYMENT_METHOD_STRIPE)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=PaymentStatus.PENDING.value
    )
    provider_payment_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    receipt_url: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), onupdate=func.now()
    )

    package: Mapped[Optional["Package"]] = relationship("Package")

    def __repr__(self) -> str:
        return (
            f"<Payment(provider_id={self.provider_payment_id}, amount={self.amount_cents}, "
            f"status={self.status})>"
        )
