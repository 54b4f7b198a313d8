# backend/app/models/package.py
"""
Packages ("forfaits") and the per-school price list used to map a paid
amount back to the package that was bought.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
import ulid

from ..database import Base


class Package(Base):
    """A purchasable bundle of driving hours."""

    __tablename__ = "packages"

    __table_args__ = (
        CheckConstraint("hours > 0", name="ck_packages_hours_positive"),
        CheckConstraint("price_cents >= 0", name="ck_packages_price_non_negative"),
    )

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    school_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("schools.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    price_cents: Mapped[int] = mapped_column(Integer, nullable=False, comment="Price in cents")
    hours: Mapped[int] = mapped_column(Integer, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    def __repr__(self) -> str:
        return f"<Package(name={self.name}, hours={self.hours}, price={self.price_cents})>"


class PriceListEntry(Base):
    """Exact paid amount (minor units) -> package, per school and currency."""

    __tablename__ = "price_list_entries"

    __table_args__ = (
        UniqueConstraint(
            "school_id", "amount_cents", "currency", name="uq_price_list_school_amount_currency"
        ),
    )

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    school_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("schools.id", ondelete="CASCADE"), nullable=False
    )
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    package_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("packages.id", ondelete="CASCADE"), nullable=False
    )

    package: Mapped[Package] = relationship("Package")

    def __repr__(self) -> str:
        return f"<PriceListEntry({self.amount_cents} {self.currency} -> {self.package_id})>"
