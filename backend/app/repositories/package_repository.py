"""Repository for packages and the per-school price list."""

from __future__ import annotations

import logging
from typing import List, Optional, cast

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.exceptions import RepositoryException
from app.models.package import Package, PriceListEntry

from .base_repository import BaseRepository


class PackageRepository(BaseRepository[Package]):
    def __init__(self, db: Session):
        super().__init__(db, Package)
        self.logger = logging.getLogger(__name__)

    def find_by_price(self, *, school_id: str, amount_cents: int, currency: str) -> Optional[Package]:
        """Exact-match lookup of the package sold for ``amount_cents``.

        Only an exact (school, amount, currency) entry matches; there is no
        range or nearest-price fallback.
        """
        try:
            entry = cast(
                Optional[PriceListEntry],
                self.db.query(PriceListEntry)
                .filter(
                    PriceListEntry.school_id == school_id,
                    PriceListEntry.amount_cents == amount_cents,
                    PriceListEntry.currency == currency.upper(),
                )
                .one_or_none(),
            )
            if entry is None:
                return None
            package = self.db.get(Package, entry.package_id)
            if package is None or package.school_id != school_id:
                return None
            return package
        except SQLAlchemyError as exc:
            self.logger.error("Failed to resolve price %s %s: %s", amount_cents, currency, exc)
            raise RepositoryException("Failed to resolve package price") from exc

    def list_active(self, school_id: str) -> List[Package]:
        try:
            return cast(
                List[Package],
                self.db.query(Package)
                .filter(Package.school_id == school_id, Package.is_active.is_(True))
                .order_by(Package.price_cents, Package.name)
                .all(),
            )
        except SQLAlchemyError as exc:
            self.logger.error("Failed to list packages of %s: %s", school_id, exc)
            raise RepositoryException("Failed to list packages") from exc

    def get_in_school(self, package_id: str, school_id: str) -> Optional[Package]:
        try:
            return cast(
                Optional[Package],
                self.db.query(Package)
                .filter(Package.id == package_id, Package.school_id == school_id)
                .one_or_none(),
            )
        except SQLAlchemyError as exc:
            self.logger.error("Failed to load package %s: %s", package_id, exc)
            raise RepositoryException("Failed to load package") from exc

    def get_price_entry(self, package: Package) -> Optional[PriceListEntry]:
        """The price list entry that maps the package's price back to it."""
        try:
            return cast(
                Optional[PriceListEntry],
                self.db.query(PriceListEntry)
                .filter(
                    PriceListEntry.school_id == package.school_id,
                    PriceListEntry.package_id == package.id,
                    PriceListEntry.amount_cents == package.price_cents,
                )
                .order_by(PriceListEntry.currency)
                .first(),
            )
        except SQLAlchemyError as exc:
            self.logger.error("Failed to load price of package %s: %s", package.id, exc)
            raise RepositoryException("Failed to load package price") from exc


__all__ = ["PackageRepository"]
