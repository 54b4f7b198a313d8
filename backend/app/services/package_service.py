"""Packages ("forfaits") a school sells."""

from __future__ import annotations

import logging
from typing import List

from sqlalchemy.orm import Session

from ..models.package import Package
from ..principal import Actor
from ..repositories.factory import RepositoryFactory
from .base import BaseService

logger = logging.getLogger(__name__)


class PackageService(BaseService):
    def __init__(self, db: Session):
        super().__init__(db)
        self.package_repository = RepositoryFactory.create_package_repository(db)

    @BaseService.measure_operation("list_packages")
    def list_packages(self, actor: Actor) -> List[Package]:
        """Active packages of the actor's school, cheapest first."""
        return self.package_repository.list_active(actor.school_id)
