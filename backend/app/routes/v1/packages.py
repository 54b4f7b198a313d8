# backend/app/routes/v1/packages.py
"""Package catalogue routes - API v1 (GET / lists the school's packages)."""

from typing import List

from fastapi import APIRouter, Depends

from ...dependencies.auth import get_current_actor
from ...principal import Actor
from ...schemas.package import PackageResponse
from ...services.dependencies import get_package_service
from ...services.package_service import PackageService

router = APIRouter(tags=["packages-v1"])


@router.get("", response_model=List[PackageResponse])
def list_packages(
    actor: Actor = Depends(get_current_actor),
    service: PackageService = Depends(get_package_service),
) -> List[PackageResponse]:
    return [PackageResponse.model_validate(p) for p in service.list_packages(actor)]
