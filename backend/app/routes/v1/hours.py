# backend/app/routes/v1/hours.py
"""Hours balance routes - API v1 (GET /{user_id})."""

from fastapi import APIRouter, Depends

from ...core.exceptions import DomainException
from ...dependencies.auth import get_current_actor
from ...principal import Actor
from ...schemas.hours import HoursBalanceResponse, HoursLedgerEntryResponse
from ...services.dependencies import get_hours_ledger_service
from ...services.hours_ledger_service import HoursLedgerService

router = APIRouter(tags=["hours-v1"])


@router.get("/{user_id}", response_model=HoursBalanceResponse)
def get_hours(
    user_id: str,
    actor: Actor = Depends(get_current_actor),
    hours_service: HoursLedgerService = Depends(get_hours_ledger_service),
) -> HoursBalanceResponse:
    try:
        balance = hours_service.get_balance(actor, user_id)
        entries = hours_service.list_entries(actor, user_id)
    except DomainException as e:
        raise e.to_http_exception()
    return HoursBalanceResponse(
        user_id=user_id,
        hours_remaining=balance,
        entries=[HoursLedgerEntryResponse.model_validate(entry) for entry in entries],
    )
