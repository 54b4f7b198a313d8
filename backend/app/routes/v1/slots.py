# backend/app/routes/v1/slots.py
"""
Lesson slot routes - API v1

Endpoints:
    POST / - Open a new slot (instructor/admin)
    GET /calendar - Upcoming slots of the school
    GET /mine - Caller's lessons (view=completed|upcoming|pending)
    POST /{slot_id}/reserve - Book a slot (student)
    POST /{slot_id}/cancel - Cancel a reservation or withdraw an open slot
    POST /{slot_id}/comment - Instructor feedback on a passed lesson
"""

import logging
from typing import List, NoReturn

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ...core.enums import SlotView
from ...core.exceptions import DomainException
from ...dependencies.auth import get_current_actor
from ...principal import Actor
from ...schemas.slot import SlotCancelResponse, SlotCommentCreate, SlotCreate, SlotResponse
from ...services.dependencies import get_slot_service
from ...services.slot_service import SlotService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["slots-v1"])


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


@router.post("", response_model=SlotResponse, status_code=status.HTTP_201_CREATED)
def create_slot(
    payload: SlotCreate,
    actor: Actor = Depends(get_current_actor),
    slot_service: SlotService = Depends(get_slot_service),
) -> SlotResponse:
    try:
        slot = slot_service.create_slot(
            actor,
            date=payload.date,
            start_time=payload.start_time,
            vehicle=payload.vehicle,
            transmission=payload.transmission,
        )
        return SlotResponse.model_validate(slot)
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/calendar", response_model=List[SlotResponse])
def get_calendar(
    actor: Actor = Depends(get_current_actor),
    slot_service: SlotService = Depends(get_slot_service),
) -> List[SlotResponse]:
    try:
        return [SlotResponse.model_validate(s) for s in slot_service.list_calendar(actor)]
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/mine", response_model=List[SlotResponse])
def get_my_slots(
    view: SlotView = Query(SlotView.UPCOMING),
    actor: Actor = Depends(get_current_actor),
    slot_service: SlotService = Depends(get_slot_service),
) -> List[SlotResponse]:
    try:
        return [SlotResponse.model_validate(s) for s in slot_service.list_my_slots(actor, view)]
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/{slot_id}/reserve", response_model=SlotResponse)
def reserve_slot(
    slot_id: str,
    actor: Actor = Depends(get_current_actor),
    slot_service: SlotService = Depends(get_slot_service),
) -> SlotResponse:
    try:
        return SlotResponse.model_validate(slot_service.reserve_slot(actor, slot_id))
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/{slot_id}/cancel", response_model=SlotCancelResponse)
def cancel_slot(
    slot_id: str,
    actor: Actor = Depends(get_current_actor),
    slot_service: SlotService = Depends(get_slot_service),
) -> SlotCancelResponse:
    try:
        slot = slot_service.cancel_slot(actor, slot_id)
    except DomainException as e:
        handle_domain_exception(e)
    if slot is None:
        return SlotCancelResponse(slot_id=slot_id, deleted=True)
    return SlotCancelResponse(
        slot_id=slot_id, deleted=False, slot=SlotResponse.model_validate(slot)
    )


@router.post("/{slot_id}/comment", response_model=SlotResponse)
def comment_slot(
    slot_id: str,
    payload: SlotCommentCreate,
    actor: Actor = Depends(get_current_actor),
    slot_service: SlotService = Depends(get_slot_service),
) -> SlotResponse:
    try:
        slot = slot_service.record_instructor_comment(actor, slot_id, payload.comment)
        return SlotResponse.model_validate(slot)
    except DomainException as e:
        handle_domain_exception(e)
