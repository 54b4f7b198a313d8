"""
Internal endpoints called by schedulers, not by the web app.

POST /internal/slots/sweep marks lessons that have ended as passed. It is
protected by the shared bearer credential ``SWEEP_TRIGGER_TOKEN``.
"""

import hmac
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, status
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.core.exceptions import DomainException
from app.database import with_db_retry
from app.services.dependencies import get_slot_service
from app.services.slot_service import SlotService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/internal", tags=["internal"], include_in_schema=False)


def _verify_bearer(authorization: Optional[str]) -> bool:
    expected = settings.sweep_trigger_token.get_secret_value()
    if not expected or not authorization:
        return False
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        return False
    return hmac.compare_digest(token.strip().encode(), expected.encode())


@router.post("/slots/sweep")
def sweep_passed_slots(
    authorization: Optional[str] = Header(default=None),
    slot_service: SlotService = Depends(get_slot_service),
) -> JSONResponse:
    if not _verify_bearer(authorization):
        logger.warning("Rejected sweep call with missing or invalid credential")
        return JSONResponse(status_code=status.HTTP_401_UNAUTHORIZED, content={"error": "Unauthorized"})

    try:
        updated = with_db_retry("sweep_passed_slots", slot_service.sweep_passed_slots)
    except DomainException as e:
        logger.error("Sweep failed: %s", e.message)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"error": e.message}
        )
    except Exception as e:
        logger.exception("Sweep failed unexpectedly")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"error": str(e)}
        )

    return JSONResponse(
        content={"message": f"{updated} lesson(s) marked as passed", "updated": updated}
    )
