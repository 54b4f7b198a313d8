# backend/app/routes/v1/payments.py
"""Payment routes - API v1 (GET / lists invoices, POST /checkout starts a purchase)."""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from ...core.exceptions import DomainException
from ...dependencies.auth import get_current_actor
from ...principal import Actor
from ...schemas.package import CheckoutSessionRequest, CheckoutSessionResponse
from ...schemas.payment import PaymentResponse
from ...services.dependencies import get_payment_reconciliation_service, get_stripe_service
from ...services.payment_reconciliation_service import PaymentReconciliationService
from ...services.stripe_service import StripeService

router = APIRouter(tags=["payments-v1"])


@router.get("", response_model=List[PaymentResponse])
def list_payments(
    user_id: Optional[str] = Query(None),
    actor: Actor = Depends(get_current_actor),
    service: PaymentReconciliationService = Depends(get_payment_reconciliation_service),
) -> List[PaymentResponse]:
    try:
        payments = service.list_payments(actor, user_id=user_id)
    except DomainException as e:
        raise e.to_http_exception()
    return [PaymentResponse.model_validate(p) for p in payments]


@router.post("/checkout", response_model=CheckoutSessionResponse)
def create_checkout(
    payload: CheckoutSessionRequest,
    actor: Actor = Depends(get_current_actor),
    stripe_service: StripeService = Depends(get_stripe_service),
) -> CheckoutSessionResponse:
    try:
        session = stripe_service.create_checkout_session(
            actor,
            payload.package_id,
            success_url=payload.success_url,
            cancel_url=payload.cancel_url,
        )
    except DomainException as e:
        raise e.to_http_exception()
    return CheckoutSessionResponse(session_id=session.session_id, url=session.url)
