"""
Stripe Webhook Endpoints

Handles the checkout webhook that turns a completed Stripe Checkout into
driving hours.

Response contract (Stripe retries anything that is not 2xx):
- 400 when the signature header is missing or invalid
- 200 ``{"ok": true}`` once the event is handled, including events that
  were deliberately dropped (unknown customer, unmapped amount) or already
  reconciled
- 500 ``{"error": ...}`` when the store is unavailable or processing failed
  unexpectedly, so Stripe redelivers later
"""

import asyncio
import logging

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse

from ..core.constants import STRIPE_CHECKOUT_COMPLETED
from ..core.exceptions import ServiceException
from ..services.dependencies import get_payment_reconciliation_service, get_stripe_service
from ..services.payment_reconciliation_service import (
    CheckoutCompleted,
    PaymentReconciliationService,
)
from ..services.stripe_service import StripeService, WebhookSignatureError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks/stripe", tags=["stripe-webhooks"])


@router.post("/checkout")
async def handle_checkout_events(
    request: Request,
    stripe_service: StripeService = Depends(get_stripe_service),
    reconciliation_service: PaymentReconciliationService = Depends(
        get_payment_reconciliation_service
    ),
) -> JSONResponse:
    payload = await request.body()
    signature = request.headers.get("stripe-signature")

    try:
        event = stripe_service.construct_webhook_event(payload, signature)
    except WebhookSignatureError as e:
        logger.warning("Rejected Stripe webhook: %s", e.message)
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": e.message})
    except ServiceException as e:
        logger.error("Cannot verify Stripe webhook: %s", e.message)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"error": e.message}
        )

    event_type = getattr(event, "type", "")
    logger.info("Received Stripe webhook event: %s", event_type)

    if event_type != STRIPE_CHECKOUT_COMPLETED:
        logger.info("Ignoring Stripe event type %s", event_type)
        return JSONResponse(content={"ok": True})

    try:
        # Reconciliation does blocking DB and Stripe I/O (with backoff sleeps)
        checkout = await asyncio.to_thread(CheckoutCompleted.from_stripe_session, event.data.object)
        result = await asyncio.to_thread(reconciliation_service.reconcile_checkout, checkout)
    except ServiceException as e:
        logger.error("Checkout webhook failed, Stripe will retry: %s", e.message)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"error": e.message}
        )
    except Exception as e:
        logger.exception("Unexpected error processing Stripe webhook")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"error": str(e)}
        )

    logger.info("Checkout %s processed: %s", checkout.session_id, result.status)
    return JSONResponse(content={"ok": True})
