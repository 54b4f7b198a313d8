# backend/app/services/stripe_service.py
"""
Stripe Service for the auto-école backend

Thin wrapper around the Stripe SDK. The backend asks Stripe for three
things: a Checkout session when a student buys a package (creating the
Stripe customer on first purchase), verification of webhook signatures,
and the receipt of a completed checkout. Payment processing itself stays
with Stripe Checkout.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
import time
from typing import Any, Optional

import stripe
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.enums import RoleName
from ..core.exceptions import (
    NotFoundException,
    ServiceException,
    StoreUnavailableException,
    UnmappablePriceException,
    ValidationException,
)
from ..models.payment import StripeCustomer
from ..models.user import User
from ..principal import Actor
from ..repositories.factory import RepositoryFactory
from .base import BaseService

logger = logging.getLogger(__name__)


class WebhookSignatureError(ValidationException):
    """Raised when a webhook payload is missing or fails signature verification."""

    def __init__(self, message: str = "Invalid webhook signature"):
        super().__init__(message=message, code="INVALID_SIGNATURE")


@dataclass(frozen=True)
class CheckoutSession:
    session_id: str
    url: str


class StripeService(BaseService):
    """Service handling Stripe API access."""

    def __init__(self, db: Session):
        super().__init__(db)
        self.payment_repository = RepositoryFactory.create_payment_repository(db)
        self.package_repository = RepositoryFactory.create_package_repository(db)
        self.user_repository = RepositoryFactory.create_user_repository(db)
        self.stripe_configured = False
        secret_key = settings.stripe_secret_key.get_secret_value()
        if secret_key:
            stripe.api_key = secret_key
            stripe.max_network_retries = 1
            self.stripe_configured = True
        else:
            self.logger.warning("Stripe secret key not configured - checkout and receipts disabled")

    # ========== Checkout ==========

    @BaseService.measure_operation("stripe_create_checkout_session")
    def create_checkout_session(
        self, actor: Actor, package_id: str, success_url: str, cancel_url: str
    ) -> CheckoutSession:
        """
        Start a Stripe Checkout for one of the school's packages.

        The session is created for the student's Stripe customer so the
        completed checkout can be traced back to them, and for the exact
        amount of the package's price list entry so reconciliation maps it
        back to the package.

        Raises:
            UnauthorizedActionException: caller is not a student
            NotFoundException: package unknown, inactive or of another school
            UnmappablePriceException: the package price has no price list entry
            ServiceException: Stripe not configured or the Stripe call failed
        """
        actor.require_role(RoleName.STUDENT)
        package = self.package_repository.get_in_school(package_id, actor.school_id)
        if package is None or not package.is_active:
            raise NotFoundException(
                "Package not found", code="PACKAGE_NOT_FOUND", details={"package_id": package_id}
            )
        entry = self.package_repository.get_price_entry(package)
        if entry is None:
            raise UnmappablePriceException(package.price_cents, None)
        if not self.stripe_configured:
            raise ServiceException("Stripe is not configured", code="STRIPE_NOT_CONFIGURED")

        user = self.user_repository.get_in_school(actor.user_id, actor.school_id)
        if user is None:
            raise NotFoundException("User not found", code="USER_NOT_FOUND")
        customer = self.get_or_create_customer(user)

        try:
            session = stripe.checkout.Session.create(
                mode="payment",
                customer=customer.stripe_customer_id,
                client_reference_id=user.id,
                line_items=[
                    {
                        "price_data": {
                            "currency": entry.currency.lower(),
                            "unit_amount": entry.amount_cents,
                            "product_data": {"name": package.name},
                        },
                        "quantity": 1,
                    }
                ],
                success_url=success_url,
                cancel_url=cancel_url,
                metadata={
                    "school_id": actor.school_id,
                    "user_id": user.id,
                    "package_id": package.id,
                },
            )
        except stripe.StripeError as e:
            self.logger.error("Stripe error creating checkout for package %s: %s", package.id, e)
            raise ServiceException("Failed to create checkout session") from e

        self.logger.info(
            "Checkout session %s created for user %s (package %s)", session.id, user.id, package.id
        )
        return CheckoutSession(session_id=session.id, url=session.url)

    # ========== Customer Management ==========

    @BaseService.measure_operation("stripe_get_or_create_customer")
    def get_or_create_customer(self, user: User) -> StripeCustomer:
        """
        Return the user's Stripe customer mapping, creating the customer on first use.

        Two concurrent first purchases may both create a Stripe customer;
        only one mapping row survives and the loser reuses it.
        """
        existing = self.payment_repository.get_customer_by_user_id(user.id)
        if existing is not None:
            return existing

        try:
            stripe_customer = stripe.Customer.create(
                email=user.email,
                name=user.full_name,
                metadata={"user_id": user.id, "school_id": user.school_id},
            )
        except stripe.StripeError as e:
            self.logger.error("Stripe error creating customer for %s: %s", user.id, e)
            raise ServiceException("Failed to create Stripe customer") from e

        try:
            with self.transaction():
                record = self.payment_repository.create_customer_record(
                    user_id=user.id, stripe_customer_id=stripe_customer.id
                )
        except StoreUnavailableException:
            raise
        except ServiceException:
            record = self.payment_repository.get_customer_by_user_id(user.id)
            if record is None:
                raise
            self.logger.info(
                "User %s got a customer concurrently; dropping %s", user.id, stripe_customer.id
            )
            return record

        self.logger.info("Created Stripe customer %s for user %s", stripe_customer.id, user.id)
        return record

    # ========== Webhooks & receipts ==========

    @BaseService.measure_operation("stripe_construct_webhook_event")
    def construct_webhook_event(self, payload: bytes, signature: Optional[str]) -> Any:
        """
        Verify the Stripe signature header and parse the event.

        Raises:
            WebhookSignatureError: missing header, bad signature or bad payload
            ServiceException: webhook secret not configured
        """
        if not signature:
            raise WebhookSignatureError("Missing stripe-signature header")

        webhook_secret = settings.stripe_webhook_secret.get_secret_value()
        if not webhook_secret:
            raise ServiceException("Webhook secret not configured")

        try:
            return stripe.Webhook.construct_event(payload, signature, webhook_secret)
        except stripe.SignatureVerificationError as e:
            self.logger.warning("Invalid webhook signature: %s", e)
            raise WebhookSignatureError() from e
        except ValueError as e:
            self.logger.warning("Invalid webhook payload: %s", e)
            raise WebhookSignatureError("Invalid webhook payload") from e

    @BaseService.measure_operation("stripe_fetch_receipt_url")
    def fetch_receipt_url(self, payment_intent_id: str) -> Optional[str]:
        """
        Return the receipt URL of the payment intent's latest charge.

        Transient Stripe errors are retried with exponential backoff
        (``stripe_receipt_max_attempts`` tries in total). Returns None when
        Stripe is not configured, the charge has no receipt, or every
        attempt failed.
        """
        if not self.stripe_configured:
            return None

        attempts = max(1, settings.stripe_receipt_max_attempts)
        delay = settings.stripe_receipt_backoff_seconds
        for attempt in range(1, attempts + 1):
            try:
                intent = stripe.PaymentIntent.retrieve(payment_intent_id)
                charge_id = getattr(intent, "latest_charge", None)
                if not charge_id:
                    return None
                if not isinstance(charge_id, str):
                    charge_id = charge_id.id
                charge = stripe.Charge.retrieve(charge_id)
                return getattr(charge, "receipt_url", None)
            except stripe.StripeError as e:
                if attempt >= attempts:
                    self.logger.error(
                        "Giving up on receipt for %s after %s attempts: %s",
                        payment_intent_id,
                        attempt,
                        e,
                    )
                    return None
                self.logger.warning(
                    "Receipt lookup for %s failed (attempt %s/%s), retrying in %.1fs: %s",
                    payment_intent_id,
                    attempt,
                    attempts,
                    delay,
                    e,
                )
                time.sleep(delay)
                delay *= 2
        return None
