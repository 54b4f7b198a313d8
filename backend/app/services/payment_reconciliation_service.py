# backend/app/services/payment_reconciliation_service.py
"""
Payment reconciliation: turns a completed Stripe checkout into driving hours.

Flow for one ``checkout.session.completed`` event:

1. resolve the Stripe customer to a user (unknown customer: drop)
2. map the exact paid amount to a package of the user's school (no match: drop)
3. in ONE transaction insert the payment, credit the package hours, set the
   active package and publish ``PaymentReconciled``; the unique
   ``provider_payment_id`` makes a redelivered event a no-op
4. after commit, fetch the receipt URL from Stripe (best effort)

Dropped events are logged and acknowledged: Stripe would redeliver the
same payload, which would fail the same way.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Any, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.constants import PAYMENT_METHOD_STRIPE
from ..core.enums import LedgerReason, PaymentStatus, RoleName
from ..core.exceptions import (
    DuplicatePaymentException,
    RepositoryException,
    ServiceException,
    UnauthorizedActionException,
    UnknownCustomerException,
    UnmappablePriceException,
)
from ..events.payment_events import PaymentReconciled
from ..events.publisher import EventPublisher
from ..models.payment import Payment
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..principal import Actor
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .hours_ledger_service import HoursLedgerService
from .stripe_service import StripeService

logger = logging.getLogger(__name__)

RECONCILED = "reconciled"
DUPLICATE = "duplicate"
DROPPED = "dropped"


@dataclass(frozen=True)
class CheckoutCompleted:
    """The fields of a completed checkout the reconciliation needs."""

    customer_reference: Optional[str]
    payment_reference: Optional[str]
    amount_paid: Optional[int]
    currency: Optional[str]
    payment_status: Optional[str] = "paid"
    session_id: Optional[str] = None

    @classmethod
    def from_stripe_session(cls, session: Any) -> "CheckoutCompleted":
        """Build from a Stripe ``checkout.session`` object."""

        def _ref(value: Any) -> Optional[str]:
            # Expanded objects carry their id
            if value is None or isinstance(value, str):
                return value
            return getattr(value, "id", None)

        return cls(
            customer_reference=_ref(getattr(session, "customer", None)),
            payment_reference=_ref(getattr(session, "payment_intent", None)),
            amount_paid=getattr(session, "amount_total", None),
            currency=getattr(session, "currency", None),
            payment_status=getattr(session, "payment_status", None),
            session_id=getattr(session, "id", None),
        )


@dataclass(frozen=True)
class ReconciliationResult:
    status: str
    payment_id: Optional[str] = None
    hours_granted: int = 0
    reason: Optional[str] = None


class PaymentReconciliationService(BaseService):
    """Grants package hours for completed checkouts, exactly once per payment."""

    def __init__(
        self,
        db: Session,
        stripe_service: Optional[StripeService] = None,
        hours_service: Optional[HoursLedgerService] = None,
        event_publisher: Optional[EventPublisher] = None,
    ):
        super().__init__(db)
        self.payment_repository = RepositoryFactory.create_payment_repository(db)
        self.package_repository = RepositoryFactory.create_package_repository(db)
        self.user_repository = RepositoryFactory.create_user_repository(db)
        self.stripe_service = stripe_service or StripeService(db)
        self.hours_service = hours_service or HoursLedgerService(db)
        self.event_publisher = event_publisher or EventPublisher(
            RepositoryFactory.create_event_outbox_repository(db)
        )

    @BaseService.measure_operation("reconcile_checkout")
    def reconcile_checkout(self, event: CheckoutCompleted) -> ReconciliationResult:
        """
        Reconcile one completed checkout.

        Returns a result instead of raising for every outcome the webhook
        should acknowledge. StoreUnavailableException propagates so the
        provider redelivers.
        """
        if (event.payment_status or "").lower() != "paid":
            return self._dropped("not_paid", event)
        if not event.payment_reference or event.amount_paid is None or not event.currency:
            return self._dropped("incomplete_event", event)

        existing = self.payment_repository.get_by_provider_payment_id(event.payment_reference)
        if existing is not None:
            return self._duplicate(event, existing.id)

        try:
            user = self._resolve_user(event.customer_reference)
            package = self.package_repository.find_by_price(
                school_id=user.school_id,
                amount_cents=int(event.amount_paid),
                currency=event.currency,
            )
            if package is None:
                raise UnmappablePriceException(event.amount_paid, event.currency)
        except (UnknownCustomerException, UnmappablePriceException) as exc:
            return self._dropped(exc.code, event)

        try:
            with self.transaction():
                try:
                    payment = self.payment_repository.create(
                        school_id=user.school_id,
                        user_id=user.id,
                        package_id=package.id,
                        amount_cents=int(event.amount_paid),
                        currency=event.currency.upper(),
                        method=PAYMENT_METHOD_STRIPE,
                        status=PaymentStatus.PAID.value,
                        provider_payment_id=event.payment_reference,
                    )
                except RepositoryException as exc:
                    if isinstance(exc.__cause__, IntegrityError):
                        raise DuplicatePaymentException(event.payment_reference) from exc
                    raise

                balance = self.hours_service.increment(
                    school_id=user.school_id,
                    user_id=user.id,
                    amount=package.hours,
                    reason=LedgerReason.PURCHASE,
                    payment_id=payment.id,
                    use_transaction=False,
                )
                self.user_repository.set_active_package(
                    user_id=user.id, school_id=user.school_id, package_id=package.id
                )
                self.event_publisher.publish(
                    PaymentReconciled(
                        payment_id=payment.id,
                        school_id=user.school_id,
                        user_id=user.id,
                        package_id=package.id,
                        provider_payment_id=event.payment_reference,
                        hours_granted=package.hours,
                        hours_remaining=balance,
                    )
                )
        except DuplicatePaymentException:
            # Lost the race against a concurrent delivery of the same event
            return self._duplicate(event, None)

        prometheus_metrics.inc_reconciliation(RECONCILED)
        self.logger.info(
            "Payment %s granted %s hours to user %s (balance %s)",
            event.payment_reference,
            package.hours,
            user.id,
            balance,
        )

        self._attach_receipt(payment.id, event.payment_reference)
        return ReconciliationResult(
            status=RECONCILED, payment_id=payment.id, hours_granted=package.hours
        )

    @BaseService.measure_operation("list_payments")
    def list_payments(self, actor: Actor, user_id: Optional[str] = None) -> List[Payment]:
        """Invoices: students see their own, admins any of their school."""
        actor.require_role(RoleName.STUDENT, RoleName.ADMIN)
        if actor.is_student:
            if user_id is not None and user_id != actor.user_id:
                raise UnauthorizedActionException("Students can only view their own invoices")
            user_id = actor.user_id
        return self.payment_repository.list_for_school(school_id=actor.school_id, user_id=user_id)

    # ----------------------------------------------------------------- helpers
    def _resolve_user(self, customer_reference: Optional[str]):
        if not customer_reference:
            raise UnknownCustomerException(customer_reference)
        user_id = self.payment_repository.find_user_id_by_customer(customer_reference)
        user = self.user_repository.get_by_id(user_id) if user_id else None
        if user is None:
            raise UnknownCustomerException(customer_reference)
        return user

    def _attach_receipt(self, payment_id: str, payment_reference: str) -> None:
        receipt_url = self.stripe_service.fetch_receipt_url(payment_reference)
        if not receipt_url:
            return
        try:
            with self.transaction():
                self.payment_repository.set_receipt_url(payment_id=payment_id, receipt_url=receipt_url)
        except ServiceException as exc:
            # Hours are already granted; a missing receipt link is cosmetic
            self.logger.warning("Could not store receipt for payment %s: %s", payment_id, exc)

    def _dropped(self, reason: Optional[str], event: CheckoutCompleted) -> ReconciliationResult:
        prometheus_metrics.inc_reconciliation(DROPPED)
        self.logger.warning(
            "Checkout %s dropped (%s): customer=%s amount=%s %s",
            event.session_id,
            reason,
            event.customer_reference,
            event.amount_paid,
            event.currency,
        )
        return ReconciliationResult(status=DROPPED, reason=reason)

    def _duplicate(self, event: CheckoutCompleted, payment_id: Optional[str]) -> ReconciliationResult:
        prometheus_metrics.inc_reconciliation(DUPLICATE)
        self.logger.info("Payment %s already reconciled; ignoring", event.payment_reference)
        return ReconciliationResult(status=DUPLICATE, payment_id=payment_id, reason="duplicate")
