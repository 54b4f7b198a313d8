# backend/tests/services/test_payment_reconciliation_service.py
"""
Reconciliation of completed Stripe checkouts into driving hours.
"""

from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.enums import RoleName
from app.core.exceptions import UnauthorizedActionException
from app.models.hours_ledger import HoursLedgerEntry
from app.models.package import Package
from app.models.payment import Payment
from app.models.user import User
from app.repositories.event_outbox_repository import EventOutboxRepository
from app.services.payment_reconciliation_service import (
    DROPPED,
    DUPLICATE,
    RECONCILED,
    CheckoutCompleted,
    PaymentReconciliationService,
)
from app.services.stripe_service import StripeService
from support import actor_for

RECEIPT_URL = "https://pay.stripe.com/receipts/acct_test/rcpt_1"


@pytest.fixture
def stripe_service() -> MagicMock:
    service = MagicMock(spec=StripeService)
    service.fetch_receipt_url.return_value = RECEIPT_URL
    return service


@pytest.fixture
def reconciliation_service(db: Session, stripe_service) -> PaymentReconciliationService:
    return PaymentReconciliationService(db, stripe_service=stripe_service)


def _checkout(**overrides) -> CheckoutCompleted:
    values = dict(
        customer_reference="cus_test_student",
        payment_reference="pi_test_1",
        amount_paid=25000,
        currency="eur",
        payment_status="paid",
        session_id="cs_test_1",
    )
    values.update(overrides)
    return CheckoutCompleted(**values)


def test_checkout_grants_package_hours(
    reconciliation_service, db, student, package_5h, stripe_customer, stripe_service
):
    result = reconciliation_service.reconcile_checkout(_checkout())

    assert result.status == RECONCILED
    assert result.hours_granted == 5

    db.expire_all()
    user = db.get(User, student.id)
    assert user.hours_remaining == 8
    assert user.active_package_id == package_5h.id

    payment = db.query(Payment).one()
    assert payment.id == result.payment_id
    assert payment.status == "paid"
    assert payment.amount_cents == 25000
    assert payment.currency == "EUR"
    assert payment.provider_payment_id == "pi_test_1"
    assert payment.receipt_url == RECEIPT_URL
    stripe_service.fetch_receipt_url.assert_called_once_with("pi_test_1")

    entry = db.query(HoursLedgerEntry).one()
    assert (entry.delta, entry.reason, entry.payment_id) == (5, "purchase", payment.id)

    events = EventOutboxRepository(db).list_for_aggregate(payment.id)
    assert [e.event_type for e in events] == ["PaymentReconciled"]
    assert events[0].channel == f"school:{student.school_id}:payments"


def test_redelivered_event_grants_hours_once(
    reconciliation_service, db, student, package_5h, stripe_customer
):
    first = reconciliation_service.reconcile_checkout(_checkout())
    second = reconciliation_service.reconcile_checkout(_checkout())

    assert first.status == RECONCILED
    assert second.status == DUPLICATE
    assert second.payment_id == first.payment_id
    db.expire_all()
    assert db.get(User, student.id).hours_remaining == 8
    assert db.query(Payment).count() == 1
    assert db.query(HoursLedgerEntry).count() == 1


def test_concurrent_duplicate_is_caught_by_unique_reference(
    reconciliation_service, db, student, package_5h, stripe_customer
):
    reconciliation_service.reconcile_checkout(_checkout())
    # Simulate a second worker that passed the early check before the first commit
    reconciliation_service.payment_repository.get_by_provider_payment_id = lambda _ref: None

    result = reconciliation_service.reconcile_checkout(_checkout())

    assert result.status == DUPLICATE
    db.expire_all()
    assert db.get(User, student.id).hours_remaining == 8
    assert db.query(Payment).count() == 1


def test_unknown_customer_is_dropped(reconciliation_service, db, student, package_5h):
    result = reconciliation_service.reconcile_checkout(_checkout(customer_reference="cus_nobody"))

    assert result.status == DROPPED
    assert result.reason == "UNKNOWN_CUSTOMER"
    assert db.query(Payment).count() == 0
    db.expire_all()
    assert db.get(User, student.id).hours_remaining == 3


def test_unmapped_amount_is_dropped(reconciliation_service, db, student, package_5h, stripe_customer):
    result = reconciliation_service.reconcile_checkout(_checkout(amount_paid=12345))

    assert result.status == DROPPED
    assert result.reason == "UNMAPPABLE_PRICE"
    assert db.query(Payment).count() == 0
    db.expire_all()
    assert db.get(User, student.id).hours_remaining == 3


def test_price_in_other_currency_is_not_matched(
    reconciliation_service, student, package_5h, stripe_customer
):
    result = reconciliation_service.reconcile_checkout(_checkout(currency="usd"))
    assert result.reason == "UNMAPPABLE_PRICE"


@pytest.mark.parametrize(
    "overrides,reason",
    [
        ({"payment_status": "unpaid"}, "not_paid"),
        ({"payment_reference": None}, "incomplete_event"),
        ({"amount_paid": None}, "incomplete_event"),
    ],
)
def test_unusable_events_are_dropped(
    reconciliation_service, db, package_5h, stripe_customer, overrides, reason
):
    result = reconciliation_service.reconcile_checkout(_checkout(**overrides))
    assert (result.status, result.reason) == (DROPPED, reason)
    assert db.query(Payment).count() == 0


def test_missing_receipt_does_not_undo_grant(
    reconciliation_service, db, student, package_5h, stripe_customer, stripe_service
):
    stripe_service.fetch_receipt_url.return_value = None

    result = reconciliation_service.reconcile_checkout(_checkout())

    assert result.status == RECONCILED
    payment = db.query(Payment).one()
    assert payment.receipt_url is None
    db.expire_all()
    assert db.get(User, student.id).hours_remaining == 8


def test_checkout_from_stripe_session_object():
    session = SimpleNamespace(
        id="cs_live_1",
        customer=SimpleNamespace(id="cus_expanded"),
        payment_intent="pi_1",
        amount_total=25000,
        currency="eur",
        payment_status="paid",
    )

    checkout = CheckoutCompleted.from_stripe_session(session)

    assert checkout.customer_reference == "cus_expanded"
    assert checkout.payment_reference == "pi_1"
    assert checkout.amount_paid == 25000
    assert checkout.session_id == "cs_live_1"


def test_invoices_visible_to_owner_and_admin(
    reconciliation_service, school, student, admin, package_5h, stripe_customer, make_user
):
    reconciliation_service.reconcile_checkout(_checkout())

    assert len(reconciliation_service.list_payments(actor_for(student))) == 1
    assert len(reconciliation_service.list_payments(actor_for(admin), user_id=student.id)) == 1

    other = make_user(school, RoleName.STUDENT)
    assert reconciliation_service.list_payments(actor_for(other)) == []
    with pytest.raises(UnauthorizedActionException):
        reconciliation_service.list_payments(actor_for(other), user_id=student.id)


@pytest.mark.parametrize("hours", [0, -2])
def test_package_must_grant_hours(db: Session, school, hours):
    db.add(Package(school_id=school.id, name="Forfait vide", price_cents=1000, hours=hours))
    with pytest.raises(IntegrityError):
        db.commit()
    db.rollback()
