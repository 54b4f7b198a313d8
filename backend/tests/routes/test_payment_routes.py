# backend/tests/routes/test_payment_routes.py
from unittest.mock import MagicMock

from fastapi.testclient import TestClient
import pytest

from app.core.exceptions import NotFoundException
from app.database import get_db
from app.dependencies.auth import get_current_actor
from app.main import app
from app.services.dependencies import get_stripe_service
from app.services.stripe_service import CheckoutSession
from support import actor_for


@pytest.fixture
def client(db):
    app.dependency_overrides[get_db] = lambda: db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def stripe_service():
    service = MagicMock()
    app.dependency_overrides[get_stripe_service] = lambda: service
    return service


def _login(user) -> None:
    app.dependency_overrides[get_current_actor] = lambda: actor_for(user)


CHECKOUT_BODY = {
    "package_id": "01JPACKAGE0000000000000000",
    "success_url": "https://app.example.com/success",
    "cancel_url": "https://app.example.com/forfaits",
}


def test_student_sees_the_package_catalogue(client, student, package_5h):
    _login(student)
    response = client.get("/api/v1/packages")

    assert response.status_code == 200
    assert response.json() == [
        {
            "id": package_5h.id,
            "name": "Forfait 5h",
            "description": None,
            "price_cents": 25000,
            "hours": 5,
        }
    ]


def test_checkout_returns_the_stripe_session(client, student, stripe_service):
    _login(student)
    stripe_service.create_checkout_session.return_value = CheckoutSession(
        session_id="cs_test_1", url="https://checkout.stripe.com/c/pay/cs_test_1"
    )

    response = client.post("/api/v1/payments/checkout", json=CHECKOUT_BODY)

    assert response.status_code == 200
    assert response.json() == {
        "session_id": "cs_test_1",
        "url": "https://checkout.stripe.com/c/pay/cs_test_1",
    }
    args, kwargs = stripe_service.create_checkout_session.call_args
    assert args[0].user_id == student.id
    assert args[1] == CHECKOUT_BODY["package_id"]
    assert kwargs["success_url"] == CHECKOUT_BODY["success_url"]


def test_checkout_unknown_package_is_404(client, student, stripe_service):
    _login(student)
    stripe_service.create_checkout_session.side_effect = NotFoundException(
        "Package not found", code="PACKAGE_NOT_FOUND"
    )

    response = client.post("/api/v1/payments/checkout", json=CHECKOUT_BODY)

    assert response.status_code == 404
    assert response.json()["detail"]["code"] == "PACKAGE_NOT_FOUND"


def test_checkout_rejects_unexpected_fields(client, student, stripe_service):
    _login(student)
    response = client.post("/api/v1/payments/checkout", json={**CHECKOUT_BODY, "amount_cents": 1})

    assert response.status_code == 422
    stripe_service.create_checkout_session.assert_not_called()
