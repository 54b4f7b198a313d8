# backend/tests/routes/test_internal_sweep_routes.py
from datetime import date
from unittest.mock import MagicMock

from fastapi.testclient import TestClient
import pytest

from app.core.exceptions import ServiceException
from app.database import get_db
from app.main import app
from app.models.slot import Slot
from app.services.dependencies import get_slot_service

URL = "/internal/slots/sweep"


@pytest.fixture
def client(db):
    app.dependency_overrides[get_db] = lambda: db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.mark.parametrize(
    "headers",
    [{}, {"Authorization": "Bearer wrong-token"}, {"Authorization": "Basic test-sweep-token"}],
)
def test_sweep_requires_bearer_token(client, headers):
    response = client.post(URL, headers=headers)
    assert response.status_code == 401
    assert response.json() == {"error": "Unauthorized"}


def test_sweep_marks_finished_lessons(client, db, student, make_slot):
    finished = make_slot(student=student, day=date(2020, 3, 2))
    untouched = make_slot(day=date(2020, 3, 2))

    response = client.post(URL, headers={"Authorization": "Bearer test-sweep-token"})

    assert response.status_code == 200
    assert response.json()["updated"] == 1
    assert "message" in response.json()
    db.expire_all()
    assert db.get(Slot, finished.id).passed is True
    assert db.get(Slot, untouched.id).passed is False


def test_sweep_failure_is_500(client):
    slot_service = MagicMock()
    slot_service.sweep_passed_slots.side_effect = ServiceException("Database operation failed")
    app.dependency_overrides[get_slot_service] = lambda: slot_service

    response = client.post(URL, headers={"Authorization": "Bearer test-sweep-token"})

    assert response.status_code == 500
    assert response.json() == {"error": "Database operation failed"}
