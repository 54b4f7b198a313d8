# backend/tests/tasks/test_slot_tasks.py
"""
The periodic sweep trigger: one call plus up to three retries, 1s/2s/4s apart.
"""

from contextlib import contextmanager
from datetime import date
from unittest.mock import patch

import httpx
import pytest

from app.models.slot import Slot
from app.tasks import slot_tasks

SWEEP_URL = "http://api.test/internal/slots/sweep"


@pytest.fixture
def fake_http(monkeypatch):
    """Route the trigger's httpx client through a scripted transport."""
    calls = []
    script = []
    real_client = httpx.Client

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        outcome = script.pop(0) if script else httpx.Response(500)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def client_factory(**kwargs):
        return real_client(transport=httpx.MockTransport(handler), **kwargs)

    monkeypatch.setattr(slot_tasks.httpx, "Client", client_factory)
    return calls, script


@pytest.fixture
def sleeps():
    with patch("app.tasks.slot_tasks.time.sleep") as sleep:
        yield sleep


def test_success_on_first_call(fake_http, sleeps):
    calls, script = fake_http
    script.append(httpx.Response(200, json={"message": "1 lesson(s) marked as passed", "updated": 1}))

    status, body = slot_tasks.trigger_sweep(url=SWEEP_URL, token="secret")

    assert status == 200
    assert body == {
        "message": "Sweep completed",
        "data": {"message": "1 lesson(s) marked as passed", "updated": 1},
    }
    assert len(calls) == 1
    assert calls[0].method == "POST"
    assert calls[0].headers["Authorization"] == "Bearer secret"
    sleeps.assert_not_called()


def test_transport_error_is_retried(fake_http, sleeps):
    calls, script = fake_http
    script.extend(
        [httpx.ConnectError("connection refused"), httpx.Response(200, json={"updated": 0})]
    )

    status, body = slot_tasks.trigger_sweep(url=SWEEP_URL, token="secret")

    assert status == 200
    assert body["data"] == {"updated": 0}
    assert len(calls) == 2
    assert [c.args[0] for c in sleeps.call_args_list] == [1.0]


def test_gives_up_after_three_retries(fake_http, sleeps):
    calls, script = fake_http
    script.extend([httpx.Response(503)] * 4)

    status, body = slot_tasks.trigger_sweep(url=SWEEP_URL, token="secret")

    assert status == 500
    assert set(body) == {"error", "timestamp"}
    assert "503" in body["error"]
    assert len(calls) == 4
    assert [c.args[0] for c in sleeps.call_args_list] == [1.0, 2.0, 4.0]


def test_unauthorized_answer_counts_as_failure(fake_http, sleeps):
    calls, script = fake_http
    script.extend([httpx.Response(401, json={"error": "Unauthorized"})] * 4)

    status, _ = slot_tasks.trigger_sweep(url=SWEEP_URL, token="wrong")

    assert status == 500
    assert len(calls) == 4


def test_celery_task_wraps_trigger():
    with patch.object(slot_tasks, "trigger_sweep", return_value=(200, {"message": "ok", "data": {}})):
        result = slot_tasks.trigger_sweep_task.run()
    assert result == {"status": 200, "message": "ok", "data": {}}


def test_in_process_sweep_task(db, student, make_slot):
    slot = make_slot(student=student, day=date(2020, 3, 2))

    @contextmanager
    def session_scope():
        yield db

    with patch.object(slot_tasks, "get_db_session", session_scope):
        assert slot_tasks.sweep_passed_task.run() == {"updated": 1}

    db.expire_all()
    assert db.get(Slot, slot.id).passed is True
