# backend/app/tasks/event_tasks.py
"""Outbox delivery task."""

from typing import Dict

from app.core.config import settings
from app.database import get_db_session
from app.events.relay import OutboxRelay
from app.tasks.celery_app import celery_app


@celery_app.task(name="events.relay_pending")  # type: ignore[misc]
def relay_pending_events() -> Dict[str, int]:
    with get_db_session() as db:
        delivered = OutboxRelay(db).relay_pending(limit=settings.outbox_batch_size)
    return {"delivered": delivered}
