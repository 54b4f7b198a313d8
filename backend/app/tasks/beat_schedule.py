# backend/app/tasks/beat_schedule.py
"""
Celery Beat schedule.

The sweep goes through the HTTP endpoint by default so the scheduler and
the API share one code path; ``slots.sweep_passed`` is available for
deployments that run the worker next to the database.
"""

from datetime import timedelta
from typing import Any, Dict

from app.core.config import settings


def get_beat_schedule() -> Dict[str, Dict[str, Any]]:
    return {
        "trigger-slot-sweep": {
            "task": "slots.trigger_sweep",
            "schedule": timedelta(minutes=settings.sweep_interval_minutes),
            "options": {"queue": "maintenance", "expires": settings.sweep_interval_minutes * 60},
        },
        "relay-event-outbox": {
            "task": "events.relay_pending",
            "schedule": timedelta(seconds=30),
            "options": {"queue": "events", "expires": 30},
        },
    }
