# backend/app/tasks/__init__.py
"""
Celery tasks package.

Run a worker with: celery -A app.tasks worker -B
"""

from app.tasks.celery_app import BaseTask, celery_app
from app.tasks.event_tasks import relay_pending_events
from app.tasks.slot_tasks import sweep_passed_task, trigger_sweep, trigger_sweep_task

__all__ = [
    "BaseTask",
    "celery_app",
    "relay_pending_events",
    "sweep_passed_task",
    "trigger_sweep",
    "trigger_sweep_task",
]
