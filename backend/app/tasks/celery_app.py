# backend/app/tasks/celery_app.py
"""
Celery application configuration for the auto-école backend.

Redis is the broker and result backend. Periodic jobs (slot sweep, outbox
relay) are declared in ``beat_schedule``.
"""

import logging
import os
from typing import Any, Dict, Type, cast

from celery import Celery, Task
from celery.signals import setup_logging

from app.core.config import settings

logger = logging.getLogger(__name__)


def create_celery_app() -> Celery:
    """
    Create and configure the Celery application.

    Returns:
        Celery: Configured Celery application instance
    """
    # Priority: CELERY_BROKER_URL -> settings.redis_url
    broker_url = os.getenv("CELERY_BROKER_URL") or settings.redis_url
    # Ensure Redis URL includes database number
    if not any(broker_url.endswith(f"/{i}") for i in range(16)):
        broker_url = f"{broker_url}/0"

    result_backend = os.getenv("CELERY_RESULT_BACKEND") or broker_url

    celery_app = Celery("autoecole", broker=broker_url, backend=result_backend)

    celery_app.conf.update(
        {
            "task_serializer": "json",
            "accept_content": ["json"],
            "result_serializer": "json",
            "timezone": settings.default_school_timezone,
            "enable_utc": True,
            "worker_prefetch_multiplier": 1,
            "worker_max_tasks_per_child": 1000,
            "task_soft_time_limit": 120,
            "task_time_limit": 300,
            "task_acks_late": True,
            "task_reject_on_worker_lost": True,
            "worker_hijack_root_logger": False,
            "broker_transport_options": {
                "visibility_timeout": 3600,
                "polling_interval": 10.0,
            },
        }
    )

    # Force import of task modules so tasks are registered even if autodiscovery fails
    celery_app.conf.imports = ("app.tasks.slot_tasks", "app.tasks.event_tasks")

    celery_app.conf.task_routes = {
        "slots.*": {"queue": "maintenance"},
        "events.*": {"queue": "events"},
    }

    from app.tasks.beat_schedule import get_beat_schedule

    celery_app.conf.beat_schedule = get_beat_schedule()

    return celery_app


# Disable Celery's default logging configuration
@setup_logging.connect  # type: ignore[misc]
def config_loggers(*args: Any, **kwargs: Any) -> None:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


celery_app = create_celery_app()


class BaseTask(Task):  # type: ignore[misc]
    """Base task that logs failures and retries."""

    def on_failure(self, exc: Exception, task_id: str, args: Any, kwargs: Any, einfo: Any) -> None:
        logger.error(
            "Task %s[%s] failed: %s",
            self.name,
            task_id,
            exc,
            exc_info=True,
            extra={"task_id": task_id, "task_name": self.name},
        )
        super().on_failure(exc, task_id, args, kwargs, einfo)

    def on_retry(self, exc: Exception, task_id: str, args: Any, kwargs: Any, einfo: Any) -> None:
        logger.warning(
            "Task %s[%s] retry %s due to: %s",
            self.name,
            task_id,
            self.request.retries,
            exc,
            extra={"task_id": task_id, "task_name": self.name},
        )
        super().on_retry(exc, task_id, args, kwargs, einfo)


# Register BaseTask as default task base for the app
celery_app.Task = cast(Type[Task], BaseTask)


@celery_app.task(name="app.tasks.health_check")  # type: ignore[misc]
def health_check() -> Dict[str, str]:
    """Simple health check task to verify Celery is working."""
    from datetime import datetime, timezone

    current_task = celery_app.current_task
    return {
        "status": "healthy",
        "worker": current_task.request.hostname if current_task else "unknown",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
