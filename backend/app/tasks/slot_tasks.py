# backend/app/tasks/slot_tasks.py
"""
Periodic slot sweep.

``trigger_sweep`` calls ``POST /internal/slots/sweep`` with the shared bearer
credential. Transport errors and non-2xx answers are retried
``sweep_trigger_max_retries`` times with doubling delays (1s, 2s, 4s by
default). A sweep that still fails waits for the next scheduled run.
"""

from datetime import datetime, timezone
import logging
import time
from typing import Any, Dict, Optional, Tuple

import httpx

from app.core.config import settings
from app.database import get_db_session, with_db_retry
from app.monitoring.prometheus_metrics import prometheus_metrics
from app.services.slot_service import SlotService
from app.tasks.celery_app import celery_app

logger = logging.getLogger(__name__)


def trigger_sweep(
    url: Optional[str] = None, token: Optional[str] = None
) -> Tuple[int, Dict[str, Any]]:
    """
    Call the sweep endpoint, retrying with exponential backoff.

    Returns:
        ``(200, {"message", "data"})`` with the endpoint's JSON body on success,
        ``(500, {"error", "timestamp"})`` once every attempt failed.
    """
    target = url or settings.sweep_endpoint_url
    credential = token if token is not None else settings.sweep_trigger_token.get_secret_value()
    headers = {"Authorization": f"Bearer {credential}"}
    attempts = 1 + max(0, settings.sweep_trigger_max_retries)
    delay = settings.sweep_trigger_backoff_seconds
    last_error = "sweep not attempted"

    with httpx.Client(timeout=settings.sweep_trigger_timeout_seconds) as client:
        for attempt in range(1, attempts + 1):
            try:
                response = client.post(target, headers=headers)
                if response.is_success:
                    prometheus_metrics.inc_sweep_trigger_attempt("success")
                    logger.info("Sweep trigger succeeded on attempt %s", attempt)
                    return 200, {"message": "Sweep completed", "data": response.json()}
                last_error = f"Sweep endpoint returned HTTP {response.status_code}"
            except (httpx.HTTPError, ValueError) as exc:
                last_error = f"Sweep request failed: {exc}"

            prometheus_metrics.inc_sweep_trigger_attempt("failure")
            logger.warning("Sweep trigger attempt %s/%s failed: %s", attempt, attempts, last_error)
            if attempt < attempts:
                time.sleep(delay)
                delay *= 2

    logger.error("Sweep trigger gave up after %s attempts", attempts)
    return 500, {"error": last_error, "timestamp": datetime.now(timezone.utc).isoformat()}


@celery_app.task(name="slots.trigger_sweep", ignore_result=False)  # type: ignore[misc]
def trigger_sweep_task() -> Dict[str, Any]:
    status_code, body = trigger_sweep()
    return {"status": status_code, **body}


@celery_app.task(name="slots.sweep_passed")  # type: ignore[misc]
def sweep_passed_task() -> Dict[str, Any]:
    """Run the sweep in-process against the database."""
    with get_db_session() as db:
        updated = with_db_retry("sweep_passed_slots", SlotService(db).sweep_passed_slots)
    logger.info("In-process sweep marked %s slot(s) as passed", updated)
    return {"updated": updated}
