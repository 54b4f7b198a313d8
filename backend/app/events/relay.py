"""
Outbox relay: pushes committed domain events to Redis Pub/Sub.

Rows are delivered in attempt order. A failed publish leaves the row
pending with a backoff; after ``outbox_max_attempts`` it is marked FAILED.
"""

from __future__ import annotations

import json
import logging
from typing import Optional

import redis
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.redis import get_redis_client
from app.monitoring.prometheus_metrics import prometheus_metrics
from app.repositories.event_outbox_repository import EventOutboxRepository

logger = logging.getLogger(__name__)

BACKOFF_SECONDS = [5, 30, 120, 600, 1800]


def _next_backoff(attempt_number: int) -> int:
    """Return backoff delay for the given attempt (1-indexed)."""
    index = max(0, min(attempt_number - 1, len(BACKOFF_SECONDS) - 1))
    return BACKOFF_SECONDS[index]


class OutboxRelay:
    def __init__(self, db: Session, client: Optional[redis.Redis] = None):
        self.db = db
        self.repository = EventOutboxRepository(db)
        self.client = client or get_redis_client()
        self.max_attempts = settings.outbox_max_attempts

    def relay_pending(self, limit: Optional[int] = None) -> int:
        """Publish pending events; returns how many were delivered. Commits."""
        delivered = 0
        pending = self.repository.fetch_pending(limit=limit or settings.outbox_batch_size)
        for event in pending:
            attempt_number = event.attempt_count + 1
            message = json.dumps(
                {
                    "id": event.id,
                    "type": event.event_type,
                    "topic": event.topic,
                    "aggregate_id": event.aggregate_id,
                    "payload": event.payload,
                }
            )
            try:
                self.client.publish(event.channel, message)
            except redis.RedisError as exc:
                terminal = attempt_number >= self.max_attempts
                self.repository.mark_failed(
                    event.id,
                    attempt_count=attempt_number,
                    backoff_seconds=_next_backoff(attempt_number),
                    error=str(exc),
                    terminal=terminal,
                )
                if terminal:
                    prometheus_metrics.record_outbox_outcome(event.event_type, "failed")
                    logger.error(
                        "Outbox event %s failed after %s attempts", event.id, attempt_number
                    )
                else:
                    logger.warning(
                        "Publishing outbox event %s failed (attempt %s): %s",
                        event.id,
                        attempt_number,
                        exc,
                    )
                continue

            self.repository.mark_sent(event.id, attempt_number)
            prometheus_metrics.record_outbox_outcome(event.event_type, "sent")
            delivered += 1

        self.db.commit()
        if delivered:
            logger.info("Relayed %s outbox events", delivered)
        return delivered
