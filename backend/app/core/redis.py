# backend/app/core/redis.py
"""
Redis client used to publish change notifications.

Subscribers (the web front end) listen on ``school:{school_id}:{topic}``
channels and refetch the affected view when a message arrives.
"""

import logging
from typing import Optional

import redis

from app.core.config import settings

logger = logging.getLogger(__name__)

_redis_client: Optional[redis.Redis] = None


def get_redis_client() -> redis.Redis:
    """Get or create the shared Redis client."""
    global _redis_client

    if _redis_client is None:
        _redis_client = redis.Redis.from_url(
            settings.redis_url or "redis://localhost:6379",
            decode_responses=True,
        )
        logger.info("[REDIS-PUBSUB] Redis client initialized")

    return _redis_client


def close_redis_client() -> None:
    """Close the shared Redis client."""
    global _redis_client

    if _redis_client is not None:
        _redis_client.close()
        _redis_client = None
        logger.info("[REDIS-PUBSUB] Redis client closed")
