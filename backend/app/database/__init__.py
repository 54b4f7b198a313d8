"""
Database engine, session factory, and metadata shared across the application.
"""

from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime
import logging
import random
import time
from typing import Any, Callable, Generator, TypeVar

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from app.core.config import settings
from app.core.exceptions import StoreUnavailableException

logger = logging.getLogger(__name__)

_DEFAULT_CONNECT_ARGS: dict[str, Any] = {
    "keepalives": 1,
    "keepalives_idle": 15,
    "keepalives_interval": 5,
    "keepalives_count": 3,
    # Fail fast on slow queries so the API layer recovers quickly
    "options": "-c statement_timeout=15000",
    "connect_timeout": 5,
    "application_name": "autoecole_backend",
}


def _build_engine_kwargs(db_url: str) -> dict[str, Any]:
    """Engine options per dialect (SQLite is used for local dev and tests)."""

    if db_url.startswith("sqlite"):
        kwargs: dict[str, Any] = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in db_url:
            kwargs["poolclass"] = StaticPool
        return kwargs

    return {
        "poolclass": QueuePool,
        "pool_size": settings.database_pool_size,
        "max_overflow": settings.database_max_overflow,
        "pool_timeout": 2,
        "pool_recycle": 300,
        "pool_pre_ping": True,
        "pool_use_lifo": True,
        "connect_args": dict(_DEFAULT_CONNECT_ARGS),
    }


def build_engine(db_url: str) -> Engine:
    built = create_engine(db_url, future=True, **_build_engine_kwargs(db_url))

    @event.listens_for(built, "connect")
    def receive_connect(dbapi_connection: Any, connection_record: Any) -> None:
        connection_record.info["connect_time"] = datetime.now()
        if db_url.startswith("sqlite"):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()
        logger.debug("Database connection established")

    return built


db_url = settings.get_database_url()
engine: Engine = build_engine(db_url)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)


class Base(DeclarativeBase):
    """Declarative base for every ORM model."""


def get_db() -> Generator[Session, None, None]:
    """Get database session with proper cleanup."""
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@contextmanager
def get_db_session() -> Generator[Session, None, None]:
    """Context manager for short-lived DB operations (workers, scripts)."""
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


T = TypeVar("T")
# Only target the transient disconnect errors a pooler emits when it restarts.
_RETRYABLE_ERROR_SNIPPETS = (
    "server closed the connection",
    "ssl connection has been closed unexpectedly",
    "database is locked",
)


def _operational_cause(exc: BaseException) -> OperationalError | None:
    """Find the driver error behind a service-layer wrapper."""
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        if isinstance(current, OperationalError):
            return current
        seen.add(id(current))
        current = current.__cause__ or current.__context__
    return None


def _is_retryable_db_error(exc: BaseException) -> bool:
    cause = _operational_cause(exc)
    if cause is None:
        return False
    message = str(cause).lower()
    return any(snippet in message for snippet in _RETRYABLE_ERROR_SNIPPETS)


def _retry_delay(attempt: int) -> float:
    base = 0.1 * (2 ** (attempt - 1))
    return base + random.uniform(0, 0.05 * attempt)


def with_db_retry(op_name: str, func: Callable[[], T], *, max_attempts: int = 3) -> T:
    """
    Execute a DB operation with retries for transient disconnects.
    """

    attempt = 1
    while True:
        try:
            return func()
        except (OperationalError, StoreUnavailableException) as exc:
            if attempt >= max_attempts or not _is_retryable_db_error(exc):
                raise

            delay = _retry_delay(attempt)
            logger.warning(
                "Transient DB failure detected, retrying",
                extra={
                    "event": "db_retry",
                    "op": op_name,
                    "attempt": attempt,
                    "delay": delay,
                    "error": str(exc),
                },
            )
            time.sleep(delay)
            attempt += 1


__all__ = [
    "Base",
    "SessionLocal",
    "build_engine",
    "engine",
    "get_db",
    "get_db_session",
    "with_db_retry",
]
