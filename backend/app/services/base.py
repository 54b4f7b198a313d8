# backend/app/services/base.py
"""
Base Service Pattern for the auto-école backend

Provides common functionality for all service classes including:
- Transaction management
- Logging
- Error translation (store failures become StoreUnavailableException)
- Performance monitoring
"""

from contextlib import contextmanager
from functools import wraps
import logging
import time
from typing import Any, Callable, Iterator, TypeVar, cast

from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException, ServiceException, StoreUnavailableException
from ..monitoring.prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

SLOW_OPERATION_SECONDS = 1.0


def _is_store_outage(exc: BaseException) -> bool:
    """True when the error (or its cause) means the database could not be reached."""
    cause: BaseException | None = exc
    while cause is not None:
        if isinstance(cause, OperationalError):
            return True
        cause = cause.__cause__
    return False


class BaseService:
    """
    Base class for all service layer components.

    Provides common patterns for:
    - Database session management
    - Logging
    - Transaction handling
    - Performance monitoring
    """

    def __init__(self, db: Session):
        self.db = db
        self.logger = logging.getLogger(self.__class__.__name__)

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """
        Context manager for database transactions.

        Usage:
            with self.transaction():
                # Do multiple operations
                repository.claim_for_student(...)
                # Note: commit is handled automatically

        Any exception rolls the whole unit back. Database connectivity
        failures surface as StoreUnavailableException, other SQL errors as
        ServiceException; domain exceptions propagate unchanged.
        """
        try:
            yield self.db
            self.db.commit()
            self.logger.debug("Transaction committed successfully")
        except (SQLAlchemyError, RepositoryException) as e:
            self.db.rollback()
            if _is_store_outage(e):
                self.logger.error("Store unavailable during transaction: %s", e)
                raise StoreUnavailableException() from e
            self.logger.error("Transaction failed: %s", e)
            raise ServiceException(f"Database operation failed: {e}") from e
        except Exception:
            self.db.rollback()
            raise

    @staticmethod
    def measure_operation(operation_name: str) -> Callable[[F], F]:
        """
        Decorator to measure operation performance.

        Usage:
            @BaseService.measure_operation("reserve_slot")
            def reserve_slot(self, actor, slot_id):
                # Method implementation
        """

        def decorator(func: F) -> F:
            @wraps(func)
            def wrapper(self, *args, **kwargs):
                start_time = time.time()
                success = False
                error_type = None

                try:
                    result = func(self, *args, **kwargs)
                    success = True
                    return result
                except Exception as e:
                    error_type = type(e).__name__
                    raise
                finally:
                    elapsed = time.time() - start_time

                    if elapsed > SLOW_OPERATION_SECONDS and hasattr(self, "logger"):
                        self.logger.warning(
                            "Slow operation detected: %s took %.2fs", operation_name, elapsed
                        )

                    prometheus_metrics.record_service_operation(
                        service=self.__class__.__name__,
                        operation=operation_name,
                        duration=elapsed,
                        status="success" if success else "error",
                        error_type=error_type,
                    )

            return cast(F, wrapper)

        return decorator
