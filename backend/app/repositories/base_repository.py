# backend/app/repositories/base_repository.py
"""
Base Repository Pattern for the auto-école backend

Provides the foundation for all repository classes with:
- Common CRUD operations
- Type safety with generics

Repositories never commit on their own; the service layer owns the unit of
work. SQLAlchemy errors are wrapped in RepositoryException with the
original error kept as ``__cause__``.
"""

import logging
from typing import Any, Generic, Optional, Type, TypeVar

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException

# Type variable for generic model support
T = TypeVar("T")

logger = logging.getLogger(__name__)


class BaseRepository(Generic[T]):
    """
    Concrete base repository implementation with common data access patterns.

    Attributes:
        db: SQLAlchemy session
        model: SQLAlchemy model class
    """

    def __init__(self, db: Session, model: Type[T]):
        self.db = db
        self.model = model
        self.logger = logging.getLogger(f"{__name__}.{model.__name__}")

    def get_by_id(self, id: Any) -> Optional[T]:
        """Retrieve an entity by its primary key."""
        try:
            return self.db.get(self.model, id)
        except SQLAlchemyError as e:
            self.logger.error("Error getting %s by id %s: %s", self.model.__name__, id, e)
            raise RepositoryException(f"Failed to retrieve {self.model.__name__}") from e

    def create(self, **kwargs: Any) -> T:
        """
        Create a new entity.

        Note: Does NOT commit - transaction management is handled by service layer.
        On integrity errors the session is rolled back, so callers must treat
        the whole unit of work as aborted.
        """
        try:
            entity = self.model(**kwargs)
            self.db.add(entity)
            self.db.flush()  # Get ID without committing
            return entity
        except IntegrityError as exc:
            self.logger.info("Integrity error creating %s: %s", self.model.__name__, exc.orig)
            self.db.rollback()
            raise RepositoryException(f"Integrity constraint violated: {exc.orig}") from exc
        except SQLAlchemyError as e:
            self.logger.error("Error creating %s: %s", self.model.__name__, e)
            self.db.rollback()
            raise RepositoryException(f"Failed to create {self.model.__name__}") from e
