# backend/studio_booking/repositories/base_repository.py
"""
Base Repository Pattern for the booking engine.

Repositories own queries and never commit: the service that calls them
decides where the transaction ends. SQLAlchemy failures are logged and
re-raised as ``RepositoryException`` with the driver error as the cause.
"""

import logging
from typing import Any, Generic, NoReturn, Optional, Type, TypeVar

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..database import is_retryable_db_error

# Type variable for generic model support
T = TypeVar("T")

logger = logging.getLogger(__name__)


class BaseRepository(Generic[T]):
    """
    Common data access helpers shared by the concrete repositories.

    Attributes:
        db: SQLAlchemy session
        model: SQLAlchemy model class
    """

    def __init__(self, db: Session, model: Type[T]):
        """
        Initialize repository with database session and model.

        Args:
            db: SQLAlchemy session (managed by service layer)
            model: SQLAlchemy model class
        """
        self.db = db
        self.model = model
        self.logger = logging.getLogger(f"{__name__}.{model.__name__}")

    @property
    def dialect_name(self) -> str:
        """Dialect of the bound engine, e.g. ``sqlite`` or ``postgresql``."""
        return self.db.get_bind().dialect.name

    def get_by_id(self, id: str) -> Optional[T]:
        try:
            return self.db.query(self.model).filter(self.model.id == id).first()
        except SQLAlchemyError as e:
            self._raise(e, f"Failed to retrieve {self.model.__name__}")

    def create(self, **kwargs: Any) -> T:
        """
        Create a new entity.

        Note: Does NOT commit - transaction management is handled by service layer.
        """
        try:
            entity = self.model(**kwargs)
            self.db.add(entity)
            self.db.flush()  # Surface constraint violations inside the attempt
            return entity
        except IntegrityError as exc:
            self.logger.warning("Integrity error creating %s: %s", self.model.__name__, exc)
            raise RepositoryException(f"Integrity constraint violated: {exc}") from exc
        except SQLAlchemyError as e:
            self._raise(e, f"Failed to create {self.model.__name__}")

    def flush(self) -> None:
        """Flush pending ORM changes."""
        try:
            self.db.flush()
        except SQLAlchemyError as e:
            self._raise(e, f"Failed to write {self.model.__name__} changes")

    def _raise(self, exc: SQLAlchemyError, message: str) -> NoReturn:
        # Lock waits and serialization failures are routine under contention.
        if is_retryable_db_error(exc):
            self.logger.warning(f"{message}: {str(exc)}")
        else:
            self.logger.error(f"{message}: {str(exc)}")
        raise RepositoryException(f"{message}: {str(exc)}") from exc
