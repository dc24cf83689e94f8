"""
Database engine, session factory, and metadata shared across the application.
"""

from __future__ import annotations

import logging
import random
from typing import Any, Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import DeclarativeMeta, Session, declarative_base, sessionmaker

from studio_booking.core.config import settings

logger = logging.getLogger(__name__)


def _build_engine_kwargs(db_url: str) -> dict[str, Any]:
    """Engine options per backend."""
    if db_url.startswith("sqlite"):
        # Separate connections per thread; writers wait on the file lock
        # instead of failing immediately.
        return {
            "connect_args": {"check_same_thread": False, "timeout": 30},
            "future": True,
        }

    connect_args: dict[str, Any] = {"connect_timeout": 5}
    if settings.db_statement_timeout_ms:
        connect_args["options"] = f"-c statement_timeout={settings.db_statement_timeout_ms}"
    return {
        "pool_size": 5,
        "max_overflow": 10,
        "pool_timeout": 5,
        "pool_recycle": 300,
        "pool_pre_ping": True,
        "connect_args": connect_args,
        "future": True,
    }


def create_db_engine(db_url: str) -> Engine:
    new_engine = create_engine(db_url, **_build_engine_kwargs(db_url))

    @event.listens_for(new_engine, "connect")
    def receive_connect(dbapi_connection: Any, connection_record: Any) -> None:
        logger.debug("Database connection established")

    return new_engine


engine: Engine = create_db_engine(settings.database_url)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)

Base: DeclarativeMeta = declarative_base()


def get_db() -> Generator[Session, None, None]:
    """Get database session with proper cleanup."""
    db = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


# Transient errors that are safe to retry once the transaction is rolled back:
# SQLite writer contention, dropped pooled connections, PostgreSQL
# serialization failures and deadlocks.
_RETRYABLE_ERROR_SNIPPETS = (
    "database is locked",
    "server closed the connection",
    "ssl connection has been closed unexpectedly",
    "could not serialize access",
    "deadlock detected",
)
_RETRYABLE_PGCODES = {"40001", "40P01"}


def is_retryable_db_error(exc: Exception) -> bool:
    if not isinstance(exc, DBAPIError):
        return False
    pgcode = getattr(getattr(exc, "orig", None), "pgcode", None)
    if pgcode in _RETRYABLE_PGCODES:
        return True
    message = str(exc).lower()
    return any(snippet in message for snippet in _RETRYABLE_ERROR_SNIPPETS)


def retry_delay(attempt: int, base: float = 0.1) -> float:
    """Exponential backoff with jitter for the given 1-based attempt."""
    backoff = base * (2 ** (attempt - 1))
    return backoff + random.uniform(0, base * attempt)


__all__ = [
    "Base",
    "SessionLocal",
    "create_db_engine",
    "engine",
    "get_db",
    "is_retryable_db_error",
    "retry_delay",
]
