# backend/studio_booking/services/base.py
"""
Shared plumbing for booking engine services.

- ``transaction()`` for single-shot writes that need no optimistic retry
- ``measure_operation`` to time public methods into Prometheus
- per-process operation stats for quick inspection in tests and shells
"""

from contextlib import contextmanager
from dataclasses import dataclass
from functools import wraps
import logging
from threading import Lock
import time
from typing import Any, Callable, ClassVar, Dict, Iterator, Tuple, TypeVar, cast

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException, ServiceException
from ..monitoring.prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

SLOW_OPERATION_SECONDS = 1.0


@dataclass
class OperationStats:
    calls: int = 0
    failures: int = 0
    total_seconds: float = 0.0
    slowest_seconds: float = 0.0

    @property
    def successes(self) -> int:
        return self.calls - self.failures

    @property
    def average_seconds(self) -> float:
        return self.total_seconds / self.calls if self.calls else 0.0

    def add(self, elapsed: float, ok: bool) -> None:
        self.calls += 1
        self.total_seconds += elapsed
        self.slowest_seconds = max(self.slowest_seconds, elapsed)
        if not ok:
            self.failures += 1


class BaseService:
    """
    Services own the transaction boundary; repositories underneath them only
    flush.
    """

    _stats: ClassVar[Dict[Tuple[str, str], OperationStats]] = {}
    _stats_lock: ClassVar[Lock] = Lock()

    def __init__(self, db: Session):
        self.db = db
        self.logger = logging.getLogger(self.__class__.__name__)

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """
        Commit on success, roll back on any error.

        Storage failures come out as ``ServiceException``; domain errors
        raised inside the block propagate unchanged.
        """
        try:
            yield self.db
            self.db.commit()
        except (SQLAlchemyError, RepositoryException) as e:
            self.db.rollback()
            self.logger.error(f"Transaction failed: {e}")
            raise ServiceException("Database operation failed") from e
        except Exception:
            self.db.rollback()
            raise

    @staticmethod
    def measure_operation(operation_name: str) -> Callable[[F], F]:
        """
        Time the decorated method and report it.

        Usage:
            @BaseService.measure_operation("book")
            def book(self, class_id, user_id):
                ...
        """

        def decorator(func: F) -> F:
            @wraps(func)
            def wrapper(self: "BaseService", *args: Any, **kwargs: Any) -> Any:
                started = time.perf_counter()
                error_type = None
                try:
                    return func(self, *args, **kwargs)
                except Exception as e:
                    error_type = type(e).__name__
                    raise
                finally:
                    elapsed = time.perf_counter() - started
                    self._observe(operation_name, elapsed, error_type)

            return cast(F, wrapper)

        return decorator

    def _observe(self, operation: str, elapsed: float, error_type: Any) -> None:
        service = self.__class__.__name__
        with BaseService._stats_lock:
            stats = BaseService._stats.setdefault((service, operation), OperationStats())
            stats.add(elapsed, ok=error_type is None)

        if elapsed > SLOW_OPERATION_SECONDS:
            self.logger.warning(f"Slow operation detected: {operation} took {elapsed:.2f}s")

        try:
            prometheus_metrics.record_service_operation(
                service=service,
                operation=operation,
                duration=elapsed,
                status="error" if error_type else "success",
                error_type=error_type,
            )
        except Exception:
            # Metrics must never break the operation
            logger.debug("Failed to record metrics for %s", operation)

    def log_operation(self, operation: str, **context: Any) -> None:
        self.logger.info(f"Operation: {operation}", extra={"operation": operation, **context})

    def get_metrics(self) -> Dict[str, OperationStats]:
        """Per-operation stats for this service class, in this process."""
        service = self.__class__.__name__
        with BaseService._stats_lock:
            return {
                operation: OperationStats(**vars(stats))
                for (owner, operation), stats in BaseService._stats.items()
                if owner == service
            }
