# backend/studio_booking/services/booking_service.py
"""
Booking Service for the studio class engine.

Handles all booking business logic including:
- Booking a seat or a waitlist slot
- Reinstating a previously canceled booking
- Cancellation with waitlist promotion and compaction
- Listing a user's bookings
- Post-commit notifications

Concurrency: every mutation for a class runs as an optimistic attempt that
ends with a conditional bump of the class version row. When the bump
matches nothing, another writer committed first; the attempt is rolled
back and replayed against fresh state with jittered backoff.
"""

from dataclasses import dataclass
from datetime import datetime, time as dt_time, timedelta, timezone
import time
from typing import Callable, List, NoReturn, Optional, TypeVar

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.class_lock import class_lock
from ..core.config import settings
from ..core.enums import BookingOutcome, BookingStatus
from ..core.exceptions import (
    AlreadyBookedException,
    BookingContentionException,
    BookingNotFoundException,
    CancellationWindowException,
    DomainException,
    ForbiddenException,
    PolicyViolationException,
    RepositoryException,
    ServiceException,
)
from ..core.timezone_utils import hours_until, utc_now
from ..core.ulid_helper import generate_ulid
from ..database import is_retryable_db_error, retry_delay
from ..models.booking import ACTIVE_BOOKING_INDEX, Booking
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..notifications.dispatcher import NotificationDispatcher, get_notification_dispatcher
from ..repositories.booking_repository import BookingRepository
from ..repositories.class_version_repository import ClassVersionRepository
from ..schemas.booking import BookingListFilters
from .base import BaseService
from .capacity_tracker import CapacityTracker, ClassAvailability
from .class_catalog import ClassCatalog, ClassSnapshot, SqlClassCatalog
from .waitlist_manager import WaitlistManager

T = TypeVar("T")

_PG_UNIQUE_VIOLATION = "23505"
_SQLITE_ACTIVE_BOOKING_VIOLATION = "unique constraint failed: bookings.user_id, bookings.class_id"


@dataclass(frozen=True)
class BookResult:
    booking: Booking
    outcome: BookingOutcome

    @property
    def created(self) -> bool:
        """False when an earlier canceled row was reinstated."""
        return self.outcome != BookingOutcome.REINSTATED


@dataclass(frozen=True)
class CancellationResult:
    booking: Booking
    previous_status: BookingStatus
    promoted_booking: Optional[Booking] = None

    @property
    def promoted_booking_id(self) -> Optional[str]:
        return self.promoted_booking.id if self.promoted_booking else None


class _StaleVersion(Exception):
    """The class version moved since the attempt read it."""


class BookingService(BaseService):
    """
    Orchestrates capacity, waitlist and persistence for class bookings.

    Holds no state between calls; everything is re-read from storage on
    every attempt.
    """

    def __init__(
        self,
        db: Session,
        catalog: Optional[ClassCatalog] = None,
        notifications: Optional[NotificationDispatcher] = None,
        *,
        cancellation_window_hours: Optional[float] = None,
        max_attempts: Optional[int] = None,
        retry_base_delay: Optional[float] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        super().__init__(db)
        self.catalog: ClassCatalog = catalog or SqlClassCatalog(db)
        self.notifications = notifications or get_notification_dispatcher()
        self.bookings = BookingRepository(db)
        self.versions = ClassVersionRepository(db)
        self.capacity = CapacityTracker(self.bookings)
        self.waitlist = WaitlistManager(self.bookings, self.capacity)

        self.cancellation_window_hours = (
            settings.cancellation_window_hours
            if cancellation_window_hours is None
            else cancellation_window_hours
        )
        self.max_attempts = max_attempts or settings.booking_max_attempts
        self.retry_base_delay = (
            settings.booking_retry_base_delay if retry_base_delay is None else retry_base_delay
        )
        self._sleep = sleep

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    @BaseService.measure_operation("book")
    def book(
        self, class_id: str, user_id: str, *, timeout_seconds: Optional[float] = None
    ) -> BookResult:
        """
        Give ``user_id`` a seat in the class, or a waitlist slot when full.

        Both outcomes are successful bookings; the result's ``outcome`` tells
        them apart.

        Raises:
            ClassNotFoundException: Unknown class
            PolicyViolationException: Class started or not open for booking
            AlreadyBookedException: User already confirmed or waitlisted
            BookingContentionException: Optimistic retries exhausted
            ServiceException: Storage failure or deadline exceeded
        """
        self.log_operation("book", class_id=class_id, user_id=user_id)

        klass = self._get_class(class_id)
        self._validate_bookable(klass)

        result = self._run_atomic(
            "book",
            class_id,
            lambda: self._book_attempt(klass, user_id),
            timeout_seconds,
        )

        prometheus_metrics.record_booking_outcome(result.outcome.value)
        self.logger.info(
            f"Booking {result.booking.id} {result.outcome.value} for user {user_id}",
            extra={
                "booking_id": result.booking.id,
                "class_id": class_id,
                "user_id": user_id,
                "outcome": result.outcome.value,
                "waitlist_position": result.booking.waitlist_position,
            },
        )
        self._notify_booked(result)
        return result

    @BaseService.measure_operation("cancel")
    def cancel(
        self, booking_id: str, user_id: str, *, timeout_seconds: Optional[float] = None
    ) -> CancellationResult:
        """
        Cancel the caller's booking and hand a freed seat to the waitlist.

        Raises:
            BookingNotFoundException: Unknown booking
            ForbiddenException: Booking belongs to someone else
            PolicyViolationException: Already canceled, or inside the
                cancellation window
            BookingContentionException: Optimistic retries exhausted
            ServiceException: Storage failure or deadline exceeded
        """
        self.log_operation("cancel", booking_id=booking_id, user_id=user_id)

        booking = self._get_owned_booking(booking_id, user_id)
        class_id = booking.class_id

        result = self._run_atomic(
            "cancel",
            class_id,
            lambda: self._cancel_attempt(booking_id),
            timeout_seconds,
        )

        prometheus_metrics.record_booking_outcome(BookingOutcome.CANCELED.value)
        if result.promoted_booking is not None:
            prometheus_metrics.record_booking_outcome(BookingOutcome.PROMOTED.value)
        self.logger.info(
            f"Booking {booking_id} canceled by user {user_id}",
            extra={
                "booking_id": booking_id,
                "class_id": class_id,
                "previous_status": result.previous_status.value,
                "promoted_booking_id": result.promoted_booking_id,
            },
        )
        self._notify_canceled(result)
        return result

    @BaseService.measure_operation("renumber_waitlist")
    def renumber_waitlist(self, class_id: str, *, timeout_seconds: Optional[float] = None) -> int:
        """Maintenance: repair stored waitlist positions for a class."""
        self._get_class(class_id)
        return self._run_atomic(
            "renumber_waitlist",
            class_id,
            lambda: self.waitlist.renumber(class_id),
            timeout_seconds,
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @BaseService.measure_operation("list_bookings")
    def list_bookings(
        self, user_id: str, filters: Optional[BookingListFilters] = None
    ) -> List[Booking]:
        """A user's bookings ordered by class start, then booking time."""
        filters = filters or BookingListFilters()

        statuses: Optional[List[BookingStatus]] = None
        if filters.status is not None:
            statuses = [BookingStatus(filters.status)]
        elif not filters.include_canceled:
            statuses = list(BookingStatus.active())

        starts_from = (
            datetime.combine(filters.date_from, dt_time.min, tzinfo=timezone.utc)
            if filters.date_from
            else None
        )
        starts_before = (
            datetime.combine(filters.date_to + timedelta(days=1), dt_time.min, tzinfo=timezone.utc)
            if filters.date_to
            else None
        )
        try:
            return self.bookings.list_for_user(
                user_id,
                statuses=statuses,
                starts_from=starts_from,
                starts_before=starts_before,
            )
        except RepositoryException as exc:
            raise ServiceException("Failed to load bookings") from exc

    @BaseService.measure_operation("get_booking")
    def get_booking(self, booking_id: str, user_id: str) -> Booking:
        return self._get_owned_booking(booking_id, user_id)

    @BaseService.measure_operation("get_class_availability")
    def get_class_availability(self, class_id: str) -> ClassAvailability:
        """Display-only seat summary. Never use it to decide a write."""
        klass = self._get_class(class_id)
        try:
            return self.capacity.summarize(class_id, klass.capacity)
        except RepositoryException as exc:
            raise ServiceException("Failed to load class availability") from exc

    # ------------------------------------------------------------------
    # Attempts (run inside _run_atomic)
    # ------------------------------------------------------------------

    def _book_attempt(self, klass: ClassSnapshot, user_id: str) -> BookResult:
        now = utc_now()

        active = self.bookings.get_active_for_user_class(user_id, klass.id)
        if active is not None:
            raise AlreadyBookedException(active.id, active.status)

        reinstatement_candidate = self.bookings.get_latest_canceled_for_user_class(
            user_id, klass.id
        )

        if self.capacity.available_spots(klass.id, klass.capacity) > 0:
            if reinstatement_candidate is not None:
                reinstatement_candidate.reinstate(now)
                self.bookings.flush()
                return BookResult(reinstatement_candidate, BookingOutcome.REINSTATED)

            booking = self.bookings.create(
                id=generate_ulid(),
                class_id=klass.id,
                user_id=user_id,
                status=BookingStatus.CONFIRMED.value,
                created_at=now,
                updated_at=now,
            )
            return BookResult(booking, BookingOutcome.CONFIRMED)

        # A canceled row is only reinstated onto a seat; a full class
        # always queues a fresh waitlist entry.
        booking = self.waitlist.place_on_waitlist(klass.id, user_id, now)
        return BookResult(booking, BookingOutcome.WAITLISTED)

    def _cancel_attempt(self, booking_id: str) -> CancellationResult:
        now = utc_now()

        booking = self.bookings.get_by_id(booking_id)
        if booking is None:
            raise BookingNotFoundException(booking_id)
        if booking.status == BookingStatus.CANCELED:
            raise PolicyViolationException(
                "Booking is already canceled",
                code="BOOKING_ALREADY_CANCELED",
                details={"booking_id": booking_id},
            )

        # Catalog errors stay RepositoryException here so transient ones are retried
        klass = self.catalog.get_class_instance(booking.class_id)
        hours_left = hours_until(klass.starts_at, now)
        if hours_left < self.cancellation_window_hours:
            raise CancellationWindowException(self.cancellation_window_hours, hours_left)

        previous_status = BookingStatus(booking.status)
        booking.cancel(now)
        self.bookings.flush()

        promoted: Optional[Booking] = None
        if previous_status == BookingStatus.CONFIRMED:
            promoted = self.waitlist.promote_next(klass.id, klass.capacity, now)
        else:
            self.waitlist.compact(klass.id)

        return CancellationResult(booking, previous_status, promoted)

    # ------------------------------------------------------------------
    # Optimistic concurrency
    # ------------------------------------------------------------------

    def _run_atomic(
        self,
        operation: str,
        class_id: str,
        attempt_fn: Callable[[], T],
        timeout_seconds: Optional[float] = None,
    ) -> T:
        """
        Run ``attempt_fn`` until it commits against an unchanged class version.

        Domain errors raised by the attempt roll back and propagate
        immediately. Lost races and transient storage errors are retried
        with exponential backoff plus jitter until ``max_attempts`` or the
        deadline runs out.
        """
        timeout = timeout_seconds if timeout_seconds is not None else settings.booking_timeout_seconds
        deadline = time.monotonic() + timeout

        with self.transaction():
            self.versions.ensure(class_id)

        with class_lock(class_id, token=generate_ulid()):
            attempt = 1
            while True:
                self._check_deadline(operation, class_id, deadline, timeout)
                self.db.expire_all()
                try:
                    observed = self.versions.get_version(class_id)
                    if observed is None:
                        raise ServiceException(
                            "Class version row is missing",
                            details={"class_id": class_id},
                        )
                    result = attempt_fn()
                    if not self.versions.bump(class_id, observed):
                        raise _StaleVersion()
                    self.db.commit()
                    return result
                except DomainException:
                    self.db.rollback()
                    raise
                except _StaleVersion:
                    self.db.rollback()
                    reason = "stale_version"
                except (RepositoryException, SQLAlchemyError) as exc:
                    self.db.rollback()
                    reason = self._retry_reason(exc)
                    if reason is None:
                        self.logger.error(
                            f"{operation} failed for class {class_id}: {exc}",
                            extra={"class_id": class_id, "operation": operation},
                        )
                        raise ServiceException(
                            f"Database operation failed during {operation}",
                            details={"class_id": class_id},
                        ) from exc

                prometheus_metrics.record_optimistic_retry(operation, reason)
                if attempt >= self.max_attempts:
                    self.logger.warning(
                        f"Giving up on {operation} after {attempt} attempts",
                        extra={"class_id": class_id, "operation": operation, "attempts": attempt},
                    )
                    raise BookingContentionException(class_id, attempt)

                delay = retry_delay(attempt, self.retry_base_delay)
                if time.monotonic() + delay >= deadline:
                    self._raise_timeout(operation, class_id, timeout)
                self.logger.warning(
                    f"Retrying {operation} after {reason}",
                    extra={
                        "class_id": class_id,
                        "operation": operation,
                        "attempt": attempt,
                        "delay": delay,
                        "reason": reason,
                    },
                )
                self._sleep(delay)
                attempt += 1

    @staticmethod
    def _retry_reason(exc: Exception) -> Optional[str]:
        root = exc.__cause__ if isinstance(exc, RepositoryException) else exc
        if isinstance(root, IntegrityError):
            # Only a concurrent claim on the (user, class) slot is a race; the
            # replay reports it as a duplicate. CHECK and FK failures are bugs.
            return "integrity" if _is_active_booking_conflict(root) else None
        if root is not None and is_retryable_db_error(root):
            return "transient"
        return None

    def _check_deadline(
        self, operation: str, class_id: str, deadline: float, timeout: float
    ) -> None:
        if time.monotonic() >= deadline:
            self._raise_timeout(operation, class_id, timeout)

    def _raise_timeout(self, operation: str, class_id: str, timeout: float) -> NoReturn:
        self.logger.error(
            f"{operation} exceeded its {timeout:g}s deadline",
            extra={"class_id": class_id, "operation": operation},
        )
        raise ServiceException(
            f"{operation} timed out",
            code="BOOKING_TIMEOUT",
            details={"class_id": class_id, "timeout_seconds": timeout},
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _get_class(self, class_id: str) -> ClassSnapshot:
        try:
            return self.catalog.get_class_instance(class_id)
        except RepositoryException as exc:
            raise ServiceException("Failed to load class") from exc

    def _validate_bookable(self, klass: ClassSnapshot) -> None:
        if not klass.is_open:
            raise PolicyViolationException(
                "class is not open for booking",
                code="CLASS_NOT_OPEN",
                details={"class_id": klass.id, "status": klass.status.value},
            )
        if klass.starts_at <= utc_now():
            raise PolicyViolationException(
                "class already started",
                code="CLASS_ALREADY_STARTED",
                details={"class_id": klass.id, "starts_at": klass.starts_at.isoformat()},
            )

    def _get_owned_booking(self, booking_id: str, user_id: str) -> Booking:
        try:
            booking = self.bookings.get_by_id(booking_id)
        except RepositoryException as exc:
            raise ServiceException("Failed to load booking") from exc
        if booking is None:
            raise BookingNotFoundException(booking_id)
        if booking.user_id != user_id:
            raise ForbiddenException(
                "You can only access your own bookings",
                code="BOOKING_NOT_OWNER",
                details={"booking_id": booking_id},
            )
        return booking

    def _notify_booked(self, result: BookResult) -> None:
        try:
            if result.booking.status == BookingStatus.WAITLISTED:
                self.notifications.notify_booking_waitlisted(result.booking)
            else:
                self.notifications.notify_booking_confirmed(
                    result.booking, reinstated=not result.created
                )
        except Exception as e:
            self.logger.error(f"Failed to send booking notification: {str(e)}")

    def _notify_canceled(self, result: CancellationResult) -> None:
        try:
            self.notifications.notify_booking_canceled(
                result.booking, result.previous_status.value
            )
            if result.promoted_booking is not None:
                self.notifications.notify_waitlist_promoted(
                    result.promoted_booking, freed_by_booking_id=result.booking.id
                )
        except Exception as e:
            self.logger.error(f"Failed to send cancellation notification: {str(e)}")


def _is_active_booking_conflict(exc: IntegrityError) -> bool:
    """True when ``exc`` is a violation of the one-active-booking index."""
    orig = getattr(exc, "orig", None)
    message = str(orig if orig is not None else exc).lower()
    if ACTIVE_BOOKING_INDEX in message:
        return True
    if getattr(orig, "pgcode", None) == _PG_UNIQUE_VIOLATION:
        diag = getattr(orig, "diag", None)
        return getattr(diag, "constraint_name", None) == ACTIVE_BOOKING_INDEX
    return _SQLITE_ACTIVE_BOOKING_VIOLATION in message
