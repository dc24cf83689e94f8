# backend/studio_booking/core/exceptions.py
"""
Domain-specific exceptions for the booking engine.

Services raise these; routes convert them with ``to_http_exception()`` so the
HTTP status is decided in one place.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class NotFoundException(DomainException):
    """Raised when a class or booking does not exist."""

    status_code = status.HTTP_404_NOT_FOUND


class UnauthorizedException(DomainException):
    """Raised when no caller identity was supplied."""

    status_code = status.HTTP_401_UNAUTHORIZED


class ForbiddenException(DomainException):
    """Raised when the caller does not own the booking."""

    status_code = status.HTTP_403_FORBIDDEN


class ConflictException(DomainException):
    """Raised for a duplicate active booking or exhausted optimistic retries."""

    status_code = status.HTTP_409_CONFLICT


class PolicyViolationException(DomainException):
    """Raised when a booking rule (start time, cancellation window) is broken."""

    status_code = status.HTTP_400_BAD_REQUEST


class ServiceException(DomainException):
    """Raised when storage is unavailable or a deadline expires."""

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "message": self.message or "An error occurred processing your request",
                "code": self.code,
                "details": self.details if self.details else {},
            },
        )


# Specific booking exceptions


class ClassNotFoundException(NotFoundException):
    def __init__(self, class_id: str):
        super().__init__(
            message="Class not found",
            code="CLASS_NOT_FOUND",
            details={"class_id": class_id},
        )


class BookingNotFoundException(NotFoundException):
    def __init__(self, booking_id: str):
        super().__init__(
            message="Booking not found",
            code="BOOKING_NOT_FOUND",
            details={"booking_id": booking_id},
        )


class AlreadyBookedException(ConflictException):
    """Raised when the user already holds a confirmed or waitlisted booking."""

    def __init__(self, booking_id: str, booking_status: str):
        super().__init__(
            message="already booked",
            code="ALREADY_BOOKED",
            details={"booking_id": booking_id, "status": booking_status},
        )


class BookingContentionException(ConflictException):
    """Raised when optimistic retries are exhausted for a class."""

    def __init__(self, class_id: str, attempts: int):
        super().__init__(
            message="Too many concurrent changes to this class, please retry",
            code="BOOKING_CONTENTION",
            details={"class_id": class_id, "attempts": attempts},
        )


class CancellationWindowException(PolicyViolationException):
    """Raised when cancelling inside the minimum lead time."""

    def __init__(self, required_hours: float, hours_until_start: float):
        super().__init__(
            message=f"Bookings cannot be cancelled less than {required_hours:g} hours before class",
            code="CANCELLATION_WINDOW",
            details={
                "required_hours": required_hours,
                "hours_until_start": round(hours_until_start, 2),
            },
        )


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    Wraps SQLAlchemy failures so services never depend on driver-level
    exception types. The original error is kept as ``__cause__``.
    """
