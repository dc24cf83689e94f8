# backend/studio_booking/schemas/booking.py
"""
Booking request and response schemas.

Bookings are exposed as a tagged union on ``status`` so that fields which
only make sense in one state (``waitlist_position``, ``canceled_at``) never
appear on the others.
"""

from datetime import date, datetime
from typing import Annotated, Literal, Optional, Union

from pydantic import Field, TypeAdapter, model_validator

from ..core.enums import BookingStatus
from ..core.timezone_utils import ensure_utc
from ..models.booking import Booking
from .base import StandardizedModel, StrictModel


class ClassDisplay(StandardizedModel):
    """Denormalized class fields shown alongside a booking."""

    class_title: Optional[str] = None
    class_starts_at: Optional[datetime] = None
    class_duration_minutes: Optional[int] = None
    instructor: Optional[str] = None
    location: Optional[str] = None


class _BookingViewBase(ClassDisplay):
    id: str
    class_id: str
    user_id: str
    created_at: datetime
    updated_at: datetime


class ConfirmedBookingView(_BookingViewBase):
    status: Literal["confirmed"] = "confirmed"


class WaitlistedBookingView(_BookingViewBase):
    status: Literal["waitlisted"] = "waitlisted"
    waitlist_position: int = Field(..., ge=1)


class CanceledBookingView(_BookingViewBase):
    status: Literal["canceled"] = "canceled"
    canceled_at: datetime


BookingView = Annotated[
    Union[ConfirmedBookingView, WaitlistedBookingView, CanceledBookingView],
    Field(discriminator="status"),
]

booking_view_adapter: TypeAdapter = TypeAdapter(BookingView)


def booking_to_view(booking: Booking) -> Union[
    ConfirmedBookingView, WaitlistedBookingView, CanceledBookingView
]:
    """Build the status-specific view for an ORM booking."""
    data = {
        "id": booking.id,
        "class_id": booking.class_id,
        "user_id": booking.user_id,
        "status": booking.status,
        "created_at": ensure_utc(booking.created_at),
        "updated_at": ensure_utc(booking.updated_at),
    }
    if booking.status == BookingStatus.WAITLISTED:
        data["waitlist_position"] = booking.waitlist_position
    elif booking.status == BookingStatus.CANCELED:
        data["canceled_at"] = ensure_utc(booking.canceled_at)

    instance = booking.class_instance
    if instance is not None:
        data.update(
            class_title=instance.title,
            class_starts_at=ensure_utc(instance.starts_at),
            class_duration_minutes=instance.duration_minutes,
            instructor=instance.instructor,
            location=instance.location,
        )
    return booking_view_adapter.validate_python(data)


class BookingListFilters(StrictModel):
    """Query filters for a user's booking list. Dates compare on class start (UTC)."""

    status: Optional[BookingStatus] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    include_canceled: bool = True

    @model_validator(mode="after")
    def _check_range(self) -> "BookingListFilters":
        if self.date_from and self.date_to and self.date_from > self.date_to:
            raise ValueError("date_from must be on or before date_to")
        return self


class BookResponse(StandardizedModel):
    booking_id: str
    status: Literal["confirmed", "waitlisted"]
    waitlist_position: Optional[int] = None
    reinstated: bool = False


class CancelResponse(StandardizedModel):
    booking_id: str
    status: Literal["canceled"] = "canceled"
    promoted_booking_id: Optional[str] = None


class ClassAvailabilityResponse(StandardizedModel):
    class_id: str
    capacity: int
    confirmed_count: int
    available_spots: int
    waitlist_size: int
    is_fully_booked: bool
