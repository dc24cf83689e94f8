"""Booking domain events."""
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, ClassVar, Dict, Optional

from ..core.timezone_utils import ensure_utc, utc_now
from ..models.booking import Booking


def _serialize(data: Dict[str, Any]) -> Dict[str, Any]:
    return {
        key: value.isoformat() if isinstance(value, datetime) else value
        for key, value in data.items()
    }


@dataclass
class BookingEvent:
    """Fields shared by every booking event."""

    event_type: ClassVar[str] = "booking_event"

    booking_id: str
    class_id: str
    user_id: str
    occurred_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        payload = _serialize(asdict(self))
        payload["event_type"] = self.event_type
        return payload


@dataclass
class BookingConfirmed(BookingEvent):
    """Fired after a booking takes a seat, either new or reinstated."""

    event_type: ClassVar[str] = "booking_confirmed"

    reinstated: bool = False

    @classmethod
    def from_booking(cls, booking: Booking, reinstated: bool = False) -> "BookingConfirmed":
        return cls(
            booking_id=booking.id,
            class_id=booking.class_id,
            user_id=booking.user_id,
            reinstated=reinstated,
        )


@dataclass
class BookingWaitlisted(BookingEvent):
    """Fired after a booking joins a class waitlist."""

    event_type: ClassVar[str] = "booking_waitlisted"

    waitlist_position: int = 0

    @classmethod
    def from_booking(cls, booking: Booking) -> "BookingWaitlisted":
        return cls(
            booking_id=booking.id,
            class_id=booking.class_id,
            user_id=booking.user_id,
            waitlist_position=booking.waitlist_position or 0,
        )


@dataclass
class BookingCanceled(BookingEvent):
    """Fired after a booking is canceled by its owner."""

    event_type: ClassVar[str] = "booking_canceled"

    previous_status: str = ""
    canceled_at: Optional[datetime] = None

    @classmethod
    def from_booking(cls, booking: Booking, previous_status: str) -> "BookingCanceled":
        return cls(
            booking_id=booking.id,
            class_id=booking.class_id,
            user_id=booking.user_id,
            previous_status=previous_status,
            canceled_at=ensure_utc(booking.canceled_at),
        )


@dataclass
class WaitlistPromoted(BookingEvent):
    """Fired after a waitlisted booking is moved onto a freed seat."""

    event_type: ClassVar[str] = "waitlist_promoted"

    freed_by_booking_id: Optional[str] = None

    @classmethod
    def from_booking(
        cls, booking: Booking, freed_by_booking_id: Optional[str] = None
    ) -> "WaitlistPromoted":
        return cls(
            booking_id=booking.id,
            class_id=booking.class_id,
            user_id=booking.user_id,
            freed_by_booking_id=freed_by_booking_id,
        )
