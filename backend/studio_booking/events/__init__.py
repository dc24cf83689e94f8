from .booking_events import (
    BookingCanceled,
    BookingConfirmed,
    BookingEvent,
    BookingWaitlisted,
    WaitlistPromoted,
)

__all__ = [
    "BookingCanceled",
    "BookingConfirmed",
    "BookingEvent",
    "BookingWaitlisted",
    "WaitlistPromoted",
]
