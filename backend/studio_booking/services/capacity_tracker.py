# backend/studio_booking/services/capacity_tracker.py
"""
Seat accounting for a class instance.

Counts are derived from booking rows on every call. A value read here only
justifies a write when it was read inside the same optimistic attempt that
performs the write; standalone calls are for display.
"""

from dataclasses import dataclass
import logging

from ..core.enums import BookingStatus
from ..repositories.booking_repository import BookingRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClassAvailability:
    class_id: str
    capacity: int
    confirmed_count: int
    available_spots: int
    waitlist_size: int

    @property
    def is_fully_booked(self) -> bool:
        return self.available_spots == 0


class CapacityTracker:
    def __init__(self, bookings: BookingRepository):
        self.bookings = bookings

    def confirmed_count(self, class_id: str) -> int:
        return self.bookings.count_by_status(class_id, BookingStatus.CONFIRMED)

    def available_spots(self, class_id: str, capacity: int) -> int:
        """``max(capacity - confirmed, 0)`` as of the current transaction."""
        confirmed = self.confirmed_count(class_id)
        if confirmed > capacity:
            # Capacity was lowered in the catalog below what is already sold.
            logger.warning(
                "Class over capacity",
                extra={"class_id": class_id, "capacity": capacity, "confirmed": confirmed},
            )
        return max(capacity - confirmed, 0)

    def summarize(self, class_id: str, capacity: int) -> ClassAvailability:
        confirmed = self.confirmed_count(class_id)
        return ClassAvailability(
            class_id=class_id,
            capacity=capacity,
            confirmed_count=confirmed,
            available_spots=max(capacity - confirmed, 0),
            waitlist_size=self.bookings.count_by_status(class_id, BookingStatus.WAITLISTED),
        )
