# backend/studio_booking/services/waitlist_manager.py
"""
Waitlist ordering and promotion for a class instance.

Stored positions are treated as a derived view: whenever the queue changes
shape it is re-read in (position, join time) order and renumbered 1..N.
Every method here must run inside the caller's optimistic attempt so that
the class version bump covers the rows it touches.
"""

from datetime import datetime
import logging
from typing import List, Optional

from ..core.enums import BookingStatus
from ..core.timezone_utils import utc_now
from ..models.booking import Booking
from ..repositories.booking_repository import BookingRepository
from .capacity_tracker import CapacityTracker

logger = logging.getLogger(__name__)


class WaitlistManager:
    def __init__(self, bookings: BookingRepository, capacity: CapacityTracker):
        self.bookings = bookings
        self.capacity = capacity

    def current_waitlist_count(self, class_id: str) -> int:
        return self.bookings.count_by_status(class_id, BookingStatus.WAITLISTED)

    def get_waitlist(self, class_id: str) -> List[Booking]:
        return self.bookings.get_waitlisted(class_id)

    def place_on_waitlist(
        self, class_id: str, user_id: str, now: Optional[datetime] = None
    ) -> Booking:
        """Append ``user_id`` to the end of the class waitlist."""
        moment = now or utc_now()
        position = self.current_waitlist_count(class_id) + 1
        booking = self.bookings.create(
            class_id=class_id,
            user_id=user_id,
            status=BookingStatus.WAITLISTED.value,
            waitlist_position=position,
            created_at=moment,
            updated_at=moment,
        )
        logger.info(
            "Booking waitlisted",
            extra={"class_id": class_id, "user_id": user_id, "position": position},
        )
        return booking

    def promote_next(
        self, class_id: str, capacity: int, now: Optional[datetime] = None
    ) -> Optional[Booking]:
        """
        Confirm the head of the waitlist if a seat is free.

        Returns the promoted booking, or None when the waitlist is empty or
        the class has no free seat.
        """
        if self.capacity.available_spots(class_id, capacity) <= 0:
            return None
        candidate = self.bookings.get_next_waitlisted(class_id)
        if candidate is None:
            return None

        candidate.confirm(now)
        self.bookings.flush()
        self.compact(class_id)
        logger.info(
            "Waitlisted booking promoted",
            extra={"class_id": class_id, "booking_id": candidate.id, "user_id": candidate.user_id},
        )
        return candidate

    def compact(self, class_id: str) -> int:
        """
        Renumber the remaining waitlist to 1..N.

        Only rows whose position changes are written. Returns how many were
        moved.
        """
        moved = 0
        for expected, booking in enumerate(self.bookings.get_waitlisted(class_id), start=1):
            if booking.waitlist_position != expected:
                booking.waitlist_position = expected
                moved += 1
        if moved:
            self.bookings.flush()
        return moved

    def renumber(self, class_id: str) -> int:
        """Repair gaps or duplicates in stored positions."""
        moved = self.compact(class_id)
        if moved:
            logger.warning(
                "Waitlist positions repaired",
                extra={"class_id": class_id, "rows_moved": moved},
            )
        return moved
