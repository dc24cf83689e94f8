# backend/studio_booking/models/booking.py
"""
Booking model.

A booking is one user's claim on one class instance. Its status is a closed
union enforced by CHECK constraints:

- confirmed: holds one of the class's seats
- waitlisted: queued, carries a 1-based ``waitlist_position``
- canceled: carries ``canceled_at`` and never a position

A partial unique index allows at most one confirmed or waitlisted booking
per (user, class); any number of canceled rows may exist alongside it.
"""

from datetime import datetime
import logging
from typing import Optional

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Index, Integer, String, text
from sqlalchemy.orm import relationship
import ulid

from ..core.enums import BookingStatus
from ..core.timezone_utils import utc_now
from ..database import Base

logger = logging.getLogger(__name__)

# Partial unique index: one confirmed or waitlisted booking per (user, class)
ACTIVE_BOOKING_INDEX = "uq_bookings_active_user_class"


class Booking(Base):
    """A user's confirmed, waitlisted or canceled seat claim for a class."""

    __tablename__ = "bookings"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    class_id = Column(String(26), ForeignKey("class_instances.id"), nullable=False)
    user_id = Column(String(64), nullable=False, index=True)

    status = Column(String(20), nullable=False)
    waitlist_position = Column(Integer, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    canceled_at = Column(DateTime(timezone=True), nullable=True)

    class_instance = relationship("ClassInstance")

    __table_args__ = (
        CheckConstraint(
            "status IN ('confirmed', 'waitlisted', 'canceled')",
            name="ck_bookings_status",
        ),
        CheckConstraint(
            "(status = 'waitlisted' AND waitlist_position IS NOT NULL AND waitlist_position >= 1)"
            " OR (status <> 'waitlisted' AND waitlist_position IS NULL)",
            name="ck_bookings_waitlist_position",
        ),
        CheckConstraint(
            "(status = 'canceled' AND canceled_at IS NOT NULL)"
            " OR (status <> 'canceled' AND canceled_at IS NULL)",
            name="ck_bookings_canceled_at",
        ),
        Index("ix_bookings_class_status", "class_id", "status"),
        Index(
            ACTIVE_BOOKING_INDEX,
            "user_id",
            "class_id",
            unique=True,
            sqlite_where=text("status IN ('confirmed', 'waitlisted')"),
            postgresql_where=text("status IN ('confirmed', 'waitlisted')"),
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<Booking {self.id}: class={self.class_id}, user={self.user_id}, "
            f"status={self.status}, position={self.waitlist_position}>"
        )

    def confirm(self, now: Optional[datetime] = None) -> None:
        """Move a waitlisted booking onto a seat."""
        self.status = BookingStatus.CONFIRMED.value
        self.waitlist_position = None
        self.updated_at = now or utc_now()

    def reinstate(self, now: Optional[datetime] = None) -> None:
        """Bring a canceled booking back as confirmed, keeping its id."""
        self.status = BookingStatus.CONFIRMED.value
        self.waitlist_position = None
        self.canceled_at = None
        self.updated_at = now or utc_now()
        logger.info(f"Booking {self.id} reinstated for user {self.user_id}")

    def cancel(self, now: Optional[datetime] = None) -> None:
        moment = now or utc_now()
        self.status = BookingStatus.CANCELED.value
        self.waitlist_position = None
        self.canceled_at = moment
        self.updated_at = moment
        logger.info(f"Booking {self.id} canceled by user {self.user_id}")
