# backend/studio_booking/repositories/booking_repository.py
"""
Booking Repository.

Lookups used by the capacity tracker, the waitlist manager and the booking
service. All queries are scoped to a single class or a single user, backed by
the ``(class_id, status)`` and ``user_id`` indexes.
"""

from datetime import datetime
from typing import List, Optional, Sequence

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, contains_eager

from ..core.enums import BookingStatus
from ..models.booking import Booking
from ..models.class_instance import ClassInstance
from .base_repository import BaseRepository


class BookingRepository(BaseRepository[Booking]):
    def __init__(self, db: Session):
        super().__init__(db, Booking)

    def get_active_for_user_class(self, user_id: str, class_id: str) -> Optional[Booking]:
        """Return the user's confirmed or waitlisted booking for a class, if any."""
        try:
            return (
                self.db.query(Booking)
                .filter(
                    Booking.user_id == user_id,
                    Booking.class_id == class_id,
                    Booking.status.in_([s.value for s in BookingStatus.active()]),
                )
                .first()
            )
        except SQLAlchemyError as e:
            self._raise(e, "Failed to look up active booking")

    def get_latest_canceled_for_user_class(self, user_id: str, class_id: str) -> Optional[Booking]:
        """Most recently canceled booking for (user, class); the reinstatement candidate."""
        try:
            return (
                self.db.query(Booking)
                .filter(
                    Booking.user_id == user_id,
                    Booking.class_id == class_id,
                    Booking.status == BookingStatus.CANCELED.value,
                )
                .order_by(Booking.canceled_at.desc(), Booking.id.desc())
                .first()
            )
        except SQLAlchemyError as e:
            self._raise(e, "Failed to look up canceled booking")

    def count_by_status(self, class_id: str, status: BookingStatus) -> int:
        try:
            return int(
                self.db.query(func.count(Booking.id))
                .filter(Booking.class_id == class_id, Booking.status == status.value)
                .scalar()
                or 0
            )
        except SQLAlchemyError as e:
            self._raise(e, f"Failed to count {status.value} bookings")

    def get_waitlisted(self, class_id: str) -> List[Booking]:
        """Waitlisted bookings in queue order: position, then join time."""
        try:
            return (
                self.db.query(Booking)
                .filter(
                    Booking.class_id == class_id,
                    Booking.status == BookingStatus.WAITLISTED.value,
                )
                .order_by(Booking.waitlist_position, Booking.created_at, Booking.id)
                .all()
            )
        except SQLAlchemyError as e:
            self._raise(e, "Failed to load waitlist")

    def get_next_waitlisted(self, class_id: str) -> Optional[Booking]:
        try:
            return (
                self.db.query(Booking)
                .filter(
                    Booking.class_id == class_id,
                    Booking.status == BookingStatus.WAITLISTED.value,
                )
                .order_by(Booking.waitlist_position, Booking.created_at, Booking.id)
                .first()
            )
        except SQLAlchemyError as e:
            self._raise(e, "Failed to load next waitlisted booking")

    def list_for_user(
        self,
        user_id: str,
        *,
        statuses: Optional[Sequence[BookingStatus]] = None,
        starts_from: Optional[datetime] = None,
        starts_before: Optional[datetime] = None,
    ) -> List[Booking]:
        """
        A user's bookings joined with their class, ordered by class start.

        Args:
            user_id: Owner of the bookings
            statuses: Restrict to these statuses (all when None)
            starts_from: Inclusive lower bound on class start
            starts_before: Exclusive upper bound on class start

        Returns:
            Bookings with ``class_instance`` populated
        """
        try:
            query = (
                self.db.query(Booking)
                .join(ClassInstance, Booking.class_id == ClassInstance.id)
                .options(contains_eager(Booking.class_instance))
                .filter(Booking.user_id == user_id)
            )
            if statuses is not None:
                query = query.filter(Booking.status.in_([s.value for s in statuses]))
            if starts_from is not None:
                query = query.filter(ClassInstance.starts_at >= starts_from)
            if starts_before is not None:
                query = query.filter(ClassInstance.starts_at < starts_before)
            return query.order_by(
                ClassInstance.starts_at, Booking.created_at, Booking.id
            ).all()
        except SQLAlchemyError as e:
            self._raise(e, "Failed to list bookings")
