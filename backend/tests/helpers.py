"""Shared assertions for booking tests."""

from sqlalchemy.orm import Session

from studio_booking.core.enums import BookingStatus
from studio_booking.models.booking import Booking
from studio_booking.models.class_instance import ClassInstance


def bookings_for_class(db: Session, class_id: str) -> list[Booking]:
    db.expire_all()
    return db.query(Booking).filter(Booking.class_id == class_id).all()


def waitlist_order(db: Session, class_id: str) -> list[tuple[str, int]]:
    """(user_id, position) pairs for waitlisted bookings, by position."""
    rows = [b for b in bookings_for_class(db, class_id) if b.status == BookingStatus.WAITLISTED]
    return sorted(((b.user_id, b.waitlist_position) for b in rows), key=lambda pair: pair[1])


def assert_class_invariants(db: Session, klass: ClassInstance) -> None:
    """Capacity, single active booking per user, contiguous waitlist."""
    rows = bookings_for_class(db, klass.id)
    confirmed = [b for b in rows if b.status == BookingStatus.CONFIRMED]
    waitlisted = [b for b in rows if b.status == BookingStatus.WAITLISTED]
    canceled = [b for b in rows if b.status == BookingStatus.CANCELED]

    assert len(confirmed) <= klass.capacity

    active_users = [b.user_id for b in confirmed + waitlisted]
    assert len(active_users) == len(set(active_users))

    positions = sorted(b.waitlist_position for b in waitlisted)
    assert positions == list(range(1, len(waitlisted) + 1))

    assert all(b.waitlist_position is None for b in confirmed + canceled)
    assert all(b.canceled_at is not None for b in canceled)
