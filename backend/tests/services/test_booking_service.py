"""
BookingService behaviour: booking, waitlisting, reinstatement, cancellation.
"""

from datetime import timedelta
from unittest.mock import patch

from pydantic import ValidationError
import pytest

from studio_booking.core.enums import BookingOutcome, BookingStatus
from studio_booking.core.exceptions import (
    AlreadyBookedException,
    BookingNotFoundException,
    CancellationWindowException,
    ClassNotFoundException,
    ForbiddenException,
    PolicyViolationException,
)
from studio_booking.core.timezone_utils import utc_now
from studio_booking.core.ulid_helper import generate_ulid
from studio_booking.models.booking import Booking
from studio_booking.schemas.booking import BookingListFilters
from tests.helpers import assert_class_invariants, bookings_for_class, waitlist_order


def test_book_and_promote_on_cancel(db, booking_service, make_class):
    klass = make_class(capacity=2)

    a = booking_service.book(klass.id, "user-a")
    b = booking_service.book(klass.id, "user-b")
    c = booking_service.book(klass.id, "user-c")

    assert a.booking.status == BookingStatus.CONFIRMED
    assert b.booking.status == BookingStatus.CONFIRMED
    assert c.booking.status == BookingStatus.WAITLISTED
    assert c.booking.waitlist_position == 1
    assert c.outcome == BookingOutcome.WAITLISTED

    result = booking_service.cancel(a.booking.id, "user-a")

    assert result.booking.status == BookingStatus.CANCELED
    assert result.previous_status == BookingStatus.CONFIRMED
    assert result.promoted_booking_id == c.booking.id

    db.expire_all()
    promoted = db.get(Booking, c.booking.id)
    assert promoted.status == BookingStatus.CONFIRMED
    assert promoted.waitlist_position is None
    assert waitlist_order(db, klass.id) == []
    assert_class_invariants(db, klass)


def test_reinstates_canceled_booking_with_same_id(db, booking_service, make_class):
    klass = make_class(capacity=3)

    first = booking_service.book(klass.id, "user-d")
    booking_service.cancel(first.booking.id, "user-d")
    again = booking_service.book(klass.id, "user-d")

    assert again.booking.id == first.booking.id
    assert again.outcome == BookingOutcome.REINSTATED
    assert again.created is False
    assert again.booking.status == BookingStatus.CONFIRMED
    assert again.booking.canceled_at is None
    assert len(bookings_for_class(db, klass.id)) == 1


def test_reinstates_most_recent_canceled_row(db, booking_service, make_class):
    klass = make_class(capacity=1)

    first = booking_service.book(klass.id, "user-d")
    booking_service.cancel(first.booking.id, "user-d")

    # Class fills up, user joins the waitlist with a new row, then leaves it
    booking_service.book(klass.id, "user-x")
    waitlisted = booking_service.book(klass.id, "user-d")
    assert waitlisted.booking.id != first.booking.id
    booking_service.cancel(waitlisted.booking.id, "user-d")

    seat_holder = db.query(Booking).filter_by(user_id="user-x").one()
    booking_service.cancel(seat_holder.id, "user-x")

    again = booking_service.book(klass.id, "user-d")
    assert again.outcome == BookingOutcome.REINSTATED
    assert again.booking.id == waitlisted.booking.id
    assert_class_invariants(db, klass)


def test_rebooking_full_class_after_cancel_joins_waitlist(db, booking_service, make_class):
    klass = make_class(capacity=1)

    mine = booking_service.book(klass.id, "user-d")
    booking_service.cancel(mine.booking.id, "user-d")
    booking_service.book(klass.id, "user-e")

    result = booking_service.book(klass.id, "user-d")

    assert result.outcome == BookingOutcome.WAITLISTED
    assert result.booking.id != mine.booking.id
    assert result.booking.waitlist_position == 1
    db.expire_all()
    assert db.get(Booking, mine.booking.id).status == BookingStatus.CANCELED
    assert_class_invariants(db, klass)


def test_cancel_inside_window_is_rejected(db, booking_service, make_class):
    klass = make_class(capacity=2, starts_in=timedelta(hours=1))
    booked = booking_service.book(klass.id, "user-e")

    with pytest.raises(CancellationWindowException) as exc_info:
        booking_service.cancel(booked.booking.id, "user-e")

    assert exc_info.value.code == "CANCELLATION_WINDOW"
    assert isinstance(exc_info.value, PolicyViolationException)
    db.expire_all()
    assert db.get(Booking, booked.booking.id).status == BookingStatus.CONFIRMED


def test_cancel_window_is_configurable(db, notifications, make_class):
    from studio_booking.services.booking_service import BookingService

    service = BookingService(db, notifications=notifications, cancellation_window_hours=0.5)
    klass = make_class(capacity=2, starts_in=timedelta(hours=1))
    booked = service.book(klass.id, "user-e")

    result = service.cancel(booked.booking.id, "user-e")
    assert result.booking.status == BookingStatus.CANCELED


def test_waitlist_compacts_when_middle_entry_cancels(db, booking_service, make_class):
    klass = make_class(capacity=1)
    booking_service.book(klass.id, "holder")
    first = booking_service.book(klass.id, "wait-1")
    second = booking_service.book(klass.id, "wait-2")
    third = booking_service.book(klass.id, "wait-3")
    assert [r.booking.waitlist_position for r in (first, second, third)] == [1, 2, 3]

    result = booking_service.cancel(second.booking.id, "wait-2")

    assert result.previous_status == BookingStatus.WAITLISTED
    assert result.promoted_booking is None
    assert result.booking.waitlist_position is None
    assert waitlist_order(db, klass.id) == [("wait-1", 1), ("wait-3", 2)]
    assert_class_invariants(db, klass)


def test_promotion_takes_lowest_position_and_compacts(db, booking_service, make_class):
    klass = make_class(capacity=1)
    holder = booking_service.book(klass.id, "holder")
    for user in ("wait-1", "wait-2", "wait-3"):
        booking_service.book(klass.id, user)

    result = booking_service.cancel(holder.booking.id, "holder")

    assert result.promoted_booking.user_id == "wait-1"
    assert waitlist_order(db, klass.id) == [("wait-2", 1), ("wait-3", 2)]
    assert_class_invariants(db, klass)


def test_cancel_with_empty_waitlist_promotes_nobody(booking_service, make_class):
    klass = make_class(capacity=2)
    booked = booking_service.book(klass.id, "user-a")

    result = booking_service.cancel(booked.booking.id, "user-a")

    assert result.promoted_booking is None
    assert result.promoted_booking_id is None


def test_duplicate_active_booking_conflicts(db, booking_service, make_class):
    klass = make_class(capacity=1)
    booking_service.book(klass.id, "user-a")
    booking_service.book(klass.id, "user-b")

    with pytest.raises(AlreadyBookedException):
        booking_service.book(klass.id, "user-a")
    with pytest.raises(AlreadyBookedException) as exc_info:
        booking_service.book(klass.id, "user-b")

    assert exc_info.value.details["status"] == "waitlisted"
    assert len(bookings_for_class(db, klass.id)) == 2


def test_book_unknown_class(booking_service):
    with pytest.raises(ClassNotFoundException):
        booking_service.book(generate_ulid(), "user-a")


def test_book_started_class(db, booking_service, make_class):
    klass = make_class(starts_in=timedelta(minutes=-5))

    with pytest.raises(PolicyViolationException) as exc_info:
        booking_service.book(klass.id, "user-a")

    assert exc_info.value.message == "class already started"
    assert bookings_for_class(db, klass.id) == []


def test_book_cancelled_class(booking_service, make_class):
    klass = make_class(status="cancelled")

    with pytest.raises(PolicyViolationException) as exc_info:
        booking_service.book(klass.id, "user-a")

    assert exc_info.value.code == "CLASS_NOT_OPEN"


def test_cancel_unknown_booking(booking_service):
    with pytest.raises(BookingNotFoundException):
        booking_service.cancel(generate_ulid(), "user-a")


def test_cancel_someone_elses_booking(db, booking_service, make_class):
    klass = make_class()
    booked = booking_service.book(klass.id, "owner")

    with pytest.raises(ForbiddenException):
        booking_service.cancel(booked.booking.id, "intruder")

    db.expire_all()
    assert db.get(Booking, booked.booking.id).status == BookingStatus.CONFIRMED


def test_cancel_twice_is_a_policy_violation(booking_service, make_class):
    klass = make_class()
    booked = booking_service.book(klass.id, "user-a")
    booking_service.cancel(booked.booking.id, "user-a")

    with pytest.raises(PolicyViolationException) as exc_info:
        booking_service.cancel(booked.booking.id, "user-a")

    assert exc_info.value.code == "BOOKING_ALREADY_CANCELED"


def test_get_booking_is_owner_only(booking_service, make_class):
    klass = make_class()
    booked = booking_service.book(klass.id, "owner")

    assert booking_service.get_booking(booked.booking.id, "owner").id == booked.booking.id
    with pytest.raises(ForbiddenException):
        booking_service.get_booking(booked.booking.id, "someone-else")
    with pytest.raises(BookingNotFoundException):
        booking_service.get_booking(generate_ulid(), "owner")


def test_notifications_follow_outcomes(booking_service, notifications, make_class):
    klass = make_class(capacity=1)
    holder = booking_service.book(klass.id, "holder")
    booking_service.book(klass.id, "waiter")
    booking_service.cancel(holder.booking.id, "holder")

    assert notifications.event_types() == [
        "booking_confirmed",
        "booking_waitlisted",
        "booking_canceled",
        "waitlist_promoted",
    ]
    promoted = notifications.events[-1]
    assert promoted.user_id == "waiter"
    assert promoted.freed_by_booking_id == holder.booking.id


def test_notification_failure_does_not_fail_booking(db, booking_service, make_class):
    klass = make_class()
    with patch.object(
        booking_service.notifications,
        "notify_booking_confirmed",
        side_effect=RuntimeError("broker down"),
    ):
        result = booking_service.book(klass.id, "user-a")

    assert result.booking.status == BookingStatus.CONFIRMED
    db.expire_all()
    assert db.get(Booking, result.booking.id) is not None


def test_renumber_waitlist_repairs_gaps(db, booking_service, make_class):
    klass = make_class(capacity=1)
    booking_service.book(klass.id, "holder")
    first = booking_service.book(klass.id, "wait-1")
    second = booking_service.book(klass.id, "wait-2")

    # Simulate drift left by an out-of-band edit
    db.get(Booking, first.booking.id).waitlist_position = 4
    db.get(Booking, second.booking.id).waitlist_position = 9
    db.commit()

    moved = booking_service.renumber_waitlist(klass.id)

    assert moved == 2
    assert waitlist_order(db, klass.id) == [("wait-1", 1), ("wait-2", 2)]


def test_class_availability_summary(booking_service, make_class):
    klass = make_class(capacity=2)
    booking_service.book(klass.id, "a")
    booking_service.book(klass.id, "b")
    booking_service.book(klass.id, "c")

    availability = booking_service.get_class_availability(klass.id)

    assert availability.capacity == 2
    assert availability.confirmed_count == 2
    assert availability.available_spots == 0
    assert availability.waitlist_size == 1
    assert availability.is_fully_booked is True


def test_class_availability_unknown_class(booking_service):
    with pytest.raises(ClassNotFoundException):
        booking_service.get_class_availability(generate_ulid())


def test_list_bookings_orders_by_class_start(booking_service, make_class):
    later = make_class(starts_in=timedelta(days=5), title="Evening Flow")
    sooner = make_class(starts_in=timedelta(days=1), title="Sunrise")
    booking_service.book(later.id, "user-a")
    booking_service.book(sooner.id, "user-a")
    booking_service.book(sooner.id, "user-b")

    listed = booking_service.list_bookings("user-a")

    assert [b.class_instance.title for b in listed] == ["Sunrise", "Evening Flow"]
    assert all(b.user_id == "user-a" for b in listed)


def test_list_bookings_filters(booking_service, make_class):
    full = make_class(capacity=1, starts_in=timedelta(days=1))
    roomy = make_class(capacity=5, starts_in=timedelta(days=10))
    dropped = make_class(capacity=5, starts_in=timedelta(days=3))
    booking_service.book(full.id, "other")
    waiting = booking_service.book(full.id, "user-a")
    seated = booking_service.book(roomy.id, "user-a")
    gone = booking_service.book(dropped.id, "user-a")
    booking_service.cancel(gone.booking.id, "user-a")

    by_status = booking_service.list_bookings(
        "user-a", BookingListFilters(status="waitlisted")
    )
    assert [b.id for b in by_status] == [waiting.booking.id]

    active_only = booking_service.list_bookings(
        "user-a", BookingListFilters(include_canceled=False)
    )
    assert {b.id for b in active_only} == {waiting.booking.id, seated.booking.id}

    today = utc_now().date()
    window = booking_service.list_bookings(
        "user-a",
        BookingListFilters(date_from=today + timedelta(days=2), date_to=today + timedelta(days=11)),
    )
    assert [b.id for b in window] == [gone.booking.id, seated.booking.id]


def test_list_bookings_for_user_without_bookings(booking_service):
    assert booking_service.list_bookings("nobody") == []


def test_list_filters_reject_inverted_range():
    today = utc_now().date()

    with pytest.raises(ValidationError):
        BookingListFilters(date_from=today, date_to=today - timedelta(days=1))


def test_operations_are_timed(booking_service, make_class):
    klass = make_class()
    booking_service.book(klass.id, "user-a")

    metrics = booking_service.get_metrics()

    assert metrics["book"].calls >= 1
    assert metrics["book"].successes >= 1
