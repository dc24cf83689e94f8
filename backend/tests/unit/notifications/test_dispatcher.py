from unittest.mock import MagicMock

from studio_booking.core.enums import BookingStatus
from studio_booking.models.booking import Booking
from studio_booking.notifications.dispatcher import (
    CeleryNotificationDispatcher,
    LoggingNotificationDispatcher,
    NotificationDispatcher,
    RecordingNotificationDispatcher,
    get_notification_dispatcher,
    reset_notification_dispatcher,
)


def _booking():
    return Booking(
        id="01HZZZZZZZZZZZZZZZZZZZZZZZ",
        class_id="01HYYYYYYYYYYYYYYYYYYYYYYY",
        user_id="user-a",
        status=BookingStatus.CONFIRMED.value,
    )


class _ExplodingDispatcher(NotificationDispatcher):
    def dispatch(self, event):
        raise RuntimeError("broker unreachable")


def test_recording_dispatcher_keeps_order():
    dispatcher = RecordingNotificationDispatcher()
    booking = _booking()

    dispatcher.notify_booking_confirmed(booking)
    dispatcher.notify_booking_canceled(booking, "confirmed")

    assert dispatcher.event_types() == ["booking_confirmed", "booking_canceled"]


def test_dispatch_errors_never_reach_the_caller():
    _ExplodingDispatcher().notify_booking_confirmed(_booking())


def test_logging_dispatcher_does_not_raise():
    LoggingNotificationDispatcher().notify_waitlist_promoted(_booking(), "b-old")


def test_celery_dispatcher_publishes_once_to_notifications_queue():
    task = MagicMock()
    dispatcher = CeleryNotificationDispatcher(max_workers=1, task=task)

    dispatcher.notify_booking_confirmed(_booking())
    dispatcher.shutdown(wait=True)

    task.apply_async.assert_called_once()
    kwargs = task.apply_async.call_args.kwargs
    assert kwargs["queue"] == "notifications"
    assert kwargs["retry"] is False
    assert kwargs["args"][0]["event_type"] == "booking_confirmed"


def test_celery_dispatcher_swallows_broker_failure():
    task = MagicMock()
    task.apply_async.side_effect = ConnectionError("broker down")
    dispatcher = CeleryNotificationDispatcher(max_workers=1, task=task)

    dispatcher.notify_booking_waitlisted(_booking())
    dispatcher.shutdown(wait=True)

    task.apply_async.assert_called_once()


def test_default_dispatcher_respects_disabled_setting():
    reset_notification_dispatcher()
    try:
        assert isinstance(get_notification_dispatcher(), LoggingNotificationDispatcher)
        assert get_notification_dispatcher() is get_notification_dispatcher()
    finally:
        reset_notification_dispatcher()


def test_delivery_task_handles_known_and_unknown_events():
    from studio_booking.tasks.notification_tasks import deliver_booking_notification

    payload = {
        "event_type": "booking_confirmed",
        "booking_id": "b1",
        "class_id": "c1",
        "user_id": "user-a",
    }

    assert deliver_booking_notification.run(payload) == "booking_confirmed"
    assert deliver_booking_notification.run({"event_type": "mystery"}) == "ignored"
