# backend/studio_booking/notifications/dispatcher.py
"""
Fire-and-forget booking notifications.

The booking service calls these after its transaction commits. Nothing here
may raise into the caller or block it on the broker: events are built in
the request thread and handed to a small worker pool which publishes them
once. Failures are logged and counted, never retried.
"""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor
import logging
import threading
from typing import Any, List, Optional

from ..events.booking_events import (
    BookingCanceled,
    BookingConfirmed,
    BookingEvent,
    BookingWaitlisted,
    WaitlistPromoted,
)
from ..models.booking import Booking
from ..monitoring.prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """Base dispatcher; subclasses decide where events go."""

    def notify_booking_confirmed(self, booking: Booking, reinstated: bool = False) -> None:
        self._safe_dispatch(BookingConfirmed.from_booking(booking, reinstated=reinstated))

    def notify_booking_waitlisted(self, booking: Booking) -> None:
        self._safe_dispatch(BookingWaitlisted.from_booking(booking))

    def notify_booking_canceled(self, booking: Booking, previous_status: str) -> None:
        self._safe_dispatch(BookingCanceled.from_booking(booking, previous_status))

    def notify_waitlist_promoted(
        self, booking: Booking, freed_by_booking_id: Optional[str] = None
    ) -> None:
        self._safe_dispatch(WaitlistPromoted.from_booking(booking, freed_by_booking_id))

    def shutdown(self, wait: bool = False) -> None:
        """Release any background resources."""

    def _safe_dispatch(self, event: BookingEvent) -> None:
        try:
            self.dispatch(event)
        except Exception as exc:
            prometheus_metrics.record_notification_dispatch(event.event_type, "error")
            logger.error(
                "Failed to dispatch booking notification",
                extra={
                    "event_type": event.event_type,
                    "booking_id": event.booking_id,
                    "error": str(exc),
                },
            )

    def dispatch(self, event: BookingEvent) -> None:
        raise NotImplementedError


class LoggingNotificationDispatcher(NotificationDispatcher):
    """Used when notifications are disabled; only logs the intent."""

    def dispatch(self, event: BookingEvent) -> None:
        logger.info(
            f"Notification suppressed: {event.event_type} for booking {event.booking_id}",
            extra=event.to_dict(),
        )
        prometheus_metrics.record_notification_dispatch(event.event_type, "suppressed")


class RecordingNotificationDispatcher(NotificationDispatcher):
    """Keeps events in memory. Handy for tests and local debugging."""

    def __init__(self) -> None:
        self.events: List[BookingEvent] = []
        self._lock = threading.Lock()

    def dispatch(self, event: BookingEvent) -> None:
        with self._lock:
            self.events.append(event)

    def event_types(self) -> List[str]:
        with self._lock:
            return [event.event_type for event in self.events]


class CeleryNotificationDispatcher(NotificationDispatcher):
    """Publishes each event once to the ``notifications`` Celery queue."""

    def __init__(self, max_workers: int = 2, task: Optional[Any] = None) -> None:
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="booking-notify"
        )
        self._task = task

    def dispatch(self, event: BookingEvent) -> None:
        payload = event.to_dict()
        future = self._executor.submit(self._publish, payload)
        future.add_done_callback(lambda f: self._on_published(f, event))

    def _publish(self, payload: dict) -> None:
        task = self._task
        if task is None:
            from ..tasks.notification_tasks import deliver_booking_notification

            task = deliver_booking_notification
        task.apply_async(args=(payload,), queue="notifications", retry=False)

    @staticmethod
    def _on_published(future: Future, event: BookingEvent) -> None:
        exc = future.exception()
        if exc is None:
            prometheus_metrics.record_notification_dispatch(event.event_type, "enqueued")
            return
        prometheus_metrics.record_notification_dispatch(event.event_type, "error")
        logger.warning(
            "Booking notification could not be enqueued",
            extra={
                "event_type": event.event_type,
                "booking_id": event.booking_id,
                "error": str(exc),
            },
        )

    def shutdown(self, wait: bool = False) -> None:
        self._executor.shutdown(wait=wait)


_dispatcher: Optional[NotificationDispatcher] = None
_dispatcher_lock = threading.Lock()


def get_notification_dispatcher() -> NotificationDispatcher:
    """Process-wide dispatcher chosen from settings."""
    global _dispatcher
    if _dispatcher is not None:
        return _dispatcher
    with _dispatcher_lock:
        if _dispatcher is None:
            from ..core.config import settings

            if settings.notifications_enabled:
                _dispatcher = CeleryNotificationDispatcher()
            else:
                _dispatcher = LoggingNotificationDispatcher()
        return _dispatcher


def reset_notification_dispatcher() -> None:
    global _dispatcher
    with _dispatcher_lock:
        if _dispatcher is not None:
            _dispatcher.shutdown()
        _dispatcher = None
