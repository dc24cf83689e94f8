# backend/studio_booking/tasks/notification_tasks.py
"""
Celery task that receives booking notification intents.

Message content and delivery channels belong to the messaging subsystem;
this worker records that the intent arrived. Delivery is attempted once.
"""

from __future__ import annotations

from typing import Any, Dict

from celery.app.task import Task  # noqa: F401 - used for type hints
from celery.utils.log import get_task_logger

from studio_booking.tasks.celery_app import celery_app

logger = get_task_logger(__name__)

KNOWN_EVENT_TYPES = frozenset(
    {"booking_confirmed", "booking_waitlisted", "booking_canceled", "waitlist_promoted"}
)


@celery_app.task(
    name="notifications.deliver_booking_event",
    bind=True,
    max_retries=0,
    queue="notifications",
)
def deliver_booking_notification(self: "Task[Any, Any]", payload: Dict[str, Any]) -> str:
    """
    Accept one booking event payload.

    Returns the event type that was handled, or ``"ignored"`` for unknown
    payloads.
    """
    event_type = payload.get("event_type")
    if event_type not in KNOWN_EVENT_TYPES:
        logger.warning("Ignoring unknown booking notification: %s", event_type)
        return "ignored"

    logger.info(
        "Booking notification %s for booking %s (user %s, class %s)",
        event_type,
        payload.get("booking_id"),
        payload.get("user_id"),
        payload.get("class_id"),
    )
    return str(event_type)
