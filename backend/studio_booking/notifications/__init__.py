from .dispatcher import (
    CeleryNotificationDispatcher,
    LoggingNotificationDispatcher,
    NotificationDispatcher,
    RecordingNotificationDispatcher,
    get_notification_dispatcher,
)

__all__ = [
    "CeleryNotificationDispatcher",
    "LoggingNotificationDispatcher",
    "NotificationDispatcher",
    "RecordingNotificationDispatcher",
    "get_notification_dispatcher",
]
