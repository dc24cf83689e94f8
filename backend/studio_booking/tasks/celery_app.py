# backend/studio_booking/tasks/celery_app.py
"""
Celery application configuration for the booking engine.

Only notification delivery runs on workers; the booking decision itself
never leaves the request.
"""

from typing import Any

from celery import Celery
from celery.signals import setup_logging

from studio_booking.core.config import settings


def create_celery_app() -> Celery:
    """
    Create and configure the Celery application.

    Returns:
        Celery: Configured Celery application instance
    """
    broker_url = settings.celery_broker_url
    result_backend = settings.celery_result_backend or None

    celery_app = Celery(
        "studio_booking",
        broker=broker_url,
        backend=result_backend,
    )

    base_config = {
        # Task settings
        "task_serializer": "json",
        "accept_content": ["json"],
        "result_serializer": "json",
        "timezone": "UTC",
        "enable_utc": True,
        "task_ignore_result": True,
        # Worker settings
        "worker_prefetch_multiplier": 4,
        "worker_max_tasks_per_child": 1000,
        # Task execution settings
        "task_soft_time_limit": 30,
        "task_time_limit": 60,
        # Notifications are at-most-once: acknowledge on receipt, never redeliver
        "task_acks_late": False,
        "worker_hijack_root_logger": False,
        # Fail fast when the broker is down so request threads are not held
        "broker_connection_timeout": 2,
        "broker_transport_options": {"visibility_timeout": 3600},
    }
    celery_app.conf.update(base_config)

    celery_app.conf.imports = ("studio_booking.tasks.notification_tasks",)
    celery_app.conf.task_routes = {
        "notifications.*": {"queue": "notifications"},
    }

    return celery_app


# Disable Celery's default logging configuration
@setup_logging.connect  # type: ignore[misc]
def config_loggers(*args: Any, **kwargs: Any) -> None:
    """Configure logging to integrate with the application's logging setup."""
    import logging

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


# Create the Celery app instance
celery_app = create_celery_app()
