"""
Advisory per-class lease backed by Redis.

The lease only smooths contention between API workers hammering the same
class. It is fail-open: if Redis is down or the wait budget runs out the
caller proceeds, and the class version check in the booking service stays
the authority on correctness.
"""

from __future__ import annotations

from contextlib import contextmanager
import logging
import threading
import time
from typing import Iterator, Optional

from redis import Redis

from studio_booking.core.config import settings
from studio_booking.monitoring.prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)

_SYNC_REDIS: Optional[Redis] = None
_SYNC_REDIS_LOCK = threading.Lock()

_POLL_INTERVAL_SECONDS = 0.05


def _lock_key(class_id: str) -> str:
    return f"studio_booking:lock:class:{class_id}"


def _get_sync_redis() -> Optional[Redis]:
    global _SYNC_REDIS
    if _SYNC_REDIS is not None:
        return _SYNC_REDIS
    if not settings.redis_url:
        return None
    with _SYNC_REDIS_LOCK:
        if _SYNC_REDIS is not None:
            return _SYNC_REDIS
        try:
            client = Redis.from_url(
                settings.redis_url,
                encoding="utf-8",
                decode_responses=True,
            )
            client.ping()
        except Exception as exc:
            logger.warning("class_lock_redis_unavailable: %s", exc)
            return None
        _SYNC_REDIS = client
        return _SYNC_REDIS


def acquire_class_lock(
    class_id: str,
    token: str,
    ttl_s: Optional[int] = None,
    wait_s: Optional[float] = None,
) -> bool:
    """
    Try to take the lease for ``class_id``, polling for at most ``wait_s``.

    Returns True when the lease is held by ``token``. Returns False when Redis
    is unavailable or the wait budget expired; callers proceed either way.
    """
    ttl = ttl_s if ttl_s is not None else settings.class_lease_ttl_seconds
    wait = wait_s if wait_s is not None else settings.class_lease_wait_seconds

    client = _get_sync_redis()
    if client is None:
        prometheus_metrics.record_class_lock("acquire", "redis_unavailable")
        return False

    deadline = time.monotonic() + wait
    try:
        while True:
            if client.set(_lock_key(class_id), token, nx=True, ex=ttl):
                prometheus_metrics.record_class_lock("acquire", "success")
                return True
            if time.monotonic() >= deadline:
                prometheus_metrics.record_class_lock("acquire", "timeout")
                logger.warning(
                    "class_lock_wait_expired",
                    extra={"class_id": class_id, "wait_seconds": wait},
                )
                return False
            time.sleep(_POLL_INTERVAL_SECONDS)
    except Exception as exc:
        prometheus_metrics.record_class_lock("acquire", "error")
        logger.warning(
            "class_lock_acquire_failed",
            extra={
                "class_id": class_id,
                "error": str(exc),
                "error_type": type(exc).__name__,
            },
        )
        return False


def release_class_lock(class_id: str, token: str) -> None:
    """Release the lease only if ``token`` still owns it."""
    client = _get_sync_redis()
    if client is None:
        prometheus_metrics.record_class_lock("release", "redis_unavailable")
        return
    key = _lock_key(class_id)
    try:
        if client.get(key) == token:
            client.delete(key)
            prometheus_metrics.record_class_lock("release", "success")
        else:
            # Lease expired and may belong to another worker now.
            prometheus_metrics.record_class_lock("release", "not_owner")
    except Exception as exc:
        prometheus_metrics.record_class_lock("release", "error")
        logger.warning(
            "class_lock_release_failed",
            extra={
                "class_id": class_id,
                "error": str(exc),
                "error_type": type(exc).__name__,
            },
        )


@contextmanager
def class_lock(class_id: str, token: str, enabled: Optional[bool] = None) -> Iterator[bool]:
    use_lock = settings.class_lease_enabled if enabled is None else enabled
    if not use_lock:
        yield False
        return
    acquired = acquire_class_lock(class_id, token)
    try:
        yield acquired
    finally:
        if acquired:
            release_class_lock(class_id, token)
