"""
UTC helpers.

SQLite drops tzinfo on ``DateTime(timezone=True)`` columns, so every value
read back from storage goes through ``ensure_utc`` before comparison.
"""

from datetime import datetime, timezone
from typing import Optional


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes and convert aware ones to UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def hours_until(moment: datetime, now: Optional[datetime] = None) -> float:
    reference = now or utc_now()
    return (ensure_utc(moment) - reference).total_seconds() / 3600
