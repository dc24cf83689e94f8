"""Data access layer. Repositories flush but never commit."""

from .booking_repository import BookingRepository
from .class_repository import ClassInstanceRepository
from .class_version_repository import ClassVersionRepository

__all__ = ["BookingRepository", "ClassInstanceRepository", "ClassVersionRepository"]
