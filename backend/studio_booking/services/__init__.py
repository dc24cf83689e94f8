"""Business logic layer. Services own the transaction boundary."""

from .booking_service import BookingService, BookResult, CancellationResult
from .capacity_tracker import CapacityTracker, ClassAvailability
from .class_catalog import ClassCatalog, ClassSnapshot, SqlClassCatalog
from .waitlist_manager import WaitlistManager

__all__ = [
    "BookResult",
    "BookingService",
    "CancellationResult",
    "CapacityTracker",
    "ClassAvailability",
    "ClassCatalog",
    "ClassSnapshot",
    "SqlClassCatalog",
    "WaitlistManager",
]
