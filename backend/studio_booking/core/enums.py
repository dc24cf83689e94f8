"""Status enumerations shared by models, services and schemas."""

from enum import Enum


class BookingStatus(str, Enum):
    CONFIRMED = "confirmed"
    WAITLISTED = "waitlisted"
    CANCELED = "canceled"

    @classmethod
    def active(cls) -> tuple["BookingStatus", ...]:
        """Statuses that occupy the user's single active slot for a class."""
        return (cls.CONFIRMED, cls.WAITLISTED)


class ClassStatus(str, Enum):
    SCHEDULED = "scheduled"
    CANCELLED = "cancelled"


class BookingOutcome(str, Enum):
    """Result labels recorded for booking metrics and logs."""

    CONFIRMED = "confirmed"
    WAITLISTED = "waitlisted"
    REINSTATED = "reinstated"
    CANCELED = "canceled"
    PROMOTED = "promoted"
