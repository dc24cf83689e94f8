"""ORM models; importing this package registers every table on ``Base.metadata``."""

from .booking import Booking
from .class_booking_version import ClassBookingVersion
from .class_instance import ClassInstance

__all__ = ["Booking", "ClassBookingVersion", "ClassInstance"]
