# backend/studio_booking/models/class_instance.py
"""
Class instance model.

Rows are owned by the class catalog (schedule administration lives outside
this service). The booking engine only reads them.
"""

from sqlalchemy import CheckConstraint, Column, DateTime, Integer, String
from sqlalchemy.sql import func
import ulid

from ..core.enums import ClassStatus
from ..database import Base

DEFAULT_CAPACITY = 20
DEFAULT_INSTRUCTOR = "Gabi"
DEFAULT_LOCATION = "Main Studio"
DEFAULT_DURATION_MINUTES = 60


class ClassInstance(Base):
    """A single scheduled occurrence of a studio class."""

    __tablename__ = "class_instances"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    title = Column(String(200), nullable=False)
    instructor = Column(String(100), nullable=False, default=DEFAULT_INSTRUCTOR)
    location = Column(String(200), nullable=False, default=DEFAULT_LOCATION)
    starts_at = Column(DateTime(timezone=True), nullable=False, index=True)
    duration_minutes = Column(Integer, nullable=False, default=DEFAULT_DURATION_MINUTES)
    capacity = Column(Integer, nullable=False, default=DEFAULT_CAPACITY)
    status = Column(String(20), nullable=False, default=ClassStatus.SCHEDULED.value)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        CheckConstraint("capacity >= 1", name="ck_class_instances_capacity_positive"),
        CheckConstraint("duration_minutes > 0", name="ck_class_instances_duration_positive"),
        CheckConstraint(
            "status IN ('scheduled', 'cancelled')",
            name="ck_class_instances_status",
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<ClassInstance {self.id}: {self.title!r} at {self.starts_at}, "
            f"capacity={self.capacity}, status={self.status}>"
        )
