# backend/studio_booking/services/class_catalog.py
"""
Read-only view of the class catalog.

Class scheduling is administered elsewhere; the engine only needs capacity,
start time, status and a few display fields. ``ClassCatalog`` is the seam,
``SqlClassCatalog`` reads the shared ``class_instances`` table.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Protocol

from sqlalchemy.orm import Session

from ..core.enums import ClassStatus
from ..core.exceptions import ClassNotFoundException
from ..core.timezone_utils import ensure_utc
from ..models.class_instance import ClassInstance
from ..repositories.class_repository import ClassInstanceRepository


@dataclass(frozen=True)
class ClassSnapshot:
    id: str
    title: str
    instructor: str
    location: str
    starts_at: datetime
    duration_minutes: int
    capacity: int
    status: ClassStatus

    @property
    def is_open(self) -> bool:
        return self.status == ClassStatus.SCHEDULED

    @classmethod
    def from_model(cls, instance: ClassInstance) -> "ClassSnapshot":
        return cls(
            id=instance.id,
            title=instance.title,
            instructor=instance.instructor,
            location=instance.location,
            starts_at=ensure_utc(instance.starts_at),
            duration_minutes=instance.duration_minutes,
            capacity=instance.capacity,
            status=ClassStatus(instance.status),
        )


class ClassCatalog(Protocol):
    def find_class_instance(self, class_id: str) -> Optional[ClassSnapshot]:
        ...

    def get_class_instance(self, class_id: str) -> ClassSnapshot:
        """Return the class or raise ``ClassNotFoundException``."""
        ...


class SqlClassCatalog:
    """ClassCatalog backed by the ``class_instances`` table."""

    def __init__(self, db: Session):
        self.repository = ClassInstanceRepository(db)

    def find_class_instance(self, class_id: str) -> Optional[ClassSnapshot]:
        instance = self.repository.get_by_id(class_id)
        if instance is None:
            return None
        return ClassSnapshot.from_model(instance)

    def get_class_instance(self, class_id: str) -> ClassSnapshot:
        snapshot = self.find_class_instance(class_id)
        if snapshot is None:
            raise ClassNotFoundException(class_id)
        return snapshot
