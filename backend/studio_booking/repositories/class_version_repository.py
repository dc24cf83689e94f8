# backend/studio_booking/repositories/class_version_repository.py
"""
Per-class version rows used for optimistic concurrency.
"""

from typing import Optional

from sqlalchemy import insert, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.timezone_utils import utc_now
from ..models.class_booking_version import ClassBookingVersion
from .base_repository import BaseRepository


class ClassVersionRepository(BaseRepository[ClassBookingVersion]):
    def __init__(self, db: Session):
        super().__init__(db, ClassBookingVersion)

    def ensure(self, class_id: str) -> None:
        """Create the version row for ``class_id`` if it does not exist yet."""
        values = {"class_id": class_id, "version": 0, "updated_at": utc_now()}
        try:
            if self.dialect_name == "postgresql":
                stmt = pg_insert(ClassBookingVersion).values(**values)
                self.db.execute(stmt.on_conflict_do_nothing(index_elements=["class_id"]))
            elif self.dialect_name == "sqlite":
                stmt = sqlite_insert(ClassBookingVersion).values(**values)
                self.db.execute(stmt.on_conflict_do_nothing(index_elements=["class_id"]))
            else:
                if self.get_version(class_id) is None:
                    try:
                        with self.db.begin_nested():
                            self.db.execute(insert(ClassBookingVersion).values(**values))
                    except IntegrityError:
                        pass  # created concurrently
        except SQLAlchemyError as e:
            self._raise(e, "Failed to initialise class version")

    def get_version(self, class_id: str) -> Optional[int]:
        try:
            return self.db.execute(
                select(ClassBookingVersion.version).where(ClassBookingVersion.class_id == class_id)
            ).scalar_one_or_none()
        except SQLAlchemyError as e:
            self._raise(e, "Failed to read class version")

    def bump(self, class_id: str, expected_version: int) -> bool:
        """
        Advance the class version if it still equals ``expected_version``.

        Returns False when another writer got there first.
        """
        try:
            result = self.db.execute(
                update(ClassBookingVersion)
                .where(
                    ClassBookingVersion.class_id == class_id,
                    ClassBookingVersion.version == expected_version,
                )
                .values(version=ClassBookingVersion.version + 1, updated_at=utc_now())
                .execution_options(synchronize_session=False)
            )
            return result.rowcount == 1
        except SQLAlchemyError as e:
            self._raise(e, "Failed to update class version")
