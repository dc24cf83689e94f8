# backend/studio_booking/models/class_booking_version.py
"""
Per-class concurrency anchor.

Every booking mutation for a class finishes by bumping ``version`` with a
conditional UPDATE on the value it read first. A zero-row update means a
concurrent writer committed in between and the attempt must be discarded.
"""

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, String

from ..core.timezone_utils import utc_now
from ..database import Base


class ClassBookingVersion(Base):
    __tablename__ = "class_booking_versions"

    class_id = Column(String(26), ForeignKey("class_instances.id"), primary_key=True)
    version = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)

    __table_args__ = (CheckConstraint("version >= 0", name="ck_class_booking_versions_version"),)

    def __repr__(self) -> str:
        return f"<ClassBookingVersion {self.class_id}: v{self.version}>"
