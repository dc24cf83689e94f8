"""Read-only access to class instances owned by the class catalog."""

from sqlalchemy.orm import Session

from ..models.class_instance import ClassInstance
from .base_repository import BaseRepository


class ClassInstanceRepository(BaseRepository[ClassInstance]):
    def __init__(self, db: Session):
        super().__init__(db, ClassInstance)
