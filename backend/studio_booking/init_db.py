"""
Create the booking engine tables directly from the ORM metadata.

Local development and tests only; managed databases are migrated with
Alembic.
"""

import logging
from typing import Optional

from sqlalchemy.engine import Engine

from . import models  # noqa: F401 - registers tables on Base.metadata
from .database import Base, engine as default_engine

logger = logging.getLogger(__name__)


def init_db(bind: Optional[Engine] = None) -> None:
    target = bind or default_engine
    Base.metadata.create_all(bind=target)
    logger.info("Database tables ensured", extra={"url": str(target.url)})


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    init_db()
