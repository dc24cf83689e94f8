# backend/tests/conftest.py
"""
Pytest configuration for the booking engine.

Each test gets its own SQLite file so that threads can hold independent
connections (the race tests rely on that). Nothing touches the database
configured in the environment.
"""

import os

# Set before any studio_booking import so Settings() picks them up
os.environ.setdefault("ENVIRONMENT", "test")
os.environ["CLASS_LEASE_ENABLED"] = "false"
os.environ["NOTIFICATIONS_ENABLED"] = "false"

from datetime import timedelta
from typing import Callable, Optional

from fastapi.testclient import TestClient
import pytest
from sqlalchemy.orm import Session, sessionmaker

from studio_booking import models  # noqa: F401 - registers tables
from studio_booking.api.dependencies import get_notifications
from studio_booking.core.timezone_utils import utc_now
from studio_booking.core.ulid_helper import generate_ulid
from studio_booking.database import Base, create_db_engine, get_db
from studio_booking.main import app
from studio_booking.models.class_instance import ClassInstance
from studio_booking.notifications.dispatcher import RecordingNotificationDispatcher
from studio_booking.services.booking_service import BookingService


@pytest.fixture
def engine(tmp_path):
    test_engine = create_db_engine(f"sqlite:///{tmp_path / 'bookings.db'}")
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    test_engine.dispose()


@pytest.fixture
def session_factory(engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)


@pytest.fixture
def db(session_factory):
    """Fresh session per test on a fresh database file."""
    session = session_factory()
    yield session
    session.rollback()
    session.close()


@pytest.fixture
def notifications() -> RecordingNotificationDispatcher:
    return RecordingNotificationDispatcher()


@pytest.fixture
def booking_service(db: Session, notifications: RecordingNotificationDispatcher) -> BookingService:
    return BookingService(db, notifications=notifications, sleep=lambda _: None)


@pytest.fixture
def make_class(db: Session) -> Callable[..., ClassInstance]:
    """Factory for catalog rows. Start times are relative to now."""

    def _make(
        capacity: int = 2,
        starts_in: timedelta = timedelta(days=2),
        title: str = "Morning Flow",
        status: str = "scheduled",
        class_id: Optional[str] = None,
    ) -> ClassInstance:
        instance = ClassInstance(
            id=class_id or generate_ulid(),
            title=title,
            starts_at=utc_now() + starts_in,
            capacity=capacity,
            status=status,
        )
        db.add(instance)
        db.commit()
        return instance

    return _make


@pytest.fixture
def client(db: Session, notifications: RecordingNotificationDispatcher):
    """Create a test client with the test database."""

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notifications] = lambda: notifications

    # Don't use context manager - lifespan would create tables on the default URL
    test_client = TestClient(app)

    yield test_client

    app.dependency_overrides.clear()
    test_client.close()

