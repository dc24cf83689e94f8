# backend/studio_booking/core/config.py
"""
Runtime configuration for the booking engine.

Values come from the environment (case-insensitive) or a local ``.env``
file. Tests mutate the module-level ``settings`` object directly.
"""

import os
from typing import Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    environment: Literal["development", "test", "production"] = "development"
    log_level: str = Field(default="INFO", description="Root log level for the service")

    # Database
    database_url: str = Field(
        default="sqlite:///./studio_booking.db",
        description="SQLAlchemy URL; SQLite for local runs, PostgreSQL when deployed",
    )
    db_statement_timeout_ms: int = Field(
        default=5000,
        ge=0,
        description="PostgreSQL statement_timeout applied to every pooled connection (0 disables)",
    )

    # Redis (optional per-class lease)
    redis_url: Optional[str] = Field(default=None, description="Redis URL for the class lease")
    class_lease_enabled: bool = Field(
        default=False,
        description="Take an advisory per-class Redis lease around booking writes",
    )
    class_lease_ttl_seconds: int = Field(default=10, ge=1)
    class_lease_wait_seconds: float = Field(default=2.0, ge=0)

    # Booking policy
    cancellation_window_hours: float = Field(
        default=2,
        ge=0,
        description="Minimum lead time before class start during which cancellation is refused",
    )
    booking_max_attempts: int = Field(
        default=5,
        ge=1,
        le=20,
        description="Optimistic write attempts before reporting contention",
    )
    booking_retry_base_delay: float = Field(
        default=0.025,
        ge=0,
        description="Base backoff delay (seconds) between optimistic attempts",
    )
    booking_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Deadline for a single book/cancel call including retries",
    )

    # Notifications
    notifications_enabled: bool = Field(default=False, alias="NOTIFICATIONS_ENABLED")
    celery_broker_url: str = Field(default="redis://localhost:6379/0")
    celery_result_backend: Optional[str] = None

    model_config = SettingsConfigDict(
        env_file=".env" if not os.getenv("CI") else None,
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        return value.strip().upper() or "INFO"

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")


settings = Settings()
