# backend/studio_booking/main.py
"""
FastAPI application for the studio booking engine.
"""

from contextlib import asynccontextmanager
import logging
from typing import AsyncGenerator

from fastapi import FastAPI

from . import __version__
from .core.config import settings
from .errors import register_error_handlers
from .init_db import init_db
from .notifications.dispatcher import reset_notification_dispatcher
from .routes import bookings, health

# Configure logging
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def app_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup/shutdown."""
    logger.info(f"Studio booking engine starting up (environment={settings.environment})")
    if settings.is_sqlite:
        init_db()
    yield
    reset_notification_dispatcher()
    logger.info("Studio booking engine shut down")


def create_app() -> FastAPI:
    app = FastAPI(
        title="Studio Booking Engine",
        description="Class booking with capacity enforcement and waitlist management",
        version=__version__,
        lifespan=app_lifespan,
    )
    register_error_handlers(app)
    app.include_router(health.router)
    app.include_router(bookings.router)
    return app


app = create_app()
