"""
FastAPI dependencies: database session, caller identity, services.
"""

from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from ..core.exceptions import UnauthorizedException
from ..database import get_db
from ..notifications.dispatcher import NotificationDispatcher, get_notification_dispatcher
from ..services.booking_service import BookingService

USER_ID_HEADER = "X-User-Id"


def get_current_user_id(
    x_user_id: Optional[str] = Header(default=None, alias=USER_ID_HEADER),
) -> str:
    """
    Identity supplied by the upstream authenticator.

    The header is trusted as-is; a missing or blank value means the request
    never passed authentication.
    """
    user_id = (x_user_id or "").strip()
    if not user_id:
        raise UnauthorizedException(
            "Authentication required",
            code="NOT_AUTHENTICATED",
        )
    return user_id


def get_notifications() -> NotificationDispatcher:
    return get_notification_dispatcher()


def get_booking_service(
    db: Session = Depends(get_db),
    notifications: NotificationDispatcher = Depends(get_notifications),
) -> BookingService:
    return BookingService(db, notifications=notifications)


__all__ = ["USER_ID_HEADER", "get_booking_service", "get_current_user_id", "get_db", "get_notifications"]
