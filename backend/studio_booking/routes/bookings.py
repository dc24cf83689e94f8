# backend/studio_booking/routes/bookings.py
"""
Class booking routes.

All business logic delegated to BookingService.

Endpoints:
    POST /classes/{class_id}/book - Book a seat or join the waitlist
    GET /classes/{class_id}/availability - Seat summary for display
    GET /bookings - The caller's bookings with filters
    GET /bookings/{booking_id} - One of the caller's bookings
    DELETE /bookings/{booking_id} - Cancel, promoting the waitlist if a seat frees
"""

import asyncio
from datetime import date
import logging
from typing import List, NoReturn, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from ..api.dependencies import get_booking_service, get_current_user_id
from ..core.enums import BookingStatus
from ..core.exceptions import DomainException
from ..schemas.booking import (
    BookingListFilters,
    BookingView,
    BookResponse,
    CancelResponse,
    ClassAvailabilityResponse,
    booking_to_view,
)
from ..services.booking_service import BookingService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["bookings"])


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


@router.post(
    "/classes/{class_id}/book",
    response_model=BookResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        200: {"description": "Canceled booking reinstated"},
        400: {"description": "Class already started or not open"},
        404: {"description": "Class not found"},
        409: {"description": "Already booked"},
    },
)
async def book_class(
    class_id: str,
    response: Response,
    user_id: str = Depends(get_current_user_id),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookResponse:
    """Book a class. A full class yields a waitlisted booking, not an error."""
    try:
        result = await asyncio.to_thread(booking_service.book, class_id, user_id)
    except DomainException as e:
        handle_domain_exception(e)

    if not result.created:
        response.status_code = status.HTTP_200_OK
    return BookResponse(
        booking_id=result.booking.id,
        status=result.booking.status,
        waitlist_position=result.booking.waitlist_position,
        reinstated=not result.created,
    )


@router.get("/classes/{class_id}/availability", response_model=ClassAvailabilityResponse)
async def get_class_availability(
    class_id: str,
    booking_service: BookingService = Depends(get_booking_service),
) -> ClassAvailabilityResponse:
    try:
        availability = await asyncio.to_thread(booking_service.get_class_availability, class_id)
    except DomainException as e:
        handle_domain_exception(e)

    return ClassAvailabilityResponse(
        class_id=availability.class_id,
        capacity=availability.capacity,
        confirmed_count=availability.confirmed_count,
        available_spots=availability.available_spots,
        waitlist_size=availability.waitlist_size,
        is_fully_booked=availability.is_fully_booked,
    )


@router.get("/bookings", response_model=List[BookingView])
async def list_bookings(
    booking_status: Optional[BookingStatus] = Query(None, alias="status"),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    include_canceled: bool = Query(True),
    user_id: str = Depends(get_current_user_id),
    booking_service: BookingService = Depends(get_booking_service),
) -> List[BookingView]:
    """List the caller's bookings ordered by class start time."""
    filters = BookingListFilters(
        status=booking_status,
        date_from=date_from,
        date_to=date_to,
        include_canceled=include_canceled,
    )
    try:
        bookings = await asyncio.to_thread(booking_service.list_bookings, user_id, filters)
    except DomainException as e:
        handle_domain_exception(e)

    return [booking_to_view(booking) for booking in bookings]


@router.get("/bookings/{booking_id}", response_model=BookingView)
async def get_booking(
    booking_id: str,
    user_id: str = Depends(get_current_user_id),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingView:
    try:
        booking = await asyncio.to_thread(booking_service.get_booking, booking_id, user_id)
    except DomainException as e:
        handle_domain_exception(e)

    return booking_to_view(booking)


@router.delete(
    "/bookings/{booking_id}",
    response_model=CancelResponse,
    responses={
        400: {"description": "Inside the cancellation window or already canceled"},
        403: {"description": "Not the booking owner"},
        404: {"description": "Booking not found"},
    },
)
async def cancel_booking(
    booking_id: str,
    user_id: str = Depends(get_current_user_id),
    booking_service: BookingService = Depends(get_booking_service),
) -> CancelResponse:
    try:
        result = await asyncio.to_thread(booking_service.cancel, booking_id, user_id)
    except DomainException as e:
        handle_domain_exception(e)

    return CancelResponse(
        booking_id=result.booking.id,
        promoted_booking_id=result.promoted_booking_id,
    )
