# backend/mystery_events/routes/v1/admin/bookings.py
"""
Admin booking management - API v1

Endpoints:
    GET / - List bookings with filters and pagination
    GET /{booking_id} - Booking with tickets and form answers
    PATCH /{booking_id} - Edit notes or set payment status manually
    POST /{booking_id}/cancel - Cancel and return tickets to the event
"""

import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends, Query

from ....api.dependencies import get_booking_service, require_admin
from ....core.constants import MAX_PAGE_SIZE
from ....core.enums import PaymentStatus
from ....core.exceptions import DomainException
from ....schemas.booking import AdminBookingListResponse, AdminBookingResponse, AdminBookingUpdate
from ....services.booking_service import BookingService
from ..common import handle_domain_exception

logger = logging.getLogger(__name__)

router = APIRouter(tags=["admin-bookings"], dependencies=[Depends(require_admin)])


@router.get("", response_model=AdminBookingListResponse)
async def list_bookings(
    payment_status: Optional[PaymentStatus] = Query(None),
    event_id: Optional[str] = Query(None),
    search: Optional[str] = Query(None, max_length=100),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=MAX_PAGE_SIZE),
    booking_service: BookingService = Depends(get_booking_service),
) -> AdminBookingListResponse:
    result = await asyncio.to_thread(
        booking_service.list_bookings,
        payment_status=payment_status.value if payment_status else None,
        event_id=event_id,
        search=search,
        page=page,
        limit=limit,
    )
    return AdminBookingListResponse.model_validate(result)


@router.get("/{booking_id}", response_model=AdminBookingResponse)
async def get_booking(
    booking_id: str, booking_service: BookingService = Depends(get_booking_service)
) -> AdminBookingResponse:
    try:
        booking = await asyncio.to_thread(booking_service.get_booking, booking_id)
    except DomainException as e:
        handle_domain_exception(e)
    return AdminBookingResponse.model_validate(booking)


@router.patch("/{booking_id}", response_model=AdminBookingResponse)
async def update_booking(
    booking_id: str,
    payload: AdminBookingUpdate = Body(...),
    booking_service: BookingService = Depends(get_booking_service),
) -> AdminBookingResponse:
    try:
        booking = await asyncio.to_thread(
            booking_service.update_booking_admin,
            booking_id,
            notes=payload.notes,
            payment_status=payload.payment_status,
        )
    except DomainException as e:
        handle_domain_exception(e)
    return AdminBookingResponse.model_validate(booking)


@router.post("/{booking_id}/cancel", response_model=AdminBookingResponse)
async def cancel_booking(
    booking_id: str, booking_service: BookingService = Depends(get_booking_service)
) -> AdminBookingResponse:
    try:
        booking = await asyncio.to_thread(booking_service.cancel_booking, booking_id)
    except DomainException as e:
        handle_domain_exception(e)
    return AdminBookingResponse.model_validate(booking)
