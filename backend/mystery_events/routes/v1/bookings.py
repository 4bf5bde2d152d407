# backend/mystery_events/routes/v1/bookings.py
"""
Public booking routes - API v1

Endpoints:
    POST / - Reserve tickets and open a Stripe Checkout session
    GET /{booking_id} - Booking status and tickets
    POST /{booking_id}/confirm - Confirm after the checkout redirect
    POST /{booking_id}/payment-session - Retry opening a checkout session
"""

import asyncio
import logging

from fastapi import APIRouter, Body, Depends, status

from ...api.dependencies import get_booking_service, get_confirmation_service
from ...core.exceptions import DomainException
from ...schemas.booking import (
    BookingCreate,
    BookingCreatedResponse,
    BookingResponse,
    ConfirmationResponse,
    PaymentSessionResponse,
)
from ...services.booking_service import BookingService, CustomerDetails
from ...services.confirmation_service import ConfirmationService
from .common import handle_domain_exception

logger = logging.getLogger(__name__)

router = APIRouter(tags=["bookings-v1"])


@router.post(
    "",
    response_model=BookingCreatedResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"description": "Invalid quantity, missing form answers or event not bookable"},
        404: {"description": "Event or voucher not found"},
        409: {"description": "Not enough tickets left or voucher unusable"},
        503: {"description": "Payment gateway unavailable; booking kept as pending"},
    },
)
async def create_booking(
    booking_data: BookingCreate = Body(...),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingCreatedResponse:
    """
    Create a pending booking and return the checkout URL.

    When a voucher covers the whole total there is nothing to charge: the
    booking is confirmed immediately and ``payment_session_url`` is null.
    """
    try:
        created = await asyncio.to_thread(
            booking_service.create_booking,
            booking_data.event_id,
            CustomerDetails(
                name=booking_data.customer_name,
                email=str(booking_data.customer_email),
                phone=booking_data.customer_phone,
            ),
            booking_data.quantity,
            custom_form_data=booking_data.custom_form_data,
            notes=booking_data.notes,
            voucher_code=booking_data.voucher_code,
        )
    except DomainException as e:
        handle_domain_exception(e)
    return BookingCreatedResponse(
        booking_id=created.booking_id,
        booking_code=created.booking_code,
        payment_session_url=created.payment_session_url,
        total_amount=created.total_amount,
        voucher_amount=created.voucher_amount,
        stripe_amount=created.stripe_amount,
        payment_method=created.payment_method,
        confirmed=created.confirmation is not None,
    )


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: str, booking_service: BookingService = Depends(get_booking_service)
) -> BookingResponse:
    try:
        booking = await asyncio.to_thread(booking_service.get_booking, booking_id)
    except DomainException as e:
        handle_domain_exception(e)
    return BookingResponse.model_validate(booking)


@router.post("/{booking_id}/confirm", response_model=ConfirmationResponse)
async def confirm_booking(
    booking_id: str,
    confirmation_service: ConfirmationService = Depends(get_confirmation_service),
) -> ConfirmationResponse:
    """
    Browser-triggered confirmation after the Stripe redirect.

    The checkout session is checked with Stripe first, so this cannot
    complete an unpaid booking. Calling it after the webhook is a no-op.
    """
    try:
        result = await asyncio.to_thread(confirmation_service.confirm, booking_id, verify_payment=True)
    except DomainException as e:
        handle_domain_exception(e)
    return ConfirmationResponse(
        success=True,
        email_sent=result.email_sent,
        calendar_updated=result.calendar_updated,
        already_confirmed=result.already_confirmed,
    )


@router.post("/{booking_id}/payment-session", response_model=PaymentSessionResponse)
async def retry_payment_session(
    booking_id: str, booking_service: BookingService = Depends(get_booking_service)
) -> PaymentSessionResponse:
    try:
        created = await asyncio.to_thread(booking_service.retry_payment_session, booking_id)
    except DomainException as e:
        handle_domain_exception(e)
    return PaymentSessionResponse(
        booking_id=created.booking_id,
        booking_code=created.booking_code,
        payment_session_url=created.payment_session_url,
    )
