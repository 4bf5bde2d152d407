# backend/mystery_events/schemas/booking.py
"""Booking request and response schemas."""

from datetime import date, datetime
from typing import Any, Dict, List, Optional

from pydantic import EmailStr, Field, field_validator

from ..core.codes import is_valid_voucher_code, normalize_voucher_code
from ..core.constants import MAX_TICKETS_PER_BOOKING, MIN_TICKETS_PER_BOOKING
from ..core.enums import PaymentStatus
from ._strict_base import ORMResponseModel, StrictModel, StrictRequestModel
from .base import Money


class BookingCreate(StrictRequestModel):
    """Checkout request for one event."""

    event_id: str = Field(..., min_length=1)
    customer_name: str = Field(..., min_length=2, max_length=255)
    customer_email: EmailStr
    customer_phone: Optional[str] = Field(None, max_length=50)
    quantity: int = Field(..., ge=MIN_TICKETS_PER_BOOKING, le=MAX_TICKETS_PER_BOOKING)
    custom_form_data: Optional[Dict[str, Any]] = None
    notes: Optional[str] = Field(None, max_length=1000)
    voucher_code: Optional[str] = None

    @field_validator("customer_phone", "notes")
    @classmethod
    def _blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        return v or None

    @field_validator("voucher_code")
    @classmethod
    def _normalize_voucher(cls, v: Optional[str]) -> Optional[str]:
        if not v:
            return None
        code = normalize_voucher_code(v)
        if not is_valid_voucher_code(code):
            raise ValueError("Voucher code must look like GIFT-XXXX-XXXX")
        return code


class BookingCreatedResponse(ORMResponseModel):
    booking_id: str
    booking_code: str
    payment_session_url: Optional[str] = None
    total_amount: Money
    voucher_amount: Money
    stripe_amount: Money
    payment_method: str
    confirmed: bool = False


class ConfirmationResponse(StrictModel):
    success: bool = True
    email_sent: bool
    calendar_updated: bool
    already_confirmed: bool = False


class PaymentSessionResponse(ORMResponseModel):
    booking_id: str
    booking_code: str
    payment_session_url: Optional[str] = None


class TicketResponse(ORMResponseModel):
    ticket_code: str
    status: str


class FormAnswerResponse(ORMResponseModel):
    field_name: str
    value: str


class BookingEventSummary(ORMResponseModel):
    id: str
    title: str
    event_date: date
    start_time: str
    location: str


class BookingResponse(ORMResponseModel):
    id: str
    booking_code: str
    event_id: str
    customer_name: str
    customer_email: str
    customer_phone: Optional[str] = None
    quantity: int
    total_amount: Money
    voucher_amount: Money
    stripe_amount: Money
    payment_status: str
    payment_method: str
    confirmation_sent: bool
    created_at: datetime
    confirmed_at: Optional[datetime] = None
    event: Optional[BookingEventSummary] = None
    tickets: List[TicketResponse] = Field(default_factory=list)


class AdminBookingResponse(BookingResponse):
    customer_id: str
    notes: Optional[str] = None
    reminder_sent: bool
    stripe_session_id: Optional[str] = None
    stripe_payment_intent_id: Optional[str] = None
    failure_reason: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    form_responses: List[FormAnswerResponse] = Field(default_factory=list)


class AdminBookingListResponse(ORMResponseModel):
    bookings: List[AdminBookingResponse]
    total: int
    page: int
    limit: int


class AdminBookingUpdate(StrictRequestModel):
    notes: Optional[str] = Field(None, max_length=1000)
    payment_status: Optional[PaymentStatus] = None
