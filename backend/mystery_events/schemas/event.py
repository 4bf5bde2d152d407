# backend/mystery_events/schemas/event.py
"""
Event schemas.

Field limits mirror ``core.constants``; rules that need the database (sold
tickets versus capacity, template references) are checked in
``EventService``.
"""

from datetime import date
from decimal import Decimal
from typing import List, Optional

from pydantic import AliasChoices, Field, field_validator, model_validator

from ..core.constants import (
    EVENT_MAX_CAPACITY,
    EVENT_MAX_DURATION_MINUTES,
    EVENT_MAX_PRICE,
    EVENT_MIN_CAPACITY,
    EVENT_MIN_DURATION_MINUTES,
    EVENT_MIN_PRICE,
    EVENT_TIME_PATTERN,
    EVENT_TITLE_MAX_LENGTH,
    MAX_TICKETS_PER_BOOKING,
)
from ..core.enums import EventCategory, EventStatus, FormFieldType
from ._strict_base import ORMResponseModel, StrictRequestModel
from .base import Money


class EventBase(StrictRequestModel):
    title: str = Field(..., min_length=1, max_length=EVENT_TITLE_MAX_LENGTH)
    description: Optional[str] = None
    category: EventCategory
    event_date: date
    start_time: str = Field(..., pattern=EVENT_TIME_PATTERN, description="Local start time, HH:MM")
    duration_minutes: int = Field(120, ge=EVENT_MIN_DURATION_MINUTES, le=EVENT_MAX_DURATION_MINUTES)
    location: str = Field(..., min_length=1, max_length=255)
    image_url: Optional[str] = Field(None, max_length=500)
    capacity: int = Field(..., ge=EVENT_MIN_CAPACITY, le=EVENT_MAX_CAPACITY)
    price: Decimal = Field(..., ge=EVENT_MIN_PRICE, le=EVENT_MAX_PRICE, decimal_places=2)
    min_tickets: int = Field(1, ge=1, le=MAX_TICKETS_PER_BOOKING)
    max_tickets: int = Field(MAX_TICKETS_PER_BOOKING, ge=1, le=MAX_TICKETS_PER_BOOKING)
    confirmation_template_id: Optional[str] = None
    reminder_template_id: Optional[str] = None
    voucher_template_id: Optional[str] = None


class EventCreate(EventBase):
    status: EventStatus = EventStatus.DRAFT

    @model_validator(mode="after")
    def _check_ticket_limits(self) -> "EventCreate":
        if self.min_tickets > self.max_tickets:
            raise ValueError("min_tickets cannot exceed max_tickets")
        return self


class EventUpdate(StrictRequestModel):
    """Partial update; omitted fields are left unchanged."""

    title: Optional[str] = Field(None, min_length=1, max_length=EVENT_TITLE_MAX_LENGTH)
    description: Optional[str] = None
    category: Optional[EventCategory] = None
    event_date: Optional[date] = None
    start_time: Optional[str] = Field(None, pattern=EVENT_TIME_PATTERN)
    duration_minutes: Optional[int] = Field(None, ge=EVENT_MIN_DURATION_MINUTES, le=EVENT_MAX_DURATION_MINUTES)
    location: Optional[str] = Field(None, min_length=1, max_length=255)
    image_url: Optional[str] = Field(None, max_length=500)
    capacity: Optional[int] = Field(None, ge=EVENT_MIN_CAPACITY, le=EVENT_MAX_CAPACITY)
    price: Optional[Decimal] = Field(None, ge=EVENT_MIN_PRICE, le=EVENT_MAX_PRICE, decimal_places=2)
    min_tickets: Optional[int] = Field(None, ge=1, le=MAX_TICKETS_PER_BOOKING)
    max_tickets: Optional[int] = Field(None, ge=1, le=MAX_TICKETS_PER_BOOKING)
    status: Optional[EventStatus] = None
    confirmation_template_id: Optional[str] = None
    reminder_template_id: Optional[str] = None
    voucher_template_id: Optional[str] = None


class EventStatusUpdate(StrictRequestModel):
    status: EventStatus


class FormFieldIn(StrictRequestModel):
    field_name: str = Field(..., min_length=1, max_length=100, pattern=r"^[A-Za-z][A-Za-z0-9_]*$")
    label: str = Field(..., min_length=1, max_length=255)
    field_type: FormFieldType = FormFieldType.TEXT
    placeholder: Optional[str] = Field(None, max_length=255)
    required: bool = False
    options: Optional[List[str]] = None
    sort_order: Optional[int] = None
    active: bool = True

    @field_validator("options")
    @classmethod
    def _drop_blank_options(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        if v is None:
            return v
        cleaned = [option.strip() for option in v if option and option.strip()]
        return cleaned or None


class FormFieldsReplace(StrictRequestModel):
    fields: List[FormFieldIn] = Field(default_factory=list, max_length=30)


class FormFieldResponse(ORMResponseModel):
    id: str
    field_name: str
    label: str
    field_type: str
    placeholder: Optional[str] = None
    required: bool
    options: Optional[List[str]] = Field(None, validation_alias=AliasChoices("option_list", "options"))
    sort_order: int
    active: bool = True


class EventResponse(ORMResponseModel):
    id: str
    title: str
    description: Optional[str] = None
    category: str
    event_date: date
    start_time: str
    duration_minutes: int
    location: str
    image_url: Optional[str] = None
    capacity: int
    available_tickets: int
    price: Money
    status: str
    min_tickets: int
    max_tickets: int


class EventDetailResponse(EventResponse):
    form_fields: List[FormFieldResponse] = Field(default_factory=list)


class AdminEventResponse(EventResponse):
    sold_tickets: int
    calendar_event_id: Optional[str] = None
    confirmation_template_id: Optional[str] = None
    reminder_template_id: Optional[str] = None
    voucher_template_id: Optional[str] = None


class EventListResponse(ORMResponseModel):
    events: List[EventResponse]
    total: int
    page: int
    limit: int
    total_pages: int


class AdminEventListResponse(ORMResponseModel):
    events: List[AdminEventResponse]
    total: int
    page: int
    limit: int
