# backend/mystery_events/services/event_service.py
"""
Admin event management: CRUD, status changes and custom form fields.

Field-level validation (lengths, ranges, formats) lives in the request
schemas; this service enforces the rules that need the database: sold
tickets versus capacity, template references, deletion only without
bookings.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from ..core.config import Settings, settings as default_settings
from ..core.constants import MAX_TICKETS_PER_BOOKING
from ..core.enums import EventStatus, FormFieldType
from ..core.exceptions import (
    ConflictException,
    EventNotFoundException,
    ValidationException,
)
from ..models.event import Event, EventFormField
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .calendar_service import CalendarService

logger = logging.getLogger(__name__)

TEMPLATE_FIELDS = ("confirmation_template_id", "reminder_template_id", "voucher_template_id")
CHOICE_FIELD_TYPES = {FormFieldType.SELECT.value, FormFieldType.RADIO.value}
UPDATABLE_FIELDS = {
    "title",
    "description",
    "category",
    "event_date",
    "start_time",
    "duration_minutes",
    "location",
    "image_url",
    "price",
    "min_tickets",
    "max_tickets",
    "status",
    *TEMPLATE_FIELDS,
}


class EventService(BaseService):
    def __init__(
        self,
        db: Session,
        config: Optional[Settings] = None,
        calendar_service: Optional[CalendarService] = None,
    ):
        super().__init__(db)
        self.config = config or default_settings
        self.repository = RepositoryFactory.create_event_repository(db)
        self.template_repository = RepositoryFactory.create_email_template_repository(db)
        self.calendar_service = calendar_service or CalendarService(self.config)

    def get_event(self, event_id: str) -> Event:
        event = self.repository.get_by_id(event_id)
        if event is None:
            raise EventNotFoundException(event_id)
        return event

    def list_events(
        self,
        *,
        status: Optional[str] = None,
        category: Optional[str] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Tuple[List[Event], int]:
        return self.repository.list_events(
            status=status,
            category=category,
            search=search,
            offset=(max(page, 1) - 1) * limit,
            limit=limit,
        )

    def _check_ticket_limits(self, min_tickets: int, max_tickets: int) -> None:
        if not 1 <= min_tickets <= max_tickets <= MAX_TICKETS_PER_BOOKING:
            raise ValidationException(
                f"Ticket limits must satisfy 1 <= min <= max <= {MAX_TICKETS_PER_BOOKING}",
                code="INVALID_TICKET_LIMITS",
                details={"min_tickets": min_tickets, "max_tickets": max_tickets},
            )

    def _check_templates(self, data: Dict[str, Any]) -> None:
        for key in TEMPLATE_FIELDS:
            template_id = data.get(key)
            if template_id and self.template_repository.get_by_id(template_id, load_relationships=False) is None:
                raise ValidationException(
                    "Email template not found", code="TEMPLATE_NOT_FOUND", details={key: template_id}
                )

    @BaseService.measure_operation("create_event")
    def create_event(self, data: Dict[str, Any]) -> Event:
        """Create an event; all of its capacity starts available."""
        self._check_ticket_limits(data.get("min_tickets", 1), data.get("max_tickets", MAX_TICKETS_PER_BOOKING))
        self._check_templates(data)
        with self.transaction():
            event = self.repository.create(
                **{key: value for key, value in data.items() if key in UPDATABLE_FIELDS or key == "capacity"},
                available_tickets=data["capacity"],
            )
        self.log_operation("event_created", event_id=event.id, title=event.title)
        return event

    @BaseService.measure_operation("update_event")
    def update_event(self, event_id: str, data: Dict[str, Any]) -> Event:
        """
        Patch an event.

        A capacity change keeps the tickets already sold, so availability moves
        by the same delta; capacity below the sold count is rejected.
        """
        event = self.get_event(event_id)
        self._check_ticket_limits(
            data.get("min_tickets", event.min_tickets), data.get("max_tickets", event.max_tickets)
        )
        self._check_templates(data)

        with self.transaction():
            new_capacity = data.get("capacity")
            if new_capacity is not None and new_capacity != event.capacity:
                if not self.repository.resize_capacity(event.id, new_capacity):
                    self.repository.refresh(event)
                    raise ValidationException(
                        "Capacity cannot be lower than the tickets already sold",
                        code="CAPACITY_BELOW_SOLD",
                        details={"capacity": new_capacity, "sold": event.sold_tickets},
                    )
                self.repository.refresh(event)
            for key, value in data.items():
                if key in UPDATABLE_FIELDS:
                    setattr(event, key, value)

        self.log_operation("event_updated", event_id=event.id, fields=sorted(data))
        if event.calendar_event_id:
            self.calendar_service.update_event(event.calendar_event_id, event)
        return event

    @BaseService.measure_operation("set_event_status")
    def set_status(self, event_id: str, status: EventStatus) -> Event:
        event = self.get_event(event_id)
        with self.transaction():
            event.status = EventStatus(status).value
        self.log_operation("event_status_changed", event_id=event.id, status=event.status)
        return event

    @BaseService.measure_operation("delete_event")
    def delete_event(self, event_id: str) -> None:
        """Delete an event that has never been booked, with its form fields and calendar entry."""
        event = self.get_event(event_id)
        bookings = self.repository.count_bookings(event.id)
        if bookings:
            raise ConflictException(
                "Cannot delete an event that has bookings",
                code="EVENT_HAS_BOOKINGS",
                details={"event_id": event.id, "bookings": bookings},
            )
        calendar_event_id = event.calendar_event_id
        with self.transaction():
            self.db.delete(event)
        if calendar_event_id:
            self.calendar_service.delete_event(calendar_event_id)
        self.log_operation("event_deleted", event_id=event_id)

    # Form fields

    def get_form_fields(self, event_id: str, active_only: bool = False) -> List[EventFormField]:
        self.get_event(event_id)
        return self.repository.get_form_fields(event_id, active_only=active_only)

    @staticmethod
    def _normalize_field(index: int, raw: Dict[str, Any]) -> Dict[str, Any]:
        field_type = raw.get("field_type", FormFieldType.TEXT.value)
        options = raw.get("options")
        if field_type in CHOICE_FIELD_TYPES and not options:
            raise ValidationException(
                "Choice fields need at least one option",
                code="FORM_FIELD_OPTIONS_REQUIRED",
                details={"field_name": raw.get("field_name")},
            )
        return {
            "field_name": raw["field_name"],
            "label": raw["label"],
            "field_type": field_type,
            "placeholder": raw.get("placeholder"),
            "required": bool(raw.get("required", False)),
            "options": [str(option) for option in options] if options else None,
            "sort_order": index if raw.get("sort_order") is None else raw["sort_order"],
            "active": raw.get("active", True),
        }

    @BaseService.measure_operation("replace_form_fields")
    def replace_form_fields(self, event_id: str, fields: List[Dict[str, Any]]) -> List[EventFormField]:
        event = self.get_event(event_id)
        names = [f["field_name"] for f in fields]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ValidationException(
                "Form field names must be unique", code="DUPLICATE_FORM_FIELD", details={"fields": duplicates}
            )
        normalized = [self._normalize_field(index, raw) for index, raw in enumerate(fields)]
        with self.transaction():
            rows = self.repository.replace_form_fields(event, normalized)
        self.log_operation("form_fields_replaced", event_id=event.id, count=len(rows))
        return rows

