# backend/mystery_events/models/event.py
"""
Event and per-event custom form fields.

``available_tickets`` is the live inventory counter. It is only changed by
conditional UPDATE statements in ``EventRepository`` so that concurrent
bookings cannot oversell.
"""

from typing import List, Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship
import ulid

from ..core.enums import EventStatus
from .types import Base, LenientJSON, TimestampMixin, as_string_list


class Event(TimestampMixin, Base):
    __tablename__ = "events"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String(20), nullable=False, index=True)
    event_date = Column(Date, nullable=False, index=True)
    start_time = Column(String(5), nullable=False)
    duration_minutes = Column(Integer, nullable=False, default=120)
    location = Column(String(255), nullable=False)
    image_url = Column(String(500), nullable=True)

    capacity = Column(Integer, nullable=False)
    available_tickets = Column(Integer, nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    min_tickets = Column(Integer, nullable=False, default=1)
    max_tickets = Column(Integer, nullable=False, default=8)
    status = Column(String(20), nullable=False, default=EventStatus.DRAFT.value, index=True)

    calendar_event_id = Column(String(255), nullable=True)
    confirmation_template_id = Column(
        String(26), ForeignKey("email_templates.id", ondelete="SET NULL"), nullable=True
    )
    reminder_template_id = Column(
        String(26), ForeignKey("email_templates.id", ondelete="SET NULL"), nullable=True
    )
    voucher_template_id = Column(
        String(26), ForeignKey("email_templates.id", ondelete="SET NULL"), nullable=True
    )

    bookings = relationship("Booking", back_populates="event", lazy="dynamic")
    form_fields = relationship(
        "EventFormField",
        back_populates="event",
        cascade="all, delete-orphan",
        order_by="EventFormField.sort_order",
    )
    confirmation_template = relationship("EmailTemplate", foreign_keys=[confirmation_template_id])
    reminder_template = relationship("EmailTemplate", foreign_keys=[reminder_template_id])
    voucher_template = relationship("EmailTemplate", foreign_keys=[voucher_template_id])

    __table_args__ = (
        CheckConstraint("available_tickets >= 0", name="ck_events_available_non_negative"),
        CheckConstraint("available_tickets <= capacity", name="ck_events_available_within_capacity"),
        CheckConstraint("capacity > 0", name="ck_events_capacity_positive"),
        Index("ix_events_status_date", "status", "event_date"),
    )

    @property
    def sold_tickets(self) -> int:
        return int(self.capacity or 0) - int(self.available_tickets or 0)

    @property
    def is_bookable(self) -> bool:
        return self.status == EventStatus.ACTIVE.value

    def __repr__(self) -> str:
        return f"<Event {self.id} {self.title!r} {self.event_date} {self.status}>"


class EventFormField(TimestampMixin, Base):
    """Custom question asked at checkout for one event."""

    __tablename__ = "event_form_fields"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    event_id = Column(String(26), ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    field_name = Column(String(100), nullable=False)
    label = Column(String(255), nullable=False)
    field_type = Column(String(20), nullable=False, default="text")
    placeholder = Column(String(255), nullable=True)
    required = Column(Boolean, nullable=False, default=False)
    options = Column(LenientJSON, nullable=True)
    sort_order = Column(Integer, nullable=False, default=0)
    active = Column(Boolean, nullable=False, default=True)

    event = relationship("Event", back_populates="form_fields")

    @property
    def option_list(self) -> Optional[List[str]]:
        """Options for choice fields, or ``None`` when the field has none."""
        if self.options is None:
            return None
        return as_string_list(self.options)
