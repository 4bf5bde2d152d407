# backend/mystery_events/models/booking.py
"""
Booking, Ticket and FormFieldResponse models.

A booking is created ``pending`` at checkout together with one ticket per
unit of quantity. It becomes ``completed`` only through the confirmation
workflow, or ``failed`` when payment never arrives (tickets are then
cancelled and the inventory is returned to the event).
"""

from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship
import ulid

from ..core.enums import PaymentMethod, PaymentStatus, TicketStatus
from .types import Base, TimestampMixin, now_utc


class Booking(TimestampMixin, Base):
    __tablename__ = "bookings"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    booking_code = Column(String(32), nullable=False, unique=True, index=True)
    event_id = Column(String(26), ForeignKey("events.id"), nullable=False, index=True)
    customer_id = Column(String(26), ForeignKey("customers.id"), nullable=False, index=True)

    # Snapshot of the contact details entered at checkout
    customer_name = Column(String(255), nullable=False)
    customer_email = Column(String(255), nullable=False)
    customer_phone = Column(String(50), nullable=True)

    quantity = Column(Integer, nullable=False)
    total_amount = Column(Numeric(10, 2), nullable=False)
    voucher_amount = Column(Numeric(10, 2), nullable=False, default=Decimal("0.00"))
    stripe_amount = Column(Numeric(10, 2), nullable=False, default=Decimal("0.00"))

    payment_status = Column(String(20), nullable=False, default=PaymentStatus.PENDING.value, index=True)
    payment_method = Column(String(20), nullable=False, default=PaymentMethod.CARD.value)
    stripe_session_id = Column(String(255), nullable=True, index=True)
    stripe_payment_intent_id = Column(String(255), nullable=True)

    notes = Column(Text, nullable=True)
    confirmation_sent = Column(Boolean, nullable=False, default=False)
    reminder_sent = Column(Boolean, nullable=False, default=False)
    confirmed_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    failure_reason = Column(String(255), nullable=True)

    event = relationship("Event", back_populates="bookings")
    customer = relationship("Customer", back_populates="bookings")
    tickets = relationship(
        "Ticket",
        back_populates="booking",
        cascade="all, delete-orphan",
        order_by="Ticket.ticket_code",
    )
    form_responses = relationship(
        "FormFieldResponse", back_populates="booking", cascade="all, delete-orphan"
    )
    redemptions = relationship("VoucherRedemption", back_populates="booking")

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_bookings_quantity_positive"),
        CheckConstraint("total_amount >= 0", name="ck_bookings_total_non_negative"),
        Index("ix_bookings_status_created", "payment_status", "created_at"),
    )

    @property
    def outstanding_amount(self) -> Decimal:
        """Part of the total not yet covered by vouchers."""
        remaining = Decimal(self.total_amount or 0) - Decimal(self.voucher_amount or 0)
        return max(remaining, Decimal("0.00"))

    def __repr__(self) -> str:
        return f"<Booking {self.booking_code} {self.payment_status} x{self.quantity}>"


class Ticket(Base):
    __tablename__ = "tickets"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    ticket_code = Column(String(40), nullable=False, unique=True, index=True)
    booking_id = Column(String(26), ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(String(20), nullable=False, default=TicketStatus.VALID.value)
    used_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=now_utc)

    booking = relationship("Booking", back_populates="tickets")


class FormFieldResponse(Base):
    """Answer to a custom form field; list answers are stored as JSON text."""

    __tablename__ = "form_field_responses"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    booking_id = Column(String(26), ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True)
    field_id = Column(String(26), ForeignKey("event_form_fields.id", ondelete="SET NULL"), nullable=True)
    field_name = Column(String(100), nullable=False)
    value = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=now_utc)

    booking = relationship("Booking", back_populates="form_responses")
    field = relationship("EventFormField")
