# backend/tests/helpers/factories.py
"""Row builders for tests. Every builder commits so the rows are visible to other sessions."""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy.orm import Session

from mystery_events.core.codes import generate_booking_code, generate_ticket_code, generate_voucher_code
from mystery_events.core.enums import EventStatus, PaymentMethod, PaymentStatus, VoucherStatus, VoucherType
from mystery_events.models import Booking, Customer, EmailTemplate, Event, EventFormField, GiftVoucher, Ticket


def utc(*args: int) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


def create_event(db: Session, **overrides: Any) -> Event:
    values = {
        "title": "Murder Mystery: The Lost Will",
        "description": "A dinner party, a missing will and six suspects.",
        "category": "murder",
        "event_date": date.today() + timedelta(days=20),
        "start_time": "20:30",
        "duration_minutes": 120,
        "location": "Teatro Principal, Madrid",
        "capacity": 10,
        "price": Decimal("45.00"),
        "status": EventStatus.ACTIVE.value,
        "min_tickets": 1,
        "max_tickets": 8,
    }
    values.update(overrides)
    values.setdefault("available_tickets", values["capacity"])
    event = Event(**values)
    db.add(event)
    db.commit()
    return event


def add_form_field(db: Session, event: Event, field_name: str, **overrides: Any) -> EventFormField:
    values = {
        "event_id": event.id,
        "field_name": field_name,
        "label": field_name.replace("_", " ").title(),
        "field_type": "text",
        "required": False,
        "sort_order": 0,
        "active": True,
    }
    values.update(overrides)
    field = EventFormField(**values)
    db.add(field)
    db.commit()
    return field


def create_customer(db: Session, email: str = "ana@example.com", name: str = "Ana García") -> Customer:
    customer = db.query(Customer).filter(Customer.email == email).first()
    if customer is None:
        customer = Customer(email=email, name=name)
        db.add(customer)
        db.flush()
    return customer


def create_booking(
    db: Session,
    event: Event,
    quantity: int = 2,
    payment_status: str = PaymentStatus.PENDING.value,
    email: str = "ana@example.com",
    created_at: Optional[datetime] = None,
    **overrides: Any,
) -> Booking:
    """A booking with its tickets; the event's availability is reduced by ``quantity``."""
    customer = create_customer(db, email=email)
    code = generate_booking_code()
    total = (Decimal(event.price) * quantity).quantize(Decimal("0.01"))
    values = {
        "booking_code": code,
        "event_id": event.id,
        "customer_id": customer.id,
        "customer_name": customer.name,
        "customer_email": email,
        "quantity": quantity,
        "total_amount": total,
        "voucher_amount": Decimal("0.00"),
        "stripe_amount": total,
        "payment_status": payment_status,
        "payment_method": PaymentMethod.CARD.value,
    }
    if created_at is not None:
        values["created_at"] = created_at
    values.update(overrides)
    booking = Booking(**values)
    booking.tickets = [Ticket(ticket_code=generate_ticket_code(code, n)) for n in range(1, quantity + 1)]
    event.available_tickets = event.available_tickets - quantity
    db.add(booking)
    db.commit()
    return booking


def create_voucher(db: Session, amount: Decimal = Decimal("100.00"), **overrides: Any) -> GiftVoucher:
    now = datetime.now(timezone.utc)
    values = {
        "code": generate_voucher_code(),
        "type": VoucherType.AMOUNT.value,
        "original_amount": amount,
        "current_balance": amount,
        "purchaser_name": "María López",
        "purchaser_email": "maria@example.com",
        "recipient_name": "Carlos Martín",
        "recipient_email": "carlos@example.com",
        "status": VoucherStatus.ACTIVE.value,
        "payment_status": PaymentStatus.COMPLETED.value,
        "paid_at": now,
        "expiry_date": now + timedelta(days=365),
    }
    values.update(overrides)
    voucher = GiftVoucher(**values)
    db.add(voucher)
    db.commit()
    return voucher


def create_template(db: Session, name: str, **overrides: Any) -> EmailTemplate:
    values = {
        "name": name,
        "subject": "Hello {{customer_name}}",
        "html_content": "<p>Booking {{booking_code}} for {{event_title}}</p>",
        "variables": ["customer_name", "booking_code", "event_title"],
        "active": True,
    }
    values.update(overrides)
    template = EmailTemplate(**values)
    db.add(template)
    db.commit()
    return template
