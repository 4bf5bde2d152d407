# backend/mystery_events/repositories/booking_repository.py
"""
Booking repository.

State transitions (``pending -> completed``, ``pending -> failed``) and the
"already sent" email flags are written with guarded UPDATEs. The returned
boolean tells the caller whether *this* call performed the transition, which
is what makes confirmation and reminders safe to retry or run concurrently.
"""

from datetime import date, datetime
from decimal import Decimal
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import func, or_, update
from sqlalchemy.orm import Query, Session, joinedload, selectinload

from ..core.enums import PaymentStatus, TicketStatus
from ..models.booking import Booking, FormFieldResponse, Ticket
from ..models.event import Event
from ..models.types import now_utc
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)

_CLAIMABLE_FLAGS = frozenset({"confirmation_sent", "reminder_sent"})


class BookingRepository(BaseRepository[Booking]):
    def __init__(self, db: Session):
        super().__init__(db, Booking)

    def refresh(self, instance: Booking) -> None:
        """Reload the booking and its tickets; ticket status is changed by bulk UPDATE."""
        self.db.refresh(instance)
        for ticket in instance.tickets:
            self.db.refresh(ticket)

    def _apply_eager_loading(self, query: Query) -> Query:
        return query.options(
            joinedload(Booking.event),
            selectinload(Booking.tickets),
            selectinload(Booking.form_responses),
        )

    def get_by_code(self, booking_code: str) -> Optional[Booking]:
        query = self.db.query(Booking).filter(Booking.booking_code == booking_code.strip().upper())
        return self._apply_eager_loading(query).first()

    def get_by_stripe_session(self, session_id: str) -> Optional[Booking]:
        return self.db.query(Booking).filter(Booking.stripe_session_id == session_id).first()

    def code_exists(self, booking_code: str) -> bool:
        return self.db.query(Booking.id).filter(Booking.booking_code == booking_code).first() is not None

    def add_tickets(self, booking: Booking, ticket_codes: Sequence[str]) -> List[Ticket]:
        tickets = [
            Ticket(booking_id=booking.id, ticket_code=code, status=TicketStatus.VALID.value)
            for code in ticket_codes
        ]
        self.db.add_all(tickets)
        self.db.flush()
        return tickets

    def add_form_responses(self, booking: Booking, responses: Sequence[Dict[str, Any]]) -> List[FormFieldResponse]:
        rows = [FormFieldResponse(booking_id=booking.id, **data) for data in responses]
        if rows:
            self.db.add_all(rows)
            self.db.flush()
        return rows

    # Guarded transitions

    def mark_completed(self, booking_id: str, payment_intent_id: Optional[str] = None) -> bool:
        values: Dict[str, Any] = {
            "payment_status": PaymentStatus.COMPLETED.value,
            "confirmed_at": now_utc(),
        }
        if payment_intent_id:
            values["stripe_payment_intent_id"] = payment_intent_id
        stmt = (
            update(Booking)
            .where(Booking.id == booking_id, Booking.payment_status == PaymentStatus.PENDING.value)
            .values(**values)
        )
        return self._execute_guarded(stmt, "complete booking") == 1

    def mark_failed(self, booking_id: str, reason: str) -> bool:
        stmt = (
            update(Booking)
            .where(Booking.id == booking_id, Booking.payment_status == PaymentStatus.PENDING.value)
            .values(
                payment_status=PaymentStatus.FAILED.value,
                failure_reason=reason[:255],
                cancelled_at=now_utc(),
            )
        )
        return self._execute_guarded(stmt, "fail booking") == 1

    def cancel_tickets(self, booking_id: str) -> int:
        stmt = (
            update(Ticket)
            .where(Ticket.booking_id == booking_id, Ticket.status == TicketStatus.VALID.value)
            .values(status=TicketStatus.CANCELLED.value)
        )
        return self._execute_guarded(stmt, "cancel tickets")

    def claim_flag(self, booking_id: str, flag: str) -> bool:
        """Flip ``flag`` from false to true; True only for the caller that flipped it."""
        column = self._flag_column(flag)
        stmt = update(Booking).where(Booking.id == booking_id, column.is_(False)).values({flag: True})
        return self._execute_guarded(stmt, f"claim {flag}") == 1

    def release_flag(self, booking_id: str, flag: str) -> None:
        column = self._flag_column(flag)
        stmt = update(Booking).where(Booking.id == booking_id, column.is_(True)).values({flag: False})
        self._execute_guarded(stmt, f"release {flag}")

    def is_flag_set(self, booking_id: str, flag: str) -> bool:
        column = self._flag_column(flag)
        return bool(self.db.query(column).filter(Booking.id == booking_id).scalar())

    def set_payment_session(self, booking_id: str, session_id: Optional[str]) -> None:
        stmt = update(Booking).where(Booking.id == booking_id).values(stripe_session_id=session_id)
        self._execute_guarded(stmt, "store payment session")

    # Queries used by sweeps

    def find_reminder_candidates(self, start: date, end: date) -> List[Booking]:
        """Completed bookings for events dated in [start, end) that have no reminder yet."""
        return (
            self.db.query(Booking)
            .join(Event, Booking.event_id == Event.id)
            .options(joinedload(Booking.event))
            .filter(
                Booking.payment_status == PaymentStatus.COMPLETED.value,
                Booking.reminder_sent.is_(False),
                Event.event_date >= start,
                Event.event_date < end,
            )
            .order_by(Event.event_date.asc(), Booking.created_at.asc())
            .all()
        )

    def count_reminder_candidates(self, start: date, end: date) -> int:
        return (
            self.db.query(func.count(Booking.id))
            .join(Event, Booking.event_id == Event.id)
            .filter(
                Booking.payment_status == PaymentStatus.COMPLETED.value,
                Booking.reminder_sent.is_(False),
                Event.event_date >= start,
                Event.event_date < end,
            )
            .scalar()
            or 0
        )

    def find_stale_pending(self, created_before: datetime, limit: int = 200) -> List[Booking]:
        return (
            self.db.query(Booking)
            .filter(
                Booking.payment_status == PaymentStatus.PENDING.value,
                Booking.created_at < created_before,
            )
            .order_by(Booking.created_at.asc())
            .limit(limit)
            .all()
        )

    # Admin listing and stats

    def list_bookings(
        self,
        *,
        payment_status: Optional[str] = None,
        event_id: Optional[str] = None,
        search: Optional[str] = None,
        offset: int = 0,
        limit: int = 20,
    ) -> Tuple[List[Booking], int]:
        query = self.db.query(Booking)
        if payment_status:
            query = query.filter(Booking.payment_status == payment_status)
        if event_id:
            query = query.filter(Booking.event_id == event_id)
        if search:
            pattern = f"%{search.strip().lower()}%"
            query = query.filter(
                or_(
                    func.lower(Booking.booking_code).like(pattern),
                    func.lower(Booking.customer_name).like(pattern),
                    func.lower(Booking.customer_email).like(pattern),
                )
            )
        total = query.count()
        rows = (
            query.options(joinedload(Booking.event))
            .order_by(Booking.created_at.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )
        return rows, total

    def list_for_customer(self, customer_id: str) -> List[Booking]:
        return (
            self.db.query(Booking)
            .options(joinedload(Booking.event))
            .filter(Booking.customer_id == customer_id)
            .order_by(Booking.created_at.desc())
            .all()
        )

    def total_revenue(self) -> Decimal:
        value = (
            self.db.query(func.coalesce(func.sum(Booking.total_amount), 0))
            .filter(Booking.payment_status == PaymentStatus.COMPLETED.value)
            .scalar()
        )
        return Decimal(str(value or 0))

    def count_completed(self, since: Optional[datetime] = None) -> int:
        query = self.db.query(func.count(Booking.id)).filter(Booking.payment_status == PaymentStatus.COMPLETED.value)
        if since is not None:
            query = query.filter(Booking.created_at >= since)
        return query.scalar() or 0

    @staticmethod
    def _flag_column(flag: str):
        if flag not in _CLAIMABLE_FLAGS:
            raise ValueError(f"Unknown booking flag: {flag}")
        return getattr(Booking, flag)
