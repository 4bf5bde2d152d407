# backend/mystery_events/repositories/event_repository.py
"""
Event repository.

Inventory counters are only changed through ``decrement_available`` and
``increment_available``. Both are single conditional UPDATE statements, so
two concurrent checkouts for the last tickets cannot both succeed regardless
of the database's isolation level.
"""

from datetime import date
import logging
from typing import Dict, List, Optional, Tuple

from sqlalchemy import case, func, or_, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Query, Session, selectinload

from ..core.enums import EventStatus, PaymentStatus
from ..core.exceptions import RepositoryException
from ..models.booking import Booking
from ..models.event import Event, EventFormField
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class EventRepository(BaseRepository[Event]):
    def __init__(self, db: Session):
        super().__init__(db, Event)

    def _apply_eager_loading(self, query: Query) -> Query:
        return query.options(selectinload(Event.form_fields))

    def list_events(
        self,
        *,
        status: Optional[str] = None,
        category: Optional[str] = None,
        from_date: Optional[date] = None,
        search: Optional[str] = None,
        offset: int = 0,
        limit: int = 20,
    ) -> Tuple[List[Event], int]:
        """Filtered, date-ordered page of events plus the unpaged total."""
        try:
            query = self.db.query(Event)
            if status:
                query = query.filter(Event.status == status)
            if category:
                query = query.filter(Event.category == category)
            if from_date:
                query = query.filter(Event.event_date >= from_date)
            if search:
                pattern = f"%{search.strip().lower()}%"
                query = query.filter(
                    or_(
                        func.lower(Event.title).like(pattern),
                        func.lower(Event.description).like(pattern),
                        func.lower(Event.location).like(pattern),
                    )
                )
            total = query.count()
            rows = (
                query.order_by(Event.event_date.asc(), Event.start_time.asc())
                .offset(offset)
                .limit(limit)
                .all()
            )
            return rows, total
        except SQLAlchemyError as e:
            self.logger.error("Error listing events: %s", e)
            raise RepositoryException(f"Failed to list events: {e}") from e

    def get_active_future_events(self, today: date) -> List[Event]:
        return (
            self.db.query(Event)
            .filter(Event.status == EventStatus.ACTIVE.value, Event.event_date >= today)
            .order_by(Event.event_date.asc())
            .all()
        )

    def count_upcoming(self, today: date) -> int:
        return (
            self.db.query(Event)
            .filter(
                Event.status.in_([EventStatus.ACTIVE.value, EventStatus.SOLDOUT.value]),
                Event.event_date >= today,
            )
            .count()
        )

    def decrement_available(self, event_id: str, quantity: int) -> bool:
        """
        Take ``quantity`` tickets from an active event.

        Returns False, changing nothing, when the event is not active or has
        fewer than ``quantity`` tickets left.
        """
        stmt = (
            update(Event)
            .where(
                Event.id == event_id,
                Event.status == EventStatus.ACTIVE.value,
                Event.available_tickets >= quantity,
            )
            .values(available_tickets=Event.available_tickets - quantity)
        )
        return self._execute_guarded(stmt, "decrement event inventory") == 1

    def increment_available(self, event_id: str, quantity: int) -> bool:
        """
        Return ``quantity`` tickets to an event, never exceeding its capacity.

        A sold-out event becomes active again once it has availability.
        """
        stmt = (
            update(Event)
            .where(
                Event.id == event_id,
                Event.available_tickets + quantity <= Event.capacity,
            )
            .values(
                available_tickets=Event.available_tickets + quantity,
                status=case(
                    (Event.status == EventStatus.SOLDOUT.value, EventStatus.ACTIVE.value),
                    else_=Event.status,
                ),
            )
        )
        return self._execute_guarded(stmt, "increment event inventory") == 1

    def mark_soldout_if_exhausted(self, event_id: str) -> bool:
        stmt = (
            update(Event)
            .where(
                Event.id == event_id,
                Event.status == EventStatus.ACTIVE.value,
                Event.available_tickets <= 0,
            )
            .values(status=EventStatus.SOLDOUT.value)
        )
        return self._execute_guarded(stmt, "mark event sold out") == 1

    def resize_capacity(self, event_id: str, new_capacity: int) -> bool:
        """
        Change capacity while keeping the number of sold tickets.

        Refused (False) when more tickets are already sold than ``new_capacity``.
        """
        stmt = (
            update(Event)
            .where(Event.id == event_id, Event.capacity - Event.available_tickets <= new_capacity)
            .values(
                available_tickets=Event.available_tickets + (new_capacity - Event.capacity),
                capacity=new_capacity,
            )
        )
        return self._execute_guarded(stmt, "resize event capacity") == 1

    def get_available_tickets(self, event_id: str) -> Optional[int]:
        return self.db.query(Event.available_tickets).filter(Event.id == event_id).scalar()

    def count_bookings(self, event_id: str) -> int:
        return self.db.query(func.count(Booking.id)).filter(Booking.event_id == event_id).scalar() or 0

    def booked_quantities(self, event_ids: List[str]) -> Dict[str, int]:
        """Sum of completed booking quantities per event."""
        if not event_ids:
            return {}
        rows = (
            self.db.query(Booking.event_id, func.coalesce(func.sum(Booking.quantity), 0))
            .filter(
                Booking.event_id.in_(event_ids),
                Booking.payment_status == PaymentStatus.COMPLETED.value,
            )
            .group_by(Booking.event_id)
            .all()
        )
        return {event_id: int(total) for event_id, total in rows}

    # Form fields

    def get_form_fields(self, event_id: str, active_only: bool = False) -> List[EventFormField]:
        query = self.db.query(EventFormField).filter(EventFormField.event_id == event_id)
        if active_only:
            query = query.filter(EventFormField.active.is_(True))
        return query.order_by(EventFormField.sort_order.asc()).all()

    def replace_form_fields(self, event: Event, fields: List[Dict]) -> List[EventFormField]:
        """Swap the event's form schema for ``fields`` (delete-orphan removes the old rows)."""
        try:
            event.form_fields = [EventFormField(event_id=event.id, **data) for data in fields]
            self.db.flush()
            return list(event.form_fields)
        except SQLAlchemyError as e:
            self.logger.error("Error replacing form fields for %s: %s", event.id, e)
            raise RepositoryException(f"Failed to replace form fields: {e}") from e
