# backend/mystery_events/services/event_catalog.py
"""
Public event catalog.

Listings come from an ``EventDataSource`` chosen by configuration
(``settings.event_data_source``): the live database, or the packaged demo
fixture. Both return the same read-only ``CatalogEvent`` values, so routes
never see ORM objects from one source and dicts from the other.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
import logging
from typing import List, Optional, Protocol

from sqlalchemy.orm import Session

from ..core.config import Settings, settings as default_settings
from ..core.enums import EventStatus
from ..core.exceptions import EventNotFoundException
from ..core.timezone_utils import business_today
from ..fixtures.mock_events import build_mock_events
from ..models.event import Event, EventFormField
from ..repositories.factory import RepositoryFactory

logger = logging.getLogger(__name__)

PUBLIC_STATUSES = (EventStatus.ACTIVE.value, EventStatus.SOLDOUT.value)


@dataclass(frozen=True)
class CatalogFormField:
    id: str
    field_name: str
    label: str
    field_type: str
    placeholder: Optional[str]
    required: bool
    options: Optional[List[str]]
    sort_order: int


@dataclass(frozen=True)
class CatalogEvent:
    id: str
    title: str
    description: Optional[str]
    category: str
    event_date: date
    start_time: str
    duration_minutes: int
    location: str
    image_url: Optional[str]
    capacity: int
    available_tickets: int
    price: Decimal
    status: str
    min_tickets: int = 1
    max_tickets: int = 8
    form_fields: List[CatalogFormField] = field(default_factory=list)

    @property
    def booked_tickets(self) -> int:
        return self.capacity - self.available_tickets


@dataclass(frozen=True)
class EventFilters:
    category: Optional[str] = None
    status: Optional[str] = EventStatus.ACTIVE.value
    search: Optional[str] = None
    upcoming: bool = False
    page: int = 1
    limit: int = 10

    @property
    def offset(self) -> int:
        return (max(self.page, 1) - 1) * self.limit


@dataclass(frozen=True)
class EventListing:
    events: List[CatalogEvent]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return (self.total + self.limit - 1) // self.limit if self.limit else 0


class EventDataSource(Protocol):
    def list_events(self, filters: EventFilters) -> EventListing: ...

    def get_event(self, event_id: str) -> Optional[CatalogEvent]: ...


def _form_field_view(row: EventFormField) -> CatalogFormField:
    return CatalogFormField(
        id=row.id,
        field_name=row.field_name,
        label=row.label,
        field_type=row.field_type,
        placeholder=row.placeholder,
        required=bool(row.required),
        options=row.option_list,
        sort_order=row.sort_order or 0,
    )


def event_view(event: Event, include_fields: bool = False) -> CatalogEvent:
    fields = (
        [_form_field_view(f) for f in event.form_fields if f.active] if include_fields else []
    )
    return CatalogEvent(
        id=event.id,
        title=event.title,
        description=event.description,
        category=event.category,
        event_date=event.event_date,
        start_time=event.start_time,
        duration_minutes=event.duration_minutes,
        location=event.location,
        image_url=event.image_url,
        capacity=event.capacity,
        available_tickets=event.available_tickets,
        price=Decimal(event.price),
        status=event.status,
        min_tickets=event.min_tickets,
        max_tickets=event.max_tickets,
        form_fields=fields,
    )


class DatabaseEventSource:
    def __init__(self, db: Session, config: Optional[Settings] = None):
        self.config = config or default_settings
        self.repository = RepositoryFactory.create_event_repository(db)

    def list_events(self, filters: EventFilters) -> EventListing:
        from_date = business_today(self.config.business_timezone) if filters.upcoming else None
        rows, total = self.repository.list_events(
            status=filters.status,
            category=filters.category,
            from_date=from_date,
            search=filters.search,
            offset=filters.offset,
            limit=filters.limit,
        )
        return EventListing(
            events=[event_view(row) for row in rows], total=total, page=filters.page, limit=filters.limit
        )

    def get_event(self, event_id: str) -> Optional[CatalogEvent]:
        event = self.repository.get_by_id(event_id)
        return event_view(event, include_fields=True) if event else None


class FixtureEventSource:
    """Serves the packaged demo events; read-only."""

    def __init__(self, config: Optional[Settings] = None, today: Optional[date] = None):
        self.config = config or default_settings
        today = today or business_today(self.config.business_timezone)
        self._events = [
            CatalogEvent(
                id=row["id"],
                title=row["title"],
                description=row["description"],
                category=row["category"],
                event_date=row["event_date"],
                start_time=row["start_time"],
                duration_minutes=row["duration_minutes"],
                location=row["location"],
                image_url=row["image_url"],
                capacity=row["capacity"],
                available_tickets=row["available_tickets"],
                price=Decimal(row["price"]),
                status=row["status"],
            )
            for row in build_mock_events(today)
        ]
        self._today = today

    def _matches(self, event: CatalogEvent, filters: EventFilters) -> bool:
        if filters.status and event.status != filters.status:
            return False
        if filters.category and event.category != filters.category:
            return False
        if filters.upcoming and event.event_date < self._today:
            return False
        if filters.search:
            term = filters.search.strip().lower()
            haystack = " ".join([event.title, event.description or "", event.location]).lower()
            if term not in haystack:
                return False
        return True

    def list_events(self, filters: EventFilters) -> EventListing:
        matching = sorted(
            (e for e in self._events if self._matches(e, filters)),
            key=lambda e: (e.event_date, e.start_time),
        )
        page = matching[filters.offset : filters.offset + filters.limit]
        return EventListing(events=page, total=len(matching), page=filters.page, limit=filters.limit)

    def get_event(self, event_id: str) -> Optional[CatalogEvent]:
        return next((e for e in self._events if e.id == event_id), None)


def create_event_source(db: Optional[Session], config: Optional[Settings] = None) -> EventDataSource:
    config = config or default_settings
    if config.event_data_source == "fixture":
        logger.info("Serving events from the packaged fixture catalog")
        return FixtureEventSource(config)
    if db is None:
        raise ValueError("DatabaseEventSource needs a session")
    return DatabaseEventSource(db, config)


class EventCatalog:
    """Public read API over the configured data source."""

    def __init__(self, source: EventDataSource):
        self.source = source

    def list_events(self, filters: EventFilters) -> EventListing:
        return self.source.list_events(filters)

    def get_event(self, event_id: str, public: bool = True) -> CatalogEvent:
        event = self.source.get_event(event_id)
        if event is None or (public and event.status not in PUBLIC_STATUSES):
            raise EventNotFoundException(event_id)
        return event
