from datetime import date, timedelta

import pytest

from mystery_events.core.exceptions import EventNotFoundException
from mystery_events.services.event_catalog import (
    DatabaseEventSource,
    EventCatalog,
    EventFilters,
    FixtureEventSource,
    create_event_source,
)

from tests.helpers.factories import add_form_field, create_event

TODAY = date(2026, 3, 1)


@pytest.fixture
def fixture_catalog(test_settings):
    return EventCatalog(FixtureEventSource(test_settings, today=TODAY))


class TestFixtureSource:
    def test_lists_active_events_by_date(self, fixture_catalog):
        listing = fixture_catalog.list_events(EventFilters(limit=3))

        assert listing.total == 6
        assert listing.total_pages == 2
        assert [e.id for e in listing.events] == ["mock-01", "mock-02", "mock-03"]
        assert listing.events[0].event_date == TODAY + timedelta(days=5)

    def test_filters(self, fixture_catalog):
        escape = fixture_catalog.list_events(EventFilters(category="escape"))
        searched = fixture_catalog.list_events(EventFilters(search="NECKLACE"))
        soldout = fixture_catalog.list_events(EventFilters(status="soldout"))

        assert [e.id for e in escape.events] == ["mock-02", "mock-06"]
        assert [e.id for e in searched.events] == ["mock-03"]
        assert soldout.total == 0

    def test_get_event(self, fixture_catalog):
        event = fixture_catalog.get_event("mock-06")

        assert event.booked_tickets == 3
        with pytest.raises(EventNotFoundException):
            fixture_catalog.get_event("mock-99")


class TestDatabaseSource:
    def test_public_view_hides_unpublished_events(self, db, test_settings):
        catalog = EventCatalog(DatabaseEventSource(db, test_settings))
        draft = create_event(db, status="draft")
        soldout = create_event(db, status="soldout", available_tickets=0)

        with pytest.raises(EventNotFoundException):
            catalog.get_event(draft.id)
        assert catalog.get_event(draft.id, public=False).status == "draft"
        assert catalog.get_event(soldout.id).status == "soldout"

    def test_detail_includes_active_form_fields(self, db, test_settings):
        catalog = EventCatalog(DatabaseEventSource(db, test_settings))
        event = create_event(db)
        add_form_field(db, event, "role", field_type="select", options=["Detective", "Butler"], sort_order=1)
        add_form_field(db, event, "allergies", sort_order=0)
        add_form_field(db, event, "retired", active=False)

        detail = catalog.get_event(event.id)

        assert [f.field_name for f in detail.form_fields] == ["allergies", "role"]
        assert detail.form_fields[1].options == ["Detective", "Butler"]

    def test_listing_with_upcoming_filter(self, db, test_settings):
        catalog = EventCatalog(DatabaseEventSource(db, test_settings))
        create_event(db, event_date=date.today() - timedelta(days=3), title="Past")
        upcoming = create_event(db, title="Future")

        listing = catalog.list_events(EventFilters(upcoming=True))

        assert [e.id for e in listing.events] == [upcoming.id]


def test_source_follows_configuration(db, test_settings):
    assert isinstance(create_event_source(db, test_settings), DatabaseEventSource)
    fixture_settings = test_settings.model_copy(update={"event_data_source": "fixture"})
    assert isinstance(create_event_source(None, fixture_settings), FixtureEventSource)
