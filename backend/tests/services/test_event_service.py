from datetime import date, timedelta
from decimal import Decimal

import pytest

from mystery_events.core.enums import EventStatus
from mystery_events.core.exceptions import ConflictException, EventNotFoundException, ValidationException
from mystery_events.models import Event, EventFormField
from mystery_events.services.event_service import EventService

from tests.helpers.factories import add_form_field, create_booking, create_event, create_template


@pytest.fixture
def events(db, test_settings, fake_calendar):
    return EventService(db, test_settings, calendar_service=fake_calendar)


def new_event_data(**overrides):
    data = {
        "title": "The Phantom of Calle Mayor",
        "description": "A haunted theatre, a vanished tenor.",
        "category": "horror",
        "event_date": date.today() + timedelta(days=30),
        "start_time": "21:00",
        "duration_minutes": 150,
        "location": "Sala Umbra, Madrid",
        "capacity": 24,
        "price": Decimal("39.00"),
        "min_tickets": 2,
        "max_tickets": 6,
        "status": EventStatus.DRAFT.value,
    }
    data.update(overrides)
    return data


class TestCreateAndUpdate:
    def test_new_event_starts_fully_available(self, events):
        event = events.create_event(new_event_data())

        assert event.available_tickets == 24
        assert event.status == EventStatus.DRAFT.value
        assert event.sold_tickets == 0

    @pytest.mark.parametrize("limits", [(0, 4), (5, 3), (1, 9)])
    def test_ticket_limits_are_checked(self, events, limits):
        with pytest.raises(ValidationException) as exc:
            events.create_event(new_event_data(min_tickets=limits[0], max_tickets=limits[1]))
        assert exc.value.code == "INVALID_TICKET_LIMITS"

    def test_template_references_must_exist(self, db, events):
        with pytest.raises(ValidationException) as exc:
            events.create_event(new_event_data(confirmation_template_id="01HZZZZZZZZZZZZZZZZZZZZZZZ"))
        assert exc.value.code == "TEMPLATE_NOT_FOUND"

        template = create_template(db, "vip_confirmation")
        event = events.create_event(new_event_data(confirmation_template_id=template.id))
        assert event.confirmation_template_id == template.id

    def test_capacity_change_keeps_sold_tickets(self, db, events):
        event = create_event(db, capacity=10)
        create_booking(db, event, quantity=4)

        updated = events.update_event(event.id, {"capacity": 16, "title": "Bigger room"})

        assert updated.capacity == 16
        assert updated.available_tickets == 12
        assert updated.title == "Bigger room"

    def test_capacity_cannot_drop_below_sold(self, db, events):
        event = create_event(db, capacity=10)
        create_booking(db, event, quantity=4)

        with pytest.raises(ValidationException) as exc:
            events.update_event(event.id, {"capacity": 3})

        assert exc.value.code == "CAPACITY_BELOW_SOLD"
        assert exc.value.details == {"capacity": 3, "sold": 4}
        db.expire_all()
        assert db.get(Event, event.id).capacity == 10

    def test_update_refreshes_calendar_entry(self, db, events, fake_calendar):
        synced = create_event(db, calendar_event_id="gcal-123")
        unsynced = create_event(db)

        events.update_event(synced.id, {"start_time": "21:30"})
        events.update_event(unsynced.id, {"start_time": "21:30"})

        assert fake_calendar.updates == ["gcal-123"]

    def test_set_status(self, db, events):
        event = create_event(db, status=EventStatus.DRAFT.value)

        assert events.set_status(event.id, "active").status == EventStatus.ACTIVE.value

    def test_unknown_event(self, events):
        with pytest.raises(EventNotFoundException):
            events.update_event("01HZZZZZZZZZZZZZZZZZZZZZZZ", {"title": "x"})


class TestDelete:
    def test_event_with_bookings_cannot_be_deleted(self, db, events):
        event = create_event(db)
        create_booking(db, event)

        with pytest.raises(ConflictException) as exc:
            events.delete_event(event.id)
        assert exc.value.code == "EVENT_HAS_BOOKINGS"

    def test_delete_removes_fields_and_calendar_entry(self, db, events, fake_calendar):
        event = create_event(db, calendar_event_id="gcal-9")
        add_form_field(db, event, "allergies")

        events.delete_event(event.id)

        assert db.query(Event).count() == 0
        assert db.query(EventFormField).count() == 0
        assert fake_calendar.deletes == ["gcal-9"]


class TestFormFields:
    def test_replace_swaps_the_whole_schema(self, db, events):
        event = create_event(db)
        add_form_field(db, event, "old_question")

        rows = events.replace_form_fields(
            event.id,
            [
                {"field_name": "allergies", "label": "Allergies", "required": True},
                {"field_name": "role", "label": "Preferred role", "field_type": "select", "options": ["Detective", 7]},
            ],
        )

        assert [row.field_name for row in rows] == ["allergies", "role"]
        assert rows[1].options == ["Detective", "7"]
        assert rows[1].sort_order == 1
        assert [f.field_name for f in events.get_form_fields(event.id)] == ["allergies", "role"]

    def test_duplicate_names_are_rejected(self, db, events):
        event = create_event(db)

        with pytest.raises(ValidationException) as exc:
            events.replace_form_fields(
                event.id,
                [{"field_name": "notes", "label": "Notes"}, {"field_name": "notes", "label": "More notes"}],
            )
        assert exc.value.details == {"fields": ["notes"]}

    def test_choice_fields_need_options(self, db, events):
        event = create_event(db)

        with pytest.raises(ValidationException) as exc:
            events.replace_form_fields(event.id, [{"field_name": "role", "label": "Role", "field_type": "radio"}])
        assert exc.value.code == "FORM_FIELD_OPTIONS_REQUIRED"

    def test_active_only_listing(self, db, events):
        event = create_event(db)
        add_form_field(db, event, "allergies", sort_order=0)
        add_form_field(db, event, "retired", sort_order=1, active=False)

        assert [f.field_name for f in events.get_form_fields(event.id, active_only=True)] == ["allergies"]
        assert len(events.get_form_fields(event.id)) == 2
