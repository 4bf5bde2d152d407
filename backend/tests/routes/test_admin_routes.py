"""Admin console endpoints, all behind ``ADMIN_API_TOKEN``."""

from datetime import date, timedelta
from decimal import Decimal

import pytest

from mystery_events.core.enums import PaymentStatus
from mystery_events.models import Event

from tests.helpers.factories import create_booking, create_event, create_template, create_voucher

UNKNOWN_ID = "01HZZZZZZZZZZZZZZZZZZZZZZZ"


@pytest.mark.parametrize(
    "path",
    [
        "/api/v1/admin/events",
        "/api/v1/admin/bookings",
        "/api/v1/admin/customers",
        "/api/v1/admin/templates",
        "/api/v1/admin/vouchers",
        "/api/v1/admin/settings",
        "/api/v1/admin/dashboard/stats",
    ],
)
def test_admin_requires_token(client, path, cron_headers):
    assert client.get(path).status_code == 401
    assert client.get(path, headers=cron_headers).status_code == 401


class TestAdminEvents:
    def event_payload(self, **overrides):
        payload = {
            "title": "The Phantom of Calle Mayor",
            "category": "horror",
            "event_date": (date.today() + timedelta(days=30)).isoformat(),
            "start_time": "21:00",
            "location": "Sala Umbra, Madrid",
            "capacity": 24,
            "price": 39,
        }
        payload.update(overrides)
        return payload

    def test_create_edit_publish_and_delete(self, client, admin_headers, db):
        created = client.post("/api/v1/admin/events", json=self.event_payload(), headers=admin_headers)

        assert created.status_code == 201
        event = created.json()
        assert event["status"] == "draft"
        assert event["available_tickets"] == 24
        assert event["sold_tickets"] == 0

        patched = client.patch(
            f"/api/v1/admin/events/{event['id']}", json={"capacity": 30}, headers=admin_headers
        ).json()
        published = client.put(
            f"/api/v1/admin/events/{event['id']}/status", json={"status": "active"}, headers=admin_headers
        ).json()

        assert patched["available_tickets"] == 30
        assert published["status"] == "active"
        assert client.get(f"/api/v1/events/{event['id']}").status_code == 200

        deleted = client.delete(f"/api/v1/admin/events/{event['id']}", headers=admin_headers)
        assert deleted.status_code == 204
        assert client.get(f"/api/v1/admin/events/{event['id']}", headers=admin_headers).status_code == 404

    def test_bad_time_and_ticket_limits(self, client, admin_headers):
        bad_time = client.post(
            "/api/v1/admin/events", json=self.event_payload(start_time="9pm"), headers=admin_headers
        )
        bad_limits = client.post(
            "/api/v1/admin/events", json=self.event_payload(min_tickets=6, max_tickets=2), headers=admin_headers
        )

        assert bad_time.status_code == 400
        assert bad_limits.status_code == 400

    def test_list_includes_drafts(self, client, admin_headers, db):
        create_event(db, status="draft")
        event = create_event(db)
        create_booking(db, event, quantity=3)

        body = client.get("/api/v1/admin/events", headers=admin_headers).json()
        active = client.get("/api/v1/admin/events", params={"status": "active"}, headers=admin_headers).json()

        assert body["total"] == 2
        assert active["total"] == 1
        assert active["events"][0]["sold_tickets"] == 3

    def test_capacity_below_sold_is_refused(self, client, admin_headers, db):
        event = create_event(db, capacity=10)
        create_booking(db, event, quantity=4)

        response = client.patch(f"/api/v1/admin/events/{event.id}", json={"capacity": 2}, headers=admin_headers)

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "CAPACITY_BELOW_SOLD"

    def test_event_with_bookings_cannot_be_deleted(self, client, admin_headers, db):
        event = create_event(db)
        create_booking(db, event)

        response = client.delete(f"/api/v1/admin/events/{event.id}", headers=admin_headers)

        assert response.status_code == 409

    def test_form_fields(self, client, admin_headers, db):
        event = create_event(db)

        saved = client.put(
            f"/api/v1/admin/events/{event.id}/form-fields",
            json={
                "fields": [
                    {"field_name": "allergies", "label": "Allergies"},
                    {
                        "field_name": "role",
                        "label": "Preferred role",
                        "field_type": "select",
                        "options": ["Detective", "Butler"],
                        "required": True,
                    },
                ]
            },
            headers=admin_headers,
        )
        bad_name = client.put(
            f"/api/v1/admin/events/{event.id}/form-fields",
            json={"fields": [{"field_name": "1st choice", "label": "First choice"}]},
            headers=admin_headers,
        )

        assert saved.status_code == 200
        assert [f["field_name"] for f in saved.json()] == ["allergies", "role"]
        listed = client.get(f"/api/v1/admin/events/{event.id}/form-fields", headers=admin_headers).json()
        assert listed[1]["options"] == ["Detective", "Butler"]
        assert bad_name.status_code == 400


class TestAdminBookings:
    def test_list_and_filter(self, client, admin_headers, db):
        event = create_event(db)
        create_booking(db, event, payment_status=PaymentStatus.COMPLETED.value)
        create_booking(db, event, email="luis@example.com")

        everything = client.get("/api/v1/admin/bookings", headers=admin_headers).json()
        completed = client.get(
            "/api/v1/admin/bookings", params={"payment_status": "completed"}, headers=admin_headers
        ).json()
        searched = client.get("/api/v1/admin/bookings", params={"search": "luis"}, headers=admin_headers).json()

        assert everything["total"] == 2
        assert completed["total"] == 1
        assert searched["bookings"][0]["customer_email"] == "luis@example.com"

    def test_manual_completion_confirms(self, client, admin_headers, db, fake_email):
        booking = create_booking(db, create_event(db))

        body = client.patch(
            f"/api/v1/admin/bookings/{booking.id}",
            json={"notes": "Paid at the door", "payment_status": "completed"},
            headers=admin_headers,
        ).json()

        assert body["payment_status"] == "completed"
        assert body["notes"] == "Paid at the door"
        assert len(fake_email.sent) == 1

    def test_cancel_returns_tickets(self, client, admin_headers, db):
        event = create_event(db, capacity=10)
        booking = create_booking(db, event, quantity=3, payment_status=PaymentStatus.COMPLETED.value)

        body = client.post(f"/api/v1/admin/bookings/{booking.id}/cancel", headers=admin_headers).json()

        assert body["payment_status"] == "completed"
        assert body["cancelled_at"] is not None
        assert {t["status"] for t in body["tickets"]} == {"cancelled"}
        db.expire_all()
        assert db.get(Event, event.id).available_tickets == 10

    def test_unknown_booking(self, client, admin_headers):
        response = client.get(f"/api/v1/admin/bookings/{UNKNOWN_ID}", headers=admin_headers)

        assert response.status_code == 404


def test_customers(client, admin_headers, db):
    booking = create_booking(db, create_event(db), payment_status=PaymentStatus.COMPLETED.value)

    listing = client.get("/api/v1/admin/customers", headers=admin_headers).json()
    detail = client.get(f"/api/v1/admin/customers/{booking.customer_id}", headers=admin_headers).json()

    assert listing["total"] == 1
    assert detail["customer"]["email"] == "ana@example.com"
    assert [b["id"] for b in detail["bookings"]] == [booking.id]
    assert client.get(f"/api/v1/admin/customers/{UNKNOWN_ID}", headers=admin_headers).status_code == 404


class TestAdminTemplates:
    def test_crud_and_duplicate(self, client, admin_headers):
        created = client.post(
            "/api/v1/admin/templates",
            json={
                "name": "halloween_confirmation",
                "subject": "See you in the dark, {{customer_name}}",
                "html_content": "<p>{{booking_code}}</p>",
                "variables": ["customer_name", "booking_code", "customer_name"],
            },
            headers=admin_headers,
        )
        template = created.json()

        assert created.status_code == 201
        assert template["variables"] == ["customer_name", "booking_code"]

        duplicate = client.post(f"/api/v1/admin/templates/{template['id']}/duplicate", headers=admin_headers)
        assert duplicate.status_code == 201
        assert duplicate.json()["name"] == "halloween_confirmation (copy)"
        assert duplicate.json()["active"] is False

        conflict = client.patch(
            f"/api/v1/admin/templates/{duplicate.json()['id']}",
            json={"name": "halloween_confirmation"},
            headers=admin_headers,
        )
        assert conflict.status_code == 409

        assert client.delete(f"/api/v1/admin/templates/{template['id']}", headers=admin_headers).status_code == 204
        assert len(client.get("/api/v1/admin/templates", headers=admin_headers).json()) == 1

    def test_preview(self, client, admin_headers):
        body = client.post(
            "/api/v1/admin/templates/preview",
            json={"subject": "Hi {{customer_name}}", "html_content": "<p>{{event_title}}</p>"},
            headers=admin_headers,
        ).json()

        assert body["subject"].startswith("Hi ")
        assert body["html"].startswith("<p>")
        assert "{{" not in body["html"]


class TestAdminVouchers:
    def test_issue_paid_voucher(self, client, admin_headers, fake_email):
        response = client.post(
            "/api/v1/admin/vouchers",
            json={
                "amount": 75,
                "purchaser_name": "Front desk",
                "purchaser_email": "desk@example.com",
                "recipient_name": "Carlos Martín",
                "recipient_email": "carlos@example.com",
            },
            headers=admin_headers,
        )

        assert response.status_code == 201
        voucher = response.json()
        assert voucher["status"] == "active"
        assert voucher["effective_status"] == "active"
        assert voucher["payment_status"] == "completed"
        assert voucher["current_balance"] == 75.0
        assert fake_email.sent_to("carlos@example.com")

    def test_issue_without_emails(self, client, admin_headers, fake_email):
        response = client.post(
            "/api/v1/admin/vouchers",
            json={
                "amount": 30,
                "purchaser_name": "Front desk",
                "purchaser_email": "desk@example.com",
                "send_emails": False,
            },
            headers=admin_headers,
        )

        assert response.status_code == 201
        assert fake_email.sent == []

    def test_list_stats_and_detail(self, client, admin_headers, db):
        create_voucher(db, amount=Decimal("100.00"), current_balance=Decimal("60.00"))
        cancelled = create_voucher(db, amount=Decimal("40.00"), status="cancelled")

        listing = client.get("/api/v1/admin/vouchers", headers=admin_headers).json()
        filtered = client.get(
            "/api/v1/admin/vouchers", params={"status": "cancelled"}, headers=admin_headers
        ).json()
        stats = client.get("/api/v1/admin/vouchers/stats", headers=admin_headers).json()

        assert listing["total"] == 2
        assert [v["id"] for v in filtered["vouchers"]] == [cancelled.id]
        assert stats["total_active"] == 1
        assert stats["total_value_active"] == 60.0
        assert listing["stats"] == stats
        assert client.get(f"/api/v1/admin/vouchers/{cancelled.id}", headers=admin_headers).json()["code"] == (
            cancelled.code
        )

    def test_resend_to_new_address(self, client, admin_headers, db, fake_email):
        voucher = create_voucher(db)

        body = client.post(
            f"/api/v1/admin/vouchers/{voucher.id}/resend",
            json={"target": "recipient", "new_email": "carlos.new@example.com"},
            headers=admin_headers,
        ).json()

        assert body == {"sent": True, "target": "recipient"}
        assert fake_email.sent_to("carlos.new@example.com")

    def test_undo_redemption(self, client, admin_headers, db, voucher_service):
        booking = create_booking(db, create_event(db))
        voucher = create_voucher(db, amount=Decimal("50.00"))
        applied = voucher_service.apply(voucher.code, Decimal("20.00"), booking.id)

        body = client.delete(
            f"/api/v1/admin/vouchers/redemptions/{applied.redemption_id}", headers=admin_headers
        ).json()

        assert body["current_balance"] == 50.0


def test_settings(client, admin_headers):
    before = client.get("/api/v1/admin/settings", headers=admin_headers).json()
    after = client.put(
        "/api/v1/admin/settings", json={"values": {"voucher.min_tickets": 3}}, headers=admin_headers
    ).json()
    invalid = client.put(
        "/api/v1/admin/settings", json={"values": {"voucher.max_tickets": "lots"}}, headers=admin_headers
    )

    assert before["settings"]["vouchers"]["voucher.min_tickets"] == 2
    assert after["settings"]["vouchers"]["voucher.min_tickets"] == 3
    assert invalid.status_code == 400


def test_dashboard(client, admin_headers, db):
    event = create_event(db)
    create_booking(db, event, quantity=2, payment_status=PaymentStatus.COMPLETED.value)

    body = client.get("/api/v1/admin/dashboard/stats", headers=admin_headers).json()

    assert body["total_revenue"] == 90.0
    assert body["total_bookings"] == 1
    assert body["upcoming_events"] == 1


def test_calendar_sync(client, admin_headers, db, fake_calendar):
    event = create_event(db)

    synced = client.post(f"/api/v1/admin/calendar/events/{event.id}/sync", headers=admin_headers).json()
    unknown = client.post(f"/api/v1/admin/calendar/events/{UNKNOWN_ID}/sync", headers=admin_headers).json()

    assert synced == {"event_id": event.id, "synced": True}
    assert unknown == {"event_id": UNKNOWN_ID, "synced": False}
    assert fake_calendar.upserts == [event.id]
    db.expire_all()
    assert db.get(Event, event.id).calendar_event_id == f"gcal-{event.id}"
