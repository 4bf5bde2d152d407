from datetime import datetime, timedelta, timezone
from decimal import Decimal
import json

import pytest

from mystery_events.core.enums import PaymentMethod, PaymentStatus, TicketStatus, VoucherStatus
from mystery_events.core.exceptions import (
    ConflictException,
    EventNotBookableException,
    InsufficientInventoryException,
    NotFoundException,
    PaymentGatewayUnavailableException,
    ValidationException,
)
from mystery_events.models import Booking, Customer, FormFieldResponse, VoucherRedemption
from mystery_events.services.booking_service import CustomerDetails

from tests.helpers.factories import add_form_field, create_booking, create_event, create_voucher

ANA = CustomerDetails(name="Ana García", email="Ana@Example.com", phone="+34600000000")


class TestCreateBooking:
    def test_card_booking_reserves_tickets_and_opens_checkout(self, db, booking_service, fake_stripe):
        event = create_event(db, capacity=10, price=Decimal("45.00"))

        created = booking_service.create_booking(event.id, ANA, 3)

        booking = db.get(Booking, created.booking_id)
        db.refresh(event)
        assert booking.payment_status == PaymentStatus.PENDING.value
        assert booking.customer_email == "ana@example.com"
        assert created.total_amount == Decimal("135.00")
        assert created.stripe_amount == Decimal("135.00")
        assert created.payment_method == PaymentMethod.CARD.value
        assert [t.ticket_code for t in booking.tickets] == [
            f"{booking.booking_code}-T01",
            f"{booking.booking_code}-T02",
            f"{booking.booking_code}-T03",
        ]
        assert event.available_tickets == 7

        session = fake_stripe.sessions[0]
        assert created.payment_session_url == f"https://checkout.stripe.test/pay/{session.id}"
        assert session.metadata == {
            "event_id": event.id,
            "booking_id": booking.id,
            "booking_code": booking.booking_code,
        }
        assert session.line_items[0].quantity == 3
        assert session.success_url.startswith("https://mystery.example/booking/success")
        assert booking.stripe_session_id == session.id

    def test_customer_is_created_once_per_email(self, db, booking_service):
        event = create_event(db)

        booking_service.create_booking(event.id, ANA, 1)
        booking_service.create_booking(event.id, CustomerDetails(name="Ana G.", email="ana@example.com"), 1)

        customers = db.query(Customer).all()
        assert len(customers) == 1
        assert customers[0].name == "Ana G."
        assert customers[0].phone == "+34600000000"

    @pytest.mark.parametrize("quantity", [1, 7])
    def test_quantity_outside_event_limits(self, db, booking_service, quantity):
        event = create_event(db, min_tickets=2, max_tickets=6)

        with pytest.raises(ValidationException) as exc:
            booking_service.create_booking(event.id, ANA, quantity)

        assert exc.value.code == "INVALID_QUANTITY"
        db.refresh(event)
        assert event.available_tickets == event.capacity

    def test_not_enough_tickets_leaves_nothing_behind(self, db, booking_service):
        event = create_event(db, capacity=5, available_tickets=2)

        with pytest.raises(InsufficientInventoryException):
            booking_service.create_booking(event.id, ANA, 3)

        assert db.query(Booking).count() == 0
        assert db.query(Customer).count() == 0

    def test_inactive_event_cannot_be_booked(self, db, booking_service):
        event = create_event(db, status="cancelled")

        with pytest.raises(EventNotBookableException):
            booking_service.create_booking(event.id, ANA, 1)

    def test_required_form_fields(self, db, booking_service):
        event = create_event(db)
        add_form_field(db, event, "allergies", required=True)
        add_form_field(db, event, "characters", field_type="checkbox", options=["Detective", "Butler"])
        add_form_field(db, event, "retired", required=True, active=False)

        with pytest.raises(ValidationException) as exc:
            booking_service.create_booking(event.id, ANA, 1, custom_form_data={"characters": ["Butler"]})
        assert exc.value.code == "MISSING_FORM_FIELDS"
        assert exc.value.details == {"fields": ["allergies"]}

        created = booking_service.create_booking(
            event.id,
            ANA,
            1,
            custom_form_data={"allergies": "None", "characters": ["Butler", "Detective"], "unknown": "x"},
        )
        answers = {
            row.field_name: row.value
            for row in db.query(FormFieldResponse).filter_by(booking_id=created.booking_id)
        }
        assert answers == {"allergies": "None", "characters": json.dumps(["Butler", "Detective"])}

    def test_voucher_covering_total_confirms_immediately(self, db, booking_service, fake_stripe, fake_email):
        event = create_event(db, price=Decimal("45.00"))
        voucher = create_voucher(db, amount=Decimal("100.00"))

        created = booking_service.create_booking(event.id, ANA, 2, voucher_code=voucher.code.lower())

        assert created.payment_session_url is None
        assert created.voucher_amount == Decimal("90.00")
        assert created.stripe_amount == Decimal("0.00")
        assert created.payment_method == PaymentMethod.VOUCHER.value
        assert created.confirmation is not None and created.confirmation.email_sent is True
        assert fake_stripe.sessions == []

        booking = db.get(Booking, created.booking_id)
        db.refresh(booking)
        db.refresh(voucher)
        assert booking.payment_status == PaymentStatus.COMPLETED.value
        assert voucher.current_balance == Decimal("10.00")
        assert len(fake_email.sent_to("ana@example.com")) == 1

    def test_partial_voucher_charges_the_rest(self, db, booking_service, fake_stripe):
        event = create_event(db, price=Decimal("45.00"))
        voucher = create_voucher(db, amount=Decimal("50.00"))

        created = booking_service.create_booking(event.id, ANA, 2, voucher_code=voucher.code)

        assert created.voucher_amount == Decimal("50.00")
        assert created.stripe_amount == Decimal("40.00")
        assert created.payment_method == PaymentMethod.MIXED.value
        (line_item,) = fake_stripe.sessions[0].line_items
        assert line_item.unit_amount == Decimal("40.00")
        assert line_item.quantity == 1
        db.refresh(voucher)
        assert voucher.status == VoucherStatus.REDEEMED.value

    def test_unknown_voucher_rolls_back_the_booking(self, db, booking_service):
        event = create_event(db, capacity=6)

        with pytest.raises(NotFoundException) as exc:
            booking_service.create_booking(event.id, ANA, 2, voucher_code="GIFT-NONE-0000")

        assert exc.value.code == "VOUCHER_NOT_FOUND"
        db.refresh(event)
        assert event.available_tickets == 6
        assert db.query(Booking).count() == 0

    def test_gateway_down_keeps_pending_booking_for_retry(self, db, booking_service, fake_stripe):
        event = create_event(db, capacity=6)
        fake_stripe.unavailable = True

        with pytest.raises(PaymentGatewayUnavailableException) as exc:
            booking_service.create_booking(event.id, ANA, 2)

        booking_id = exc.value.details["booking_id"]
        booking = db.get(Booking, booking_id)
        assert booking.payment_status == PaymentStatus.PENDING.value
        db.refresh(event)
        assert event.available_tickets == 4

        fake_stripe.unavailable = False
        retried = booking_service.retry_payment_session(booking_id)
        assert retried.payment_session_url is not None
        assert fake_stripe.sessions[0].metadata["booking_id"] == booking_id


class TestFailAndCancel:
    def test_fail_returns_inventory_and_voucher_balance(self, db, booking_service):
        event = create_event(db, capacity=10, price=Decimal("45.00"))
        voucher = create_voucher(db, amount=Decimal("50.00"))
        created = booking_service.create_booking(event.id, ANA, 2, voucher_code=voucher.code)

        assert booking_service.fail_booking(created.booking_id, "checkout.session.expired") is True
        assert booking_service.fail_booking(created.booking_id, "again") is False

        db.expire_all()
        booking = db.get(Booking, created.booking_id)
        assert booking.payment_status == PaymentStatus.FAILED.value
        assert booking.failure_reason == "checkout.session.expired"
        assert {t.status for t in booking.tickets} == {TicketStatus.CANCELLED.value}
        assert db.get(type(event), event.id).available_tickets == 10
        refreshed = db.get(type(voucher), voucher.id)
        assert refreshed.current_balance == Decimal("50.00")
        assert refreshed.status == VoucherStatus.ACTIVE.value
        assert db.query(VoucherRedemption).count() == 0

    def test_fail_unknown_booking(self, booking_service):
        with pytest.raises(NotFoundException):
            booking_service.fail_booking("01HZZZZZZZZZZZZZZZZZZZZZZZ", "expired")

    def test_cancel_completed_booking_keeps_payment_status(self, db, booking_service, confirmation_service):
        event = create_event(db, capacity=4, price=Decimal("45.00"))
        booking = create_booking(db, event, quantity=2)
        confirmation_service.confirm(booking.id)

        booking_service.cancel_booking(booking.id)
        booking_service.cancel_booking(booking.id)

        db.expire_all()
        booking = db.get(Booking, booking.id)
        assert booking.payment_status == PaymentStatus.COMPLETED.value
        assert booking.cancelled_at is not None
        assert {t.status for t in booking.tickets} == {TicketStatus.CANCELLED.value}
        assert db.get(type(event), event.id).available_tickets == 4
        customer = db.get(Customer, booking.customer_id)
        assert customer.total_bookings == 0
        assert customer.total_spent == Decimal("0.00")

    def test_release_abandoned_bookings(self, db, booking_service):
        event = create_event(db, capacity=10)
        now = datetime.now(timezone.utc)
        stale = create_booking(db, event, quantity=2, created_at=now - timedelta(hours=3))
        fresh = create_booking(db, event, quantity=1, created_at=now - timedelta(minutes=5))
        create_booking(
            db, event, quantity=1, created_at=now - timedelta(hours=3), payment_status=PaymentStatus.COMPLETED.value
        )

        result = booking_service.release_abandoned_bookings(now=now, older_than_minutes=60)

        assert result == {"released": 1, "checked": 1}
        db.expire_all()
        assert db.get(Booking, stale.id).payment_status == PaymentStatus.FAILED.value
        assert db.get(Booking, fresh.id).payment_status == PaymentStatus.PENDING.value
        assert db.get(type(event), event.id).available_tickets == 8


class TestAdminUpdates:
    def test_marking_completed_runs_confirmation(self, db, booking_service, fake_email):
        event = create_event(db)
        booking = create_booking(db, event)

        updated = booking_service.update_booking_admin(booking.id, notes="Paid at the door", payment_status="completed")

        assert updated.payment_status == PaymentStatus.COMPLETED.value
        assert updated.notes == "Paid at the door"
        assert updated.confirmation_sent is True
        assert len(fake_email.sent) == 1

    def test_cannot_move_back_to_pending(self, db, booking_service):
        event = create_event(db)
        booking = create_booking(db, event, payment_status=PaymentStatus.COMPLETED.value)

        with pytest.raises(ValidationException) as exc:
            booking_service.update_booking_admin(booking.id, payment_status="pending")
        assert exc.value.code == "INVALID_STATUS_TRANSITION"

    def test_retry_on_completed_booking_conflicts(self, db, booking_service):
        event = create_event(db)
        booking = create_booking(db, event, payment_status=PaymentStatus.COMPLETED.value)

        with pytest.raises(ConflictException) as exc:
            booking_service.retry_payment_session(booking.id)
        assert exc.value.code == "BOOKING_NOT_PENDING"

    def test_list_and_lookup(self, db, booking_service):
        event = create_event(db)
        first = create_booking(db, event, email="ana@example.com")
        create_booking(db, event, email="luis@example.com", payment_status=PaymentStatus.COMPLETED.value)

        page = booking_service.list_bookings(search="ANA@")
        assert [b.id for b in page.bookings] == [first.id]
        assert booking_service.list_bookings(payment_status="completed").total == 1
        assert booking_service.get_by_code(first.booking_code).id == first.id


class TestVoucherAfterCheckout:
    def test_voucher_covering_the_rest_confirms_booking(self, db, booking_service, fake_stripe, fake_email):
        event = create_event(db, capacity=10, price=Decimal("25.00"))
        created = booking_service.create_booking(event.id, ANA, 2)
        (stale_session,) = fake_stripe.sessions
        voucher = create_voucher(db, amount=Decimal("100.00"))

        redeemed = booking_service.redeem_voucher(created.booking_id, voucher.code, Decimal("50.00"))

        assert redeemed.applied_amount == Decimal("50.00")
        assert redeemed.remaining_balance == Decimal("50.00")
        assert redeemed.stripe_amount == Decimal("0.00")
        assert redeemed.payment_status == PaymentStatus.COMPLETED.value
        assert redeemed.payment_session_url is None
        assert redeemed.confirmation.email_sent is True
        assert fake_stripe.expired == [stale_session.id]
        assert len(fake_stripe.sessions) == 1
        assert len(fake_email.sent_to("ana@example.com")) == 1

        released = booking_service.release_abandoned_bookings(
            now=datetime.now(timezone.utc) + timedelta(hours=4), older_than_minutes=60
        )

        assert released["released"] == 0
        db.expire_all()
        booking = db.get(Booking, created.booking_id)
        assert booking.payment_status == PaymentStatus.COMPLETED.value
        assert booking.payment_method == PaymentMethod.VOUCHER.value
        assert booking.stripe_session_id is None
        assert db.get(type(voucher), voucher.id).current_balance == Decimal("50.00")

    def test_partial_voucher_reissues_checkout_for_the_remainder(self, db, booking_service, fake_stripe):
        event = create_event(db, capacity=10, price=Decimal("25.00"))
        created = booking_service.create_booking(event.id, ANA, 2)
        voucher = create_voucher(db, amount=Decimal("50.00"))

        redeemed = booking_service.redeem_voucher(created.booking_id, voucher.code, Decimal("20.00"))

        stale_session, current_session = fake_stripe.sessions
        assert fake_stripe.expired == [stale_session.id]
        (line_item,) = current_session.line_items
        assert (line_item.unit_amount, line_item.quantity) == (Decimal("30.00"), 1)
        assert redeemed.stripe_amount == Decimal("30.00")
        assert redeemed.payment_status == PaymentStatus.PENDING.value
        assert redeemed.payment_session_url == f"https://checkout.stripe.test/pay/{current_session.id}"
        db.expire_all()
        booking = db.get(Booking, created.booking_id)
        assert booking.stripe_session_id == current_session.id
        assert booking.payment_method == PaymentMethod.MIXED.value

    def test_repeated_redemption_leaves_checkout_alone(self, db, booking_service, fake_stripe):
        event = create_event(db, capacity=10, price=Decimal("25.00"))
        created = booking_service.create_booking(event.id, ANA, 2)
        voucher = create_voucher(db, amount=Decimal("50.00"))
        booking_service.redeem_voucher(created.booking_id, voucher.code, Decimal("20.00"))

        again = booking_service.redeem_voucher(created.booking_id, voucher.code, Decimal("20.00"))

        assert again.already_applied is True
        assert again.payment_session_url is None
        assert len(fake_stripe.sessions) == 2
        assert len(fake_stripe.expired) == 1

    def test_gateway_down_keeps_redemption_and_drops_stale_checkout(self, db, booking_service, fake_stripe):
        event = create_event(db, capacity=10, price=Decimal("25.00"))
        created = booking_service.create_booking(event.id, ANA, 2)
        voucher = create_voucher(db, amount=Decimal("50.00"))
        fake_stripe.unavailable = True

        with pytest.raises(PaymentGatewayUnavailableException):
            booking_service.redeem_voucher(created.booking_id, voucher.code, Decimal("20.00"))

        db.expire_all()
        booking = db.get(Booking, created.booking_id)
        assert booking.voucher_amount == Decimal("20.00")
        assert booking.stripe_session_id is None
        assert booking.payment_status == PaymentStatus.PENDING.value
