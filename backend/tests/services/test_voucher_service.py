from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from mystery_events.core.codes import is_valid_voucher_code
from mystery_events.core.enums import PaymentMethod, PaymentStatus, VoucherStatus
from mystery_events.core.exceptions import (
    BusinessRuleException,
    ConflictException,
    NotFoundException,
    PaymentGatewayUnavailableException,
    ValidationException,
    VoucherUnusableException,
)
from mystery_events.models import Booking, GiftVoucher, VoucherRedemption
from mystery_events.services.voucher_service import VoucherService

from tests.helpers.factories import create_booking, create_event, create_template, create_voucher

NOW = datetime.now(timezone.utc)

PURCHASE = {
    "amount": Decimal("75"),
    "purchaser_name": "María López",
    "purchaser_email": "Maria@Example.com",
    "recipient_name": "Carlos Martín",
    "recipient_email": "carlos@example.com",
    "personal_message": "Happy birthday, detective!",
}


class TestValidate:
    def test_usable_voucher(self, db, voucher_service):
        voucher = create_voucher(db, amount=Decimal("80.00"))

        result = voucher_service.validate(f"  {voucher.code.lower()} ")

        assert result.valid is True
        assert result.reason is None
        assert result.voucher.balance == Decimal("80.00")
        assert result.voucher.code == voucher.code

    def test_unknown_code(self, voucher_service):
        result = voucher_service.validate("GIFT-NOPE-NOPE")

        assert result.valid is False
        assert result.reason == "not_found"
        assert result.voucher is None

    @pytest.mark.parametrize(
        "overrides,reason",
        [
            ({"payment_status": PaymentStatus.PENDING.value}, "payment_pending"),
            ({"current_balance": Decimal("0.00"), "status": VoucherStatus.REDEEMED.value}, "no_balance"),
            ({"status": VoucherStatus.CANCELLED.value}, "inactive"),
            ({"expiry_date": NOW - timedelta(days=1)}, "expired"),
        ],
    )
    def test_unusable_reasons(self, db, voucher_service, overrides, reason):
        voucher = create_voucher(db, **overrides)

        result = voucher_service.validate(voucher.code, now=NOW)

        assert result.valid is False
        assert result.reason == reason

    def test_effective_status_reports_expiry(self, db):
        voucher = create_voucher(db, expiry_date=NOW - timedelta(hours=1))

        assert voucher.status == VoucherStatus.ACTIVE.value
        assert VoucherService.effective_status(voucher, NOW) == VoucherStatus.EXPIRED.value
        assert VoucherService.effective_status(voucher, NOW - timedelta(days=1)) == VoucherStatus.ACTIVE.value


class TestApply:
    def test_applies_and_is_idempotent(self, db, voucher_service):
        event = create_event(db, price=Decimal("45.00"))
        booking = create_booking(db, event, quantity=2)
        voucher = create_voucher(db, amount=Decimal("100.00"))

        first = voucher_service.apply(voucher.code, Decimal("90.00"), booking.id)
        second = voucher_service.apply(voucher.code, Decimal("90.00"), booking.id)

        assert first.applied_amount == Decimal("90.00")
        assert first.remaining_balance == Decimal("10.00")
        assert second.already_applied is True
        assert second.redemption_id == first.redemption_id
        assert second.remaining_balance == Decimal("10.00")

        db.expire_all()
        stored = db.get(Booking, booking.id)
        assert stored.voucher_amount == Decimal("90.00")
        assert stored.stripe_amount == Decimal("0.00")
        assert stored.payment_method == PaymentMethod.VOUCHER.value
        assert db.query(VoucherRedemption).count() == 1

    def test_applies_no_more_than_the_balance(self, db, voucher_service):
        event = create_event(db, price=Decimal("45.00"))
        booking = create_booking(db, event, quantity=2)
        voucher = create_voucher(db, amount=Decimal("30.00"))

        result = voucher_service.apply(voucher.code, Decimal("90.00"), booking.id)

        assert result.applied_amount == Decimal("30.00")
        assert result.remaining_balance == Decimal("0.00")
        db.expire_all()
        assert db.get(GiftVoucher, voucher.id).status == VoucherStatus.REDEEMED.value
        stored = db.get(Booking, booking.id)
        assert stored.stripe_amount == Decimal("60.00")
        assert stored.payment_method == PaymentMethod.MIXED.value

    @pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-5")])
    def test_amount_must_be_positive(self, db, voucher_service, amount):
        booking = create_booking(db, create_event(db))
        voucher = create_voucher(db)

        with pytest.raises(ValidationException) as exc:
            voucher_service.apply(voucher.code, amount, booking.id)
        assert exc.value.code == "INVALID_VOUCHER_AMOUNT"

    def test_amount_cannot_exceed_what_is_owed(self, db, voucher_service):
        booking = create_booking(db, create_event(db, price=Decimal("45.00")), quantity=2)
        voucher = create_voucher(db, amount=Decimal("200.00"))

        with pytest.raises(ValidationException) as exc:
            voucher_service.apply(voucher.code, Decimal("100.00"), booking.id)
        assert exc.value.code == "VOUCHER_AMOUNT_EXCEEDS_TOTAL"

    def test_booking_must_be_pending(self, db, voucher_service):
        booking = create_booking(db, create_event(db), payment_status=PaymentStatus.COMPLETED.value)
        voucher = create_voucher(db)

        with pytest.raises(ConflictException) as exc:
            voucher_service.apply(voucher.code, Decimal("10.00"), booking.id)
        assert exc.value.code == "BOOKING_NOT_PENDING"

    def test_unknown_voucher_or_booking(self, db, voucher_service):
        booking = create_booking(db, create_event(db))
        voucher = create_voucher(db)

        with pytest.raises(NotFoundException) as missing_voucher:
            voucher_service.apply("GIFT-NONE-0000", Decimal("10.00"), booking.id)
        with pytest.raises(NotFoundException) as missing_booking:
            voucher_service.apply(voucher.code, Decimal("10.00"), "01HZZZZZZZZZZZZZZZZZZZZZZZ")

        assert missing_voucher.value.code == "VOUCHER_NOT_FOUND"
        assert missing_booking.value.code == "BOOKING_NOT_FOUND"

    def test_event_voucher_only_applies_to_its_event(self, db, voucher_service):
        own_event = create_event(db, title="The Orient Express Affair")
        other_event = create_event(db)
        booking = create_booking(db, other_event)
        voucher = create_voucher(db, type="event", event_id=own_event.id, ticket_quantity=2)

        with pytest.raises(VoucherUnusableException) as exc:
            voucher_service.apply(voucher.code, Decimal("10.00"), booking.id)
        assert exc.value.details["reason"] == "wrong_event"

        own_booking = create_booking(db, own_event, email="luis@example.com")
        assert voucher_service.apply(voucher.code, Decimal("10.00"), own_booking.id).applied_amount == Decimal("10.00")

    def test_expired_voucher_is_refused(self, db, voucher_service):
        booking = create_booking(db, create_event(db))
        voucher = create_voucher(db, expiry_date=NOW - timedelta(days=2))

        with pytest.raises(VoucherUnusableException) as exc:
            voucher_service.apply(voucher.code, Decimal("10.00"), booking.id)
        assert exc.value.details == {"voucher_code": voucher.code, "reason": "expired"}


class TestCancelRedemption:
    def test_cancel_restores_balance_and_booking_amounts(self, db, voucher_service):
        booking = create_booking(db, create_event(db, price=Decimal("45.00")), quantity=2)
        voucher = create_voucher(db, amount=Decimal("50.00"))
        applied = voucher_service.apply(voucher.code, Decimal("50.00"), booking.id)

        restored = voucher_service.cancel_redemption(applied.redemption_id)

        assert restored.current_balance == Decimal("50.00")
        assert restored.status == VoucherStatus.ACTIVE.value
        db.expire_all()
        stored = db.get(Booking, booking.id)
        assert stored.voucher_amount == Decimal("0.00")
        assert stored.stripe_amount == Decimal("90.00")
        assert stored.payment_method == PaymentMethod.CARD.value
        assert db.query(VoucherRedemption).count() == 0

    def test_completed_booking_locks_redemption(self, db, voucher_service):
        booking = create_booking(db, create_event(db))
        voucher = create_voucher(db)
        applied = voucher_service.apply(voucher.code, Decimal("20.00"), booking.id)
        booking.payment_status = PaymentStatus.COMPLETED.value
        db.commit()

        with pytest.raises(BusinessRuleException) as exc:
            voucher_service.cancel_redemption(applied.redemption_id)
        assert exc.value.code == "REDEMPTION_LOCKED"
        assert exc.value.status_code == 422

    def test_unknown_redemption(self, voucher_service):
        with pytest.raises(NotFoundException):
            voucher_service.cancel_redemption("01HZZZZZZZZZZZZZZZZZZZZZZZ")


class TestPurchase:
    def test_purchase_creates_pending_voucher_and_checkout(self, db, voucher_service, fake_stripe, fake_email):
        result = voucher_service.purchase(dict(PURCHASE))

        assert is_valid_voucher_code(result.code)
        assert result.amount == Decimal("75.00")
        session = fake_stripe.sessions[0]
        assert result.payment_session_url == f"https://checkout.stripe.test/pay/{session.id}"
        assert session.metadata == {"voucher_id": result.voucher_id, "voucher_code": result.code, "type": "gift_voucher"}
        assert session.customer_email == "maria@example.com"

        db.expire_all()
        voucher = db.get(GiftVoucher, result.voucher_id)
        assert voucher.payment_status == PaymentStatus.PENDING.value
        assert voucher.stripe_session_id == session.id
        assert voucher.current_balance == Decimal("75.00")
        assert voucher_service.validate(result.code).reason == "payment_pending"
        assert fake_email.sent == []

    def test_default_amount(self, voucher_service):
        data = dict(PURCHASE)
        del data["amount"]

        assert voucher_service.purchase(data).amount == Decimal("50.00")

    @pytest.mark.parametrize("amount", [Decimal("10"), Decimal("501")])
    def test_amount_outside_range(self, db, voucher_service, amount):
        with pytest.raises(ValidationException) as exc:
            voucher_service.purchase(dict(PURCHASE, amount=amount))

        assert exc.value.code == "INVALID_VOUCHER_AMOUNT"
        assert db.query(GiftVoucher).count() == 0

    def test_event_voucher_is_priced_from_the_event(self, db, voucher_service):
        event = create_event(db, price=Decimal("35.00"))

        result = voucher_service.purchase(dict(PURCHASE, type="event", event_id=event.id, ticket_quantity=3))

        assert result.amount == Decimal("105.00")
        voucher = db.get(GiftVoucher, result.voucher_id)
        assert voucher.event_id == event.id
        assert voucher.ticket_quantity == 3

    def test_event_voucher_needs_event(self, voucher_service):
        with pytest.raises(ValidationException) as exc:
            voucher_service.purchase(dict(PURCHASE, type="event"))
        assert exc.value.code == "VOUCHER_EVENT_REQUIRED"

    def test_message_length_is_limited(self, voucher_service):
        with pytest.raises(ValidationException) as exc:
            voucher_service.purchase(dict(PURCHASE, personal_message="x" * 501))
        assert exc.value.code == "VOUCHER_MESSAGE_TOO_LONG"

    def test_gateway_down_keeps_unusable_voucher(self, db, voucher_service, fake_stripe):
        fake_stripe.unavailable = True

        with pytest.raises(PaymentGatewayUnavailableException):
            voucher_service.purchase(dict(PURCHASE))

        (voucher,) = db.query(GiftVoucher).all()
        assert voucher.payment_status == PaymentStatus.PENDING.value
        assert voucher.stripe_session_id is None


class TestPaymentOutcome:
    def test_mark_paid_activates_once_and_sends_emails(self, db, voucher_service, fake_email):
        purchase = voucher_service.purchase(dict(PURCHASE))

        assert voucher_service.mark_paid(purchase.voucher_id, "pi_voucher") is True
        assert voucher_service.mark_paid(purchase.voucher_id, "pi_voucher") is False

        db.expire_all()
        voucher = db.get(GiftVoucher, purchase.voucher_id)
        assert voucher.payment_status == PaymentStatus.COMPLETED.value
        assert voucher.stripe_payment_intent_id == "pi_voucher"
        assert voucher.purchaser_email_sent is True
        assert voucher.recipient_email_sent is True
        assert voucher.template_used == "file:voucher_gift"
        assert len(fake_email.sent_to("maria@example.com")) == 1
        (gift,) = fake_email.sent_to("carlos@example.com")
        assert gift.subject == "María López has sent you a gift voucher"
        assert purchase.code in gift.html
        assert "75.00 €" in gift.html
        assert voucher_service.validate(purchase.code).valid is True

    def test_payment_failure_cancels_voucher(self, db, voucher_service):
        purchase = voucher_service.purchase(dict(PURCHASE))

        assert voucher_service.mark_payment_failed(purchase.voucher_id) is True
        assert voucher_service.mark_payment_failed(purchase.voucher_id) is False

        db.expire_all()
        voucher = db.get(GiftVoucher, purchase.voucher_id)
        assert voucher.payment_status == PaymentStatus.FAILED.value
        assert voucher.status == VoucherStatus.CANCELLED.value


class TestAdminIssuance:
    def test_admin_voucher_is_paid_and_emailed(self, db, voucher_service, fake_email):
        voucher = voucher_service.admin_create(dict(PURCHASE))

        assert voucher.payment_status == PaymentStatus.COMPLETED.value
        assert voucher.paid_at is not None
        assert {message.to for message in fake_email.sent} == {"maria@example.com", "carlos@example.com"}

    def test_future_delivery_holds_the_gift_email(self, db, voucher_service, fake_email):
        voucher = voucher_service.admin_create(dict(PURCHASE, delivery_date=NOW + timedelta(days=3)))

        assert [message.to for message in fake_email.sent] == ["maria@example.com"]
        db.expire_all()
        assert db.get(GiftVoucher, voucher.id).recipient_email_sent is False

    def test_without_emails(self, voucher_service, fake_email):
        voucher_service.admin_create(dict(PURCHASE), send_emails=False)

        assert fake_email.sent == []

    def test_generic_voucher_template_is_used_when_no_named_one_exists(self, db, voucher_service, fake_email):
        create_template(
            db,
            "spring_voucher_design",
            subject="A spring mystery for {{recipient_name}}",
            html_content="<p>{{voucher_code}} worth {{amount}}</p>",
        )

        voucher = voucher_service.admin_create(dict(PURCHASE))

        (gift,) = fake_email.sent_to("carlos@example.com")
        assert gift.subject == "A spring mystery for Carlos Martín"
        assert gift.html == f"<p>{voucher.code} worth 75.00 €</p>"
        db.expire_all()
        assert db.get(GiftVoucher, voucher.id).template_used == "spring_voucher_design"

    def test_failed_email_can_be_sent_later(self, db, voucher_service, fake_email):
        fake_email.fail = True
        voucher = voucher_service.admin_create(dict(PURCHASE))
        db.expire_all()
        assert db.get(GiftVoucher, voucher.id).recipient_email_sent is False

        fake_email.fail = False
        assert voucher_service.send_recipient_email(db.get(GiftVoucher, voucher.id)) is True
        assert voucher_service.send_recipient_email(db.get(GiftVoucher, voucher.id)) is None


class TestResend:
    def test_resend_to_new_address(self, db, voucher_service, fake_email):
        voucher = create_voucher(db, recipient_email_sent=True)

        assert voucher_service.resend_email(voucher.id, "recipient", new_email="Carlos.New@Example.com") is True

        (message,) = fake_email.sent
        assert message.to == "carlos.new@example.com"
        db.expire_all()
        assert db.get(GiftVoucher, voucher.id).recipient_email == "carlos.new@example.com"

    def test_resend_purchaser_confirmation(self, db, voucher_service, fake_email):
        voucher = create_voucher(db, purchaser_email_sent=True)

        assert voucher_service.resend_email(voucher.id, "purchaser") is True
        assert [message.to for message in fake_email.sent] == ["maria@example.com"]

    def test_unpaid_voucher(self, db, voucher_service):
        voucher = create_voucher(db, payment_status=PaymentStatus.PENDING.value)

        with pytest.raises(BusinessRuleException) as exc:
            voucher_service.resend_email(voucher.id)
        assert exc.value.code == "VOUCHER_NOT_PAID"

    def test_no_recipient_address(self, db, voucher_service):
        voucher = create_voucher(db, recipient_email=None)

        with pytest.raises(ValidationException) as exc:
            voucher_service.resend_email(voucher.id)
        assert exc.value.code == "VOUCHER_NO_EMAIL"


def test_listing_and_stats(db, voucher_service):
    create_voucher(db, amount=Decimal("100.00"), purchaser_name="Elena Ruiz")
    create_voucher(db, amount=Decimal("50.00"), current_balance=Decimal("20.00"))
    create_voucher(db, amount=Decimal("30.00"), status=VoucherStatus.CANCELLED.value)

    active = voucher_service.list_vouchers(status="active")
    everything = voucher_service.list_vouchers(status="all", limit=2)
    searched = voucher_service.list_vouchers(search="elena")

    assert active.total == 2
    assert everything.total == 3
    assert len(everything.vouchers) == 2
    assert searched.total == 1
    assert active.stats.total_active == 2
    assert active.stats.total_value_active == Decimal("120.00")
    assert active.stats.total_value_sold == Decimal("150.00")
