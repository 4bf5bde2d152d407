"""End-to-end walks through inventory and voucher balances across several bookings."""

from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal

import pytest

from mystery_events.core.enums import VoucherStatus
from mystery_events.core.exceptions import InsufficientInventoryException, VoucherUnusableException
from mystery_events.models import Event, GiftVoucher
from mystery_events.services.booking_service import CustomerDetails
from mystery_events.services.inventory_service import InventoryService

from tests.helpers.factories import create_booking, create_event, create_voucher

ANA = CustomerDetails(name="Ana García", email="ana@example.com")
LUIS = CustomerDetails(name="Luis Pérez", email="luis@example.com")


def test_second_booking_beyond_capacity_is_refused(db, booking_service):
    event = create_event(db, capacity=5)

    booking_service.create_booking(event.id, ANA, 3)
    db.expire_all()
    assert db.get(Event, event.id).available_tickets == 2

    with pytest.raises(InsufficientInventoryException):
        booking_service.create_booking(event.id, LUIS, 3)

    db.expire_all()
    assert db.get(Event, event.id).available_tickets == 2


def test_concurrent_reservations_never_oversell(database, test_settings, db):
    event = create_event(db, capacity=3)

    def reserve_one() -> bool:
        session = database.session()
        try:
            InventoryService(session, test_settings).reserve(event.id, 1)
            session.commit()
            return True
        except InsufficientInventoryException:
            session.rollback()
            return False
        finally:
            session.close()

    with ThreadPoolExecutor(max_workers=4) as pool:
        outcomes = list(pool.map(lambda _: reserve_one(), range(8)))

    assert outcomes.count(True) == 3
    db.expire_all()
    assert db.get(Event, event.id).available_tickets == 0


def test_voucher_balance_is_spent_across_bookings(db, voucher_service):
    event = create_event(db, price=Decimal("45.00"))
    first, second, third = (
        create_booking(db, event, quantity=2, email=f"guest{n}@example.com") for n in range(3)
    )
    voucher = create_voucher(db, amount=Decimal("100.00"))

    voucher_service.apply(voucher.code, Decimal("40.00"), first.id)
    db.expire_all()
    stored = db.get(GiftVoucher, voucher.id)
    assert stored.current_balance == Decimal("60.00")
    assert stored.status == VoucherStatus.ACTIVE.value

    result = voucher_service.apply(voucher.code, Decimal("60.00"), second.id)
    db.expire_all()
    stored = db.get(GiftVoucher, voucher.id)
    assert result.remaining_balance == Decimal("0.00")
    assert stored.status == VoucherStatus.REDEEMED.value

    with pytest.raises(VoucherUnusableException):
        voucher_service.apply(voucher.code, Decimal("10.00"), third.id)


def test_booking_of_two_gets_two_numbered_tickets(db, booking_service):
    event = create_event(db)

    created = booking_service.create_booking(event.id, ANA, 2)

    booking = booking_service.get_booking(created.booking_id)
    assert [t.ticket_code for t in booking.tickets] == [
        f"{created.booking_code}-T01",
        f"{created.booking_code}-T02",
    ]
