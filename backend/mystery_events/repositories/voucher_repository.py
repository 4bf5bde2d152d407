# backend/mystery_events/repositories/voucher_repository.py
"""
Gift voucher repository.

Balance changes go through ``debit_balance``/``credit_balance``. The debit's
WHERE clause re-checks every usability rule (active, paid, unexpired, enough
balance) so two concurrent redemptions cannot spend the same money.
"""

from datetime import datetime
from decimal import Decimal
import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import case, func, or_, update
from sqlalchemy.orm import Query, Session, joinedload, selectinload

from ..core.codes import normalize_voucher_code
from ..core.enums import PaymentStatus, VoucherStatus
from ..models.types import now_utc
from ..models.voucher import GiftVoucher, VoucherRedemption
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)

_EMAIL_FLAGS = {
    "recipient_email_sent": "recipient_email_sent_at",
    "purchaser_email_sent": "purchaser_email_sent_at",
    "expiration_reminder_sent": "expiration_reminder_sent_at",
}


class VoucherRepository(BaseRepository[GiftVoucher]):
    def __init__(self, db: Session):
        super().__init__(db, GiftVoucher)

    def _apply_eager_loading(self, query: Query) -> Query:
        return query.options(
            joinedload(GiftVoucher.event),
            selectinload(GiftVoucher.redemptions).joinedload(VoucherRedemption.booking),
        )

    def get_by_code(self, code: str) -> Optional[GiftVoucher]:
        return self.db.query(GiftVoucher).filter(GiftVoucher.code == normalize_voucher_code(code)).first()

    def get_by_stripe_session(self, session_id: str) -> Optional[GiftVoucher]:
        return self.db.query(GiftVoucher).filter(GiftVoucher.stripe_session_id == session_id).first()

    def code_exists(self, code: str) -> bool:
        return self.db.query(GiftVoucher.id).filter(GiftVoucher.code == code).first() is not None

    # Balance

    def debit_balance(self, voucher_id: str, amount: Decimal, now: datetime) -> bool:
        """
        Subtract ``amount`` if the voucher is still usable; a zero result marks it redeemed.

        Both SET expressions read the pre-update balance.
        """
        stmt = (
            update(GiftVoucher)
            .where(
                GiftVoucher.id == voucher_id,
                GiftVoucher.status == VoucherStatus.ACTIVE.value,
                GiftVoucher.payment_status == PaymentStatus.COMPLETED.value,
                GiftVoucher.current_balance >= amount,
                GiftVoucher.expiry_date > now,
            )
            .values(
                current_balance=GiftVoucher.current_balance - amount,
                status=case(
                    (GiftVoucher.current_balance - amount <= 0, VoucherStatus.REDEEMED.value),
                    else_=GiftVoucher.status,
                ),
            )
        )
        return self._execute_guarded(stmt, "debit voucher balance") == 1

    def credit_balance(self, voucher_id: str, amount: Decimal) -> bool:
        """Give ``amount`` back and reactivate a redeemed voucher."""
        stmt = (
            update(GiftVoucher)
            .where(
                GiftVoucher.id == voucher_id,
                GiftVoucher.status.in_([VoucherStatus.ACTIVE.value, VoucherStatus.REDEEMED.value]),
                GiftVoucher.current_balance + amount <= GiftVoucher.original_amount,
            )
            .values(
                current_balance=GiftVoucher.current_balance + amount,
                status=VoucherStatus.ACTIVE.value,
            )
        )
        return self._execute_guarded(stmt, "credit voucher balance") == 1

    # Redemptions

    def get_redemption(self, voucher_id: str, booking_id: str) -> Optional[VoucherRedemption]:
        return (
            self.db.query(VoucherRedemption)
            .filter(VoucherRedemption.voucher_id == voucher_id, VoucherRedemption.booking_id == booking_id)
            .first()
        )

    def get_redemption_by_id(self, redemption_id: str) -> Optional[VoucherRedemption]:
        return (
            self.db.query(VoucherRedemption)
            .options(joinedload(VoucherRedemption.booking), joinedload(VoucherRedemption.voucher))
            .filter(VoucherRedemption.id == redemption_id)
            .first()
        )

    def add_redemption(self, voucher_id: str, booking_id: str, amount: Decimal) -> VoucherRedemption:
        redemption = VoucherRedemption(voucher_id=voucher_id, booking_id=booking_id, amount_used=amount)
        self.db.add(redemption)
        self.db.flush()
        return redemption

    def delete_redemption(self, redemption: VoucherRedemption) -> None:
        self.db.delete(redemption)
        self.db.flush()

    # Payment state

    def mark_paid(self, voucher_id: str, payment_intent_id: Optional[str] = None) -> bool:
        now = now_utc()
        values: Dict[str, Any] = {
            "payment_status": PaymentStatus.COMPLETED.value,
            "paid_at": now,
            "activated_at": now,
        }
        if payment_intent_id:
            values["stripe_payment_intent_id"] = payment_intent_id
        stmt = (
            update(GiftVoucher)
            .where(GiftVoucher.id == voucher_id, GiftVoucher.payment_status == PaymentStatus.PENDING.value)
            .values(**values)
        )
        return self._execute_guarded(stmt, "mark voucher paid") == 1

    def mark_payment_failed(self, voucher_id: str) -> bool:
        stmt = (
            update(GiftVoucher)
            .where(GiftVoucher.id == voucher_id, GiftVoucher.payment_status == PaymentStatus.PENDING.value)
            .values(payment_status=PaymentStatus.FAILED.value, status=VoucherStatus.CANCELLED.value)
        )
        return self._execute_guarded(stmt, "mark voucher payment failed") == 1

    def set_payment_session(self, voucher_id: str, session_id: str) -> None:
        stmt = update(GiftVoucher).where(GiftVoucher.id == voucher_id).values(stripe_session_id=session_id)
        self._execute_guarded(stmt, "store voucher payment session")

    # Email flags

    def claim_flag(self, voucher_id: str, flag: str, now: Optional[datetime] = None) -> bool:
        column, stamp = self._flag_columns(flag)
        stmt = (
            update(GiftVoucher)
            .where(GiftVoucher.id == voucher_id, column.is_(False))
            .values({flag: True, stamp: now or now_utc()})
        )
        return self._execute_guarded(stmt, f"claim {flag}") == 1

    def release_flag(self, voucher_id: str, flag: str) -> None:
        _column, stamp = self._flag_columns(flag)
        stmt = update(GiftVoucher).where(GiftVoucher.id == voucher_id).values({flag: False, stamp: None})
        self._execute_guarded(stmt, f"release {flag}")

    def reset_flag(self, voucher_id: str, flag: str) -> None:
        """Clear a sent flag so the next send is allowed (manual resend)."""
        self.release_flag(voucher_id, flag)

    # Sweeps

    def find_scheduled_due(self, now: datetime, limit: int = 100) -> List[GiftVoucher]:
        return (
            self.db.query(GiftVoucher)
            .filter(
                GiftVoucher.status == VoucherStatus.ACTIVE.value,
                GiftVoucher.payment_status == PaymentStatus.COMPLETED.value,
                GiftVoucher.recipient_email_sent.is_(False),
                GiftVoucher.recipient_email.isnot(None),
                GiftVoucher.scheduled_delivery_at.isnot(None),
                GiftVoucher.scheduled_delivery_at <= now,
            )
            .order_by(GiftVoucher.scheduled_delivery_at.asc())
            .limit(limit)
            .all()
        )

    def find_expiring(self, now: datetime, until: datetime, limit: int = 100) -> List[GiftVoucher]:
        return (
            self.db.query(GiftVoucher)
            .filter(
                GiftVoucher.status == VoucherStatus.ACTIVE.value,
                GiftVoucher.payment_status == PaymentStatus.COMPLETED.value,
                GiftVoucher.current_balance > 0,
                GiftVoucher.expiration_reminder_sent.is_(False),
                GiftVoucher.recipient_email.isnot(None),
                GiftVoucher.expiry_date > now,
                GiftVoucher.expiry_date <= until,
            )
            .order_by(GiftVoucher.expiry_date.asc())
            .limit(limit)
            .all()
        )

    # Admin

    def list_vouchers(
        self,
        *,
        status: Optional[str] = None,
        search: Optional[str] = None,
        offset: int = 0,
        limit: int = 10,
    ) -> Tuple[List[GiftVoucher], int]:
        query = self.db.query(GiftVoucher)
        if status:
            query = query.filter(GiftVoucher.status == status)
        if search:
            pattern = f"%{search.strip().lower()}%"
            query = query.filter(
                or_(
                    func.lower(GiftVoucher.code).like(pattern),
                    func.lower(GiftVoucher.purchaser_name).like(pattern),
                    func.lower(GiftVoucher.purchaser_email).like(pattern),
                    func.lower(GiftVoucher.recipient_name).like(pattern),
                )
            )
        total = query.count()
        rows = (
            self._apply_eager_loading(query)
            .order_by(GiftVoucher.created_at.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )
        return rows, total

    def active_stats(self) -> Tuple[int, Decimal, Decimal]:
        """(count, outstanding balance, original value) over active, paid vouchers."""
        count, balance, original = (
            self.db.query(
                func.count(GiftVoucher.id),
                func.coalesce(func.sum(GiftVoucher.current_balance), 0),
                func.coalesce(func.sum(GiftVoucher.original_amount), 0),
            )
            .filter(
                GiftVoucher.status == VoucherStatus.ACTIVE.value,
                GiftVoucher.payment_status == PaymentStatus.COMPLETED.value,
            )
            .one()
        )
        return int(count or 0), Decimal(str(balance or 0)), Decimal(str(original or 0))

    @staticmethod
    def _flag_columns(flag: str):
        if flag not in _EMAIL_FLAGS:
            raise ValueError(f"Unknown voucher flag: {flag}")
        return getattr(GiftVoucher, flag), _EMAIL_FLAGS[flag]
