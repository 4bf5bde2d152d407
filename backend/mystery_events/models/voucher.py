# backend/mystery_events/models/voucher.py
"""
Gift vouchers and their redemptions.

``current_balance`` only ever decreases while a voucher is active (admin
cancellation of a redemption is the one path that credits it back). A
voucher reaching zero balance is marked ``redeemed`` in the same statement
that debits it.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
import ulid

from ..core.enums import PaymentStatus, VoucherStatus, VoucherType
from ..core.timezone_utils import ensure_utc
from .types import Base, TimestampMixin, now_utc


class GiftVoucher(TimestampMixin, Base):
    __tablename__ = "gift_vouchers"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    code = Column(String(20), nullable=False, unique=True, index=True)
    type = Column(String(20), nullable=False, default=VoucherType.AMOUNT.value)
    original_amount = Column(Numeric(10, 2), nullable=False)
    current_balance = Column(Numeric(10, 2), nullable=False)

    # Event vouchers are priced from an event at purchase time
    event_id = Column(String(26), ForeignKey("events.id", ondelete="SET NULL"), nullable=True)
    ticket_quantity = Column(Integer, nullable=True)

    purchaser_name = Column(String(255), nullable=False)
    purchaser_email = Column(String(255), nullable=False, index=True)
    purchaser_phone = Column(String(50), nullable=True)
    recipient_name = Column(String(255), nullable=True)
    recipient_email = Column(String(255), nullable=True)
    personal_message = Column(Text, nullable=True)
    template_used = Column(String(100), nullable=True)

    status = Column(String(20), nullable=False, default=VoucherStatus.ACTIVE.value, index=True)
    payment_status = Column(String(20), nullable=False, default=PaymentStatus.PENDING.value)
    stripe_session_id = Column(String(255), nullable=True, index=True)
    stripe_payment_intent_id = Column(String(255), nullable=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    activated_at = Column(DateTime(timezone=True), nullable=True)
    expiry_date = Column(DateTime(timezone=True), nullable=False, index=True)

    scheduled_delivery_at = Column(DateTime(timezone=True), nullable=True, index=True)
    recipient_email_sent = Column(Boolean, nullable=False, default=False)
    recipient_email_sent_at = Column(DateTime(timezone=True), nullable=True)
    purchaser_email_sent = Column(Boolean, nullable=False, default=False)
    purchaser_email_sent_at = Column(DateTime(timezone=True), nullable=True)
    expiration_reminder_sent = Column(Boolean, nullable=False, default=False)
    expiration_reminder_sent_at = Column(DateTime(timezone=True), nullable=True)

    event = relationship("Event")
    redemptions = relationship(
        "VoucherRedemption", back_populates="voucher", order_by="VoucherRedemption.created_at"
    )

    __table_args__ = (
        CheckConstraint("current_balance >= 0", name="ck_vouchers_balance_non_negative"),
        CheckConstraint("current_balance <= original_amount", name="ck_vouchers_balance_within_original"),
        Index("ix_vouchers_delivery", "status", "recipient_email_sent", "scheduled_delivery_at"),
    )

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.expiry_date is None:
            return False
        current = ensure_utc(now) if now else now_utc()
        return current > ensure_utc(self.expiry_date)

    @property
    def amount_used(self) -> Decimal:
        return Decimal(self.original_amount or 0) - Decimal(self.current_balance or 0)

    def __repr__(self) -> str:
        return f"<GiftVoucher {self.code} {self.status} balance={self.current_balance}>"


class VoucherRedemption(Base):
    """Record of a voucher applied to a booking; one per (voucher, booking)."""

    __tablename__ = "voucher_redemptions"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    voucher_id = Column(String(26), ForeignKey("gift_vouchers.id"), nullable=False, index=True)
    booking_id = Column(String(26), ForeignKey("bookings.id"), nullable=False, index=True)
    amount_used = Column(Numeric(10, 2), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=now_utc)

    voucher = relationship("GiftVoucher", back_populates="redemptions")
    booking = relationship("Booking", back_populates="redemptions")

    __table_args__ = (
        UniqueConstraint("voucher_id", "booking_id", name="uq_voucher_redemption_booking"),
        CheckConstraint("amount_used > 0", name="ck_redemptions_amount_positive"),
    )
