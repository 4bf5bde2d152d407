# backend/mystery_events/schemas/voucher.py
"""Gift voucher request and response schemas."""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import EmailStr, Field, field_validator, model_validator

from ..core.codes import normalize_voucher_code
from ..core.constants import (
    MAX_TICKETS_PER_BOOKING,
    VOUCHER_MAX_AMOUNT,
    VOUCHER_MESSAGE_MAX_LENGTH,
    VOUCHER_MIN_AMOUNT,
)
from ..core.enums import VoucherEmailTarget, VoucherType
from ._strict_base import ORMResponseModel, StrictModel, StrictRequestModel
from .base import Money


class VoucherCodeRequest(StrictRequestModel):
    code: str = Field(..., min_length=1, max_length=20)

    @field_validator("code")
    @classmethod
    def _normalize(cls, v: str) -> str:
        return normalize_voucher_code(v)


class VoucherValidateRequest(VoucherCodeRequest):
    pass


class VoucherValidateResponse(StrictModel):
    valid: bool
    reason: Optional[str] = None
    code: Optional[str] = None
    type: Optional[str] = None
    balance: Optional[Money] = None
    expiry_date: Optional[datetime] = None
    event_id: Optional[str] = None


class VoucherRedeemRequest(VoucherCodeRequest):
    amount_to_apply: Decimal = Field(..., gt=0, decimal_places=2)
    booking_id: str = Field(..., min_length=1)


class VoucherRedeemResponse(ORMResponseModel):
    applied_amount: Money
    remaining_balance: Money
    redemption_id: str
    already_applied: bool = False
    stripe_amount: Money
    payment_status: str
    payment_session_url: Optional[str] = None


class VoucherIssueBase(StrictRequestModel):
    type: VoucherType = VoucherType.AMOUNT
    amount: Optional[Decimal] = Field(None, ge=VOUCHER_MIN_AMOUNT, le=VOUCHER_MAX_AMOUNT, decimal_places=2)
    event_id: Optional[str] = None
    ticket_quantity: Optional[int] = Field(None, ge=1, le=MAX_TICKETS_PER_BOOKING)
    purchaser_name: str = Field(..., min_length=2, max_length=255)
    purchaser_email: EmailStr
    purchaser_phone: Optional[str] = Field(None, max_length=50)
    recipient_name: Optional[str] = Field(None, max_length=255)
    recipient_email: Optional[EmailStr] = None
    personal_message: Optional[str] = Field(None, max_length=VOUCHER_MESSAGE_MAX_LENGTH)
    template: Optional[str] = Field(None, max_length=100)
    delivery_date: Optional[datetime] = Field(None, description="Send the gift email to the recipient at this time")

    @model_validator(mode="after")
    def _check_event_voucher(self) -> "VoucherIssueBase":
        if self.type == VoucherType.EVENT and not self.event_id:
            raise ValueError("event_id is required for event vouchers")
        if self.delivery_date and not self.recipient_email:
            raise ValueError("recipient_email is required to schedule delivery")
        return self


class VoucherPurchaseRequest(VoucherIssueBase):
    pass


class VoucherPurchaseResponse(ORMResponseModel):
    voucher_id: str
    code: str
    amount: Money
    payment_session_url: Optional[str] = None


class AdminVoucherCreate(VoucherIssueBase):
    send_emails: bool = True


class VoucherResendRequest(StrictRequestModel):
    target: VoucherEmailTarget = VoucherEmailTarget.RECIPIENT
    new_email: Optional[EmailStr] = None


class VoucherResendResponse(StrictModel):
    sent: bool
    target: VoucherEmailTarget


class RedemptionResponse(ORMResponseModel):
    id: str
    booking_id: str
    amount_used: Money
    created_at: datetime


class VoucherResponse(ORMResponseModel):
    id: str
    code: str
    type: str
    original_amount: Money
    current_balance: Money
    amount_used: Money
    status: str
    effective_status: Optional[str] = None
    payment_status: str
    event_id: Optional[str] = None
    ticket_quantity: Optional[int] = None
    purchaser_name: str
    purchaser_email: str
    recipient_name: Optional[str] = None
    recipient_email: Optional[str] = None
    personal_message: Optional[str] = None
    expiry_date: datetime
    scheduled_delivery_at: Optional[datetime] = None
    recipient_email_sent: bool
    purchaser_email_sent: bool
    expiration_reminder_sent: bool
    created_at: datetime
    redemptions: List[RedemptionResponse] = Field(default_factory=list)


class VoucherStatsResponse(ORMResponseModel):
    total_active: int
    total_value_active: Money
    total_value_sold: Money


class VoucherListResponse(ORMResponseModel):
    vouchers: List[VoucherResponse]
    total: int
    page: int
    limit: int
    stats: VoucherStatsResponse
