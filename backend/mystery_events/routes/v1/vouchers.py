# backend/mystery_events/routes/v1/vouchers.py
"""
Public gift voucher routes - API v1

Endpoints:
    POST /validate - Check a code and report its balance
    POST /redeem - Apply balance to a pending booking
    POST /purchase - Buy a voucher through Stripe Checkout
"""

import asyncio
import logging

from fastapi import APIRouter, Body, Depends, status

from ...api.dependencies import get_booking_service, get_voucher_service
from ...core.exceptions import DomainException
from ...schemas.voucher import (
    VoucherPurchaseRequest,
    VoucherPurchaseResponse,
    VoucherRedeemRequest,
    VoucherRedeemResponse,
    VoucherValidateRequest,
    VoucherValidateResponse,
)
from ...services.booking_service import BookingService
from ...services.voucher_service import VoucherService
from .common import handle_domain_exception

logger = logging.getLogger(__name__)

router = APIRouter(tags=["vouchers-v1"])


@router.post("/validate", response_model=VoucherValidateResponse)
async def validate_voucher(
    payload: VoucherValidateRequest = Body(...),
    voucher_service: VoucherService = Depends(get_voucher_service),
) -> VoucherValidateResponse:
    """An unusable voucher is a normal answer (``valid: false`` with a reason), not an error."""
    try:
        validation = await asyncio.to_thread(voucher_service.validate, payload.code)
    except DomainException as e:
        handle_domain_exception(e)
    snapshot = validation.voucher
    return VoucherValidateResponse(
        valid=validation.valid,
        reason=validation.reason,
        code=snapshot.code if snapshot else None,
        type=snapshot.type if snapshot else None,
        balance=snapshot.balance if snapshot and validation.valid else None,
        expiry_date=snapshot.expiry_date if snapshot else None,
        event_id=snapshot.event_id if snapshot else None,
    )


@router.post("/redeem", response_model=VoucherRedeemResponse)
async def redeem_voucher(
    payload: VoucherRedeemRequest = Body(...),
    booking_service: BookingService = Depends(get_booking_service),
) -> VoucherRedeemResponse:
    """Redeeming against a booking reissues its checkout for the remainder, or confirms it when fully covered."""
    try:
        result = await asyncio.to_thread(
            booking_service.redeem_voucher, payload.booking_id, payload.code, payload.amount_to_apply
        )
    except DomainException as e:
        handle_domain_exception(e)
    return VoucherRedeemResponse.model_validate(result)


@router.post("/purchase", response_model=VoucherPurchaseResponse, status_code=status.HTTP_201_CREATED)
async def purchase_voucher(
    payload: VoucherPurchaseRequest = Body(...),
    voucher_service: VoucherService = Depends(get_voucher_service),
) -> VoucherPurchaseResponse:
    try:
        result = await asyncio.to_thread(voucher_service.purchase, payload.model_dump(mode="python"))
    except DomainException as e:
        handle_domain_exception(e)
    return VoucherPurchaseResponse.model_validate(result)
