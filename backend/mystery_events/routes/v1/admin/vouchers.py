# backend/mystery_events/routes/v1/admin/vouchers.py
"""
Admin gift voucher management - API v1

Endpoints:
    GET / - List vouchers with aggregate stats
    POST / - Issue an already-paid voucher
    GET /stats - Active count and balances
    GET /{voucher_id} - Voucher with its redemptions
    POST /{voucher_id}/resend - Send the gift or purchase email again
    DELETE /redemptions/{redemption_id} - Undo a redemption on an unpaid booking
"""

import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends, Query, status

from ....api.dependencies import get_voucher_service, require_admin
from ....core.constants import MAX_PAGE_SIZE
from ....core.exceptions import DomainException
from ....models.voucher import GiftVoucher
from ....schemas.voucher import (
    AdminVoucherCreate,
    VoucherListResponse,
    VoucherResendRequest,
    VoucherResendResponse,
    VoucherResponse,
    VoucherStatsResponse,
)
from ....services.voucher_service import VoucherService
from ..common import handle_domain_exception

logger = logging.getLogger(__name__)

router = APIRouter(tags=["admin-vouchers"], dependencies=[Depends(require_admin)])


def voucher_response(voucher: GiftVoucher) -> VoucherResponse:
    response = VoucherResponse.model_validate(voucher)
    return response.model_copy(update={"effective_status": VoucherService.effective_status(voucher)})


@router.get("", response_model=VoucherListResponse)
async def list_vouchers(
    status_filter: Optional[str] = Query(None, alias="status", pattern=r"^(all|active|redeemed|expired|cancelled)$"),
    search: Optional[str] = Query(None, max_length=100),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=MAX_PAGE_SIZE),
    voucher_service: VoucherService = Depends(get_voucher_service),
) -> VoucherListResponse:
    result = await asyncio.to_thread(
        voucher_service.list_vouchers, status=status_filter, search=search, page=page, limit=limit
    )
    return VoucherListResponse(
        vouchers=[voucher_response(v) for v in result.vouchers],
        total=result.total,
        page=result.page,
        limit=result.limit,
        stats=VoucherStatsResponse.model_validate(result.stats),
    )


@router.post("", response_model=VoucherResponse, status_code=status.HTTP_201_CREATED)
async def create_voucher(
    payload: AdminVoucherCreate = Body(...),
    voucher_service: VoucherService = Depends(get_voucher_service),
) -> VoucherResponse:
    data = payload.model_dump(exclude={"send_emails"})
    try:
        voucher = await asyncio.to_thread(voucher_service.admin_create, data, payload.send_emails)
    except DomainException as e:
        handle_domain_exception(e)
    return voucher_response(voucher)


@router.get("/stats", response_model=VoucherStatsResponse)
async def voucher_stats(voucher_service: VoucherService = Depends(get_voucher_service)) -> VoucherStatsResponse:
    stats = await asyncio.to_thread(voucher_service.get_stats)
    return VoucherStatsResponse.model_validate(stats)


@router.get("/{voucher_id}", response_model=VoucherResponse)
async def get_voucher(voucher_id: str, voucher_service: VoucherService = Depends(get_voucher_service)) -> VoucherResponse:
    try:
        voucher = await asyncio.to_thread(voucher_service.get_voucher, voucher_id)
    except DomainException as e:
        handle_domain_exception(e)
    return voucher_response(voucher)


@router.post("/{voucher_id}/resend", response_model=VoucherResendResponse)
async def resend_voucher_email(
    voucher_id: str,
    payload: VoucherResendRequest = Body(...),
    voucher_service: VoucherService = Depends(get_voucher_service),
) -> VoucherResendResponse:
    try:
        sent = await asyncio.to_thread(
            voucher_service.resend_email,
            voucher_id,
            payload.target,
            str(payload.new_email) if payload.new_email else None,
        )
    except DomainException as e:
        handle_domain_exception(e)
    return VoucherResendResponse(sent=sent, target=payload.target)


@router.delete("/redemptions/{redemption_id}", response_model=VoucherResponse)
async def cancel_redemption(
    redemption_id: str, voucher_service: VoucherService = Depends(get_voucher_service)
) -> VoucherResponse:
    try:
        voucher = await asyncio.to_thread(voucher_service.cancel_redemption, redemption_id)
    except DomainException as e:
        handle_domain_exception(e)
    return voucher_response(voucher)
