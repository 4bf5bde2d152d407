# backend/mystery_events/routes/v1/cron.py
"""
Scheduled-job endpoints - API v1

Called by an external scheduler with ``Authorization: Bearer <CRON_SECRET>``.
The same sweeps also run from Celery beat; every send is gated by a
persisted flag, so overlapping runs do not send twice.

Endpoints:
    POST /reminders - Send tomorrow's booking reminders and report low inventory
    GET /reminders/status - Count what the next reminder sweep would send
    POST /vouchers/scheduled - Deliver gift emails whose delivery time has come
    POST /vouchers/expiration - Remind holders of vouchers about to expire
    POST /bookings/release-abandoned - Fail stale pending bookings and free their tickets
"""

import asyncio
import logging

from fastapi import APIRouter, Depends

from ...api.dependencies import get_booking_service, get_notification_service, require_cron_secret
from ...core.exceptions import DomainException
from ...schemas.cron import (
    LowInventoryEventResponse,
    ReleaseAbandonedResponse,
    ReminderStatusResponse,
    ReminderSweepResponse,
    SweepResponse,
)
from ...services.booking_service import BookingService
from ...services.notification_service import NotificationService
from .common import handle_domain_exception

logger = logging.getLogger(__name__)

router = APIRouter(tags=["cron-v1"], dependencies=[Depends(require_cron_secret)])


@router.post("/reminders", response_model=ReminderSweepResponse)
async def send_reminders(
    notification_service: NotificationService = Depends(get_notification_service),
) -> ReminderSweepResponse:
    try:
        sweep = await asyncio.to_thread(notification_service.send_booking_reminders)
        low = await asyncio.to_thread(notification_service.low_inventory_report)
    except DomainException as e:
        handle_domain_exception(e)
    return ReminderSweepResponse(
        reminders=SweepResponse.model_validate(sweep),
        low_inventory=[LowInventoryEventResponse.model_validate(item) for item in low],
    )


@router.get("/reminders/status", response_model=ReminderStatusResponse)
async def reminder_status(
    notification_service: NotificationService = Depends(get_notification_service),
) -> ReminderStatusResponse:
    try:
        status = await asyncio.to_thread(notification_service.pending_status)
    except DomainException as e:
        handle_domain_exception(e)
    return ReminderStatusResponse(**status)


@router.post("/vouchers/scheduled", response_model=SweepResponse)
async def deliver_scheduled_vouchers(
    notification_service: NotificationService = Depends(get_notification_service),
) -> SweepResponse:
    try:
        sweep = await asyncio.to_thread(notification_service.deliver_scheduled_vouchers)
    except DomainException as e:
        handle_domain_exception(e)
    return SweepResponse.model_validate(sweep)


@router.post("/vouchers/expiration", response_model=SweepResponse)
async def send_voucher_expiration_reminders(
    notification_service: NotificationService = Depends(get_notification_service),
) -> SweepResponse:
    try:
        sweep = await asyncio.to_thread(notification_service.send_expiration_reminders)
    except DomainException as e:
        handle_domain_exception(e)
    return SweepResponse.model_validate(sweep)


@router.post("/bookings/release-abandoned", response_model=ReleaseAbandonedResponse)
async def release_abandoned_bookings(
    booking_service: BookingService = Depends(get_booking_service),
) -> ReleaseAbandonedResponse:
    try:
        result = await asyncio.to_thread(booking_service.release_abandoned_bookings)
    except DomainException as e:
        handle_domain_exception(e)
    return ReleaseAbandonedResponse(**result)
