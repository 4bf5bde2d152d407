# backend/mystery_events/routes/v1/admin/calendar.py
"""
Admin calendar sync - API v1

Endpoints:
    POST /events/{event_id}/sync - Create or refresh the event's calendar entry
"""

import asyncio

from fastapi import APIRouter, Depends

from ....api.dependencies import get_confirmation_service, require_admin
from ....services.confirmation_service import ConfirmationService

router = APIRouter(tags=["admin-calendar"], dependencies=[Depends(require_admin)])


@router.post("/events/{event_id}/sync")
async def sync_event(
    event_id: str, confirmation_service: ConfirmationService = Depends(get_confirmation_service)
) -> dict:
    synced = await asyncio.to_thread(confirmation_service.sync_event, event_id)
    return {"event_id": event_id, "synced": synced}
