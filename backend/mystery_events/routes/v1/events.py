# backend/mystery_events/routes/v1/events.py
"""
Public event catalog routes - API v1

Endpoints:
    GET / - List bookable events with filters and pagination
    GET /{event_id} - Event detail with its checkout form fields
"""

import asyncio
import logging
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query

from ...api.dependencies import get_event_catalog
from ...core.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from ...core.enums import EventCategory
from ...core.exceptions import DomainException
from ...schemas.event import EventDetailResponse, EventListResponse
from ...services.event_catalog import EventCatalog, EventFilters
from .common import handle_domain_exception

logger = logging.getLogger(__name__)

router = APIRouter(tags=["events-v1"])


@router.get("", response_model=EventListResponse)
async def list_events(
    category: Optional[EventCategory] = Query(None),
    status: Literal["active", "soldout"] = Query("active"),
    search: Optional[str] = Query(None, max_length=100),
    upcoming: bool = Query(False, description="Only events from today on (business timezone)"),
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    catalog: EventCatalog = Depends(get_event_catalog),
) -> EventListResponse:
    filters = EventFilters(
        category=category.value if category else None,
        status=status,
        search=search,
        upcoming=upcoming,
        page=page,
        limit=limit,
    )
    try:
        listing = await asyncio.to_thread(catalog.list_events, filters)
    except DomainException as e:
        handle_domain_exception(e)
    return EventListResponse.model_validate(listing)


@router.get("/{event_id}", response_model=EventDetailResponse)
async def get_event(event_id: str, catalog: EventCatalog = Depends(get_event_catalog)) -> EventDetailResponse:
    try:
        event = await asyncio.to_thread(catalog.get_event, event_id)
    except DomainException as e:
        handle_domain_exception(e)
    return EventDetailResponse.model_validate(event)
