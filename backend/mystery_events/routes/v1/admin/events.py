# backend/mystery_events/routes/v1/admin/events.py
"""
Admin event management - API v1

Endpoints:
    GET / - List events in any status
    POST / - Create an event
    GET /{event_id} - Event with admin fields
    PATCH /{event_id} - Partial update (capacity changes keep sold tickets)
    PUT /{event_id}/status - Change status
    DELETE /{event_id} - Delete an event without bookings
    GET /{event_id}/form-fields - Checkout form fields
    PUT /{event_id}/form-fields - Replace the form fields
"""

import asyncio
import logging
from typing import List, Optional

from fastapi import APIRouter, Body, Depends, Query, Response, status

from ....api.dependencies import require_admin
from ....api.dependencies.services import get_event_service
from ....core.constants import MAX_PAGE_SIZE
from ....core.enums import EventCategory, EventStatus
from ....core.exceptions import DomainException
from ....schemas.event import (
    AdminEventListResponse,
    AdminEventResponse,
    EventCreate,
    EventStatusUpdate,
    EventUpdate,
    FormFieldResponse,
    FormFieldsReplace,
)
from ....services.event_service import EventService
from ..common import handle_domain_exception

logger = logging.getLogger(__name__)

router = APIRouter(tags=["admin-events"], dependencies=[Depends(require_admin)])


@router.get("", response_model=AdminEventListResponse)
async def list_events(
    status_filter: Optional[EventStatus] = Query(None, alias="status"),
    category: Optional[EventCategory] = Query(None),
    search: Optional[str] = Query(None, max_length=100),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=MAX_PAGE_SIZE),
    event_service: EventService = Depends(get_event_service),
) -> AdminEventListResponse:
    rows, total = await asyncio.to_thread(
        event_service.list_events,
        status=status_filter.value if status_filter else None,
        category=category.value if category else None,
        search=search,
        page=page,
        limit=limit,
    )
    return AdminEventListResponse(
        events=[AdminEventResponse.model_validate(row) for row in rows], total=total, page=page, limit=limit
    )


@router.post("", response_model=AdminEventResponse, status_code=status.HTTP_201_CREATED)
async def create_event(
    payload: EventCreate = Body(...), event_service: EventService = Depends(get_event_service)
) -> AdminEventResponse:
    try:
        event = await asyncio.to_thread(event_service.create_event, payload.model_dump())
    except DomainException as e:
        handle_domain_exception(e)
    return AdminEventResponse.model_validate(event)


@router.get("/{event_id}", response_model=AdminEventResponse)
async def get_event(event_id: str, event_service: EventService = Depends(get_event_service)) -> AdminEventResponse:
    try:
        event = await asyncio.to_thread(event_service.get_event, event_id)
    except DomainException as e:
        handle_domain_exception(e)
    return AdminEventResponse.model_validate(event)


@router.patch("/{event_id}", response_model=AdminEventResponse)
async def update_event(
    event_id: str,
    payload: EventUpdate = Body(...),
    event_service: EventService = Depends(get_event_service),
) -> AdminEventResponse:
    try:
        event = await asyncio.to_thread(event_service.update_event, event_id, payload.model_dump(exclude_unset=True))
    except DomainException as e:
        handle_domain_exception(e)
    return AdminEventResponse.model_validate(event)


@router.put("/{event_id}/status", response_model=AdminEventResponse)
async def set_event_status(
    event_id: str,
    payload: EventStatusUpdate = Body(...),
    event_service: EventService = Depends(get_event_service),
) -> AdminEventResponse:
    try:
        event = await asyncio.to_thread(event_service.set_status, event_id, payload.status)
    except DomainException as e:
        handle_domain_exception(e)
    return AdminEventResponse.model_validate(event)


@router.delete("/{event_id}", status_code=status.HTTP_204_NO_CONTENT, response_class=Response)
async def delete_event(event_id: str, event_service: EventService = Depends(get_event_service)) -> Response:
    try:
        await asyncio.to_thread(event_service.delete_event, event_id)
    except DomainException as e:
        handle_domain_exception(e)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{event_id}/form-fields", response_model=List[FormFieldResponse])
async def get_form_fields(
    event_id: str, event_service: EventService = Depends(get_event_service)
) -> List[FormFieldResponse]:
    try:
        rows = await asyncio.to_thread(event_service.get_form_fields, event_id)
    except DomainException as e:
        handle_domain_exception(e)
    return [FormFieldResponse.model_validate(row) for row in rows]


@router.put("/{event_id}/form-fields", response_model=List[FormFieldResponse])
async def replace_form_fields(
    event_id: str,
    payload: FormFieldsReplace = Body(...),
    event_service: EventService = Depends(get_event_service),
) -> List[FormFieldResponse]:
    try:
        rows = await asyncio.to_thread(
            event_service.replace_form_fields, event_id, [field.model_dump() for field in payload.fields]
        )
    except DomainException as e:
        handle_domain_exception(e)
    return [FormFieldResponse.model_validate(row) for row in rows]
