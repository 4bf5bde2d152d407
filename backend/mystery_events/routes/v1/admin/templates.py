# backend/mystery_events/routes/v1/admin/templates.py
"""
Admin email template management - API v1

Endpoints:
    GET / - List templates
    POST / - Create a template
    POST /preview - Render unsaved template text with sample data
    GET /{template_id} - Get one template
    PATCH /{template_id} - Edit a template
    DELETE /{template_id} - Delete a template
    POST /{template_id}/duplicate - Copy a template (copy starts inactive)
"""

import asyncio
from typing import List

from fastapi import APIRouter, Body, Depends, Response, status

from ....api.dependencies import require_admin
from ....api.dependencies.services import get_email_template_service
from ....core.exceptions import DomainException
from ....schemas.email_template import (
    EmailTemplateCreate,
    EmailTemplateResponse,
    EmailTemplateUpdate,
    TemplatePreviewRequest,
    TemplatePreviewResponse,
)
from ....services.email_template_service import EmailTemplateService
from ..common import handle_domain_exception

router = APIRouter(tags=["admin-templates"], dependencies=[Depends(require_admin)])


@router.get("", response_model=List[EmailTemplateResponse])
async def list_templates(
    template_service: EmailTemplateService = Depends(get_email_template_service),
) -> List[EmailTemplateResponse]:
    rows = await asyncio.to_thread(template_service.list_templates)
    return [EmailTemplateResponse.model_validate(row) for row in rows]


@router.post("", response_model=EmailTemplateResponse, status_code=status.HTTP_201_CREATED)
async def create_template(
    payload: EmailTemplateCreate = Body(...),
    template_service: EmailTemplateService = Depends(get_email_template_service),
) -> EmailTemplateResponse:
    try:
        template = await asyncio.to_thread(template_service.create_template, payload.model_dump())
    except DomainException as e:
        handle_domain_exception(e)
    return EmailTemplateResponse.model_validate(template)


@router.post("/preview", response_model=TemplatePreviewResponse)
async def preview_template(
    payload: TemplatePreviewRequest = Body(...),
    template_service: EmailTemplateService = Depends(get_email_template_service),
) -> TemplatePreviewResponse:
    try:
        rendered = await asyncio.to_thread(
            template_service.preview, payload.subject, payload.html_content, payload.variables, payload.category
        )
    except DomainException as e:
        handle_domain_exception(e)
    return TemplatePreviewResponse(subject=rendered.subject, html=rendered.html)


@router.get("/{template_id}", response_model=EmailTemplateResponse)
async def get_template(
    template_id: str, template_service: EmailTemplateService = Depends(get_email_template_service)
) -> EmailTemplateResponse:
    try:
        template = await asyncio.to_thread(template_service.get_template, template_id)
    except DomainException as e:
        handle_domain_exception(e)
    return EmailTemplateResponse.model_validate(template)


@router.patch("/{template_id}", response_model=EmailTemplateResponse)
async def update_template(
    template_id: str,
    payload: EmailTemplateUpdate = Body(...),
    template_service: EmailTemplateService = Depends(get_email_template_service),
) -> EmailTemplateResponse:
    try:
        template = await asyncio.to_thread(
            template_service.update_template, template_id, payload.model_dump(exclude_unset=True)
        )
    except DomainException as e:
        handle_domain_exception(e)
    return EmailTemplateResponse.model_validate(template)


@router.delete("/{template_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_template(
    template_id: str, template_service: EmailTemplateService = Depends(get_email_template_service)
) -> Response:
    try:
        await asyncio.to_thread(template_service.delete_template, template_id)
    except DomainException as e:
        handle_domain_exception(e)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/{template_id}/duplicate", response_model=EmailTemplateResponse, status_code=status.HTTP_201_CREATED
)
async def duplicate_template(
    template_id: str, template_service: EmailTemplateService = Depends(get_email_template_service)
) -> EmailTemplateResponse:
    try:
        template = await asyncio.to_thread(template_service.duplicate_template, template_id)
    except DomainException as e:
        handle_domain_exception(e)
    return EmailTemplateResponse.model_validate(template)
