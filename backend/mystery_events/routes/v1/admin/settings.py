# backend/mystery_events/routes/v1/admin/settings.py
"""
Admin key/value settings - API v1

Endpoints:
    GET / - All settings grouped by category, defaults included
    PUT / - Upsert one or more settings
"""

import asyncio

from fastapi import APIRouter, Body, Depends

from ....api.dependencies import require_admin
from ....api.dependencies.services import get_setting_service
from ....core.exceptions import DomainException
from ....schemas.setting import SettingsResponse, SettingsUpdate
from ....services.setting_service import SettingService
from ..common import handle_domain_exception

router = APIRouter(tags=["admin-settings"], dependencies=[Depends(require_admin)])


@router.get("", response_model=SettingsResponse)
async def get_settings(setting_service: SettingService = Depends(get_setting_service)) -> SettingsResponse:
    grouped = await asyncio.to_thread(setting_service.get_all)
    return SettingsResponse(settings=grouped)


@router.put("", response_model=SettingsResponse)
async def update_settings(
    payload: SettingsUpdate = Body(...),
    setting_service: SettingService = Depends(get_setting_service),
) -> SettingsResponse:
    try:
        grouped = await asyncio.to_thread(setting_service.update, payload.values)
    except DomainException as e:
        handle_domain_exception(e)
    return SettingsResponse(settings=grouped)
