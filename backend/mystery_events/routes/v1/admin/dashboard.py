# backend/mystery_events/routes/v1/admin/dashboard.py
"""
Admin dashboard - API v1

Endpoints:
    GET /stats - Revenue, booking and voucher totals
"""

import asyncio

from fastapi import APIRouter, Depends

from ....api.dependencies import require_admin
from ....api.dependencies.services import get_dashboard_service
from ....schemas.dashboard import DashboardStatsResponse
from ....services.dashboard_service import DashboardService

router = APIRouter(tags=["admin-dashboard"], dependencies=[Depends(require_admin)])


@router.get("/stats", response_model=DashboardStatsResponse)
async def dashboard_stats(
    dashboard_service: DashboardService = Depends(get_dashboard_service),
) -> DashboardStatsResponse:
    stats = await asyncio.to_thread(dashboard_service.get_stats)
    return DashboardStatsResponse.model_validate(stats)
