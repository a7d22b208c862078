# backend/coworking/routes/admin/analytics.py
"""Admin analytics and dashboard figures."""

import asyncio
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query

from ...api.dependencies import get_analytics_service, require_admin
from ...core.exceptions import DomainException
from ...errors import handle_domain_exception
from ...models.user import User
from ...schemas.admin import AdminDashboardStats, AnalyticsResponse
from ...services.analytics_service import AnalyticsService

router = APIRouter(tags=["admin-analytics"])


@router.get("/analytics", response_model=AnalyticsResponse)
async def get_analytics(
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    _: User = Depends(require_admin),
    analytics_service: AnalyticsService = Depends(get_analytics_service),
) -> AnalyticsResponse:
    try:
        result = await asyncio.to_thread(analytics_service.get_analytics, start_date, end_date)
        return AnalyticsResponse(**result)
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/dashboard/stats", response_model=AdminDashboardStats)
async def dashboard_stats(
    _: User = Depends(require_admin),
    analytics_service: AnalyticsService = Depends(get_analytics_service),
) -> AdminDashboardStats:
    stats = await asyncio.to_thread(analytics_service.get_dashboard_stats)
    return AdminDashboardStats(**stats)
