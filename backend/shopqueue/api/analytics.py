from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from shopqueue.api.dependencies.services import get_analytics_service
from shopqueue.schemas.analytics import (
    AnalyticsSnapshot,
    QueueAnalyticsSummary,
    QueuePeakHoursAnalytics,
    QueueServiceAnalytics,
    QueueTimeAnalytics,
)
from shopqueue.services.analytics_service import QueueAnalyticsService

router = APIRouter()


class AnalyticsQuery:
    def __init__(
        self,
        date_from: str = Query(..., description="ISO-8601 date or datetime"),
        date_to: str = Query(..., description="ISO-8601 date or datetime"),
        employee_id: Optional[str] = None,
        service_id: Optional[str] = None,
    ):
        self.date_from = date_from
        self.date_to = date_to
        self.employee_id = employee_id
        self.service_id = service_id


@router.get("/", response_model=AnalyticsSnapshot)
async def get_analytics_snapshot(
    shop_id: str,
    query: AnalyticsQuery = Depends(),
    analytics_service: QueueAnalyticsService = Depends(get_analytics_service),
):
    return await analytics_service.get_snapshot(
        shop_id, query.date_from, query.date_to, query.employee_id, query.service_id
    )


@router.get("/summary", response_model=QueueAnalyticsSummary)
async def get_analytics_summary(
    shop_id: str,
    query: AnalyticsQuery = Depends(),
    analytics_service: QueueAnalyticsService = Depends(get_analytics_service),
):
    return await analytics_service.get_summary(
        shop_id, query.date_from, query.date_to, query.employee_id, query.service_id
    )


@router.get("/time", response_model=QueueTimeAnalytics)
async def get_time_analytics(
    shop_id: str,
    query: AnalyticsQuery = Depends(),
    analytics_service: QueueAnalyticsService = Depends(get_analytics_service),
):
    return await analytics_service.get_time_analytics(
        shop_id, query.date_from, query.date_to, query.employee_id, query.service_id
    )


@router.get("/peak-hours", response_model=QueuePeakHoursAnalytics)
async def get_peak_hours(
    shop_id: str,
    query: AnalyticsQuery = Depends(),
    analytics_service: QueueAnalyticsService = Depends(get_analytics_service),
):
    return await analytics_service.get_peak_hours(
        shop_id, query.date_from, query.date_to, query.employee_id, query.service_id
    )


@router.get("/services", response_model=QueueServiceAnalytics)
async def get_service_analytics(
    shop_id: str,
    query: AnalyticsQuery = Depends(),
    analytics_service: QueueAnalyticsService = Depends(get_analytics_service),
):
    return await analytics_service.get_service_analytics(
        shop_id, query.date_from, query.date_to, query.employee_id, query.service_id
    )


@router.delete("/cache", status_code=status.HTTP_204_NO_CONTENT)
async def invalidate_analytics_cache(
    shop_id: str,
    analytics_service: QueueAnalyticsService = Depends(get_analytics_service),
):
    """
    Drops the shop's cached snapshot so the next request recomputes.
    """
    await analytics_service.invalidate(shop_id)
