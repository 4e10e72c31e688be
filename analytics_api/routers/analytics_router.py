from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status

from ..config import settings
from ..dependencies import get_analytics_service, get_current_app
from ..limiter import limiter
from ..schemas.analytics import SummaryFilters, UserStatsFilters
from ..schemas.event import EventCreate
from ..services.analytics_service import AnalyticsService

router = APIRouter(prefix="/api/analytics", tags=["analytics"])


@router.post("/collect", status_code=status.HTTP_201_CREATED)
@limiter.limit(settings.ANALYTICS_RATE_LIMIT)
async def collect_event(
    event: EventCreate,
    request: Request,
    app: dict = Depends(get_current_app),
    service: AnalyticsService = Depends(get_analytics_service)
):
    """
    Track an analytics event for the calling app
    """
    await service.collect_event(app["id"], event)
    return {"success": True, "message": "Event collected successfully"}


@router.get("/event-summary")
async def get_event_summary(
    event: Optional[str] = Query(None, max_length=100),
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    app: dict = Depends(get_current_app),
    service: AnalyticsService = Depends(get_analytics_service)
):
    """Per-event counts, unique users and device breakdown"""
    filters = SummaryFilters(event=event, start_date=start_date, end_date=end_date)
    summary, cached = await service.get_event_summary(app["id"], filters)
    return {"success": True, "data": summary, "cached": cached}


@router.get("/user-stats")
async def get_user_stats(
    user_id: str = Query(..., alias="userId", min_length=1, max_length=255),
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    app: dict = Depends(get_current_app),
    service: AnalyticsService = Depends(get_analytics_service)
):
    """Event totals and the ten most recent events for one user"""
    filters = UserStatsFilters(start_date=start_date, end_date=end_date)
    stats, cached = await service.get_user_stats(app["id"], user_id, filters)
    return {"success": True, "data": stats, "cached": cached}
