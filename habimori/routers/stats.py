"""Calendar and statistics endpoints."""
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from habimori.database import get_database
from habimori.dependencies import get_current_user_id
from habimori.models.stats import DayStatus, StatsSummary
from habimori.services.calendar_service import CalendarService
from habimori.services.stats_service import StatsService


router = APIRouter(tags=["stats"])

MAX_STATS_DAYS = 366
MAX_CALENDAR_DAYS = 62


@router.get("/calendar/day-status", response_model=dict[str, DayStatus])
async def day_status(
    days: list[date] = Query(..., description="Days to summarize"),
    user_id: str = Depends(get_current_user_id),
    db=Depends(get_database),
):
    """
    Status presence per day for the calendar.

    - Days without any goal period are left out
    """
    if len(days) > MAX_CALENDAR_DAYS:
        raise HTTPException(status_code=400, detail=f"At most {MAX_CALENDAR_DAYS} days per request")
    service = CalendarService(db)
    return await service.day_statuses(user_id=user_id, days=days)


@router.get("/stats", response_model=StatsSummary)
async def stats(
    start: date = Query(...),
    end: date = Query(...),
    context_ids: Optional[list[str]] = Query(None),
    tag_ids: Optional[list[str]] = Query(None),
    user_id: str = Depends(get_current_user_id),
    db=Depends(get_database),
):
    """
    Tracked time and goal status series for [start, end].
    """
    if end < start:
        raise HTTPException(status_code=400, detail="End date must not be before start date")
    if (end - start).days >= MAX_STATS_DAYS:
        raise HTTPException(status_code=400, detail=f"At most {MAX_STATS_DAYS} days per request")

    service = StatsService(db)
    return await service.summary(
        user_id=user_id,
        start=start,
        end=end,
        context_ids=context_ids,
        tag_ids=tag_ids,
    )
