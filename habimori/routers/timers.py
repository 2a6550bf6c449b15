"""Timer endpoints - time tracking operations."""
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field, field_validator

from habimori.config import settings
from habimori.database import get_database
from habimori.dependencies import get_current_user_id, get_mutation_hub
from habimori.models.time_entry import TimeEntry, TimeEntryCreate, TimeEntryUpdate
from habimori.services.mutations import MutationHub
from habimori.services.timer_service import TimerService
from habimori.utils.periods import assume_local


router = APIRouter(prefix="/timers", tags=["timers"])


class TimerStart(BaseModel):
    """Request model for starting a timer."""

    context_id: str
    goal_id: Optional[str] = None
    tag_ids: list[str] = Field(default_factory=list)
    started_at: Optional[datetime] = None

    @field_validator("started_at")
    @classmethod
    def _assume_local(cls, v: Optional[datetime]) -> Optional[datetime]:
        return assume_local(v, settings.tzinfo)


class TimerStop(BaseModel):
    """Request model for stopping a timer."""

    ended_at: Optional[datetime] = None

    @field_validator("ended_at")
    @classmethod
    def _assume_local(cls, v: Optional[datetime]) -> Optional[datetime]:
        return assume_local(v, settings.tzinfo)


@router.post("/start", response_model=TimeEntry)
async def start_timer(
    timer_start: TimerStart,
    user_id: str = Depends(get_current_user_id),
    db=Depends(get_database),
    hub: MutationHub = Depends(get_mutation_hub),
):
    """
    Start a new timer.

    - Only one timer can run at a time (409 timerAlreadyRunning)
    - Context (and goal, if given) must exist
    """
    service = TimerService(db, scheduler=hub)
    return await service.start_timer(
        user_id=user_id,
        context_id=timer_start.context_id,
        goal_id=timer_start.goal_id,
        tag_ids=timer_start.tag_ids,
        started_at=timer_start.started_at,
    )


@router.post("/stop", response_model=TimeEntry)
async def stop_timer(
    timer_stop: Optional[TimerStop] = None,
    user_id: str = Depends(get_current_user_id),
    db=Depends(get_database),
    hub: MutationHub = Depends(get_mutation_hub),
):
    """
    Stop the currently running timer.

    - 409 timerAlreadyStopped if nothing is running
    """
    service = TimerService(db, scheduler=hub)
    return await service.stop_timer(
        user_id=user_id,
        ended_at=timer_stop.ended_at if timer_stop else None,
    )


@router.get("/current", response_model=TimeEntry)
async def get_current_timer(
    user_id: str = Depends(get_current_user_id),
    db=Depends(get_database),
):
    """
    Get the currently running timer.

    - Returns 404 if no timer is running
    """
    service = TimerService(db)
    entry = await service.get_current_timer(user_id=user_id)

    if not entry:
        raise HTTPException(status_code=404, detail="No timer running")

    return entry


@router.get("", response_model=list[TimeEntry])
async def list_entries(
    goal_id: Optional[str] = Query(None),
    context_id: Optional[str] = Query(None),
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    user_id: str = Depends(get_current_user_id),
    db=Depends(get_database),
):
    """
    List time entries, most recent first.
    """
    service = TimerService(db)
    return await service.list_entries(
        user_id=user_id,
        goal_id=goal_id,
        context_id=context_id,
        start=start,
        end=end,
    )


@router.post("", response_model=TimeEntry)
async def create_entry(
    entry_create: TimeEntryCreate,
    user_id: str = Depends(get_current_user_id),
    db=Depends(get_database),
    hub: MutationHub = Depends(get_mutation_hub),
):
    """
    Create a manual time entry.

    - End time must be after start time
    """
    service = TimerService(db, scheduler=hub)
    return await service.create_entry(user_id=user_id, entry_create=entry_create)


@router.get("/{entry_id}", response_model=TimeEntry)
async def get_entry(
    entry_id: str,
    user_id: str = Depends(get_current_user_id),
    db=Depends(get_database),
):
    service = TimerService(db)
    return await service.get_entry(user_id=user_id, entry_id=entry_id)


@router.patch("/{entry_id}", response_model=TimeEntry)
async def update_entry(
    entry_id: str,
    entry_update: TimeEntryUpdate,
    user_id: str = Depends(get_current_user_id),
    db=Depends(get_database),
    hub: MutationHub = Depends(get_mutation_hub),
):
    """
    Adjust a time entry's start/end or tags.
    """
    service = TimerService(db, scheduler=hub)
    return await service.update_entry(
        user_id=user_id,
        entry_id=entry_id,
        entry_update=entry_update,
    )


@router.delete("/{entry_id}")
async def delete_entry(
    entry_id: str,
    user_id: str = Depends(get_current_user_id),
    db=Depends(get_database),
    hub: MutationHub = Depends(get_mutation_hub),
):
    """
    Delete a time entry (permanent).
    """
    service = TimerService(db, scheduler=hub)
    return await service.delete_entry(user_id=user_id, entry_id=entry_id)
