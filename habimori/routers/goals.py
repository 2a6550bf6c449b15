"""Goal router - API endpoints for goals and their periods."""
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from habimori.database import get_database
from habimori.dependencies import get_current_user_id, get_mutation_hub
from habimori.models.goal import Goal, GoalCreate, GoalUpdate
from habimori.models.goal_period import GoalPeriod, GoalProgress, RecalcResult
from habimori.services.goal_period_service import GoalPeriodService
from habimori.services.goal_service import GoalService
from habimori.services.mutations import MutationHub
from habimori.services.progress_service import ProgressService


router = APIRouter(prefix="/goals", tags=["goals"])


async def _recalc_or_fail(db, goal_id: str) -> RecalcResult:
    result = await GoalPeriodService(db).recalc(goal_id)
    if result.error:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=result.error)
    return result


@router.post("", response_model=Goal, status_code=status.HTTP_201_CREATED)
async def create_goal(
    goal: GoalCreate,
    user_id: str = Depends(get_current_user_id),
    db=Depends(get_database),
):
    """
    Create a new goal.

    - Context and tags must exist
    - Period rows for the whole date span are computed right away
    """
    service = GoalService(db)
    created = await service.create_goal(user_id=user_id, goal_create=goal)
    await _recalc_or_fail(db, created.id)
    return created


@router.get("", response_model=list[Goal])
async def list_goals(
    context_id: Optional[str] = Query(None),
    tag_ids: Optional[list[str]] = Query(None),
    include_archived: bool = Query(False),
    active_on: Optional[date] = Query(None, description="Only goals running on this day"),
    user_id: str = Depends(get_current_user_id),
    db=Depends(get_database),
):
    """List goals for the authenticated user."""
    service = GoalService(db)
    return await service.list_goals(
        user_id=user_id,
        context_id=context_id,
        tag_ids=tag_ids,
        include_archived=include_archived,
        active_on=active_on,
    )


@router.get("/{goal_id}", response_model=Goal)
async def get_goal(
    goal_id: str,
    user_id: str = Depends(get_current_user_id),
    db=Depends(get_database),
):
    service = GoalService(db)
    return await service.get_goal(user_id=user_id, goal_id=goal_id)


@router.patch("/{goal_id}", response_model=Goal)
async def update_goal(
    goal_id: str,
    goal_update: GoalUpdate,
    user_id: str = Depends(get_current_user_id),
    db=Depends(get_database),
):
    """
    Update a goal's title, end date or tags.

    - Changing the end date recomputes the goal's periods
    """
    service = GoalService(db)
    updated = await service.update_goal(user_id=user_id, goal_id=goal_id, goal_update=goal_update)
    if goal_update.end_date is not None:
        await _recalc_or_fail(db, goal_id)
    return updated


@router.post("/{goal_id}/archive", response_model=Goal)
async def archive_goal(
    goal_id: str,
    user_id: str = Depends(get_current_user_id),
    db=Depends(get_database),
):
    """
    Archive a goal.

    - All of its periods become archived
    """
    service = GoalService(db)
    archived = await service.archive_goal(user_id=user_id, goal_id=goal_id)
    await _recalc_or_fail(db, goal_id)
    return archived


@router.get("/{goal_id}/periods", response_model=list[GoalPeriod])
async def list_goal_periods(
    goal_id: str,
    start: Optional[date] = Query(None),
    end: Optional[date] = Query(None),
    user_id: str = Depends(get_current_user_id),
    db=Depends(get_database),
):
    """List stored period rows of a goal."""
    await GoalService(db).get_goal(user_id=user_id, goal_id=goal_id)
    return await GoalPeriodService(db).list_periods(goal_id, start=start, end=end)


@router.post("/{goal_id}/recalc", response_model=RecalcResult)
async def recalc_goal(
    goal_id: str,
    user_id: str = Depends(get_current_user_id),
    db=Depends(get_database),
):
    """Recompute every period row of a goal now."""
    await GoalService(db).get_goal(user_id=user_id, goal_id=goal_id)
    return await _recalc_or_fail(db, goal_id)


@router.get("/{goal_id}/progress", response_model=GoalProgress)
async def goal_progress(
    goal_id: str,
    on: Optional[date] = Query(None, description="Day of interest, defaults to today"),
    user_id: str = Depends(get_current_user_id),
    db=Depends(get_database),
    hub: MutationHub = Depends(get_mutation_hub),
):
    """
    Live progress in the period containing ``on``.

    - Counts a running timer up to now
    - Includes counter/check changes not yet written
    """
    service = ProgressService(db, overlay=hub.overlay)
    return await service.progress(user_id=user_id, goal_id=goal_id, on=on)
