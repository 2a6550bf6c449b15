"""Counter and check endpoints."""
from fastapi import APIRouter, Depends, status

from habimori.database import get_database
from habimori.dependencies import get_current_user_id, get_mutation_hub
from habimori.models.check_event import CheckEvent, CheckToggle, CheckToggleResult
from habimori.models.counter_event import CounterEvent, CounterIncrement, CounterIncrementResult
from habimori.services.goal_service import GoalService
from habimori.services.mutations import (
    CheckMutationHandler,
    CounterMutationHandler,
    MutationHub,
)


counters_router = APIRouter(prefix="/counters", tags=["counters"])
checks_router = APIRouter(prefix="/checks", tags=["checks"])


@counters_router.post(
    "/{goal_id}/increment",
    response_model=CounterIncrementResult,
    status_code=status.HTTP_202_ACCEPTED,
)
async def increment_counter(
    goal_id: str,
    payload: CounterIncrement,
    user_id: str = Depends(get_current_user_id),
    db=Depends(get_database),
    hub: MutationHub = Depends(get_mutation_hub),
):
    """
    Add to a counter goal.

    - Applied immediately to progress; written shortly after, coalesced
      with other increments of the same goal
    """
    goal = await GoalService(db).get_goal(user_id=user_id, goal_id=goal_id)
    handler = CounterMutationHandler(hub)
    return handler.increment(
        user_id=user_id,
        goal=goal,
        delta=payload.delta,
        occurred_at=payload.occurred_at,
    )


@counters_router.get("/{goal_id}/events", response_model=list[CounterEvent])
async def list_counter_events(
    goal_id: str,
    user_id: str = Depends(get_current_user_id),
    db=Depends(get_database),
    hub: MutationHub = Depends(get_mutation_hub),
):
    """List the stored events of a counter goal, newest first."""
    await GoalService(db).get_goal(user_id=user_id, goal_id=goal_id)
    return await CounterMutationHandler(hub).list_events(user_id=user_id, goal_id=goal_id)


@counters_router.delete("/events/{event_id}")
async def delete_counter_event(
    event_id: str,
    user_id: str = Depends(get_current_user_id),
    hub: MutationHub = Depends(get_mutation_hub),
):
    handler = CounterMutationHandler(hub)
    return await handler.delete_event(user_id=user_id, event_id=event_id)


@checks_router.post("/{goal_id}/toggle", response_model=CheckToggleResult)
async def toggle_check(
    goal_id: str,
    payload: CheckToggle,
    user_id: str = Depends(get_current_user_id),
    db=Depends(get_database),
    hub: MutationHub = Depends(get_mutation_hub),
):
    """
    Set or flip a check goal for the current period.
    """
    goal = await GoalService(db).get_goal(user_id=user_id, goal_id=goal_id)
    handler = CheckMutationHandler(hub)
    return await handler.toggle(
        user_id=user_id,
        goal=goal,
        state=payload.state,
        occurred_at=payload.occurred_at,
    )


@checks_router.get("/{goal_id}/events", response_model=list[CheckEvent])
async def list_check_events(
    goal_id: str,
    user_id: str = Depends(get_current_user_id),
    db=Depends(get_database),
    hub: MutationHub = Depends(get_mutation_hub),
):
    """List the stored events of a check goal, newest first."""
    await GoalService(db).get_goal(user_id=user_id, goal_id=goal_id)
    return await CheckMutationHandler(hub).list_events(user_id=user_id, goal_id=goal_id)


@checks_router.delete("/events/{event_id}")
async def delete_check_event(
    event_id: str,
    user_id: str = Depends(get_current_user_id),
    hub: MutationHub = Depends(get_mutation_hub),
):
    handler = CheckMutationHandler(hub)
    return await handler.delete_event(user_id=user_id, event_id=event_id)
