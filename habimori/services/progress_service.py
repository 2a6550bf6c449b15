"""Progress service - live progress of a goal in its current period."""
from datetime import datetime, tzinfo
from typing import Optional

from habimori.config import settings
from habimori.models.goal import GoalType
from habimori.models.goal_period import GoalProgress
from habimori.services.goal_period_service import GoalPeriodService
from habimori.services.goal_service import GoalService
from habimori.utils.aggregation import SECONDS, actual_value
from habimori.utils.optimistic import OptimisticOverlay
from habimori.utils.periods import DateLike, range_for
from habimori.utils.status import resolve_status


class ProgressService:
    """
    Service computing display-time progress.

    Unlike the stored goal periods this view counts the running timer up to
    ``now`` and applies optimistic changes that have not reached the store.
    """

    def __init__(
        self,
        db,
        overlay: Optional[OptimisticOverlay] = None,
        tz: Optional[tzinfo] = None,
    ):
        """Initialize service with database connection."""
        self.db = db
        self.tz = tz or settings.tzinfo
        self.overlay = overlay
        self.goal_service = GoalService(db)
        self.periods = GoalPeriodService(db, tz=self.tz)

    async def progress(
        self,
        user_id: str,
        goal_id: str,
        on: Optional[DateLike] = None,
        now: Optional[datetime] = None,
    ) -> GoalProgress:
        """
        Progress of a goal in the period containing ``on``.

        Args:
            user_id: User ID
            goal_id: Goal ID
            on: Day of interest (defaults to today)
            now: Reference time

        Returns:
            GoalProgress

        Raises:
            NotFoundError: If goal not found
        """
        if now is None:
            now = datetime.now(self.tz)
        goal = await self.goal_service.get_goal(user_id, goal_id)
        period_range = range_for(goal.period, on or now, self.tz)
        events = await self.periods.load_events(goal, period_range.start, period_range.end)

        value = actual_value(
            goal.goal_type,
            events,
            period_range.start,
            period_range.end,
            now=now,
            include_running=True,
        )
        progress = GoalProgress(
            goal_id=goal.id,
            period_start=period_range.period_start,
            period_end=period_range.period_end,
            actual_value=value,
            status=resolve_status(goal, value, period_range.end, now),
        )

        if goal.goal_type == GoalType.TIME:
            progress.actual_seconds = actual_value(
                goal.goal_type,
                events,
                period_range.start,
                period_range.end,
                now=now,
                include_running=True,
                unit=SECONDS,
            )
            progress.running = any(entry.get("ended_at") is None for entry in events)

        if self.overlay is not None:
            progress.error = self.overlay.last_error(goal.id)
            if goal.goal_type == GoalType.COUNTER:
                progress.pending_delta = self.overlay.unsaved_delta(goal.id)
                value += progress.pending_delta
            elif goal.goal_type == GoalType.CHECK:
                progress.pending_state = self.overlay.pending_state(goal.id)
                if progress.pending_state is not None:
                    value = 1 if progress.pending_state else 0
            progress.actual_value = value
            progress.status = resolve_status(goal, value, period_range.end, now)

        return progress
