"""Calendar service - per-day status summaries for the week/month calendar."""
import logging
from datetime import date, datetime, tzinfo
from typing import Iterable, Optional

from habimori.config import settings
from habimori.models.goal import GoalStatus
from habimori.models.stats import DayStatus
from habimori.services.goal_period_service import GoalPeriodService, PeriodKey
from habimori.services.goal_service import doc_to_goal
from habimori.utils.periods import DateLike, iso_date, range_for, to_local_date

logger = logging.getLogger(__name__)


class CalendarService:
    """Service folding goal period statuses into calendar days."""

    def __init__(self, db, tz: Optional[tzinfo] = None):
        """Initialize service with database connection."""
        self.db = db
        self.tz = tz or settings.tzinfo
        self.goals = db["goals"]
        self.periods = GoalPeriodService(db, tz=self.tz)

    async def _keys_by_day(self, user_id: str, days: list[date]) -> dict[str, set[PeriodKey]]:
        first, last = iso_date(days[0]), iso_date(days[-1])
        cursor = self.goals.find({
            "user_id": user_id,
            "is_active": True,
            "is_archived": False,
            "start_date": {"$lte": last},
            "end_date": {"$gte": first},
        })
        goals = [doc_to_goal(doc) for doc in await cursor.to_list(length=None)]

        keys_by_day: dict[str, set[PeriodKey]] = {}
        for day in days:
            for goal in goals:
                if not goal.start_date <= day <= goal.end_date:
                    continue
                period_range = range_for(goal.period, day, self.tz)
                keys_by_day.setdefault(iso_date(day), set()).add(
                    (goal.id, period_range.period_start, period_range.period_end)
                )
        return keys_by_day

    async def day_statuses(
        self,
        user_id: str,
        days: Iterable[DateLike],
        now: Optional[datetime] = None,
    ) -> dict[str, DayStatus]:
        """
        Summarize which statuses appear on each requested day.

        Every goal period covering a day contributes its status to that day.
        Periods missing from storage trigger a recalculation of their goal
        before the rows are read again.

        Args:
            user_id: User ID
            days: Calendar days (dates or instants)
            now: Reference time for any recalculation

        Returns:
            Map of ``YYYY-MM-DD`` to DayStatus; days without any goal period
            are omitted
        """
        local_days = sorted({to_local_date(day, self.tz) for day in days})
        if not local_days:
            return {}

        keys_by_day = await self._keys_by_day(user_id, local_days)
        all_keys = set().union(*keys_by_day.values()) if keys_by_day else set()
        if not all_keys:
            return {}

        periods = await self.periods.fetch_periods(all_keys)

        missing = all_keys - periods.keys()
        if missing:
            for goal_id in sorted({key[0] for key in missing}):
                result = await self.periods.recalc(goal_id, now=now)
                if result.error:
                    logger.warning("Could not fill periods for goal %s: %s", goal_id, result.error)
            periods.update(await self.periods.fetch_periods(missing))

        statuses: dict[str, DayStatus] = {}
        for label, keys in keys_by_day.items():
            summary = DayStatus()
            touched = False
            for key in keys:
                period = periods.get(key)
                if period is None or period.status == GoalStatus.ARCHIVED:
                    continue
                touched = True
                if period.status == GoalStatus.SUCCESS:
                    summary.success = True
                    summary.success_count += 1
                elif period.status == GoalStatus.IN_PROGRESS:
                    summary.in_progress = True
                    summary.in_progress_count += 1
                elif period.status == GoalStatus.FAIL:
                    summary.fail = True
                    summary.fail_count += 1
            if touched:
                statuses[label] = summary

        return statuses
