"""Goal period service - recalculation of the materialized goal_periods rows.

This service is the only writer of ``goal_periods``. Every row is derived
from the goal and its raw events, so recalculating is always safe: rows are
upserted on (goal_id, period_start, period_end) and the last write wins.
"""
import logging
from datetime import date, datetime, tzinfo
from typing import Iterable, Optional

from pymongo import UpdateOne
from pymongo.errors import PyMongoError

from habimori.config import settings
from habimori.errors import NotFoundError, TransientIOError
from habimori.models.goal import Goal, GoalType
from habimori.models.goal_period import GoalPeriod, RecalcResult
from habimori.services.goal_service import doc_to_goal
from habimori.utils.aggregation import actual_value
from habimori.utils.ids import parse_object_id
from habimori.utils.periods import PeriodRange, list_ranges
from habimori.utils.status import resolve_status

logger = logging.getLogger(__name__)

PeriodKey = tuple[str, str, str]

EVENT_COLLECTIONS = {
    GoalType.TIME: "time_entries",
    GoalType.COUNTER: "counter_events",
    GoalType.CHECK: "check_events",
}


def doc_to_period(doc: dict) -> GoalPeriod:
    return GoalPeriod(
        goal_id=doc["goal_id"],
        period_start=doc["period_start"],
        period_end=doc["period_end"],
        actual_value=doc["actual_value"],
        status=doc["status"],
        calculated_at=doc["calculated_at"],
    )


def event_query(goal: Goal, start: datetime, end: datetime) -> dict:
    """
    Filter selecting the goal's raw events that can touch [start, end).

    Time entries overlap when they start before the end and are either
    still running or end at or after the start.
    """
    if goal.goal_type == GoalType.TIME:
        return {
            "goal_id": goal.id,
            "started_at": {"$lt": end},
            "$or": [
                {"ended_at": None},
                {"ended_at": {"$gte": start}},
            ],
        }
    return {
        "goal_id": goal.id,
        "occurred_at": {"$gte": start, "$lt": end},
    }


class GoalPeriodService:
    """Service computing and storing per-period goal statuses."""

    def __init__(self, db, tz: Optional[tzinfo] = None):
        """Initialize service with database connection."""
        self.db = db
        self.tz = tz or settings.tzinfo
        self.goals = db["goals"]
        self.goal_periods = db["goal_periods"]

    async def _load_goal(self, goal_id: str) -> Goal:
        goal_doc = await self.goals.find_one({"_id": parse_object_id(goal_id, "Goal")})
        if not goal_doc:
            raise NotFoundError("Goal not found")
        return doc_to_goal(goal_doc)

    async def load_events(self, goal: Goal, start: datetime, end: datetime) -> list[dict]:
        """Fetch the raw events of the goal's type that can touch [start, end)."""
        collection = self.db[EVENT_COLLECTIONS[goal.goal_type]]
        cursor = collection.find(event_query(goal, start, end))
        return await cursor.to_list(length=None)

    def build_row(
        self,
        goal: Goal,
        period_range: PeriodRange,
        events: list[dict],
        now: datetime,
    ) -> dict:
        """
        Compute the goal period row for one range.

        Running time entries are left out: a stored value must not depend on
        when the recalculation happened to run.
        """
        value = actual_value(
            goal.goal_type,
            events,
            period_range.start,
            period_range.end,
            now=now,
            include_running=False,
        )
        status = resolve_status(goal, value, period_range.end, now)
        return {
            "goal_id": goal.id,
            "period_start": period_range.period_start,
            "period_end": period_range.period_end,
            "actual_value": value,
            "status": status.value,
            "calculated_at": now,
        }

    async def _upsert(self, rows: list[dict]) -> None:
        operations = [
            UpdateOne(
                {
                    "goal_id": row["goal_id"],
                    "period_start": row["period_start"],
                    "period_end": row["period_end"],
                },
                {"$set": row},
                upsert=True,
            )
            for row in rows
        ]
        await self.goal_periods.bulk_write(operations, ordered=False)

    async def _prune(self, goal_id: str, first: PeriodRange, last: PeriodRange) -> None:
        # Rows left over from before the goal's end date was moved earlier
        await self.goal_periods.delete_many({
            "goal_id": goal_id,
            "$or": [
                {"period_start": {"$lt": first.period_start}},
                {"period_start": {"$gt": last.period_start}},
            ],
        })

    async def recalc(
        self,
        goal_id: str,
        now: Optional[datetime] = None,
    ) -> RecalcResult:
        """
        Recompute and upsert every period row of a goal.

        All rows are resolved against the same ``now``, so a past period that
        was still in progress at the previous run only becomes success or
        fail when the goal is recalculated again.

        Args:
            goal_id: Goal ID
            now: Reference time (defaults to the current time)

        Returns:
            RecalcResult; ``error`` carries the failure message, if any
        """
        if now is None:
            now = datetime.now(self.tz)

        try:
            goal = await self._load_goal(goal_id)
            ranges = list_ranges(goal.period, goal.start_date, goal.end_date, self.tz)
            if not ranges:
                return RecalcResult(goal_id=goal_id)

            events = await self.load_events(goal, ranges[0].start, ranges[-1].end)
            rows = [self.build_row(goal, period_range, events, now) for period_range in ranges]
            await self._upsert(rows)
            await self._prune(goal.id, ranges[0], ranges[-1])
        except NotFoundError as e:
            logger.warning("Recalculation skipped for goal %s: %s", goal_id, e)
            return RecalcResult(goal_id=goal_id, error=str(e))
        except PyMongoError as e:
            error = TransientIOError.from_pymongo(e)
            logger.error("Recalculation failed for goal %s: %s", goal_id, error)
            return RecalcResult(goal_id=goal_id, error=str(error))

        logger.debug("Recalculated %d periods for goal %s", len(rows), goal_id)
        return RecalcResult(goal_id=goal_id, periods_written=len(rows))

    async def list_periods(
        self,
        goal_id: str,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> list[GoalPeriod]:
        """
        List stored period rows of a goal, oldest first.

        Args:
            goal_id: Goal ID
            start: Only periods ending on or after this day
            end: Only periods starting on or before this day
        """
        query = {"goal_id": goal_id}
        if start:
            query["period_end"] = {"$gte": start.isoformat()}
        if end:
            query["period_start"] = {"$lte": end.isoformat()}

        cursor = self.goal_periods.find(query).sort("period_start", 1)
        docs = await cursor.to_list(length=None)
        return [doc_to_period(doc) for doc in docs]

    async def fetch_periods(self, keys: Iterable[PeriodKey]) -> dict[PeriodKey, GoalPeriod]:
        """Batch-read period rows by (goal_id, period_start, period_end)."""
        keys = sorted(set(keys))
        if not keys:
            return {}

        query = {
            "$or": [
                {"goal_id": goal_id, "period_start": start, "period_end": end}
                for goal_id, start, end in keys
            ]
        }
        docs = await self.goal_periods.find(query).to_list(length=None)
        periods = [doc_to_period(doc) for doc in docs]
        return {period.key: period for period in periods}
