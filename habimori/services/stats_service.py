"""Statistics service - tracked time and status series over a date range."""
from datetime import date, datetime, timedelta, tzinfo
from typing import Optional

from habimori.config import settings
from habimori.models.stats import StatsSummary, StatusSeries
from habimori.utils.aggregation import entry_overlap_seconds, round_half_up
from habimori.utils.buckets import DayTotal, bucket_day_totals
from habimori.utils.periods import iso_date, list_days, local_midnight


class StatsService:
    """Service building the statistics page data."""

    def __init__(self, db, tz: Optional[tzinfo] = None, max_buckets: Optional[int] = None):
        """Initialize service with database connection."""
        self.db = db
        self.tz = tz or settings.tzinfo
        self.max_buckets = max_buckets or settings.max_chart_buckets
        self.goals = db["goals"]
        self.goal_periods = db["goal_periods"]
        self.time_entries = db["time_entries"]

    async def _status_series(
        self,
        user_id: str,
        labels: list[str],
        context_ids: list[str],
        tag_ids: list[str],
    ) -> StatusSeries:
        goal_query = {"user_id": user_id, "is_archived": False}
        if context_ids:
            goal_query["context_id"] = {"$in": context_ids}
        if tag_ids:
            goal_query["tag_ids"] = {"$in": tag_ids}

        goal_docs = await self.goals.find(goal_query, {"_id": 1}).to_list(length=None)
        goal_ids = [str(doc["_id"]) for doc in goal_docs]

        counts = {label: {"success": 0, "fail": 0, "in_progress": 0} for label in labels}
        if goal_ids:
            cursor = self.goal_periods.find({
                "goal_id": {"$in": goal_ids},
                "period_start": {"$gte": labels[0], "$lte": labels[-1]},
            })
            for period in await cursor.to_list(length=None):
                day_counts = counts.get(period["period_start"])
                if day_counts is not None and period["status"] in day_counts:
                    day_counts[period["status"]] += 1

        return StatusSeries(
            success=[counts[label]["success"] for label in labels],
            fail=[counts[label]["fail"] for label in labels],
            in_progress=[counts[label]["in_progress"] for label in labels],
        )

    async def _day_totals(
        self,
        user_id: str,
        days: list[date],
        context_ids: list[str],
        tag_ids: list[str],
        now: datetime,
    ) -> list[DayTotal]:
        range_start = local_midnight(days[0], self.tz)
        range_end = local_midnight(days[-1] + timedelta(days=1), self.tz)

        query = {
            "user_id": user_id,
            "started_at": {"$lt": range_end},
            "$or": [
                {"ended_at": None},
                {"ended_at": {"$gte": range_start}},
            ],
        }
        if context_ids:
            query["context_id"] = {"$in": context_ids}
        if tag_ids:
            query["tag_ids"] = {"$in": tag_ids}

        entries = await self.time_entries.find(query).to_list(length=None)

        totals = []
        for day in days:
            start = local_midnight(day, self.tz)
            end = local_midnight(day + timedelta(days=1), self.tz)
            item = DayTotal(day=day, total=0.0)
            for entry in entries:
                minutes = entry_overlap_seconds(entry, start, end, now) / 60
                if minutes <= 0:
                    continue
                item.total += minutes
                context_id = entry.get("context_id")
                if context_id:
                    item.contexts[context_id] = item.contexts.get(context_id, 0.0) + minutes
                for tag_id in entry.get("tag_ids", []):
                    item.tags[tag_id] = item.tags.get(tag_id, 0.0) + minutes
            totals.append(item)
        return totals

    async def summary(
        self,
        user_id: str,
        start: date,
        end: date,
        context_ids: Optional[list[str]] = None,
        tag_ids: Optional[list[str]] = None,
        now: Optional[datetime] = None,
    ) -> StatsSummary:
        """
        Build statistics for [start, end].

        Running timers count up to ``now``. Chart buckets escalate from days
        to weeks to months so their number stays bounded.

        Args:
            user_id: User ID
            start: First day
            end: Last day (inclusive)
            context_ids: Optional context filter
            tag_ids: Optional tag filter
            now: Reference time

        Returns:
            StatsSummary
        """
        if now is None:
            now = datetime.now(self.tz)
        context_ids = context_ids or []
        tag_ids = tag_ids or []

        days = list_days(start, end)
        labels = [iso_date(day) for day in days]
        if not days:
            return StatsSummary(
                dates=[],
                status_series=StatusSeries(),
                total_tracked_minutes=0,
                time_buckets=[],
            )

        status_series = await self._status_series(user_id, labels, context_ids, tag_ids)
        day_totals = await self._day_totals(user_id, days, context_ids, tag_ids, now)
        buckets = bucket_day_totals(day_totals, max_buckets=self.max_buckets)

        context_totals: dict[str, int] = {}
        tag_totals: dict[str, int] = {}
        for bucket in buckets:
            for context_id, value in bucket.contexts.items():
                context_totals[context_id] = context_totals.get(context_id, 0) + value
            for tag_id, value in bucket.tags.items():
                tag_totals[tag_id] = tag_totals.get(tag_id, 0) + value

        return StatsSummary(
            dates=labels,
            status_series=status_series,
            total_tracked_minutes=round_half_up(sum(item.total for item in day_totals)),
            time_buckets=buckets,
            context_totals={k: v for k, v in context_totals.items() if v > 0},
            tag_totals={k: v for k, v in tag_totals.items() if v > 0},
        )
