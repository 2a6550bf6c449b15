"""Tests for GoalPeriodService."""
from datetime import date, datetime, timezone

import pytest
from bson import ObjectId
from pymongo.errors import AutoReconnect

UTC = timezone.utc
NOW = datetime(2024, 1, 17, 12, tzinfo=UTC)


def goal_doc(goal_id: ObjectId, **overrides) -> dict:
    doc = {
        "_id": goal_id,
        "user_id": "user123",
        "title": "Deep work",
        "goal_type": "time",
        "period": "week",
        "target_value": 300,
        "target_op": "gte",
        "start_date": "2024-01-08",
        "end_date": "2024-01-21",
        "context_id": "ctx1",
        "tag_ids": [],
        "is_active": True,
        "is_archived": False,
        "created_at": NOW,
        "updated_at": NOW,
    }
    doc.update(overrides)
    return doc


def upserted_rows(mock_db) -> list[dict]:
    operations = mock_db["goal_periods"].bulk_write.call_args[0][0]
    return [operation._doc["$set"] for operation in operations]


@pytest.mark.asyncio
class TestRecalc:
    """Tests for recalculating goal periods."""

    async def test_weekly_time_goal(self, mock_db, cursor):
        """150 of 300 minutes on Wednesday: current week in progress, last week failed."""
        from habimori.services.goal_period_service import GoalPeriodService

        goal_id = ObjectId()
        mock_db["goals"].find_one.return_value = goal_doc(goal_id)
        mock_db["time_entries"].find.return_value = cursor([
            {
                "goal_id": str(goal_id),
                "started_at": datetime(2024, 1, 15, 9, tzinfo=UTC),
                "ended_at": datetime(2024, 1, 15, 10, 30, tzinfo=UTC),
            },
            {
                "goal_id": str(goal_id),
                "started_at": datetime(2024, 1, 17, 8, tzinfo=UTC),
                "ended_at": datetime(2024, 1, 17, 9, tzinfo=UTC),
            },
        ])

        service = GoalPeriodService(mock_db, tz=UTC)
        result = await service.recalc(str(goal_id), now=NOW)

        assert result.ok
        assert result.periods_written == 2

        rows = upserted_rows(mock_db)
        assert [(r["period_start"], r["period_end"]) for r in rows] == [
            ("2024-01-08", "2024-01-14"),
            ("2024-01-15", "2024-01-21"),
        ]
        assert rows[0]["actual_value"] == 0
        assert rows[0]["status"] == "fail"
        assert rows[1]["actual_value"] == 150
        assert rows[1]["status"] == "in_progress"
        assert all(r["calculated_at"] == NOW for r in rows)

    async def test_running_entry_not_persisted(self, mock_db, cursor):
        from habimori.services.goal_period_service import GoalPeriodService

        goal_id = ObjectId()
        mock_db["goals"].find_one.return_value = goal_doc(
            goal_id, period="day", start_date="2024-01-17", end_date="2024-01-17"
        )
        mock_db["time_entries"].find.return_value = cursor([
            {
                "goal_id": str(goal_id),
                "started_at": datetime(2024, 1, 17, 10, tzinfo=UTC),
                "ended_at": None,
            },
        ])

        service = GoalPeriodService(mock_db, tz=UTC)
        await service.recalc(str(goal_id), now=NOW)

        assert upserted_rows(mock_db)[0]["actual_value"] == 0

    async def test_upserts_on_natural_key(self, mock_db, cursor):
        """Recalculating twice writes the same rows to the same keys."""
        from habimori.services.goal_period_service import GoalPeriodService

        goal_id = ObjectId()
        mock_db["goals"].find_one.return_value = goal_doc(goal_id)
        mock_db["time_entries"].find.return_value = cursor([
            {
                "goal_id": str(goal_id),
                "started_at": datetime(2024, 1, 10, 9, tzinfo=UTC),
                "ended_at": datetime(2024, 1, 10, 11, tzinfo=UTC),
            },
            {
                "goal_id": str(goal_id),
                "started_at": datetime(2024, 1, 16, 9, tzinfo=UTC),
                "ended_at": datetime(2024, 1, 16, 9, 45, tzinfo=UTC),
            },
        ])

        service = GoalPeriodService(mock_db, tz=UTC)
        await service.recalc(str(goal_id), now=NOW)
        first = mock_db["goal_periods"].bulk_write.call_args[0][0]
        await service.recalc(str(goal_id), now=NOW.replace(hour=13))
        second = mock_db["goal_periods"].bulk_write.call_args[0][0]

        assert [op._filter for op in first] == [op._filter for op in second]
        assert first[0]._filter == {
            "goal_id": str(goal_id),
            "period_start": "2024-01-08",
            "period_end": "2024-01-14",
        }
        assert all(op._upsert for op in first)

        def without_timestamp(operations):
            return [
                {k: v for k, v in op._doc["$set"].items() if k != "calculated_at"}
                for op in operations
            ]

        assert without_timestamp(first) == without_timestamp(second)
        assert [(r["actual_value"], r["status"]) for r in without_timestamp(second)] == [
            (120, "fail"),
            (45, "in_progress"),
        ]

    async def test_archived_goal(self, mock_db):
        from habimori.services.goal_period_service import GoalPeriodService

        goal_id = ObjectId()
        mock_db["goals"].find_one.return_value = goal_doc(goal_id, is_archived=True)

        service = GoalPeriodService(mock_db, tz=UTC)
        await service.recalc(str(goal_id), now=NOW)

        assert {r["status"] for r in upserted_rows(mock_db)} == {"archived"}

    async def test_counter_goal_reads_counter_events(self, mock_db, cursor):
        from habimori.services.goal_period_service import GoalPeriodService

        goal_id = ObjectId()
        mock_db["goals"].find_one.return_value = goal_doc(
            goal_id,
            goal_type="counter",
            period="day",
            target_value=3,
            start_date="2024-01-17",
            end_date="2024-01-17",
        )
        mock_db["counter_events"].find.return_value = cursor([
            {"occurred_at": datetime(2024, 1, 17, 8, tzinfo=UTC), "value_delta": 3},
        ])

        service = GoalPeriodService(mock_db, tz=UTC)
        await service.recalc(str(goal_id), now=NOW)

        query = mock_db["counter_events"].find.call_args[0][0]
        assert query["goal_id"] == str(goal_id)
        assert upserted_rows(mock_db)[0]["status"] == "success"

    async def test_prunes_rows_outside_span(self, mock_db):
        from habimori.services.goal_period_service import GoalPeriodService

        goal_id = ObjectId()
        mock_db["goals"].find_one.return_value = goal_doc(goal_id)

        service = GoalPeriodService(mock_db, tz=UTC)
        await service.recalc(str(goal_id), now=NOW)

        prune_filter = mock_db["goal_periods"].delete_many.call_args[0][0]
        assert prune_filter == {
            "goal_id": str(goal_id),
            "$or": [
                {"period_start": {"$lt": "2024-01-08"}},
                {"period_start": {"$gt": "2024-01-15"}},
            ],
        }

    async def test_missing_goal_reports_error(self, mock_db):
        from habimori.services.goal_period_service import GoalPeriodService

        service = GoalPeriodService(mock_db, tz=UTC)
        result = await service.recalc(str(ObjectId()), now=NOW)

        assert not result.ok
        assert result.error == "Goal not found"
        mock_db["goal_periods"].bulk_write.assert_not_called()

    async def test_write_failure_reports_error(self, mock_db):
        from habimori.services.goal_period_service import GoalPeriodService

        goal_id = ObjectId()
        mock_db["goals"].find_one.return_value = goal_doc(goal_id)
        mock_db["goal_periods"].bulk_write.side_effect = AutoReconnect("connection lost")

        service = GoalPeriodService(mock_db, tz=UTC)
        result = await service.recalc(str(goal_id), now=NOW)

        assert result.error == "connection lost"
        assert result.periods_written == 0


@pytest.mark.asyncio
class TestPeriodQueries:
    """Tests for reading stored periods."""

    async def test_list_periods_filters_by_labels(self, mock_db, cursor):
        from habimori.services.goal_period_service import GoalPeriodService

        mock_db["goal_periods"].find.return_value = cursor([
            {
                "goal_id": "g1",
                "period_start": "2024-01-15",
                "period_end": "2024-01-21",
                "actual_value": 150,
                "status": "in_progress",
                "calculated_at": NOW,
            },
        ])

        service = GoalPeriodService(mock_db, tz=UTC)
        periods = await service.list_periods("g1", start=date(2024, 1, 15), end=date(2024, 1, 31))

        assert periods[0].status == "in_progress"
        query = mock_db["goal_periods"].find.call_args[0][0]
        assert query == {
            "goal_id": "g1",
            "period_end": {"$gte": "2024-01-15"},
            "period_start": {"$lte": "2024-01-31"},
        }

    async def test_fetch_periods_keys_result(self, mock_db, cursor):
        from habimori.services.goal_period_service import GoalPeriodService

        mock_db["goal_periods"].find.return_value = cursor([
            {
                "goal_id": "g1",
                "period_start": "2024-01-17",
                "period_end": "2024-01-17",
                "actual_value": 1,
                "status": "success",
                "calculated_at": NOW,
            },
        ])

        service = GoalPeriodService(mock_db, tz=UTC)
        periods = await service.fetch_periods([
            ("g1", "2024-01-17", "2024-01-17"),
            ("g2", "2024-01-17", "2024-01-17"),
        ])

        assert list(periods) == [("g1", "2024-01-17", "2024-01-17")]

    async def test_fetch_periods_empty(self, mock_db):
        from habimori.services.goal_period_service import GoalPeriodService

        service = GoalPeriodService(mock_db, tz=UTC)

        assert await service.fetch_periods([]) == {}
        mock_db["goal_periods"].find.assert_not_called()
