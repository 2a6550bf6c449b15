"""Tests for Pydantic models."""
from datetime import date, datetime, timezone

import pytest
from pydantic import ValidationError


class TestGoalModels:
    """Tests for goal models."""

    def test_goal_create_defaults(self):
        from habimori.models.goal import GoalCreate, TargetOp

        goal = GoalCreate(
            title="Read",
            goal_type="counter",
            period="day",
            target_value=3,
            start_date=date(2024, 1, 1),
            end_date=date(2024, 1, 31),
            context_id="ctx1",
        )

        assert goal.target_op == TargetOp.GTE
        assert goal.tag_ids == []

    def test_negative_target_rejected(self):
        from habimori.models.goal import GoalCreate

        with pytest.raises(ValidationError):
            GoalCreate(
                title="Read",
                goal_type="counter",
                period="day",
                target_value=-1,
                start_date=date(2024, 1, 1),
                end_date=date(2024, 1, 31),
                context_id="ctx1",
            )

    def test_unknown_period_rejected(self):
        from habimori.models.goal import GoalCreate

        with pytest.raises(ValidationError):
            GoalCreate(
                title="Read",
                goal_type="counter",
                period="year",
                target_value=1,
                start_date=date(2024, 1, 1),
                end_date=date(2024, 1, 31),
                context_id="ctx1",
            )

    def test_goal_serializes_id(self):
        from habimori.models.goal import Goal

        now = datetime.now(timezone.utc)
        goal = Goal(
            _id="abc",
            user_id="user123",
            title="Read",
            goal_type="check",
            period="week",
            target_value=1,
            start_date=date(2024, 1, 1),
            end_date=date(2024, 1, 31),
            context_id="ctx1",
            created_at=now,
            updated_at=now,
        )

        data = goal.model_dump(by_alias=True)
        assert data["id"] == "abc"
        assert data["is_archived"] is False


class TestGoalPeriodModels:
    """Tests for goal period models."""

    def test_key(self):
        from habimori.models.goal_period import GoalPeriod

        period = GoalPeriod(
            goal_id="g1",
            period_start="2024-01-15",
            period_end="2024-01-21",
            actual_value=150,
            status="in_progress",
            calculated_at=datetime.now(timezone.utc),
        )

        assert period.key == ("g1", "2024-01-15", "2024-01-21")

    def test_recalc_result_ok(self):
        from habimori.models.goal_period import RecalcResult

        assert RecalcResult(goal_id="g1").ok is True
        assert RecalcResult(goal_id="g1", error="boom").ok is False


class TestUserModels:
    """Tests for user models."""

    def test_password_min_length(self):
        from habimori.models.user import UserCreate

        with pytest.raises(ValidationError):
            UserCreate(email="test@example.com", name="Test", password="short")

    def test_invalid_email(self):
        from habimori.models.user import UserCreate

        with pytest.raises(ValidationError):
            UserCreate(email="not-an-email", name="Test", password="password123")


class TestEventTimeModels:
    """Tests for request times given without an offset."""

    def test_naive_times_take_local_zone(self):
        from habimori.config import settings
        from habimori.models.check_event import CheckToggle
        from habimori.models.counter_event import CounterIncrement
        from habimori.models.time_entry import TimeEntryUpdate
        from habimori.routers.timers import TimerStart, TimerStop

        local = datetime(2024, 1, 15, 10, tzinfo=settings.tzinfo)

        assert CounterIncrement(occurred_at="2024-01-15T10:00:00").occurred_at == local
        assert CheckToggle(occurred_at="2024-01-15T10:00:00").occurred_at == local
        assert TimeEntryUpdate(ended_at="2024-01-15T10:00:00").ended_at == local
        assert TimerStart(context_id="ctx1", started_at="2024-01-15T10:00:00").started_at == local
        assert TimerStop(ended_at="2024-01-15T10:00:00").ended_at == local

    def test_aware_times_pass_through(self):
        from habimori.models.counter_event import CounterIncrement

        increment = CounterIncrement(occurred_at="2024-01-15T10:00:00+02:00")

        assert increment.occurred_at.utcoffset().total_seconds() == 7200
        assert CounterIncrement().occurred_at is None
