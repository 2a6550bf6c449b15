"""Tests for TimerService."""
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest
from bson import ObjectId
from pymongo.errors import DuplicateKeyError

UTC = timezone.utc
NOW = datetime(2024, 1, 17, 12, tzinfo=UTC)


def running_doc(**overrides) -> dict:
    doc = {
        "_id": ObjectId(),
        "user_id": "user123",
        "context_id": str(ObjectId()),
        "goal_id": "goal1",
        "tag_ids": [],
        "started_at": NOW - timedelta(hours=1),
        "ended_at": None,
        "created_at": NOW,
        "updated_at": NOW,
    }
    doc.update(overrides)
    return doc


@pytest.mark.asyncio
class TestTimerServiceStart:
    """Tests for starting timers."""

    async def test_start_timer_success(self, mock_db):
        from habimori.services.timer_service import TimerService

        context_id = str(ObjectId())
        mock_db["contexts"].find_one.return_value = {"_id": ObjectId(context_id)}

        service = TimerService(mock_db)
        entry = await service.start_timer(
            user_id="user123",
            context_id=context_id,
            tag_ids=["t1", "t1"],
            started_at=NOW,
        )

        assert entry.context_id == context_id
        assert entry.started_at == NOW
        assert entry.ended_at is None
        assert entry.tag_ids == ["t1"]

    async def test_start_timer_with_running_timer(self, mock_db):
        from habimori.errors import ConflictError
        from habimori.services.timer_service import TimerService

        mock_db["time_entries"].find_one.return_value = running_doc()

        service = TimerService(mock_db)

        with pytest.raises(ConflictError, match="Timer already running") as exc_info:
            await service.start_timer(user_id="user123", context_id=str(ObjectId()))

        assert exc_info.value.signal == "timerAlreadyRunning"
        mock_db["time_entries"].insert_one.assert_not_called()

    async def test_start_timer_race_hits_unique_index(self, mock_db):
        from habimori.errors import ConflictError
        from habimori.services.timer_service import TimerService

        mock_db["contexts"].find_one.return_value = {"_id": ObjectId()}
        mock_db["time_entries"].insert_one.side_effect = DuplicateKeyError("dup")

        service = TimerService(mock_db)

        with pytest.raises(ConflictError) as exc_info:
            await service.start_timer(user_id="user123", context_id=str(ObjectId()))

        assert exc_info.value.signal == "timerAlreadyRunning"

    async def test_start_timer_with_nonexistent_context(self, mock_db):
        from habimori.errors import NotFoundError
        from habimori.services.timer_service import TimerService

        service = TimerService(mock_db)

        with pytest.raises(NotFoundError, match="Context not found"):
            await service.start_timer(user_id="user123", context_id=str(ObjectId()))

    async def test_start_timer_for_non_time_goal(self, mock_db):
        from habimori.errors import ValidationError
        from habimori.services.timer_service import TimerService

        mock_db["contexts"].find_one.return_value = {"_id": ObjectId()}
        mock_db["goals"].find_one.return_value = {"_id": ObjectId(), "goal_type": "counter"}

        service = TimerService(mock_db)

        with pytest.raises(ValidationError, match="not a time goal"):
            await service.start_timer(
                user_id="user123",
                context_id=str(ObjectId()),
                goal_id=str(ObjectId()),
            )


@pytest.mark.asyncio
class TestTimerServiceStop:
    """Tests for stopping timers."""

    async def test_stop_timer_success(self, mock_db):
        from habimori.services.timer_service import TimerService

        running = running_doc()
        mock_db["time_entries"].find_one.return_value = running
        mock_db["time_entries"].find_one_and_update.return_value = {**running, "ended_at": NOW}
        scheduler = MagicMock()

        service = TimerService(mock_db, scheduler=scheduler)
        entry = await service.stop_timer(user_id="user123", ended_at=NOW)

        assert entry.ended_at == NOW
        scheduler.schedule_recalc.assert_called_once_with("goal1")

    async def test_stop_timer_naive_end_is_local_time(self, mock_db):
        from habimori.config import settings
        from habimori.services.timer_service import TimerService

        running = running_doc()
        mock_db["time_entries"].find_one.return_value = running
        mock_db["time_entries"].find_one_and_update.return_value = {**running, "ended_at": NOW}

        service = TimerService(mock_db)
        await service.stop_timer(user_id="user123", ended_at=datetime(2024, 1, 17, 12))

        update = mock_db["time_entries"].find_one_and_update.call_args[0][1]
        assert update["$set"]["ended_at"] == datetime(2024, 1, 17, 12, tzinfo=settings.tzinfo)

    async def test_stop_timer_no_running_timer(self, mock_db):
        from habimori.errors import ConflictError
        from habimori.services.timer_service import TimerService

        service = TimerService(mock_db)

        with pytest.raises(ConflictError, match="No timer running") as exc_info:
            await service.stop_timer(user_id="user123")

        assert exc_info.value.signal == "timerAlreadyStopped"

    async def test_stop_timer_stopped_concurrently(self, mock_db):
        from habimori.errors import ConflictError
        from habimori.services.timer_service import TimerService

        mock_db["time_entries"].find_one.return_value = running_doc()
        mock_db["time_entries"].find_one_and_update.return_value = None

        service = TimerService(mock_db)

        with pytest.raises(ConflictError):
            await service.stop_timer(user_id="user123", ended_at=NOW)

    async def test_stop_timer_before_start(self, mock_db):
        from habimori.errors import ValidationError
        from habimori.services.timer_service import TimerService

        mock_db["time_entries"].find_one.return_value = running_doc(started_at=NOW)

        service = TimerService(mock_db)

        with pytest.raises(ValidationError, match="End time must be after start time"):
            await service.stop_timer(user_id="user123", ended_at=NOW - timedelta(minutes=5))


@pytest.mark.asyncio
class TestTimeEntries:
    """Tests for manual time entry operations."""

    async def test_create_entry_schedules_recalc(self, mock_db):
        from habimori.models.time_entry import TimeEntryCreate
        from habimori.services.timer_service import TimerService

        goal_id = str(ObjectId())
        mock_db["contexts"].find_one.return_value = {"_id": ObjectId()}
        mock_db["goals"].find_one.return_value = {"_id": ObjectId(goal_id), "goal_type": "time"}
        scheduler = MagicMock()

        service = TimerService(mock_db, scheduler=scheduler)
        entry = await service.create_entry(
            user_id="user123",
            entry_create=TimeEntryCreate(
                context_id=str(ObjectId()),
                goal_id=goal_id,
                started_at=NOW - timedelta(hours=2),
                ended_at=NOW,
            ),
        )

        assert entry.goal_id == goal_id
        scheduler.schedule_recalc.assert_called_once_with(goal_id)

    async def test_create_entry_mixed_naive_and_aware_bounds(self, mock_db):
        from habimori.config import settings
        from habimori.models.time_entry import TimeEntryCreate
        from habimori.services.timer_service import TimerService

        mock_db["contexts"].find_one.return_value = {"_id": ObjectId()}
        service = TimerService(mock_db)

        entry = await service.create_entry(
            user_id="user123",
            entry_create=TimeEntryCreate(
                context_id=str(ObjectId()),
                started_at="2024-01-17T10:00:00",
                ended_at=NOW,
            ),
        )

        assert entry.started_at == datetime(2024, 1, 17, 10, tzinfo=settings.tzinfo)
        assert entry.ended_at == NOW

    async def test_create_entry_invalid_range(self, mock_db):
        from habimori.errors import ValidationError
        from habimori.models.time_entry import TimeEntryCreate
        from habimori.services.timer_service import TimerService

        service = TimerService(mock_db)

        with pytest.raises(ValidationError):
            await service.create_entry(
                user_id="user123",
                entry_create=TimeEntryCreate(
                    context_id=str(ObjectId()),
                    started_at=NOW,
                    ended_at=NOW,
                ),
            )

    async def test_update_entry_validates_against_stored_start(self, mock_db):
        from habimori.errors import ValidationError
        from habimori.models.time_entry import TimeEntryUpdate
        from habimori.services.timer_service import TimerService

        mock_db["time_entries"].find_one.return_value = running_doc(
            started_at=NOW, ended_at=NOW + timedelta(hours=1)
        )

        service = TimerService(mock_db)

        with pytest.raises(ValidationError):
            await service.update_entry(
                user_id="user123",
                entry_id=str(ObjectId()),
                entry_update=TimeEntryUpdate(ended_at=NOW - timedelta(minutes=1)),
            )

    async def test_delete_entry(self, mock_db):
        from habimori.services.timer_service import TimerService

        mock_db["time_entries"].find_one.return_value = running_doc(ended_at=NOW)
        scheduler = MagicMock()

        service = TimerService(mock_db, scheduler=scheduler)
        result = await service.delete_entry(user_id="user123", entry_id=str(ObjectId()))

        assert result == {"deleted_count": 1}
        scheduler.schedule_recalc.assert_called_once_with("goal1")

    async def test_get_entry_invalid_id(self, mock_db):
        from habimori.errors import NotFoundError
        from habimori.services.timer_service import TimerService

        service = TimerService(mock_db)

        with pytest.raises(NotFoundError, match="Time entry not found"):
            await service.get_entry(user_id="user123", entry_id="not-an-id")

    async def test_list_entries_filters(self, mock_db, cursor):
        from habimori.services.timer_service import TimerService

        mock_db["time_entries"].find.return_value = cursor([running_doc(ended_at=NOW)])

        service = TimerService(mock_db)
        entries = await service.list_entries(
            user_id="user123",
            goal_id="goal1",
            start=NOW - timedelta(days=1),
        )

        assert len(entries) == 1
        query = mock_db["time_entries"].find.call_args[0][0]
        assert query["goal_id"] == "goal1"
        assert query["started_at"] == {"$gte": NOW - timedelta(days=1)}
