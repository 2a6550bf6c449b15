"""Timer service - business logic for time tracking."""
from datetime import datetime, timezone
from typing import Optional

from pymongo.errors import DuplicateKeyError

from habimori.config import settings
from habimori.errors import ConflictError, NotFoundError, ValidationError
from habimori.models.goal import GoalType
from habimori.models.time_entry import TimeEntry, TimeEntryCreate, TimeEntryUpdate
from habimori.utils.ids import parse_object_id
from habimori.utils.periods import assume_local


class TimerService:
    """Service for handling time tracking operations.

    At most one timer runs per user. The check below is backed by a partial
    unique index on running entries, so a race between two starts still
    ends in a conflict rather than two running timers.
    """

    def __init__(self, db, scheduler=None):
        """
        Initialize service with database connection.

        Args:
            db: Database
            scheduler: Optional object with ``schedule_recalc(goal_id)``,
                called after every write that changes a goal's finished time
        """
        self.db = db
        self.scheduler = scheduler
        self.time_entries = db["time_entries"]
        self.contexts = db["contexts"]
        self.goals = db["goals"]

    def _doc_to_entry(self, doc: dict) -> TimeEntry:
        """
        Convert database document to TimeEntry model.
        """
        return TimeEntry(
            _id=str(doc["_id"]),
            user_id=doc["user_id"],
            context_id=doc["context_id"],
            goal_id=doc.get("goal_id"),
            tag_ids=doc.get("tag_ids", []),
            started_at=doc["started_at"],
            ended_at=doc.get("ended_at"),
            created_at=doc["created_at"],
            updated_at=doc["updated_at"],
        )

    def _schedule_recalc(self, *goal_ids: Optional[str]) -> None:
        if self.scheduler is None:
            return
        for goal_id in dict.fromkeys(goal_ids):
            if goal_id:
                self.scheduler.schedule_recalc(goal_id)

    async def _validate_targets(
        self,
        user_id: str,
        context_id: str,
        goal_id: Optional[str],
    ) -> None:
        context = await self.contexts.find_one({
            "_id": parse_object_id(context_id, "Context"),
            "user_id": user_id,
        })
        if not context:
            raise NotFoundError("Context not found")

        if goal_id is not None:
            goal = await self.goals.find_one({
                "_id": parse_object_id(goal_id, "Goal"),
                "user_id": user_id,
            })
            if not goal:
                raise NotFoundError("Goal not found")
            if goal["goal_type"] != GoalType.TIME.value:
                raise ValidationError("Goal is not a time goal.")

    async def start_timer(
        self,
        user_id: str,
        context_id: str,
        goal_id: Optional[str] = None,
        tag_ids: Optional[list[str]] = None,
        started_at: Optional[datetime] = None,
    ) -> TimeEntry:
        """
        Start a new timer.

        Args:
            user_id: User ID
            context_id: Context the time is tracked in
            goal_id: Optional time goal the entry counts towards
            tag_ids: Optional tags
            started_at: Optional start time (defaults to now)

        Returns:
            Created (running) time entry

        Raises:
            ConflictError: If a timer is already running (timerAlreadyRunning)
            NotFoundError: If the context or goal doesn't exist
        """
        running_timer = await self.time_entries.find_one({
            "user_id": user_id,
            "ended_at": None,
        })

        if running_timer:
            raise ConflictError("Timer already running", ConflictError.TIMER_ALREADY_RUNNING)

        await self._validate_targets(user_id, context_id, goal_id)

        now = datetime.now(timezone.utc)
        started_at = assume_local(started_at, settings.tzinfo)
        entry_doc = {
            "user_id": user_id,
            "context_id": context_id,
            "goal_id": goal_id,
            "tag_ids": list(dict.fromkeys(tag_ids or [])),
            "started_at": started_at or now,
            "ended_at": None,
            "created_at": now,
            "updated_at": now,
        }

        try:
            result = await self.time_entries.insert_one(entry_doc)
        except DuplicateKeyError:
            raise ConflictError("Timer already running", ConflictError.TIMER_ALREADY_RUNNING)
        entry_doc["_id"] = result.inserted_id

        self._schedule_recalc(goal_id)
        return self._doc_to_entry(entry_doc)

    async def stop_timer(
        self,
        user_id: str,
        ended_at: Optional[datetime] = None,
    ) -> TimeEntry:
        """
        Stop the currently running timer.

        Args:
            user_id: User ID
            ended_at: Optional end time (defaults to now; naive means local)

        Returns:
            Finished time entry

        Raises:
            ConflictError: If no timer is running (timerAlreadyStopped)
            ValidationError: If the end time is not after the start time
        """
        running_timer = await self.time_entries.find_one({
            "user_id": user_id,
            "ended_at": None,
        })

        if not running_timer:
            raise ConflictError("No timer running", ConflictError.TIMER_ALREADY_STOPPED)

        ended_at = assume_local(ended_at, settings.tzinfo)
        if ended_at is None:
            ended_at = datetime.now(timezone.utc)
        if ended_at <= running_timer["started_at"]:
            raise ValidationError("End time must be after start time.")

        updated_doc = await self.time_entries.find_one_and_update(
            {"_id": running_timer["_id"], "ended_at": None},
            {"$set": {"ended_at": ended_at, "updated_at": datetime.now(timezone.utc)}},
            return_document=True,
        )

        # Stopped concurrently by another request
        if updated_doc is None:
            raise ConflictError("No timer running", ConflictError.TIMER_ALREADY_STOPPED)

        self._schedule_recalc(updated_doc.get("goal_id"))
        return self._doc_to_entry(updated_doc)

    async def get_current_timer(
        self,
        user_id: str,
    ) -> Optional[TimeEntry]:
        """
        Get the currently running timer, if any.
        """
        running_timer = await self.time_entries.find_one({
            "user_id": user_id,
            "ended_at": None,
        })

        if not running_timer:
            return None

        return self._doc_to_entry(running_timer)

    async def list_entries(
        self,
        user_id: str,
        goal_id: Optional[str] = None,
        context_id: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> list[TimeEntry]:
        """
        List time entries for a user, most recent first.

        Args:
            user_id: User ID
            goal_id: Optional goal filter
            context_id: Optional context filter
            start: Only entries starting at or after this time
            end: Only entries starting at or before this time

        Returns:
            List of time entries
        """
        query = {
            "user_id": user_id,
        }

        if goal_id:
            query["goal_id"] = goal_id
        if context_id:
            query["context_id"] = context_id

        if start or end:
            query["started_at"] = {}
            if start:
                query["started_at"]["$gte"] = start
            if end:
                query["started_at"]["$lte"] = end

        cursor = self.time_entries.find(query).sort("started_at", -1)
        entry_docs = await cursor.to_list(length=None)

        return [self._doc_to_entry(doc) for doc in entry_docs]

    async def get_entry(self, user_id: str, entry_id: str) -> TimeEntry:
        """
        Get a single time entry.

        Raises:
            NotFoundError: If entry not found
        """
        doc = await self.time_entries.find_one({
            "_id": parse_object_id(entry_id, "Time entry"),
            "user_id": user_id,
        })
        if not doc:
            raise NotFoundError("Time entry not found")
        return self._doc_to_entry(doc)

    async def create_entry(
        self,
        user_id: str,
        entry_create: TimeEntryCreate,
    ) -> TimeEntry:
        """
        Create a manual, already finished time entry.

        Raises:
            ValidationError: If the end time is not after the start time
            NotFoundError: If the context or goal doesn't exist
        """
        if entry_create.ended_at <= entry_create.started_at:
            raise ValidationError("End time must be after start time.")

        await self._validate_targets(user_id, entry_create.context_id, entry_create.goal_id)

        now = datetime.now(timezone.utc)
        entry_doc = {
            "user_id": user_id,
            "context_id": entry_create.context_id,
            "goal_id": entry_create.goal_id,
            "tag_ids": list(dict.fromkeys(entry_create.tag_ids)),
            "started_at": entry_create.started_at,
            "ended_at": entry_create.ended_at,
            "created_at": now,
            "updated_at": now,
        }

        result = await self.time_entries.insert_one(entry_doc)
        entry_doc["_id"] = result.inserted_id

        self._schedule_recalc(entry_create.goal_id)
        return self._doc_to_entry(entry_doc)

    async def update_entry(
        self,
        user_id: str,
        entry_id: str,
        entry_update: TimeEntryUpdate,
    ) -> TimeEntry:
        """
        Adjust a time entry's start/end or reassign its tags.

        Raises:
            NotFoundError: If entry not found
            ValidationError: If the resulting end is not after the start
        """
        object_id = parse_object_id(entry_id, "Time entry")
        existing = await self.time_entries.find_one({
            "_id": object_id,
            "user_id": user_id,
        })

        if not existing:
            raise NotFoundError("Time entry not found")

        started_at = entry_update.started_at or existing["started_at"]
        ended_at = entry_update.ended_at or existing.get("ended_at")
        if ended_at is not None and ended_at <= started_at:
            raise ValidationError("End time must be after start time.")

        update_doc = {
            "updated_at": datetime.now(timezone.utc),
        }

        if entry_update.started_at is not None:
            update_doc["started_at"] = entry_update.started_at
        if entry_update.ended_at is not None:
            update_doc["ended_at"] = entry_update.ended_at
        if entry_update.tag_ids is not None:
            update_doc["tag_ids"] = list(dict.fromkeys(entry_update.tag_ids))

        updated_doc = await self.time_entries.find_one_and_update(
            {"_id": object_id, "user_id": user_id},
            {"$set": update_doc},
            return_document=True,
        )

        self._schedule_recalc(existing.get("goal_id"))
        return self._doc_to_entry(updated_doc)

    async def delete_entry(
        self,
        user_id: str,
        entry_id: str,
    ) -> dict:
        """
        Delete a time entry (hard delete).

        Raises:
            NotFoundError: If entry not found
        """
        object_id = parse_object_id(entry_id, "Time entry")
        existing = await self.time_entries.find_one({
            "_id": object_id,
            "user_id": user_id,
        })

        if not existing:
            raise NotFoundError("Time entry not found")

        result = await self.time_entries.delete_one({
            "_id": object_id,
            "user_id": user_id,
        })

        self._schedule_recalc(existing.get("goal_id"))
        return {"deleted_count": result.deleted_count}
