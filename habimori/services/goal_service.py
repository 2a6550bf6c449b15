"""Goal service - business logic for goal management."""
from datetime import date, datetime, timezone
from typing import Optional

from habimori.errors import NotFoundError, ValidationError
from habimori.models.goal import Goal, GoalCreate, GoalUpdate
from habimori.utils.ids import parse_object_id
from habimori.utils.names import normalize_name


def doc_to_goal(doc: dict) -> Goal:
    """
    Convert database document to Goal model.

    Dates are stored as ``YYYY-MM-DD`` strings so they compare correctly as
    strings and never shift with the client's timezone.
    """
    return Goal(
        _id=str(doc["_id"]),
        user_id=doc["user_id"],
        title=doc["title"],
        goal_type=doc["goal_type"],
        period=doc["period"],
        target_value=doc["target_value"],
        target_op=doc.get("target_op", "gte"),
        start_date=date.fromisoformat(doc["start_date"]),
        end_date=date.fromisoformat(doc["end_date"]),
        context_id=doc["context_id"],
        tag_ids=doc.get("tag_ids", []),
        is_active=doc.get("is_active", True),
        is_archived=doc.get("is_archived", False),
        created_at=doc["created_at"],
        updated_at=doc["updated_at"],
    )


class GoalService:
    """Service for handling goal operations."""

    def __init__(self, db):
        """Initialize service with database connection."""
        self.db = db
        self.goals = db["goals"]
        self.contexts = db["contexts"]
        self.tags = db["tags"]

    async def _validate_references(
        self,
        user_id: str,
        context_id: Optional[str] = None,
        tag_ids: Optional[list[str]] = None,
    ) -> None:
        if context_id is not None:
            context = await self.contexts.find_one({
                "_id": parse_object_id(context_id, "Context"),
                "user_id": user_id,
            })
            if not context:
                raise NotFoundError("Context not found")

        if tag_ids:
            object_ids = [parse_object_id(tag_id, "Tag") for tag_id in set(tag_ids)]
            found = await self.tags.count_documents({
                "_id": {"$in": object_ids},
                "user_id": user_id,
            })
            if found != len(object_ids):
                raise NotFoundError("Tag not found")

    async def create_goal(
        self,
        user_id: str,
        goal_create: GoalCreate,
    ) -> Goal:
        """
        Create a new goal.

        Args:
            user_id: User ID who owns the goal
            goal_create: Goal creation data

        Returns:
            Created goal object

        Raises:
            ValidationError: If the title is blank or the dates are reversed
            NotFoundError: If the context or a tag does not exist
        """
        title = normalize_name(goal_create.title)
        if not title:
            raise ValidationError("Goal title is required.")
        if goal_create.end_date < goal_create.start_date:
            raise ValidationError("End date must not be before start date.")

        await self._validate_references(
            user_id,
            context_id=goal_create.context_id,
            tag_ids=goal_create.tag_ids,
        )

        now = datetime.now(timezone.utc)
        goal_doc = {
            "user_id": user_id,
            "title": title,
            "goal_type": goal_create.goal_type.value,
            "period": goal_create.period.value,
            "target_value": goal_create.target_value,
            "target_op": goal_create.target_op.value,
            "start_date": goal_create.start_date.isoformat(),
            "end_date": goal_create.end_date.isoformat(),
            "context_id": goal_create.context_id,
            "tag_ids": list(dict.fromkeys(goal_create.tag_ids)),
            "is_active": True,
            "is_archived": False,
            "created_at": now,
            "updated_at": now,
        }

        result = await self.goals.insert_one(goal_doc)
        goal_doc["_id"] = result.inserted_id

        return doc_to_goal(goal_doc)

    async def list_goals(
        self,
        user_id: str,
        context_id: Optional[str] = None,
        tag_ids: Optional[list[str]] = None,
        include_archived: bool = False,
        active_on: Optional[date] = None,
    ) -> list[Goal]:
        """
        List goals for a user with optional filtering.

        Args:
            user_id: User ID
            context_id: Optional context filter
            tag_ids: Optional tag filter (goal has any of them)
            include_archived: Include archived goals
            active_on: Only goals whose date span contains this day

        Returns:
            List of goals
        """
        query = {"user_id": user_id}

        if not include_archived:
            query["is_archived"] = False
        if context_id:
            query["context_id"] = context_id
        if tag_ids:
            query["tag_ids"] = {"$in": tag_ids}
        if active_on:
            query["start_date"] = {"$lte": active_on.isoformat()}
            query["end_date"] = {"$gte": active_on.isoformat()}

        cursor = self.goals.find(query).sort("created_at", 1)
        goal_docs = await cursor.to_list(length=None)

        return [doc_to_goal(doc) for doc in goal_docs]

    async def get_goal(
        self,
        user_id: str,
        goal_id: str,
    ) -> Goal:
        """
        Get a single goal by id.

        Raises:
            NotFoundError: If goal not found
        """
        goal_doc = await self.goals.find_one({
            "_id": parse_object_id(goal_id, "Goal"),
            "user_id": user_id,
        })

        if not goal_doc:
            raise NotFoundError("Goal not found")

        return doc_to_goal(goal_doc)

    async def update_goal(
        self,
        user_id: str,
        goal_id: str,
        goal_update: GoalUpdate,
    ) -> Goal:
        """
        Update a goal's title, end date or tags.

        Args:
            user_id: User ID
            goal_id: Goal ID
            goal_update: Update data

        Returns:
            Updated goal

        Raises:
            NotFoundError: If goal, or one of the new tags, not found
            ValidationError: If the title is blank or the end date precedes
                the start date
        """
        existing = await self.get_goal(user_id, goal_id)

        update_doc = {
            "updated_at": datetime.now(timezone.utc),
        }

        if goal_update.title is not None:
            title = normalize_name(goal_update.title)
            if not title:
                raise ValidationError("Goal title is required.")
            update_doc["title"] = title

        if goal_update.end_date is not None:
            if goal_update.end_date < existing.start_date:
                raise ValidationError("End date must not be before start date.")
            update_doc["end_date"] = goal_update.end_date.isoformat()

        if goal_update.tag_ids is not None:
            await self._validate_references(user_id, tag_ids=goal_update.tag_ids)
            update_doc["tag_ids"] = list(dict.fromkeys(goal_update.tag_ids))

        updated_doc = await self.goals.find_one_and_update(
            {"_id": parse_object_id(goal_id, "Goal"), "user_id": user_id},
            {"$set": update_doc},
            return_document=True,
        )

        return doc_to_goal(updated_doc)

    async def archive_goal(
        self,
        user_id: str,
        goal_id: str,
    ) -> Goal:
        """
        Archive a goal. Archived goals stay archived for good.

        Raises:
            NotFoundError: If goal not found
        """
        await self.get_goal(user_id, goal_id)

        updated_doc = await self.goals.find_one_and_update(
            {"_id": parse_object_id(goal_id, "Goal"), "user_id": user_id},
            {
                "$set": {
                    "is_archived": True,
                    "updated_at": datetime.now(timezone.utc),
                }
            },
            return_document=True,
        )

        return doc_to_goal(updated_doc)
