"""Context service - named buckets for goals and events."""
import logging
from datetime import datetime, timezone

from pymongo.errors import DuplicateKeyError

from habimori.errors import NotFoundError, ValidationError
from habimori.models.context import Context
from habimori.utils.ids import parse_object_id
from habimori.utils.names import find_by_name, normalize_name

logger = logging.getLogger(__name__)

EVENT_COLLECTIONS = ("time_entries", "counter_events", "check_events")


class ContextService:
    """Service for handling context operations."""

    def __init__(self, db):
        """Initialize service with database connection."""
        self.db = db
        self.contexts = db["contexts"]
        self.goals = db["goals"]
        self.goal_periods = db["goal_periods"]

    def _doc_to_context(self, doc: dict) -> Context:
        return Context(
            _id=str(doc["_id"]),
            user_id=doc["user_id"],
            name=doc["name"],
            created_at=doc["created_at"],
        )

    async def ensure_context(self, user_id: str, name: str) -> Context:
        """
        Return the user's context with this name, creating it if needed.

        Names match case-insensitively after whitespace normalization.

        Raises:
            ValidationError: If the name is blank
        """
        normalized = normalize_name(name)
        if not normalized:
            raise ValidationError("Context name is required.")

        existing = await find_by_name(self.contexts, user_id, normalized)
        if existing:
            return self._doc_to_context(existing)

        context_doc = {
            "user_id": user_id,
            "name": normalized,
            "created_at": datetime.now(timezone.utc),
        }
        try:
            result = await self.contexts.insert_one(context_doc)
        except DuplicateKeyError:
            # Created concurrently under the same name
            existing = await find_by_name(self.contexts, user_id, normalized)
            if not existing:
                raise
            return self._doc_to_context(existing)

        context_doc["_id"] = result.inserted_id
        return self._doc_to_context(context_doc)

    async def list_contexts(self, user_id: str) -> list[Context]:
        cursor = self.contexts.find({"user_id": user_id}).sort("name", 1)
        docs = await cursor.to_list(length=None)
        return [self._doc_to_context(doc) for doc in docs]

    async def rename_context(self, user_id: str, context_id: str, name: str) -> Context:
        """
        Rename a context.

        Raises:
            ValidationError: If the name is blank or used by another context
            NotFoundError: If context not found
        """
        normalized = normalize_name(name)
        if not normalized:
            raise ValidationError("Context name is required.")

        object_id = parse_object_id(context_id, "Context")
        clash = await find_by_name(self.contexts, user_id, normalized, exclude_id=object_id)
        if clash:
            raise ValidationError("A context with this name already exists.")

        updated_doc = await self.contexts.find_one_and_update(
            {"_id": object_id, "user_id": user_id},
            {"$set": {"name": normalized}},
            return_document=True,
        )
        if not updated_doc:
            raise NotFoundError("Context not found")

        return self._doc_to_context(updated_doc)

    async def delete_context(self, user_id: str, context_id: str) -> dict:
        """
        Delete a context with everything filed under it.

        Events go first, then the goals (and their period rows), then the
        context itself. A failure part-way leaves the context in place so
        the delete can simply be repeated.

        Raises:
            NotFoundError: If context not found
        """
        object_id = parse_object_id(context_id, "Context")
        existing = await self.contexts.find_one({"_id": object_id, "user_id": user_id})
        if not existing:
            raise NotFoundError("Context not found")

        scope = {"user_id": user_id, "context_id": context_id}

        deleted_events = 0
        for name in EVENT_COLLECTIONS:
            result = await self.db[name].delete_many(scope)
            deleted_events += result.deleted_count

        goal_docs = await self.goals.find(scope, {"_id": 1}).to_list(length=None)
        goal_ids = [str(doc["_id"]) for doc in goal_docs]
        if goal_ids:
            await self.goal_periods.delete_many({"goal_id": {"$in": goal_ids}})
            await self.goals.delete_many(scope)

        await self.contexts.delete_one({"_id": object_id, "user_id": user_id})

        logger.info(
            "Deleted context %s with %d goals and %d events",
            context_id, len(goal_ids), deleted_events,
        )
        return {
            "deleted_count": 1,
            "deleted_goals": len(goal_ids),
            "deleted_events": deleted_events,
        }
