"""Tag service - free labels attached to goals and events."""
from datetime import datetime, timezone

from pymongo.errors import DuplicateKeyError

from habimori.errors import NotFoundError, ValidationError
from habimori.models.context import Tag
from habimori.utils.ids import parse_object_id
from habimori.utils.names import find_by_name, normalize_name

TAGGED_COLLECTIONS = ("goals", "time_entries", "counter_events", "check_events")


class TagService:
    """Service for handling tag operations."""

    def __init__(self, db):
        """Initialize service with database connection."""
        self.db = db
        self.tags = db["tags"]

    def _doc_to_tag(self, doc: dict) -> Tag:
        return Tag(
            _id=str(doc["_id"]),
            user_id=doc["user_id"],
            name=doc["name"],
            created_at=doc["created_at"],
        )

    async def ensure_tag(self, user_id: str, name: str) -> Tag:
        """
        Return the user's tag with this name, creating it if needed.

        Raises:
            ValidationError: If the name is blank
        """
        normalized = normalize_name(name)
        if not normalized:
            raise ValidationError("Tag name is required.")

        existing = await find_by_name(self.tags, user_id, normalized)
        if existing:
            return self._doc_to_tag(existing)

        tag_doc = {
            "user_id": user_id,
            "name": normalized,
            "created_at": datetime.now(timezone.utc),
        }
        try:
            result = await self.tags.insert_one(tag_doc)
        except DuplicateKeyError:
            existing = await find_by_name(self.tags, user_id, normalized)
            if not existing:
                raise
            return self._doc_to_tag(existing)

        tag_doc["_id"] = result.inserted_id
        return self._doc_to_tag(tag_doc)

    async def list_tags(self, user_id: str) -> list[Tag]:
        cursor = self.tags.find({"user_id": user_id}).sort("name", 1)
        docs = await cursor.to_list(length=None)
        return [self._doc_to_tag(doc) for doc in docs]

    async def rename_tag(self, user_id: str, tag_id: str, name: str) -> Tag:
        """
        Rename a tag.

        Raises:
            ValidationError: If the name is blank or used by another tag
            NotFoundError: If tag not found
        """
        normalized = normalize_name(name)
        if not normalized:
            raise ValidationError("Tag name is required.")

        object_id = parse_object_id(tag_id, "Tag")
        clash = await find_by_name(self.tags, user_id, normalized, exclude_id=object_id)
        if clash:
            raise ValidationError("A tag with this name already exists.")

        updated_doc = await self.tags.find_one_and_update(
            {"_id": object_id, "user_id": user_id},
            {"$set": {"name": normalized}},
            return_document=True,
        )
        if not updated_doc:
            raise NotFoundError("Tag not found")

        return self._doc_to_tag(updated_doc)

    async def delete_tag(self, user_id: str, tag_id: str) -> dict:
        """
        Delete a tag and detach it from every goal and event.

        Raises:
            NotFoundError: If tag not found
        """
        object_id = parse_object_id(tag_id, "Tag")
        existing = await self.tags.find_one({"_id": object_id, "user_id": user_id})
        if not existing:
            raise NotFoundError("Tag not found")

        for name in TAGGED_COLLECTIONS:
            await self.db[name].update_many(
                {"user_id": user_id, "tag_ids": tag_id},
                {"$pull": {"tag_ids": tag_id}},
            )

        result = await self.tags.delete_one({"_id": object_id, "user_id": user_id})
        return {"deleted_count": result.deleted_count}
