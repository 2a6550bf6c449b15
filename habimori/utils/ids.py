"""ObjectId helpers."""
from bson import ObjectId
from bson.errors import InvalidId

from habimori.errors import NotFoundError


def parse_object_id(value: str, label: str = "Document") -> ObjectId:
    """
    Convert a string id to an ObjectId.

    A malformed id can never match a document, so it is reported the same
    way as a missing one.

    Raises:
        NotFoundError: If the id is not a valid ObjectId
    """
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        raise NotFoundError(f"{label} not found")
