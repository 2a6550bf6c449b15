"""Name normalization and lookup for contexts and tags."""
import re
from typing import Optional


def normalize_name(text: str) -> str:
    """
    Trim a name and collapse inner whitespace.

    Args:
        text: Raw name as typed by the user

    Returns:
        Normalized name (empty string if nothing is left)

    Examples:
        >>> normalize_name("  Deep   work ")
        'Deep work'
        >>> normalize_name("   ")
        ''
    """
    return re.sub(r"\s+", " ", text.strip())


def name_query(user_id: str, name: str, exclude_id=None) -> dict:
    """
    Build a case-insensitive exact-match query for a user's named entity.

    Args:
        user_id: Owner of the entity
        name: Normalized name
        exclude_id: Optional document ID to exclude (useful when renaming)

    Returns:
        MongoDB filter

    Examples:
        >>> name_query("u1", "Work")["name"]
        {'$regex': '^Work$', '$options': 'i'}
    """
    query = {
        "user_id": user_id,
        "name": {"$regex": f"^{re.escape(name)}$", "$options": "i"},
    }
    if exclude_id is not None:
        query["_id"] = {"$ne": exclude_id}
    return query


async def find_by_name(collection, user_id: str, name: str, exclude_id=None) -> Optional[dict]:
    """Find a context or tag by name, ignoring case."""
    return await collection.find_one(name_query(user_id, name, exclude_id))
