"""Context and tag model definitions.

Both are plain named buckets owned by a user.
"""
from datetime import datetime

from pydantic import BaseModel, Field


class NamedCreate(BaseModel):
    """Create or rename payload."""

    name: str


class Context(BaseModel):
    """A category a goal or event belongs to (e.g. "Work")."""

    id: str = Field(alias="_id", serialization_alias="id")
    user_id: str
    name: str
    created_at: datetime

    model_config = {"populate_by_name": True}


class Tag(BaseModel):
    """A free label attached to goals and events."""

    id: str = Field(alias="_id", serialization_alias="id")
    user_id: str
    name: str
    created_at: datetime

    model_config = {"populate_by_name": True}
