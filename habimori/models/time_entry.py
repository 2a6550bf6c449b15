"""Time entry model definitions."""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from habimori.config import settings
from habimori.utils.periods import assume_local


class TimeEntryBase(BaseModel):
    """Base time entry fields."""

    context_id: str
    goal_id: Optional[str] = None
    tag_ids: list[str] = Field(default_factory=list)
    started_at: datetime
    ended_at: Optional[datetime] = None


class TimeEntryCreate(BaseModel):
    """Manual (already finished) time entry creation model."""

    context_id: str
    goal_id: Optional[str] = None
    tag_ids: list[str] = Field(default_factory=list)
    started_at: datetime
    ended_at: datetime

    @field_validator("started_at", "ended_at")
    @classmethod
    def _assume_local(cls, v: datetime) -> datetime:
        return assume_local(v, settings.tzinfo)


class TimeEntryUpdate(BaseModel):
    """Time entry update model - start/end adjustment and tags."""

    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    tag_ids: Optional[list[str]] = None

    @field_validator("started_at", "ended_at")
    @classmethod
    def _assume_local(cls, v: Optional[datetime]) -> Optional[datetime]:
        return assume_local(v, settings.tzinfo)


class TimeEntry(TimeEntryBase):
    """Full time entry model with database fields."""

    id: str = Field(alias="_id", serialization_alias="id")
    user_id: str
    created_at: datetime
    updated_at: datetime

    model_config = {"populate_by_name": True}
