"""Check event model definitions."""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from habimori.config import settings
from habimori.utils.periods import assume_local


class CheckToggle(BaseModel):
    """Request to set a check goal; ``state`` omitted means flip."""

    state: Optional[bool] = None
    occurred_at: Optional[datetime] = None

    @field_validator("occurred_at")
    @classmethod
    def _assume_local(cls, v: Optional[datetime]) -> Optional[datetime]:
        return assume_local(v, settings.tzinfo)


class CheckEvent(BaseModel):
    """Persisted check event."""

    id: str = Field(alias="_id", serialization_alias="id")
    user_id: str
    goal_id: Optional[str] = None
    context_id: str
    tag_ids: list[str] = Field(default_factory=list)
    occurred_at: datetime
    state: bool
    created_at: datetime

    model_config = {"populate_by_name": True}


class CheckToggleResult(BaseModel):
    """Optimistic state right after a toggle was accepted."""

    goal_id: str
    mutation_id: int
    state: bool
