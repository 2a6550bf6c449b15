"""Counter event model definitions."""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from habimori.config import settings
from habimori.utils.periods import assume_local


class CounterIncrement(BaseModel):
    """Request to add to a counter goal."""

    delta: int = 1
    occurred_at: Optional[datetime] = None

    @field_validator("occurred_at")
    @classmethod
    def _assume_local(cls, v: Optional[datetime]) -> Optional[datetime]:
        return assume_local(v, settings.tzinfo)


class CounterEvent(BaseModel):
    """Persisted counter event."""

    id: str = Field(alias="_id", serialization_alias="id")
    user_id: str
    goal_id: Optional[str] = None
    context_id: str
    tag_ids: list[str] = Field(default_factory=list)
    occurred_at: datetime
    value_delta: int
    created_at: datetime

    model_config = {"populate_by_name": True}


class CounterIncrementResult(BaseModel):
    """Optimistic state right after an increment was accepted."""

    goal_id: str
    mutation_id: int
    pending_delta: int
