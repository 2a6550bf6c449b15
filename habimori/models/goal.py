"""Goal model definitions."""
from datetime import date, datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class GoalType(str, Enum):
    """What a goal measures."""

    TIME = "time"
    COUNTER = "counter"
    CHECK = "check"


class Period(str, Enum):
    """Cadence over which goal progress resets."""

    DAY = "day"
    WEEK = "week"
    MONTH = "month"


class TargetOp(str, Enum):
    """Comparison applied to the target value."""

    GTE = "gte"
    LTE = "lte"


class GoalStatus(str, Enum):
    """Status of one goal period."""

    SUCCESS = "success"
    FAIL = "fail"
    IN_PROGRESS = "in_progress"
    ARCHIVED = "archived"


class GoalBase(BaseModel):
    """Base goal fields."""

    title: str
    goal_type: GoalType
    period: Period
    target_value: float = Field(ge=0)
    target_op: TargetOp = TargetOp.GTE
    start_date: date
    end_date: date
    context_id: str
    tag_ids: list[str] = Field(default_factory=list)


class GoalCreate(GoalBase):
    """Goal creation model."""

    pass


class GoalUpdate(BaseModel):
    """Goal update model - only the editable fields, all optional."""

    title: Optional[str] = None
    end_date: Optional[date] = None
    tag_ids: Optional[list[str]] = None


class Goal(GoalBase):
    """Full goal model with database fields."""

    id: str = Field(alias="_id", serialization_alias="id")
    user_id: str
    is_active: bool = True
    is_archived: bool = False
    created_at: datetime
    updated_at: datetime

    model_config = {"populate_by_name": True}
