"""Goal period (materialized status row) model definitions."""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from habimori.models.goal import GoalStatus


class GoalPeriod(BaseModel):
    """Derived status of one goal in one concrete period.

    Keyed by (goal_id, period_start, period_end); always re-derivable from
    the goal and its raw events.
    """

    goal_id: str
    period_start: str
    period_end: str
    actual_value: float
    status: GoalStatus
    calculated_at: datetime

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.goal_id, self.period_start, self.period_end)


class RecalcResult(BaseModel):
    """Outcome of a goal period recalculation."""

    goal_id: str
    error: Optional[str] = None
    periods_written: int = 0

    @property
    def ok(self) -> bool:
        return self.error is None


class GoalProgress(BaseModel):
    """Live progress of a goal in the period containing a reference date."""

    goal_id: str
    period_start: str
    period_end: str
    actual_value: float
    actual_seconds: Optional[int] = None
    status: GoalStatus
    running: bool = False
    pending_delta: int = 0
    pending_state: Optional[bool] = None
    error: Optional[str] = None  # failed write of the current mutation, if any
