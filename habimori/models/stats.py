"""Calendar and statistics response models."""
from datetime import date

from pydantic import BaseModel, Field


class DayStatus(BaseModel):
    """Which statuses appear among the goal periods touching a day."""

    success: bool = False
    in_progress: bool = False
    fail: bool = False
    success_count: int = 0
    in_progress_count: int = 0
    fail_count: int = 0


class ChartBucket(BaseModel):
    """One bar of the tracked-time chart."""

    key: str
    label: str
    start: date
    end: date
    total: int
    contexts: dict[str, int] = Field(default_factory=dict)
    tags: dict[str, int] = Field(default_factory=dict)


class StatusSeries(BaseModel):
    """Per-day counts of goal period statuses, aligned with ``dates``."""

    success: list[int] = Field(default_factory=list)
    fail: list[int] = Field(default_factory=list)
    in_progress: list[int] = Field(default_factory=list)


class StatsSummary(BaseModel):
    """Statistics for a date range."""

    dates: list[str]
    status_series: StatusSeries
    total_tracked_minutes: int
    time_buckets: list[ChartBucket]
    context_totals: dict[str, int] = Field(default_factory=dict)
    tag_totals: dict[str, int] = Field(default_factory=dict)
