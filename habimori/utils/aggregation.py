"""Event aggregation - the actual value of a goal over an interval.

All functions are pure and operate on raw event documents as stored in
MongoDB (mappings with ``started_at``/``ended_at``, ``occurred_at`` and
``value_delta`` or ``state`` keys).
"""
import math
from datetime import datetime
from typing import Iterable, Mapping, Optional

from habimori.models.goal import GoalType

MINUTES = "minutes"
SECONDS = "seconds"


def round_half_up(value: float) -> int:
    """
    Round to the nearest integer, halves away from zero for positives.

    Examples:
        >>> round_half_up(2.5)
        3
        >>> round_half_up(59.4)
        59
    """
    return math.floor(value + 0.5)


def overlap_seconds(
    entry_start: datetime,
    entry_end: datetime,
    range_start: datetime,
    range_end: datetime,
) -> float:
    """
    Length of the intersection of two intervals, in seconds (never negative).

    Args:
        entry_start: Start of the first interval
        entry_end: End of the first interval
        range_start: Start of the second interval
        range_end: End of the second interval (exclusive)

    Returns:
        Overlap in seconds
    """
    start = max(entry_start, range_start)
    end = min(entry_end, range_end)
    if end <= start:
        return 0.0
    return (end - start).total_seconds()


def entry_overlap_seconds(
    entry: Mapping,
    range_start: datetime,
    range_end: datetime,
    now: Optional[datetime] = None,
) -> float:
    """Overlap of one time entry with a range; running entries end at ``now``."""
    ended_at = entry.get("ended_at")
    if ended_at is None:
        if now is None:
            return 0.0
        ended_at = now
    return overlap_seconds(entry["started_at"], ended_at, range_start, range_end)


def time_total(
    entries: Iterable[Mapping],
    range_start: datetime,
    range_end: datetime,
    now: Optional[datetime] = None,
    include_running: bool = False,
    unit: str = MINUTES,
) -> int:
    """
    Total tracked time of entries inside [range_start, range_end).

    Args:
        entries: Time entry documents
        range_start: Range start
        range_end: Range end (exclusive)
        now: Effective end of running entries
        include_running: Count entries without ``ended_at`` (display only)
        unit: ``"minutes"`` (rounded half up) or ``"seconds"`` (rounded up)

    Returns:
        Total in the requested unit
    """
    running_end = now if include_running else None
    total = sum(
        entry_overlap_seconds(entry, range_start, range_end, running_end)
        for entry in entries
    )

    if unit == SECONDS:
        return math.ceil(total)
    return round_half_up(total / 60)


def _in_range(event: Mapping, range_start: datetime, range_end: datetime) -> bool:
    return range_start <= event["occurred_at"] < range_end


def counter_total(
    events: Iterable[Mapping],
    range_start: datetime,
    range_end: datetime,
) -> int:
    """Sum of ``value_delta`` for events in [range_start, range_end)."""
    return sum(
        event["value_delta"]
        for event in events
        if _in_range(event, range_start, range_end)
    )


def check_value(
    events: Iterable[Mapping],
    range_start: datetime,
    range_end: datetime,
) -> int:
    """1 if the latest check event in range is checked, else 0."""
    latest = None
    for event in events:
        if not _in_range(event, range_start, range_end):
            continue
        if latest is None or event["occurred_at"] > latest["occurred_at"]:
            latest = event

    if latest is None:
        return 0
    return 1 if latest["state"] else 0


def actual_value(
    goal_type: GoalType,
    events: Iterable[Mapping],
    range_start: datetime,
    range_end: datetime,
    now: Optional[datetime] = None,
    include_running: bool = False,
    unit: str = MINUTES,
) -> int:
    """
    Goal-type specific accumulated value over [range_start, range_end).

    Time goals are measured in ``unit``; counter goals in summed deltas;
    check goals as 0/1.

    Examples:
        >>> from datetime import datetime
        >>> entries = [{"started_at": datetime(2024, 1, 15, 23),
        ...             "ended_at": datetime(2024, 1, 16, 1)}]
        >>> actual_value(GoalType.TIME, entries,
        ...              datetime(2024, 1, 15), datetime(2024, 1, 16))
        60
    """
    goal_type = GoalType(goal_type)

    if goal_type == GoalType.TIME:
        return time_total(
            events,
            range_start,
            range_end,
            now=now,
            include_running=include_running,
            unit=unit,
        )
    if goal_type == GoalType.COUNTER:
        return counter_total(events, range_start, range_end)
    return check_value(events, range_start, range_end)
