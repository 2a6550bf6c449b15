"""Grouping of per-day totals into a bounded number of chart buckets."""
from dataclasses import dataclass, field
from datetime import date

from habimori.models.stats import ChartBucket
from habimori.utils.aggregation import round_half_up
from habimori.utils.periods import iso_date, week_start

DAY = "day"
WEEK = "week"
MONTH = "month"
GROUPING_MODES = (DAY, WEEK, MONTH)


@dataclass
class DayTotal:
    """Tracked amount for one day, with per-context and per-tag breakdowns."""

    day: date
    total: float
    contexts: dict[str, float] = field(default_factory=dict)
    tags: dict[str, float] = field(default_factory=dict)


@dataclass
class _Group:
    key: str
    start: date
    end: date
    total: float = 0.0
    contexts: dict[str, float] = field(default_factory=dict)
    tags: dict[str, float] = field(default_factory=dict)


def format_day_label(day: date) -> str:
    return day.strftime("%d.%m")


def format_range_label(start: date, end: date) -> str:
    """
    Chart label for a bucket.

    Examples:
        >>> format_range_label(date(2024, 1, 15), date(2024, 1, 15))
        '15.01'
        >>> format_range_label(date(2024, 1, 15), date(2024, 1, 21))
        '15.01-21.01'
    """
    start_label = format_day_label(start)
    end_label = format_day_label(end)
    if start_label == end_label:
        return start_label
    return f"{start_label}-{end_label}"


def group_key(day: date, mode: str) -> str:
    if mode == WEEK:
        return iso_date(week_start(day))
    if mode == MONTH:
        return f"{day.year}-{day.month}"
    return iso_date(day)


def _add_into(target: dict[str, float], values: dict[str, float]) -> None:
    for name, value in values.items():
        target[name] = target.get(name, 0.0) + value


def group_items(items: list[DayTotal], mode: str) -> list[_Group]:
    """Merge consecutive items that share a grouping key."""
    groups: list[_Group] = []
    for item in items:
        key = group_key(item.day, mode)
        if not groups or groups[-1].key != key:
            groups.append(_Group(key=key, start=item.day, end=item.day))

        current = groups[-1]
        current.end = item.day
        current.total += item.total
        _add_into(current.contexts, item.contexts)
        _add_into(current.tags, item.tags)
    return groups


def bucket_day_totals(
    items: list[DayTotal],
    max_buckets: int = 10,
) -> list[ChartBucket]:
    """
    Bucket per-day totals for charting.

    Zero days are dropped. Grouping escalates from day to ISO week to month
    while there are more than ``max_buckets`` groups; if months still exceed
    the limit only the first ``max_buckets`` are kept.

    Args:
        items: Per-day totals, ordered by day
        max_buckets: Upper bound on the number of buckets

    Returns:
        Buckets with rounded totals
    """
    non_zero = sorted((item for item in items if item.total > 0), key=lambda i: i.day)

    groups: list[_Group] = []
    for mode in GROUPING_MODES:
        groups = group_items(non_zero, mode)
        if len(groups) <= max_buckets:
            break
    groups = groups[:max_buckets]

    return [
        ChartBucket(
            key=group.key,
            label=format_range_label(group.start, group.end),
            start=group.start,
            end=group.end,
            total=round_half_up(group.total),
            contexts={k: round_half_up(v) for k, v in group.contexts.items()},
            tags={k: round_half_up(v) for k, v in group.tags.items()},
        )
        for group in groups
    ]
