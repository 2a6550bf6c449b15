"""Period range utilities.

A period range is the canonical [start, end) interval of one goal period
(a calendar day, a Monday-based week or a calendar month) together with the
inclusive ``YYYY-MM-DD`` labels used as the goal period row key.
"""
from datetime import date, datetime, time, timedelta, tzinfo
from typing import NamedTuple, Optional, Union

from habimori.models.goal import Period

DateLike = Union[date, datetime]


class PeriodRange(NamedTuple):
    """Boundaries of one concrete period instance."""

    start: datetime
    end: datetime  # exclusive
    period_start: str
    period_end: str  # inclusive label

    @property
    def key(self) -> tuple[str, str]:
        return (self.period_start, self.period_end)


def to_local_date(value: DateLike, tz: Optional[tzinfo] = None) -> date:
    """
    Reduce a date or instant to the calendar date it falls on in ``tz``.

    Args:
        value: Date, naive datetime (already local) or aware datetime
        tz: Local zone; aware datetimes are converted into it first

    Returns:
        Calendar date
    """
    if isinstance(value, datetime):
        if tz is not None and value.tzinfo is not None:
            value = value.astimezone(tz)
        return value.date()
    return value


def assume_local(value: Optional[datetime], tz: Optional[tzinfo] = None) -> Optional[datetime]:
    """Attach ``tz`` to a naive datetime; aware values and None pass through."""
    if value is None or value.tzinfo is not None or tz is None:
        return value
    return value.replace(tzinfo=tz)


def local_midnight(day: date, tz: Optional[tzinfo] = None) -> datetime:
    """Midnight at the start of ``day`` (naive when ``tz`` is None)."""
    return datetime.combine(day, time.min, tzinfo=tz)


def iso_date(day: date) -> str:
    return day.strftime("%Y-%m-%d")


def week_start(day: date) -> date:
    """Monday of the week containing ``day``."""
    return day - timedelta(days=day.weekday())


def _first_of_next_month(day: date) -> date:
    if day.month == 12:
        return date(day.year + 1, 1, 1)
    return date(day.year, day.month + 1, 1)


def range_for(
    period: Period,
    value: DateLike,
    tz: Optional[tzinfo] = None,
) -> PeriodRange:
    """
    Compute the period range containing a date.

    Args:
        period: Goal period granularity
        value: Reference date or instant
        tz: Local zone for midnight alignment

    Returns:
        PeriodRange with local-midnight start and exclusive end

    Examples:
        >>> r = range_for(Period.WEEK, date(2024, 1, 17))
        >>> (r.period_start, r.period_end)
        ('2024-01-15', '2024-01-21')
        >>> range_for(Period.MONTH, date(2024, 2, 10)).period_end
        '2024-02-29'
    """
    day = to_local_date(value, tz)
    period = Period(period)

    if period == Period.DAY:
        first, next_first = day, day + timedelta(days=1)
    elif period == Period.WEEK:
        first = week_start(day)
        next_first = first + timedelta(days=7)
    else:
        first = day.replace(day=1)
        next_first = _first_of_next_month(first)

    return PeriodRange(
        start=local_midnight(first, tz),
        end=local_midnight(next_first, tz),
        period_start=iso_date(first),
        period_end=iso_date(next_first - timedelta(days=1)),
    )


def list_ranges(
    period: Period,
    start_date: DateLike,
    end_date: DateLike,
    tz: Optional[tzinfo] = None,
) -> list[PeriodRange]:
    """
    Enumerate every period range intersecting [start_date, end_date].

    Ranges are contiguous: each one starts where the previous one ends.

    Args:
        period: Goal period granularity
        start_date: First day of the span (inclusive)
        end_date: Last day of the span (inclusive)
        tz: Local zone for midnight alignment

    Returns:
        Ordered list of ranges; empty when end_date precedes start_date
    """
    last_day = to_local_date(end_date, tz)
    ranges: list[PeriodRange] = []

    cursor = to_local_date(start_date, tz)
    while cursor <= last_day:
        current = range_for(period, cursor, tz)
        ranges.append(current)
        cursor = date.fromisoformat(current.period_end) + timedelta(days=1)

    return ranges


def list_days(start: date, end: date) -> list[date]:
    """Every calendar day in [start, end]."""
    days = []
    cursor = start
    while cursor <= end:
        days.append(cursor)
        cursor += timedelta(days=1)
    return days
