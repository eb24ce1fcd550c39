"""Date helpers for Hablits.

Day keys are local calendar days (YYYY-MM-DD). A datetime is keyed by its
own wall-clock date, never by its UTC date, so late-evening entries do not
slide onto the next day.
"""

from __future__ import annotations

from calendar import monthrange
from datetime import date, datetime, timedelta, tzinfo

DayLike = date | datetime | str


def parse_day_key(key: str) -> date:
    """Parse 'YYYY-MM-DD' (a trailing time part is ignored)."""
    key = key.strip()
    if len(key) > 10:
        return datetime.fromisoformat(key).date()
    return date.fromisoformat(key)


def as_date(value: DayLike, tz: tzinfo | None = None) -> date:
    if isinstance(value, str):
        return parse_day_key(value)
    if isinstance(value, datetime):
        if tz is not None and value.tzinfo is not None:
            value = value.astimezone(tz)
        return value.date()
    if isinstance(value, date):
        return value
    raise TypeError(f"Expected a date, datetime or day key, got {type(value).__name__}")


def day_key(value: DayLike, tz: tzinfo | None = None) -> str:
    """Normalize any date-ish value to its local day key."""
    return as_date(value, tz).isoformat()


def add_days(value: DayLike, days: int) -> date:
    return as_date(value) + timedelta(days=days)


def mask_index(value: DayLike) -> int:
    """Index into a 7-day mask where Sunday = 0."""
    return (as_date(value).weekday() + 1) % 7


def week_start(value: DayLike) -> date:
    """Monday of the week containing *value*."""
    d = as_date(value)
    return d - timedelta(days=d.weekday())


def week_days(value: DayLike) -> list[date]:
    """The seven dates Monday..Sunday of the week containing *value*."""
    start = week_start(value)
    return [start + timedelta(days=i) for i in range(7)]


def month_start(value: DayLike) -> date:
    return as_date(value).replace(day=1)


def month_end(value: DayLike) -> date:
    d = as_date(value)
    return d.replace(day=monthrange(d.year, d.month)[1])


def month_cells(value: DayLike) -> list[date | None]:
    """42 calendar cells (6 weeks, Monday first) with None outside the month."""
    first = month_start(value)
    total = monthrange(first.year, first.month)[1]
    cells: list[date | None] = [None] * first.weekday()
    cells.extend(first.replace(day=n) for n in range(1, total + 1))
    cells.extend([None] * (42 - len(cells)))
    return cells


def is_same_day(a: DayLike, b: DayLike) -> bool:
    return as_date(a) == as_date(b)
