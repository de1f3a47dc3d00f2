"""Calendar helpers working on civil dates."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import List, Optional, Union
from zoneinfo import ZoneInfo

from config import CHALLENGE_TIMEZONE


DayLike = Union[date, datetime, str]


def parse_day(value: DayLike) -> date:
    """Reduce a date, datetime or ISO string to a calendar day.

    Strings are read as ``YYYY-MM-DD`` (anything after the first ten
    characters is ignored) so a stored day never shifts through UTC.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return date.fromisoformat(value.strip()[:10])
    raise TypeError(f"Cannot interpret {value!r} as a calendar day")


def _zone(tz_name: Optional[str]):
    name = tz_name or CHALLENGE_TIMEZONE
    if name.upper() == "UTC":
        return timezone.utc
    return ZoneInfo(name)


def local_day(ts: datetime, tz_name: Optional[str] = None) -> date:
    """Civil day of ``ts`` in the reference timezone.

    Naive timestamps are taken as already local.
    """
    if ts.tzinfo is None:
        return ts.date()
    return ts.astimezone(_zone(tz_name)).date()


def today(tz_name: Optional[str] = None) -> date:
    return datetime.now(_zone(tz_name)).date()


def month_end(day: date) -> date:
    first_of_next = (day.replace(day=1) + timedelta(days=32)).replace(day=1)
    return first_of_next - timedelta(days=1)


def dates_in_range(start: DayLike, end: DayLike) -> List[date]:
    """Every calendar day from ``start`` to ``end``, both inclusive.

    Returns an empty list when ``start`` is after ``end``.
    """
    cur = parse_day(start)
    last = parse_day(end)
    out: List[date] = []
    while cur <= last:
        out.append(cur)
        cur = cur + timedelta(days=1)
    return out


def iso_dates_in_range(start: DayLike, end: DayLike) -> List[str]:
    return [d.isoformat() for d in dates_in_range(start, end)]
