"""Daily completion status for a participant."""

from __future__ import annotations

from datetime import date
from enum import Enum
from typing import Any, Iterable, List, Tuple

from .dates import parse_day
from .logs import normalize_logs


class DayStatus(str, Enum):
    NONE = "none"
    PARTIAL = "partial"
    FULL = "full"

    @property
    def caption(self) -> str:
        return {"none": "No Activity", "partial": "Partial", "full": "All Done"}[self.value]


def _completed_by_day(logs: Iterable[Any]) -> dict:
    by_day: dict = {}
    for log in normalize_logs(logs):
        if log.completed:
            by_day.setdefault(log.day, set()).add(log.activity_id)
    return by_day


def _classify(done: set, required: set) -> DayStatus:
    if not done:
        return DayStatus.NONE
    # Nothing can be met against an empty requirement set.
    if not required:
        return DayStatus.NONE
    if required.issubset(done):
        return DayStatus.FULL
    return DayStatus.PARTIAL


def daily_status(day: Any, logs: Iterable[Any], required_activities: Iterable[str]) -> DayStatus:
    done = _completed_by_day(logs).get(parse_day(day), set())
    return _classify(done, set(required_activities))


def window_statuses(
    days: Iterable[date],
    logs: Iterable[Any],
    required_activities: Iterable[str],
) -> List[Tuple[date, DayStatus]]:
    by_day = _completed_by_day(logs)
    required = set(required_activities)
    return [(d, _classify(by_day.get(d, set()), required)) for d in days]
