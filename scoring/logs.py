"""Natural-key handling for in-memory activity log sets."""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Tuple

from .schemas import ActivityLogEntry


logger = logging.getLogger(__name__)

NaturalKey = Tuple[str, date, str]


def coerce_log(obj: Any) -> ActivityLogEntry:
    if isinstance(obj, ActivityLogEntry):
        return obj
    if isinstance(obj, dict):
        return ActivityLogEntry.model_validate(obj)
    return ActivityLogEntry.model_validate(obj, from_attributes=True)


def natural_key(log: ActivityLogEntry) -> NaturalKey:
    return (log.participant_id, log.day, log.activity_id)


def _supersedes(new: ActivityLogEntry, old: ActivityLogEntry) -> bool:
    # Missing timestamps never beat a known one; equal stamps go to the later arrival.
    if new.timestamp is None:
        return old.timestamp is None
    if old.timestamp is None:
        return True
    return new.timestamp >= old.timestamp


def normalize_logs(logs: Iterable[Any]) -> List[ActivityLogEntry]:
    """Collapse ``logs`` to one entry per natural key, latest write wins.

    The result is ordered by day, then timestamp, so "last value of the
    window" style aggregations read it front to back.
    """
    latest: Dict[NaturalKey, ActivityLogEntry] = {}
    dropped = 0
    for raw in logs or []:
        log = coerce_log(raw)
        key = natural_key(log)
        current = latest.get(key)
        if current is None:
            latest[key] = log
            continue
        dropped += 1
        if _supersedes(log, current):
            latest[key] = log
    if dropped:
        logger.debug("Collapsed %s duplicate activity log(s) by natural key", dropped)
    return sorted(latest.values(), key=lambda l: (l.day, l.timestamp or datetime.min))


def upsert_log(logs: Iterable[Any], log: Any) -> List[ActivityLogEntry]:
    """Return a new log set with ``log`` applied on top of ``logs``."""

    return normalize_logs([*logs, coerce_log(log)])


def group_by_participant(logs: Iterable[Any]) -> Dict[str, List[ActivityLogEntry]]:
    grouped: Dict[str, List[ActivityLogEntry]] = {}
    for log in normalize_logs(logs):
        grouped.setdefault(log.participant_id, []).append(log)
    return grouped
