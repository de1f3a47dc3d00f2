"""Milestone partitioning of a challenge's date range."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Dict, List, Optional

from .dates import dates_in_range, month_end, parse_day
from .schemas import ChallengeDefinitionError, Granularity, load_challenge


ALL_TIME_LABEL = "All Time"


class MilestoneCoverageError(RuntimeError):
    """Raised when generated milestones do not tile the challenge range."""


@dataclass(frozen=True)
class Milestone:
    index: int
    label: str
    start_date: date
    end_date: date

    def contains(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date

    def days(self) -> List[date]:
        return dates_in_range(self.start_date, self.end_date)

    def as_dict(self) -> Dict[str, object]:
        return {
            "index": self.index,
            "label": self.label,
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
        }


def _challenge_bounds(challenge: Any):
    if isinstance(challenge, dict):
        challenge = load_challenge(challenge)
    start = getattr(challenge, "start_date", None)
    end = getattr(challenge, "end_date", None)
    granularity = getattr(challenge, "milestone_granularity", None)
    if start is None or end is None:
        raise ChallengeDefinitionError("Challenge is missing start_date or end_date")
    if granularity is None:
        raise ChallengeDefinitionError("Challenge is missing milestone_granularity")
    try:
        return parse_day(start), parse_day(end), Granularity.parse(granularity)
    except (TypeError, ValueError) as exc:
        raise ChallengeDefinitionError(str(exc)) from exc


def _period_end(cursor: date, granularity: Granularity) -> date:
    if granularity is Granularity.DAY:
        return cursor
    if granularity is Granularity.WEEK:
        return cursor + timedelta(days=6)
    return month_end(cursor)


def _verify_coverage(milestones: List[Milestone], start: date, end: date) -> None:
    expected = start
    for m in milestones:
        if m.start_date != expected or m.end_date < m.start_date:
            raise MilestoneCoverageError(
                f"{m.label} starts {m.start_date.isoformat()}, expected {expected.isoformat()}"
            )
        expected = m.end_date + timedelta(days=1)
    if milestones and milestones[-1].end_date != end:
        raise MilestoneCoverageError(
            f"Last milestone ends {milestones[-1].end_date.isoformat()}, expected {end.isoformat()}"
        )


def partition(challenge: Any) -> List[Milestone]:
    """Split the challenge range into labelled day/week/month periods.

    The periods are contiguous, never overlap, and the last one is cut at
    the challenge end date. A reversed range yields no milestones.
    """
    start, end, granularity = _challenge_bounds(challenge)
    out: List[Milestone] = []
    cursor = start
    index = 1
    while cursor <= end:
        period_end = min(_period_end(cursor, granularity), end)
        out.append(Milestone(index, f"{granularity.unit} {index}", cursor, period_end))
        cursor = period_end + timedelta(days=1)
        index += 1
    _verify_coverage(out, start, end)
    return out


def all_time_window(challenge: Any) -> Milestone:
    start, end, _ = _challenge_bounds(challenge)
    return Milestone(0, ALL_TIME_LABEL, start, end)


def milestone_for(milestones: List[Milestone], reference_date: Any) -> Optional[Milestone]:
    day = parse_day(reference_date)
    for m in milestones:
        if m.contains(day):
            return m
    return None


def select_window(
    challenge: Any,
    reference_date: Any = None,
    index: Optional[int] = None,
    all_time: bool = False,
) -> Optional[Milestone]:
    """Pick the window a leaderboard or progress view should show.

    Priority: all-time, explicit milestone index, the milestone containing
    ``reference_date``, then the first milestone.
    """
    if all_time or index == 0:
        return all_time_window(challenge)
    milestones = partition(challenge)
    if index is not None:
        return next((m for m in milestones if m.index == index), None)
    if reference_date is not None:
        found = milestone_for(milestones, reference_date)
        if found:
            return found
    return milestones[0] if milestones else None
