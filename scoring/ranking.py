"""Dense ranking and leaderboard assembly."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date
from typing import Any, Iterable, List, Mapping, Optional, Tuple

from .aggregate import all_time_stats, challenge_window_stats
from .logs import group_by_participant
from .milestones import Milestone, select_window
from .schemas import load_challenge
from .status import DayStatus, window_statuses


@dataclass(frozen=True)
class LeaderboardEntry:
    participant_id: str
    display_name: str
    score: int
    rank: int = 0
    goal_met: bool = False
    daily_statuses: Tuple[Tuple[date, DayStatus], ...] = ()

    def as_dict(self) -> dict:
        return {
            "participant_id": self.participant_id,
            "display_name": self.display_name,
            "score": self.score,
            "rank": self.rank,
            "goal_met": self.goal_met,
            "daily_statuses": [
                {"date": d.isoformat(), "status": s.value} for d, s in self.daily_statuses
            ],
        }


def _entry(obj: Any) -> LeaderboardEntry:
    if isinstance(obj, LeaderboardEntry):
        return obj
    get = obj.get if isinstance(obj, Mapping) else lambda k, d=None: getattr(obj, k, d)
    pid = str(get("participant_id"))
    return LeaderboardEntry(
        participant_id=pid,
        display_name=get("display_name") or pid,
        score=int(get("score") or 0),
        goal_met=bool(get("goal_met", False)),
        daily_statuses=tuple(get("daily_statuses") or ()),
    )


def rank(entries: Iterable[Any]) -> List[LeaderboardEntry]:
    """Sort by score (highest first) and assign dense ranks.

    Equal scores share a rank and the next lower score gets the next
    integer, so [50, 50, 30] ranks as [1, 1, 2]. Ties are ordered by
    participant id.
    """
    ordered = sorted((_entry(e) for e in entries), key=lambda e: (-e.score, e.participant_id))
    current_rank = 0
    last_score: Optional[int] = None
    out: List[LeaderboardEntry] = []
    for entry in ordered:
        if entry.score != last_score:
            current_rank += 1
            last_score = entry.score
        out.append(replace(entry, rank=current_rank))
    return out


def build_leaderboard(
    challenge: Any,
    logs: Iterable[Any],
    participants: Optional[Mapping[Any, str]] = None,
    window: Optional[Milestone] = None,
    reference_date: Any = None,
    index: Optional[int] = None,
    all_time: bool = False,
) -> List[LeaderboardEntry]:
    """Rank every participant for one window of the challenge.

    ``participants`` maps participant id to display name; when omitted the
    participants are taken from the logs. The all-time view sums milestone
    scores and carries no per-day statuses.
    """
    challenge = load_challenge(challenge)
    if window is None:
        window = select_window(challenge, reference_date=reference_date, index=index, all_time=all_time)
    if window is None:
        return []

    by_participant = group_by_participant(logs)
    if participants is None:
        directory = {pid: pid for pid in by_participant}
    else:
        directory = {str(pid): name for pid, name in participants.items()}

    is_all_time = window.index == 0
    days = [] if is_all_time else window.days()
    required = challenge.required_activity_ids

    entries = []
    for pid, name in directory.items():
        own = by_participant.get(pid, [])
        if is_all_time:
            totals = all_time_stats(challenge, own)
            score, goal_met = totals.score, totals.successful
        else:
            stats = challenge_window_stats(challenge, window.start_date, window.end_date, own)
            score, goal_met = stats.score, stats.successful
        entries.append(
            LeaderboardEntry(
                participant_id=pid,
                display_name=name or pid,
                score=score,
                goal_met=goal_met,
                daily_statuses=tuple(window_statuses(days, own, required)),
            )
        )
    return rank(entries)
