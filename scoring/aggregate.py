"""Windowed scoring of activity logs."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from pydantic import TypeAdapter

from .analysis import aggregate_metric, df_logs, distinct_days
from .dates import parse_day
from .logs import normalize_logs
from .milestones import Milestone, partition
from .schemas import (
    FixedCategoryCaps,
    MetricThresholdBrackets,
    ScoringRule,
    ScoringStrategy,
    load_challenge,
)


logger = logging.getLogger(__name__)

_strategy_adapter = TypeAdapter(ScoringStrategy)


@dataclass
class WindowStats:
    start: date
    end: date
    day_counts: Dict[str, int] = field(default_factory=dict)
    values: Dict[str, float] = field(default_factory=dict)
    points: Dict[str, int] = field(default_factory=dict)
    score: int = 0
    successful: bool = False

    def as_dict(self) -> Dict[str, object]:
        return {
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "day_counts": dict(self.day_counts),
            "values": dict(self.values),
            "points": dict(self.points),
            "score": self.score,
            "successful": self.successful,
        }


@dataclass
class AllTimeStats:
    score: int
    successful: bool
    milestones: List[Tuple[Milestone, WindowStats]]


def bracket_points(value: float, rules: Iterable[ScoringRule]) -> int:
    """Points of the highest-priority rule whose range contains ``value``.

    Equal priorities keep definition order; no match scores 0.
    """
    matching = [r for r in rules if r.matches(value)]
    if not matching:
        return 0
    return sorted(matching, key=lambda r: r.priority, reverse=True)[0].points


def _as_strategy(strategy: Any):
    if isinstance(strategy, (FixedCategoryCaps, MetricThresholdBrackets)):
        return strategy
    return _strategy_adapter.validate_python(strategy)


def _fixed_caps(stats: WindowStats, counts: Dict[str, int], strategy: FixedCategoryCaps) -> None:
    day_counts = {c: 0 for c in strategy.caps}
    day_counts.update({c: 0 for c in strategy.thresholds})
    day_counts.update(counts)

    for category, count in day_counts.items():
        cap = strategy.caps.get(category)
        if cap is None:
            logger.debug("Category %s has no cap configured; scoring it as 0", category)
            stats.points[category] = 0
            continue
        stats.points[category] = min(count, cap)

    stats.day_counts = day_counts
    stats.values = {c: float(n) for c, n in day_counts.items()}
    stats.score = sum(stats.points.values())
    stats.successful = bool(strategy.thresholds) and all(
        day_counts.get(c, 0) >= minimum for c, minimum in strategy.thresholds.items()
    )


def _metric_brackets(stats: WindowStats, frame, counts: Dict[str, int], strategy: MetricThresholdBrackets) -> None:
    day_counts = {m.category: 0 for m in strategy.metrics}
    day_counts.update(counts)

    score = 0
    for metric in strategy.metrics:
        value = aggregate_metric(frame, metric.category, metric.aggregation)
        points = bracket_points(value, metric.rules)
        stats.values[metric.category] = value
        stats.points[metric.category] = stats.points.get(metric.category, 0) + points
        score += points

    for category in counts:
        if category not in stats.points:
            logger.debug("Category %s is not a scored metric; scoring it as 0", category)
            stats.points[category] = 0

    targets = [m for m in strategy.metrics if m.target is not None]
    stats.day_counts = day_counts
    stats.score = score
    stats.successful = bool(targets) and all(stats.values[m.category] >= m.target for m in targets)


def window_stats(
    window_start: Any,
    window_end: Any,
    logs: Iterable[Any],
    strategy: Any,
    category_map: Optional[Mapping[str, str]] = None,
) -> WindowStats:
    """Score one participant's logs over the inclusive window.

    Only completed logs count. Per category the distinct days are counted
    (two logs on the same day count once); how those counts turn into a
    score depends on the strategy.
    """
    start = parse_day(window_start)
    end = parse_day(window_end)
    strategy = _as_strategy(strategy)

    frame = df_logs(logs, category_map, start, end)
    counts = distinct_days(frame)

    stats = WindowStats(start=start, end=end)
    if isinstance(strategy, FixedCategoryCaps):
        _fixed_caps(stats, counts, strategy)
    else:
        _metric_brackets(stats, frame, counts, strategy)
    return stats


def challenge_window_stats(challenge: Any, window_start: Any, window_end: Any, logs: Iterable[Any]) -> WindowStats:
    challenge = load_challenge(challenge)
    return window_stats(window_start, window_end, logs, challenge.scoring, challenge.category_map)


def period_scores(challenge: Any, logs: Iterable[Any]) -> List[Tuple[Milestone, WindowStats]]:
    """Stats for every milestone of the challenge, in order."""

    challenge = load_challenge(challenge)
    logs = normalize_logs(logs)
    return [
        (m, challenge_window_stats(challenge, m.start_date, m.end_date, logs))
        for m in partition(challenge)
    ]


def all_time_stats(challenge: Any, logs: Iterable[Any]) -> AllTimeStats:
    """Sum of milestone scores; successful only if every milestone was."""

    periods = period_scores(challenge, logs)
    return AllTimeStats(
        score=sum(s.score for _, s in periods),
        successful=bool(periods) and all(s.successful for _, s in periods),
        milestones=periods,
    )
