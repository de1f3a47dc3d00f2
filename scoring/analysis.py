from datetime import date
from typing import Any, Dict, Iterable, Mapping, Optional

import pandas as pd

from .logs import normalize_logs
from .schemas import AggregationMethod

COLUMNS = ["participant_id", "activity_id", "category", "day", "value", "timestamp"]


def df_logs(
    logs: Iterable[Any],
    categories: Optional[Mapping[str, str]] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
) -> pd.DataFrame:
    """Completed logs inside [date_from, date_to] as a frame, one row per natural key."""
    cmap = categories or {}
    rows = [
        {
            "participant_id": r.participant_id, "activity_id": r.activity_id,
            "category": cmap.get(r.activity_id, r.activity_id), "day": r.day,
            "value": r.value, "timestamp": r.timestamp,
        }
        for r in normalize_logs(logs)
        if r.completed
        and (date_from is None or r.day >= date_from)
        and (date_to is None or r.day <= date_to)
    ]
    if not rows: return pd.DataFrame(columns=COLUMNS)
    return pd.DataFrame(rows, columns=COLUMNS)


def distinct_days(df: pd.DataFrame) -> Dict[str, int]:
    if df.empty: return {}
    # same-day rows of a category count once
    s = df.drop_duplicates(["category", "day"]).groupby("category").size()
    return {str(k): int(v) for k, v in s.items()}


def aggregate_metric(df: pd.DataFrame, category: str, method: AggregationMethod) -> float:
    if df.empty: return 0.0
    sub = df[df["category"] == category]
    if sub.empty: return 0.0
    if method == AggregationMethod.DAYS:
        return float(sub["day"].nunique())
    if method == AggregationMethod.COUNT:
        return float(len(sub.index))
    values = pd.to_numeric(sub["value"], errors="coerce").dropna()
    if values.empty: return 0.0
    if method == AggregationMethod.SUM:
        out = values.sum()
    elif method == AggregationMethod.MAX:
        out = values.max()
    else:  # LAST valued row; rows arrive ordered by day, then timestamp
        out = values.iloc[-1]
    return float(out)
