"""SQLAlchemy-backed log source and score snapshots for the scoring engine."""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Dict, List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from .aggregate import period_scores
from .dates import local_day, parse_day
from .defaults import DEFAULT_CHALLENGES
from .milestones import select_window
from .models import ActivityLog, Challenge, ChallengeActivity, Participant, PeriodScore
from .ranking import LeaderboardEntry, build_leaderboard
from .schemas import ActivityLogEntry, ChallengeDefinition, load_challenge


logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_participant(db: Session, email: str, first_name: str = "", last_name: str = "") -> Participant:
    row = db.query(Participant).filter_by(email=email).first()
    if not row:
        row = Participant(email=email, first_name=first_name, last_name=last_name)
        db.add(row)
        db.flush()
    return row


def _apply_definition(row: Challenge, definition: ChallengeDefinition, explicit_scoring: bool) -> None:
    row.name = definition.name
    row.description = definition.description
    row.start_date = definition.start_date
    row.end_date = definition.end_date
    row.milestone_granularity = definition.milestone_granularity.value
    row.scoring = definition.scoring.model_dump(mode="json") if explicit_scoring else None

    existing = {a.key: a for a in row.activities}
    keep = set()
    for position, activity in enumerate(definition.activities):
        child = existing.get(activity.id)
        if not child:
            child = ChallengeActivity(key=activity.id)
            row.activities.append(child)
        child.name = activity.name
        child.unit = activity.unit
        child.required_amount = activity.required_amount
        child.category = activity.category
        child.cap = activity.cap
        child.threshold = activity.threshold
        child.aggregation = activity.aggregation.value
        child.rules = [r.model_dump(mode="json") for r in activity.rules]
        child.position = position
        keep.add(activity.id)
    for key, child in existing.items():
        if key not in keep:
            row.activities.remove(child)


def ensure_default_challenges(db: Session) -> List[Challenge]:
    """Ensure the default challenge catalogue is present and current in DB."""

    existing = {c.code: c for c in db.query(Challenge).filter(Challenge.code.isnot(None)).all()}
    out: List[Challenge] = []
    for item in DEFAULT_CHALLENGES:
        definition = load_challenge(item)
        row = existing.get(item["code"])
        if not row:
            row = Challenge(code=item["code"])
            db.add(row)
            logger.info("Seeding challenge %s", item["code"])
        _apply_definition(row, definition, explicit_scoring="scoring" in item)
        out.append(row)
    db.commit()
    return out


def _challenge_payload(row: Challenge) -> Dict:
    return {
        "id": row.id,
        "code": row.code,
        "name": row.name,
        "description": row.description,
        "start_date": row.start_date,
        "end_date": row.end_date,
        "milestone_granularity": row.milestone_granularity,
        "scoring": row.scoring or None,
        "activities": [
            {
                "id": a.key,
                "name": a.name,
                "unit": a.unit or "",
                "required_amount": a.required_amount,
                "category": a.category,
                "cap": a.cap,
                "threshold": a.threshold,
                "aggregation": a.aggregation or "DAYS",
                "rules": a.rules or [],
            }
            for a in row.activities
        ],
    }


def challenge_definition(db: Session, challenge_id: int) -> ChallengeDefinition:
    row = db.query(Challenge).filter_by(id=challenge_id).first()
    if not row:
        raise LookupError(f"Challenge {challenge_id} not found")
    return load_challenge(_challenge_payload(row))


def _find_log(db: Session, participant_id: str, activity_key: str, day: date) -> Optional[ActivityLog]:
    return (
        db.query(ActivityLog)
        .filter(
            ActivityLog.participant_id == participant_id,
            ActivityLog.date == day,
            ActivityLog.activity_key == activity_key,
        )
        .first()
    )


def upsert_log(
    db: Session,
    participant_id: str,
    activity_key: str,
    day=None,
    completed: bool = True,
    value: Optional[float] = None,
    note: Optional[str] = None,
    challenge_id: Optional[int] = None,
    timestamp: Optional[datetime] = None,
) -> ActivityLog:
    """Insert the day's log for an activity, or overwrite the existing one.

    Without ``day`` the log lands on the write time's day in the challenge
    timezone.
    """

    timestamp = timestamp or _now()
    day = local_day(timestamp) if day is None else parse_day(day)
    row = _find_log(db, participant_id, activity_key, day)
    if not row:
        row = ActivityLog(participant_id=participant_id, activity_key=activity_key, date=day)
        db.add(row)
    row.completed = bool(completed)
    row.value = value
    row.note = note
    if challenge_id is not None:
        row.challenge_id = challenge_id
    row.timestamp = timestamp
    db.flush()
    return row


def _required_amount(db: Session, challenge_id: Optional[int], activity_key: str) -> Optional[float]:
    if challenge_id is None:
        return None
    activity = db.query(ChallengeActivity).filter_by(challenge_id=challenge_id, key=activity_key).first()
    return activity.required_amount if activity else None


def toggle_log(
    db: Session,
    participant_id: str,
    activity_key: str,
    day=None,
    value: Optional[float] = None,
    challenge_id: Optional[int] = None,
) -> ActivityLog:
    """Flip the completed flag of the day's activity (a fresh log starts completed).

    The stored value and note survive the flip; a fresh log without a value
    takes the activity's required amount.
    """

    timestamp = _now()
    day = local_day(timestamp) if day is None else parse_day(day)
    existing = _find_log(db, participant_id, activity_key, day)
    completed = not (existing.completed if existing else False)
    if value is None:
        value = existing.value if existing else _required_amount(db, challenge_id, activity_key)
    return upsert_log(
        db,
        participant_id,
        activity_key,
        day,
        completed=completed,
        value=value,
        note=existing.note if existing else None,
        challenge_id=challenge_id,
        timestamp=timestamp,
    )


def _entry(row: ActivityLog) -> ActivityLogEntry:
    return ActivityLogEntry(
        id=row.id,
        participant_id=row.participant_id,
        challenge_id=row.challenge_id,
        activity_id=row.activity_key,
        day=row.date,
        completed=bool(row.completed),
        value=row.value,
        note=row.note,
        timestamp=row.timestamp,
    )


def fetch_logs(
    db: Session,
    start: Optional[date] = None,
    end: Optional[date] = None,
    participant_id: Optional[str] = None,
    challenge_id: Optional[int] = None,
) -> List[ActivityLogEntry]:
    """Logs inside [start, end]; untagged logs count for every challenge."""

    q = db.query(ActivityLog)
    if start is not None:
        q = q.filter(ActivityLog.date >= parse_day(start))
    if end is not None:
        q = q.filter(ActivityLog.date <= parse_day(end))
    if participant_id is not None:
        q = q.filter(ActivityLog.participant_id == participant_id)
    if challenge_id is not None:
        q = q.filter(or_(ActivityLog.challenge_id == challenge_id, ActivityLog.challenge_id.is_(None)))
    rows = q.order_by(ActivityLog.date, ActivityLog.timestamp).all()
    return [_entry(r) for r in rows]


def participant_directory(db: Session) -> Dict[str, str]:
    return {p.email: p.display_name for p in db.query(Participant).order_by(Participant.email).all()}


def leaderboard(
    db: Session,
    challenge_id: int,
    reference_date=None,
    index: Optional[int] = None,
    all_time: bool = False,
) -> List[LeaderboardEntry]:
    challenge = challenge_definition(db, challenge_id)
    window = select_window(challenge, reference_date=reference_date, index=index, all_time=all_time)
    if window is None:
        return []
    logs = fetch_logs(db, window.start_date, window.end_date, challenge_id=challenge_id)
    return build_leaderboard(challenge, logs, participant_directory(db), window=window)


def recalculate_period_scores(db: Session, challenge_id: int, participant_id: str) -> List[PeriodScore]:
    """Store one score snapshot per milestone for the participant."""

    challenge = challenge_definition(db, challenge_id)
    logs = fetch_logs(db, challenge.start_date, challenge.end_date, participant_id, challenge_id)
    rows: List[PeriodScore] = []
    for milestone, stats in period_scores(challenge, logs):
        row = (
            db.query(PeriodScore)
            .filter_by(participant_id=participant_id, challenge_id=challenge_id, period_start=milestone.start_date)
            .first()
        )
        if not row:
            row = PeriodScore(
                participant_id=participant_id,
                challenge_id=challenge_id,
                period_start=milestone.start_date,
            )
            db.add(row)
        row.period_end = milestone.end_date
        row.period_score = stats.score
        row.successful = stats.successful
        row.last_recalculated = _now()
        rows.append(row)
    db.flush()
    logger.info(
        "Recalculated %s period score(s) for %s in challenge %s", len(rows), participant_id, challenge_id
    )
    return rows
