from datetime import date, datetime, timezone

import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker

from scoring.db import Base, dedupe_activity_logs
from scoring.models import ActivityLog, Challenge, PeriodScore
from scoring.schemas import FixedCategoryCaps, MetricThresholdBrackets
from scoring.store import (
    challenge_definition,
    ensure_default_challenges,
    ensure_participant,
    fetch_logs,
    leaderboard,
    recalculate_period_scores,
    toggle_log,
    upsert_log,
)
from seed import format_leaderboard, seed


@pytest.fixture
def session():
    engine = create_engine("sqlite:///:memory:")
    TestingSession = sessionmaker(bind=engine)
    Base.metadata.create_all(bind=engine)
    db_session = TestingSession()
    try:
        yield db_session
    finally:
        db_session.close()


def _challenge(session, code="ramadan_prep_2026") -> Challenge:
    ensure_default_challenges(session)
    return session.query(Challenge).filter_by(code=code).one()


def _walks(session, participant, days, activity="WALK"):
    for d in days:
        upsert_log(session, participant, activity, date(2026, 2, d))
    session.commit()


def test_default_challenges_are_seeded_once(session):
    ensure_default_challenges(session)
    ensure_default_challenges(session)
    assert session.query(Challenge).count() == 2
    ramadan = session.query(Challenge).filter_by(code="ramadan_prep_2026").one()
    assert [a.key for a in ramadan.activities] == ["WALK", "WATER", "WORKOUT", "RAMADAN_PREP"]


def test_challenge_definition_round_trip(session):
    ramadan = challenge_definition(session, _challenge(session).id)
    assert ramadan.start_date == date(2026, 1, 18)
    assert isinstance(ramadan.scoring, FixedCategoryCaps)
    assert ramadan.scoring.caps == {"WALK": 5, "WATER": 7, "WORKOUT": 3, "RAMADAN_PREP": 7}

    steps = challenge_definition(session, _challenge(session, "steps_monthly").id)
    assert isinstance(steps.scoring, MetricThresholdBrackets)
    assert [m.category for m in steps.scoring.metrics] == ["STEPS", "WORKOUT"]


def test_unknown_challenge(session):
    with pytest.raises(LookupError):
        challenge_definition(session, 999)


def test_upsert_overwrites_natural_key(session):
    ensure_participant(session, "amira@example.com")
    upsert_log(session, "amira@example.com", "STEPS", "2026-03-02", value=4000)
    upsert_log(session, "amira@example.com", "STEPS", "2026-03-02", value=6500, note="evening walk")
    session.commit()
    rows = session.query(ActivityLog).all()
    assert len(rows) == 1
    assert rows[0].value == 6500
    assert rows[0].note == "evening walk"


def test_toggle_flips_completion(session):
    first = toggle_log(session, "amira@example.com", "WATER", "2026-02-01")
    assert first.completed is True
    second = toggle_log(session, "amira@example.com", "WATER", "2026-02-01")
    assert second.completed is False
    assert session.query(ActivityLog).count() == 1


def test_fetch_logs_filters(session):
    ramadan = _challenge(session)
    steps = _challenge(session, "steps_monthly")
    upsert_log(session, "amira@example.com", "WALK", "2026-02-01")
    upsert_log(session, "amira@example.com", "WATER", "2026-02-02", challenge_id=ramadan.id)
    upsert_log(session, "amira@example.com", "STEPS", "2026-02-02", value=3000, challenge_id=steps.id)
    upsert_log(session, "omar@example.com", "WALK", "2026-02-09")
    session.commit()

    keys = [(e.activity_id, e.day.day) for e in fetch_logs(session, challenge_id=ramadan.id)]
    assert keys == [("WALK", 1), ("WATER", 2), ("WALK", 9)]

    window = fetch_logs(session, "2026-02-01", "2026-02-07", participant_id="amira@example.com")
    assert len(window) == 3


def test_leaderboard_ranks_participants(session):
    ramadan = _challenge(session)
    ensure_participant(session, "amira@example.com", "Amira", "Khan")
    ensure_participant(session, "bilal@example.com", "Bilal", "Saeed")
    ensure_participant(session, "chen@example.com")
    _walks(session, "amira@example.com", [1, 2, 3, 5, 7])
    _walks(session, "amira@example.com", [2, 4, 6], activity="WORKOUT")
    _walks(session, "bilal@example.com", [1, 2, 3, 4, 5])
    _walks(session, "bilal@example.com", [1, 2, 3], activity="WORKOUT")
    _walks(session, "chen@example.com", [1, 2, 3, 4, 5, 6])

    board = leaderboard(session, ramadan.id, reference_date="2026-02-04")
    assert [(e.display_name, e.score, e.rank) for e in board] == [
        ("Amira Khan", 8, 1),
        ("Bilal Saeed", 8, 1),
        ("chen@example.com", 5, 2),
    ]

    earlier = leaderboard(session, ramadan.id, index=1)
    assert {e.score for e in earlier} == {0}
    assert leaderboard(session, ramadan.id, index=7) == []

    lines = format_leaderboard(board)
    assert lines[0].split() == ["1.", "Amira", "Khan", "8"]
    assert lines[2].split() == ["2.", "chen@example.com", "5"]


def test_recalculate_updates_snapshots_in_place(session):
    ramadan = _challenge(session)
    ensure_participant(session, "amira@example.com")
    _walks(session, "amira@example.com", [1, 2, 3, 4, 5])

    rows = recalculate_period_scores(session, ramadan.id, "amira@example.com")
    session.commit()
    assert [r.period_start for r in rows] == [
        date(2026, 1, 18),
        date(2026, 1, 25),
        date(2026, 2, 1),
        date(2026, 2, 8),
    ]
    assert [r.period_score for r in rows] == [0, 0, 5, 0]

    _walks(session, "amira@example.com", [6], activity="WORKOUT")
    recalculate_period_scores(session, ramadan.id, "amira@example.com")
    session.commit()
    assert session.query(PeriodScore).count() == 4
    week = session.query(PeriodScore).filter_by(period_start=date(2026, 2, 1)).one()
    assert week.period_score == 6
    assert week.successful is False


def test_dedupe_keeps_newest_row():
    engine = create_engine("sqlite:///:memory:")
    with engine.begin() as conn:
        conn.execute(text(
            "CREATE TABLE activity_logs (id INTEGER PRIMARY KEY, participant_id TEXT,"
            " date DATE, activity_key TEXT, completed BOOLEAN)"
        ))
        conn.execute(text(
            "INSERT INTO activity_logs (id, participant_id, date, activity_key, completed) VALUES"
            " (1, 'a', '2026-02-01', 'WALK', 1),"
            " (2, 'a', '2026-02-01', 'WALK', 0),"
            " (3, 'a', '2026-02-02', 'WALK', 1)"
        ))

    assert dedupe_activity_logs(bind=engine) == 1
    with engine.connect() as conn:
        ids = [r[0] for r in conn.execute(text("SELECT id FROM activity_logs ORDER BY id"))]
    assert ids == [2, 3]


def test_dedupe_without_table_is_noop():
    assert dedupe_activity_logs(bind=create_engine("sqlite:///:memory:")) == 0


def test_seed_returns_default_challenges(session):
    codes = [c.code for c in seed(session)]
    assert codes == ["ramadan_prep_2026", "steps_monthly"]


def test_toggle_keeps_stored_value(session):
    upsert_log(session, "amira@example.com", "STEPS", "2026-03-02", value=6500, note="evening walk")
    toggle_log(session, "amira@example.com", "STEPS", "2026-03-02")
    row = toggle_log(session, "amira@example.com", "STEPS", "2026-03-02")
    assert row.completed is True
    assert row.value == 6500
    assert row.note == "evening walk"


def test_fresh_toggle_takes_required_amount(session):
    ramadan = _challenge(session)
    row = toggle_log(session, "amira@example.com", "WATER", "2026-02-01", challenge_id=ramadan.id)
    assert row.completed is True
    assert row.value == 2
    assert toggle_log(session, "amira@example.com", "WALK", "2026-02-01", challenge_id=ramadan.id).value is None


def test_log_without_day_lands_on_write_day(session, monkeypatch):
    monkeypatch.setattr("scoring.dates.CHALLENGE_TIMEZONE", "Asia/Dubai")
    late = datetime(2026, 2, 1, 22, 30, tzinfo=timezone.utc)
    row = upsert_log(session, "amira@example.com", "WALK", timestamp=late)
    assert row.date == date(2026, 2, 2)


def test_stored_log_defaults_to_completed(session):
    session.add(ActivityLog(participant_id="amira@example.com", activity_key="WALK", date=date(2026, 2, 1)))
    session.commit()
    (entry,) = fetch_logs(session)
    assert entry.completed is True
