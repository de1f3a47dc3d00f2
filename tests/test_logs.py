from datetime import date, datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from scoring.logs import coerce_log, group_by_participant, natural_key, normalize_logs, upsert_log
from scoring.schemas import ActivityLogEntry


def _log(activity="WALK", day="2026-02-01", participant="amira@example.com", **extra):
    row = {"participant_id": participant, "activity_id": activity, "day": day}
    row.update(extra)
    return row


def test_coerce_accepts_legacy_field_names():
    log = coerce_log({"user_email": "omar@example.com", "type": "WATER", "date": "2026-02-03", "completed": False})
    assert log.participant_id == "omar@example.com"
    assert log.activity_id == "WATER"
    assert log.day == date(2026, 2, 3)
    assert log.completed is False


def test_coerce_accepts_objects():
    class Row:
        participant_id = "omar@example.com"
        activity_key = "WALK"
        date = date(2026, 2, 1)
        completed = True
        value = None

    log = coerce_log(Row())
    assert natural_key(log) == ("omar@example.com", date(2026, 2, 1), "WALK")


def test_timestamps_are_stored_as_naive_utc():
    aware = datetime(2026, 2, 1, 12, 0, tzinfo=timezone(timedelta(hours=4)))
    log = coerce_log(_log(timestamp=aware))
    assert log.timestamp == datetime(2026, 2, 1, 8, 0)


def test_non_numeric_value_is_dropped():
    assert coerce_log(_log(value="n/a")).value is None
    assert coerce_log(_log(value="2.5")).value == 2.5


def test_missing_day_is_rejected():
    with pytest.raises(ValidationError):
        coerce_log({"participant_id": "a", "activity_id": "WALK"})


def test_latest_timestamp_wins():
    logs = [
        _log(completed=False, timestamp="2026-02-01T10:00:00"),
        _log(completed=True, timestamp="2026-02-01T08:00:00"),
    ]
    (only,) = normalize_logs(logs)
    assert only.completed is False


def test_arrival_order_breaks_timestamp_ties():
    logs = [_log(note="first"), _log(note="second")]
    (only,) = normalize_logs(logs)
    assert only.note == "second"


def test_undated_write_does_not_beat_dated_one():
    logs = [_log(note="dated", timestamp="2026-02-01T08:00:00"), _log(note="undated")]
    (only,) = normalize_logs(logs)
    assert only.note == "dated"


def test_normalize_orders_by_day_then_timestamp():
    logs = [
        _log("WATER", "2026-02-02", timestamp="2026-02-02T07:00:00"),
        _log("WALK", "2026-02-01", timestamp="2026-02-01T21:00:00"),
        _log("WATER", "2026-02-01", timestamp="2026-02-01T06:00:00"),
    ]
    out = normalize_logs(logs)
    assert [(log.day.day, log.activity_id) for log in out] == [(1, "WATER"), (1, "WALK"), (2, "WATER")]


def test_normalize_is_idempotent():
    logs = [_log(), _log(), _log("WATER"), _log(participant="omar@example.com")]
    once = normalize_logs(logs)
    assert normalize_logs(once) == once
    assert len(once) == 3


def test_upsert_replaces_existing_key():
    logs = [_log(value=1000), _log("WATER")]
    out = upsert_log(logs, _log(value=5000))
    assert len(out) == 2
    walk = next(log for log in out if log.activity_id == "WALK")
    assert walk.value == 5000


def test_upsert_adds_new_key():
    out = upsert_log([_log()], ActivityLogEntry(participant_id="amira@example.com", activity_id="WALK", day="2026-02-02"))
    assert len(out) == 2


def test_group_by_participant():
    grouped = group_by_participant([_log(), _log(participant="omar@example.com"), _log("WATER")])
    assert sorted(grouped) == ["amira@example.com", "omar@example.com"]
    assert len(grouped["amira@example.com"]) == 2


def test_empty_input():
    assert normalize_logs([]) == []
    assert normalize_logs(None) == []
