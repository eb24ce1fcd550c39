"""Tests for hablits/fasting.py and the fasting actions."""

from datetime import datetime, timedelta, timezone

import pytest

from hablits.actions import EndFast, StartFast, UpdateFastStartTime
from hablits.engine import apply
from hablits.fasting import (
    FAST_DURATIONS,
    fast_progress,
    fast_status,
    format_remaining_time,
    is_fast_complete,
    is_fasting_habit,
    remaining_time,
    restart_fast,
    start_fast,
)

T = datetime(2026, 2, 11, 20, 0, tzinfo=timezone.utc)


def test_fasting_scenario(snapshot):
    s = apply(snapshot, StartFast(habit_id="h1", duration=16, start_time=T))
    fast = s.active_fasts["h1"]
    assert fast.target_time == T + timedelta(hours=16)

    later = T + timedelta(hours=16, seconds=1)
    assert remaining_time(fast, later) == timedelta(0)
    assert is_fast_complete(fast, later)
    assert fast_status(fast, later) == "complete"

    s = apply(s, EndFast(habit_id="h1"))
    assert "h1" not in s.active_fasts


def test_update_fast_start_time_keeps_duration(snapshot):
    s = apply(snapshot, StartFast(habit_id="h1", duration=18, start_time=T))
    earlier = T - timedelta(hours=2)
    s = apply(s, UpdateFastStartTime(habit_id="h1", start_time=earlier))
    fast = s.active_fasts["h1"]
    assert fast.duration == 18
    assert fast.start_time == earlier
    assert fast.target_time == earlier + timedelta(hours=18)


def test_fast_action_noops(snapshot):
    assert apply(snapshot, UpdateFastStartTime(habit_id="h1", start_time=T)) is snapshot
    assert apply(snapshot, EndFast(habit_id="h1")) is snapshot
    assert apply(snapshot, StartFast(habit_id="h1", duration=0, start_time=T)) is snapshot


def test_start_fast_from_wire(snapshot):
    s = apply(snapshot, {
        "type": "START_FAST",
        "payload": {"habitId": "h1", "duration": 16.0, "startTime": "2026-02-11T20:00:00.000Z"},
    })
    fast = s.active_fasts["h1"]
    assert fast.start_time == T
    assert fast.duration == 16
    assert fast.to_dict()["duration"] == 16


def test_remaining_and_progress():
    fast = start_fast("h1", 16, T)
    assert remaining_time(fast, T) == timedelta(hours=16)
    assert fast_status(fast, T) == "active"
    assert fast_progress(fast, T + timedelta(hours=8)) == 50.0
    assert fast_progress(fast, T - timedelta(hours=1)) == 0.0
    assert fast_progress(fast, T + timedelta(hours=20)) == 100.0
    assert fast_status(None, T) == "none"


def test_naive_now_is_read_as_utc():
    fast = start_fast("h1", 12, T)
    assert remaining_time(fast, datetime(2026, 2, 12, 7, 0)) == timedelta(hours=1)


def test_start_fast_rejects_non_positive_duration():
    with pytest.raises(ValueError):
        start_fast("h1", 0, T)


def test_restart_fast():
    fast = restart_fast(start_fast("h1", 24, T), T + timedelta(hours=1))
    assert fast.duration == 24
    assert fast.target_time == T + timedelta(hours=25)


def test_format_remaining_time():
    assert format_remaining_time(timedelta(hours=12, minutes=30, seconds=45)) == "12h 30m 45s"
    assert format_remaining_time(timedelta(minutes=45, seconds=30)) == "45m 30s"
    assert format_remaining_time(timedelta(seconds=15)) == "15s"
    assert format_remaining_time(timedelta(hours=1)) == "1h 0m 0s"
    assert format_remaining_time(timedelta(0)) == "Complete!"


def test_is_fasting_habit():
    assert is_fasting_habit("Intermittent Fasting")
    assert is_fasting_habit("16:8 FAST")
    assert not is_fasting_habit("Meditate")
    assert 16 in FAST_DURATIONS
