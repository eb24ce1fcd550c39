"""Tests for hablits/models.py — habit variants, snapshot defaults and backfill."""

from datetime import datetime, timedelta, timezone

import pytest

from hablits.models import (
    GENERAL_IDENTITY,
    ActiveFast,
    DayMarks,
    HabitSchedule,
    RoutineHabit,
    RoutineStep,
    SimpleHabit,
    Snapshot,
    habit_from_dict,
    parse_timestamp,
    validate_habit,
)


def test_habit_from_dict_simple():
    h = habit_from_dict({"id": "h1", "name": "Read", "weeklyGoal": 4, "days": [True] * 7})
    assert isinstance(h, SimpleHabit)
    assert h.weekly_goal == 4
    assert h.identity_id == "general"
    assert "isRoutine" not in h.to_dict()


def test_habit_from_dict_routine():
    h = habit_from_dict({
        "id": "r1",
        "name": "Morning",
        "isRoutine": True,
        "steps": [{"id": "a", "name": "Stretch"}, {"id": "b", "name": "Water", "duration": 5}],
    })
    assert isinstance(h, RoutineHabit)
    assert h.step_ids() == ("a", "b")
    d = h.to_dict()
    assert d["isRoutine"] is True
    assert d["steps"][1]["duration"] == 5
    assert "duration" not in d["steps"][0]


def test_routine_without_steps_degrades_to_simple():
    h = habit_from_dict({"id": "r1", "name": "Empty routine", "isRoutine": True, "steps": []})
    assert isinstance(h, SimpleHabit)


def test_routine_habit_requires_steps():
    with pytest.raises(ValueError):
        RoutineHabit(id="r1", name="No steps")
    assert RoutineHabit(id="r1", name="ok", steps=(RoutineStep(id="s", name="s"),)).is_routine


def test_malformed_days_mean_every_day():
    h = habit_from_dict({"id": "h1", "name": "x", "days": [True, False]})
    assert h.days == (True,) * 7


def test_validate_habit():
    assert validate_habit({"name": "Read", "weeklyGoal": 3}) == []
    errors = validate_habit({"name": " ", "weeklyGoal": 9, "days": [True], "isRoutine": True})
    assert "Missing required field: name" in errors
    assert "weeklyGoal must be integer 1-7" in errors
    assert any("days" in e for e in errors)
    assert "A routine needs at least one step" in errors


def test_snapshot_defaults():
    s = Snapshot.from_dict({})
    assert s.theme == "light"
    assert s.sfx_enabled is True
    assert s.haptics_enabled is True
    assert s.identities == (GENERAL_IDENTITY,)
    assert s.current_identity_filter == "all"
    assert s.has_completed_onboarding is False
    assert s.pet_species == "blob"
    assert s.pet_hat == "none"
    assert s.logs == {}
    assert s.active_fasts == {}
    assert s == Snapshot()


def test_snapshot_backfills_general_identity():
    s = Snapshot.from_dict({"identities": [{"id": "work", "name": "Work", "color": "#000"}], "habits": []})
    assert [i.id for i in s.identities] == ["general", "work"]


def test_snapshot_infers_onboarding_from_habits():
    s = Snapshot.from_dict({"habits": [{"id": "h1", "name": "Read"}]})
    assert s.has_completed_onboarding is True
    s = Snapshot.from_dict({"habits": [{"id": "h1", "name": "Read"}], "hasCompletedOnboarding": False})
    assert s.has_completed_onboarding is False


def test_snapshot_folds_legacy_day_plan_times():
    s = Snapshot.from_dict({
        "habits": [{"id": "h1", "name": "Read"}, {"id": "h2", "name": "Walk"}],
        "dayPlanTimes": {"h1": "07:30", "h2": "18:00"},
        "dayPlanSchedules": {"h2": {"time": "19:00", "duration": 45, "recurring": "once"}},
    })
    assert s.day_plan_schedules["h1"] == HabitSchedule(time="07:30", duration=30, recurring="daily")
    # An explicit schedule wins over the legacy time
    assert s.day_plan_schedules["h2"].time == "19:00"


def test_snapshot_prunes_empty_buckets():
    s = Snapshot.from_dict({
        "logs": {"2026-02-10": [], "2026-02-11": ["h1", "h1"]},
        "marks": {"2026-02-10": {"skip": [], "fail": []}},
        "notes": {"2026-02-10": {"h1": ""}},
        "routineStepLogs": {"2026-02-10": {"r1": []}},
    })
    assert s.logs == {"2026-02-11": ("h1",)}
    assert s.marks == {}
    assert s.notes == {}
    assert s.routine_step_logs == {}


def test_snapshot_drops_malformed_fast():
    s = Snapshot.from_dict({
        "activeFasts": {
            "h1": {"habitId": "h1", "startTime": "2026-02-11T08:00:00Z", "duration": 16},
            "h2": {"habitId": "h2", "startTime": "not a time", "duration": 16},
            "h3": {"habitId": "h3"},
        }
    })
    assert list(s.active_fasts) == ["h1"]
    assert s.active_fasts["h1"].target_time == datetime(2026, 2, 12, 0, 0, tzinfo=timezone.utc)


def test_snapshot_round_trip_is_idempotent(snapshot):
    assert Snapshot.from_dict(snapshot.to_dict()) == snapshot
    again = Snapshot.from_dict(Snapshot.from_dict(snapshot.to_dict()).to_dict())
    assert again == snapshot


def test_snapshot_to_dict_camel_case(snapshot):
    d = snapshot.to_dict()
    assert d["currentIdentityFilter"] == "all"
    assert d["habits"][0]["weeklyGoal"] == 5
    assert "customAccentColor" not in d


def test_day_marks_empty():
    assert DayMarks().is_empty()
    assert not DayMarks(skip=("h1",)).is_empty()
    assert DayMarks.from_dict({"skip": ["a", "a"], "fail": None}) == DayMarks(skip=("a",))


def test_parse_timestamp_z_and_naive():
    assert parse_timestamp("2026-02-11T08:00:00Z") == datetime(2026, 2, 11, 8, tzinfo=timezone.utc)
    assert parse_timestamp("2026-02-11T08:00:00").tzinfo == timezone.utc


def test_active_fast_begin_and_round_trip():
    start = datetime(2026, 2, 11, 20, 0, tzinfo=timezone.utc)
    fast = ActiveFast.begin("h1", 16, start)
    assert fast.target_time == start + timedelta(hours=16)
    d = fast.to_dict()
    assert d["startTime"] == "2026-02-11T20:00:00Z"
    assert d["targetTime"] == "2026-02-12T12:00:00Z"
    assert ActiveFast.from_dict("h1", d) == fast
