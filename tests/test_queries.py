"""Tests for hablits/queries.py — active habits, streaks, weekly progress, density."""

from datetime import date, timedelta

from hablits.actions import SetNote, SkipHabit, ToggleHabit, add_habit
from hablits.engine import apply
from hablits.models import SimpleHabit, Snapshot
from hablits.queries import (
    active_habits,
    completed_habits_on,
    day_completion_percent,
    habit_status,
    heatmap_level,
    is_active_on,
    notes_in_month,
    remaining_habits_on,
    sort_by_order,
    step_progress,
    streak,
    strict_streak,
    weekly_goal_met,
    weekly_progress,
)

from conftest import TODAY


def _logs(*offsets: int, habit_id: str = "h1") -> dict[str, tuple[str, ...]]:
    return {(TODAY - timedelta(days=o)).isoformat(): (habit_id,) for o in offsets}


# ── Streaks ───────────────────────────────────────────────────


def test_streak_empty():
    assert streak({}, "h1", TODAY) == 0


def test_streak_forgives_one_missed_day():
    assert streak(_logs(0, 2), "h1", TODAY) == 2


def test_streak_today_only():
    assert streak(_logs(0), "h1", TODAY) == 1


def test_streak_not_yet_done_today():
    assert streak(_logs(1, 2, 3), "h1", TODAY) == 3


def test_streak_second_miss_ends_scan_even_when_far_apart():
    # Misses on day 1 and day 3: the second one stops the count
    assert streak(_logs(0, 2, 4, 5, 6), "h1", TODAY) == 2


def test_streak_caps_at_window():
    logs = _logs(*range(400))
    assert streak(logs, "h1", TODAY) == 365


def test_strict_streak_has_no_grace():
    assert strict_streak(_logs(0, 1, 3), "h1", TODAY) == 2
    assert strict_streak(_logs(1, 2), "h1", TODAY) == 0


# ── Weekly progress ───────────────────────────────────────────


def test_weekly_progress_counts_monday_to_sunday():
    logs = {
        "2026-02-08": ("h1",),  # previous Sunday
        "2026-02-09": ("h1",),
        "2026-02-11": ("h1",),
        "2026-02-15": ("h1",),
        "2026-02-16": ("h1",),  # next Monday
    }
    assert weekly_progress(logs, "h1", TODAY) == 3


def test_weekly_goal_met(snapshot):
    h2 = snapshot.habits[1]
    logs = {"2026-02-09": ("h2",), "2026-02-11": ("h2",)}
    assert not weekly_goal_met(h2, logs, TODAY)
    logs["2026-02-13"] = ("h2",)
    assert weekly_goal_met(h2, logs, TODAY)


# ── Active habits ─────────────────────────────────────────────


def test_is_active_on_weekday_mask(snapshot):
    run = snapshot.habits[1]
    assert is_active_on(run, date(2026, 2, 11))  # Wednesday
    assert not is_active_on(run, date(2026, 2, 10))  # Tuesday


def test_is_active_on_malformed_mask():
    assert is_active_on(SimpleHabit(id="x", name="x", days=(True, False)), TODAY)


def test_sort_by_order_puts_unset_order_last():
    habits = [
        SimpleHabit(id="a", name="Zeta", order=0),
        SimpleHabit(id="b", name="beta", order=2),
        SimpleHabit(id="c", name="Alpha", order=2),
        SimpleHabit(id="d", name="Gamma", order=1),
    ]
    assert [h.id for h in sort_by_order(habits)] == ["d", "c", "b", "a"]


def test_active_habits_identity_filter(snapshot):
    assert [h.id for h in active_habits(snapshot.habits, TODAY)] == ["h1", "h2", "r1"]
    assert [h.id for h in active_habits(snapshot.habits, TODAY, "health")] == ["h2"]
    assert [h.id for h in active_habits(snapshot.habits, date(2026, 2, 10))] == ["h1", "r1"]


# ── Status & density ──────────────────────────────────────────


def test_habit_status(snapshot):
    s = apply(snapshot, ToggleHabit(habit_id="h1", date="2026-02-11"))
    s = apply(s, SkipHabit(habit_id="h2", date="2026-02-11"))
    assert habit_status(s, "h1", TODAY) == "done"
    assert habit_status(s, "h2", TODAY) == "skipped"
    assert habit_status(s, "r1", TODAY) == "none"


def test_day_completion_percent(snapshot):
    logs = {"2026-02-11": ("h1",), "2026-02-10": ("h1",)}
    assert day_completion_percent(snapshot.habits, logs, TODAY) == 1 / 3
    assert day_completion_percent(snapshot.habits, logs, date(2026, 2, 10)) == 0.5
    assert day_completion_percent(snapshot.habits, logs, TODAY, "health") == 0.0
    assert day_completion_percent([], logs, TODAY) == 0.0


def test_heatmap_level_buckets():
    four = [SimpleHabit(id=f"h{i}", name=f"H{i}") for i in range(4)]
    five = four + [SimpleHabit(id="h4", name="H4")]
    day = "2026-02-11"
    assert heatmap_level(four, {}, day) == 0
    assert heatmap_level(five, {day: ("h0",)}, day) == 1  # 20%
    assert heatmap_level(four, {day: ("h0",)}, day) == 2  # 25%
    assert heatmap_level(four, {day: ("h0", "h1")}, day) == 3  # 50%
    assert heatmap_level(four, {day: ("h0", "h1", "h2")}, day) == 4  # 75%
    assert heatmap_level([], {day: ("h0",)}, day) == 0


def test_completed_and_remaining_on(snapshot):
    s = apply(snapshot, ToggleHabit(habit_id="r1", date="2026-02-11"))
    assert [h.id for h in completed_habits_on(s, TODAY)] == ["r1"]
    assert [h.id for h in remaining_habits_on(s, TODAY)] == ["h1", "h2"]


def test_step_progress(snapshot):
    routine = snapshot.habits[2]
    assert step_progress(snapshot, routine, TODAY) == (0, 3)
    assert step_progress(snapshot, snapshot.habits[0], TODAY) == (0, 0)
    s = apply(snapshot, ToggleHabit(habit_id="r1", date="2026-02-11"))
    assert step_progress(s, routine, TODAY) == (3, 3)


def test_notes_in_month(snapshot):
    s = apply(snapshot, SetNote(habit_id="h2", date="2026-02-11", note="Felt strong"))
    s = apply(s, SetNote(habit_id="h1", date="2026-02-03", note="Calm"))
    s = apply(s, SetNote(habit_id="h1", date="2026-03-01", note="Next month"))
    assert notes_in_month(s, TODAY) == [
        (date(2026, 2, 3), "Meditate", "Calm"),
        (date(2026, 2, 11), "Run", "Felt strong"),
    ]


# ── Scenario ──────────────────────────────────────────────────


def test_new_user_scenario():
    s = apply(Snapshot(), add_habit("Meditate", weekly_goal=5, identity_id="general", days=[True] * 7))
    for offset in range(7):
        habits = active_habits(s.habits, TODAY + timedelta(days=offset))
        assert [h.name for h in habits] == ["Meditate"]
    assert streak(s.logs, s.habits[0].id, TODAY) == 0
