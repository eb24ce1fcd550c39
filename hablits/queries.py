"""Read-only queries over a Hablits snapshot.

Nothing here mutates; every function is safe to call against a snapshot
another thread is reading. "Today" is always an argument.
"""

from __future__ import annotations

from datetime import date, timedelta

from hablits.dates import DayLike, as_date, day_key, mask_index, month_end, month_start, week_start
from hablits.models import ALL_IDENTITIES, DayMarks, Habit, RoutineHabit, Snapshot


STATUS_NONE = "none"
STATUS_DONE = "done"
STATUS_SKIPPED = "skipped"
STATUS_FAILED = "failed"

STREAK_WINDOW_DAYS = 365
MAX_MISSED_DAYS = 1


# ── Lookup ────────────────────────────────────────────────────


def find_habit(snapshot: Snapshot, habit_id: str) -> Habit | None:
    for h in snapshot.habits:
        if h.id == habit_id:
            return h
    return None


# ── Active habits ─────────────────────────────────────────────


def is_active_on(habit: Habit, day: DayLike) -> bool:
    """Whether the habit is scheduled on this weekday (no mask means every day)."""
    days = getattr(habit, "days", None)
    if not days or len(days) != 7:
        return True
    return bool(days[mask_index(day)])


def sort_by_order(habits) -> list[Habit]:
    """Order ascending (unset order sorts last), then name."""
    return sorted(habits, key=lambda h: (h.order or 999, h.name.casefold(), h.name))


def active_habits(habits, day: DayLike, identity_filter: str = ALL_IDENTITIES) -> list[Habit]:
    filtered = list(habits)
    if identity_filter != ALL_IDENTITIES:
        filtered = [h for h in filtered if h.identity_id == identity_filter]
    filtered = [h for h in filtered if is_active_on(h, day)]
    return sort_by_order(filtered)


# ── Daily status ──────────────────────────────────────────────


def is_complete(logs: dict[str, tuple[str, ...]], habit_id: str, day: DayLike) -> bool:
    return habit_id in logs.get(day_key(day), ())


def is_skipped(marks: dict[str, DayMarks], habit_id: str, day: DayLike) -> bool:
    m = marks.get(day_key(day))
    return m is not None and habit_id in m.skip


def is_failed(marks: dict[str, DayMarks], habit_id: str, day: DayLike) -> bool:
    m = marks.get(day_key(day))
    return m is not None and habit_id in m.fail


def habit_status(snapshot: Snapshot, habit_id: str, day: DayLike) -> str:
    """One of none, done, skipped, failed."""
    if is_complete(snapshot.logs, habit_id, day):
        return STATUS_DONE
    if is_skipped(snapshot.marks, habit_id, day):
        return STATUS_SKIPPED
    if is_failed(snapshot.marks, habit_id, day):
        return STATUS_FAILED
    return STATUS_NONE


def completed_steps(snapshot: Snapshot, habit_id: str, day: DayLike) -> tuple[str, ...]:
    return snapshot.routine_step_logs.get(day_key(day), {}).get(habit_id, ())


def step_progress(snapshot: Snapshot, habit: Habit, day: DayLike) -> tuple[int, int]:
    """(done, total) steps for a routine; (0, 0) for a simple habit."""
    if not isinstance(habit, RoutineHabit):
        return 0, 0
    done = set(completed_steps(snapshot, habit.id, day))
    ids = habit.step_ids()
    return sum(1 for s in ids if s in done), len(ids)


# ── Streaks & goals ───────────────────────────────────────────


def streak(logs: dict[str, tuple[str, ...]], habit_id: str, today: DayLike) -> int:
    """Completed days counting back from *today*, forgiving one missed day.

    Misses are counted across the whole scan: the second miss ends it, even
    if the two misses are far apart.
    """
    count = 0
    missed = 0
    start = as_date(today)
    for i in range(STREAK_WINDOW_DAYS):
        key = (start - timedelta(days=i)).isoformat()
        if habit_id in logs.get(key, ()):
            count += 1
        else:
            missed += 1
            if missed > MAX_MISSED_DAYS:
                break
    return count


def strict_streak(logs: dict[str, tuple[str, ...]], habit_id: str, today: DayLike) -> int:
    """Consecutive completed days ending today, with no grace."""
    count = 0
    start = as_date(today)
    for i in range(STREAK_WINDOW_DAYS):
        if habit_id not in logs.get((start - timedelta(days=i)).isoformat(), ()):
            break
        count += 1
    return count


def weekly_progress(logs: dict[str, tuple[str, ...]], habit_id: str, reference: DayLike) -> int:
    """Completions within the Monday..Sunday week containing *reference*."""
    start = week_start(reference)
    end = start + timedelta(days=6)
    count = 0
    for key, ids in logs.items():
        try:
            d = as_date(key)
        except ValueError:
            continue
        if start <= d <= end and habit_id in ids:
            count += 1
    return count


def weekly_goal_met(habit: Habit, logs: dict[str, tuple[str, ...]], reference: DayLike) -> bool:
    return weekly_progress(logs, habit.id, reference) >= habit.weekly_goal


# ── Day density ───────────────────────────────────────────────


def day_completion_percent(
    habits,
    logs: dict[str, tuple[str, ...]],
    day: DayLike,
    identity_filter: str = ALL_IDENTITIES,
) -> float:
    """Fraction (0..1) of the day's active habits that were completed."""
    active = active_habits(habits, day, identity_filter)
    if not active:
        return 0.0
    done = logs.get(day_key(day), ())
    return sum(1 for h in active if h.id in done) / len(active)


def heatmap_level(habits, logs: dict[str, tuple[str, ...]], day: DayLike) -> int:
    """Calendar cell intensity 0-4 from the share of all habits completed that day."""
    habits = list(habits)
    if not habits:
        return 0
    done = logs.get(day_key(day), ())
    pct = sum(1 for h in habits if h.id in done) / len(habits)
    if pct == 0:
        return 0
    if pct < 0.25:
        return 1
    if pct < 0.5:
        return 2
    if pct < 0.75:
        return 3
    return 4


def completed_habits_on(snapshot: Snapshot, day: DayLike) -> list[Habit]:
    done = snapshot.logs.get(day_key(day), ())
    return sort_by_order(h for h in snapshot.habits if h.id in done)


def remaining_habits_on(snapshot: Snapshot, day: DayLike) -> list[Habit]:
    done = snapshot.logs.get(day_key(day), ())
    return sort_by_order(h for h in snapshot.habits if h.id not in done)


def notes_in_month(snapshot: Snapshot, month: DayLike) -> list[tuple[date, str, str]]:
    """(day, habit name, note) for every note in the month, oldest first."""
    first, last = month_start(month), month_end(month)
    rows = []
    for key, day_notes in snapshot.notes.items():
        try:
            d = as_date(key)
        except ValueError:
            continue
        if not first <= d <= last:
            continue
        for habit_id, note in day_notes.items():
            habit = find_habit(snapshot, habit_id)
            if habit and note:
                rows.append((d, habit.name, note))
    rows.sort(key=lambda r: (r[0], r[1]))
    return rows
