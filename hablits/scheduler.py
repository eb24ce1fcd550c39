"""Day-plan timeline placement for Hablits.

Habits with a schedule are laid out on a vertical timeline covering a fixed
window of the day (05:00-23:00 by default). Positions are percentages of the
window height; picked offsets snap to 15-minute slots.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from datetime import datetime, time
from typing import Any

from hablits.dates import DayLike, mask_index
from hablits.models import VALID_RECURRENCE, Habit, HabitSchedule, Snapshot
from hablits.queries import active_habits


# ── Constants ─────────────────────────────────────────────────

DEFAULT_START_HOUR = 5
DEFAULT_END_HOUR = 23
SNAP_MINUTES = 15
HIDDEN_POSITION = -100.0
DURATION_OPTIONS = (15, 30, 45, 60, 90, 120, 180, 240)

_HHMM = re.compile(r"^\d{2}:\d{2}$")


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def _window_minutes(start_hour: int, end_hour: int) -> int:
    return (end_hour - start_hour) * 60


# ── Timeline projection ───────────────────────────────────────


def timeline_position(
    value: str | time | datetime,
    start_hour: int = DEFAULT_START_HOUR,
    end_hour: int = DEFAULT_END_HOUR,
) -> float:
    """Percent (0-100) down the timeline for a time of day.

    Times outside the window stick to its edges. A string that is not
    HH:MM gives HIDDEN_POSITION so the marker lands off-screen.
    """
    if isinstance(value, (datetime, time)):
        hours, minutes = value.hour, value.minute
    elif isinstance(value, str) and _HHMM.match(value):
        hours, minutes = int(value[:2]), int(value[3:])
    else:
        return HIDDEN_POSITION

    max_minutes = _window_minutes(start_hour, end_hour)
    if max_minutes <= 0:
        return HIDDEN_POSITION
    total = (hours - start_hour) * 60 + minutes
    clamped = max(0, min(max_minutes, total))
    return clamped / max_minutes * 100


def schedule_to_timeline_position(
    schedule: HabitSchedule,
    start_hour: int = DEFAULT_START_HOUR,
    end_hour: int = DEFAULT_END_HOUR,
) -> float:
    return timeline_position(schedule.time, start_hour, end_hour)


def time_from_offset(
    minutes: float,
    start_hour: int = DEFAULT_START_HOUR,
    end_hour: int = DEFAULT_END_HOUR,
) -> str:
    """HH:MM for an offset (in minutes) from the window start, snapped to 15 minutes."""
    clamped = max(0.0, min(float(_window_minutes(start_hour, end_hour)), float(minutes)))
    total = _round_half_up(clamped)
    snapped = _round_half_up(total / SNAP_MINUTES) * SNAP_MINUTES
    hours = start_hour + snapped // 60
    return f"{hours:02d}:{snapped % 60:02d}"


def time_options(
    start_hour: int = DEFAULT_START_HOUR,
    end_hour: int = DEFAULT_END_HOUR,
) -> list[tuple[int, int, str]]:
    """(hour, minute, '6:15 AM') choices every 15 minutes, ending at end_hour:00."""
    options = []
    for h in range(start_hour, end_hour + 1):
        for m in range(0, 60, SNAP_MINUTES):
            if h == end_hour and m > 0:
                break
            hour12 = h - 12 if h > 12 else (12 if h == 0 else h)
            period = "PM" if h >= 12 else "AM"
            options.append((h, m, f"{hour12}:{m:02d} {period}"))
    return options


def format_duration(minutes: int) -> str:
    """'45m', '1h', '1h 30m'."""
    hours, mins = divmod(minutes, 60)
    if not hours:
        return f"{mins}m"
    return f"{hours}h" if mins == 0 else f"{hours}h {mins}m"


def quick_schedule(hour: int, minute: int, duration: int = 30) -> HabitSchedule:
    """A daily schedule built from the quick picker."""
    return HabitSchedule(time=f"{hour:02d}:{minute:02d}", duration=duration, recurring="daily")


# ── Day plan ──────────────────────────────────────────────────


def schedule_applies_on(schedule: HabitSchedule, day: DayLike) -> bool:
    """Custom schedules follow their weekday mask; once/daily always show."""
    if schedule.recurring != "custom" or not schedule.recurring_days:
        return True
    return bool(schedule.recurring_days[mask_index(day)])


@dataclass(frozen=True)
class TimelineEntry:
    habit: Habit
    schedule: HabitSchedule
    position: float


def scheduled_habits(
    snapshot: Snapshot,
    day: DayLike,
    start_hour: int = DEFAULT_START_HOUR,
    end_hour: int = DEFAULT_END_HOUR,
) -> list[TimelineEntry]:
    """Active habits with a schedule for *day*, earliest first."""
    entries = []
    for habit in active_habits(snapshot.habits, day, snapshot.current_identity_filter):
        schedule = snapshot.day_plan_schedules.get(habit.id)
        if schedule is None or not schedule_applies_on(schedule, day):
            continue
        position = schedule_to_timeline_position(schedule, start_hour, end_hour)
        entries.append(TimelineEntry(habit=habit, schedule=schedule, position=position))
    entries.sort(key=lambda e: e.schedule.time)
    return entries


def unscheduled_habits(snapshot: Snapshot, day: DayLike) -> list[Habit]:
    """Active habits with no schedule at all."""
    return [
        h for h in active_habits(snapshot.habits, day, snapshot.current_identity_filter)
        if h.id not in snapshot.day_plan_schedules
    ]


# ── Validation ────────────────────────────────────────────────


def validate_schedule(d: dict[str, Any]) -> list[str]:
    """Validate a schedule payload. Returns a list of errors."""
    errors = []
    t = d.get("time")
    if not isinstance(t, str) or not _HHMM.match(t):
        errors.append("time must be HH:MM")
    elif int(t[:2]) > 23 or int(t[3:]) > 59:
        errors.append("time must be a valid time of day")
    duration = d.get("duration", 30)
    if not isinstance(duration, int) or isinstance(duration, bool) or duration <= 0:
        errors.append("duration must be a positive integer (minutes)")
    recurring = d.get("recurring", "daily")
    if recurring not in VALID_RECURRENCE:
        errors.append(f"recurring must be one of: {', '.join(sorted(VALID_RECURRENCE))}")
    if recurring == "custom":
        days = d.get("recurringDays")
        if not isinstance(days, (list, tuple)) or len(days) != 7:
            errors.append("custom schedules need recurringDays: 7 booleans (Sunday first)")
    return errors
