"""Fasting timers for Hablits.

A fast is attached to a habit while it runs and removed when it ends. These
helpers answer "how long is left" style questions; the clock is always passed
in, so the same fast can be evaluated at any instant.
"""

from __future__ import annotations

from datetime import datetime, timedelta

from hablits.models import ActiveFast, parse_timestamp


FAST_DURATIONS = (12, 16, 18, 24, 36)  # hours

STATUS_NONE = "none"
STATUS_ACTIVE = "active"
STATUS_COMPLETE = "complete"


def is_fasting_habit(name: str) -> bool:
    """Habits with 'fast' in their name get the fasting timer."""
    return "fast" in name.casefold()


def start_fast(habit_id: str, duration: float, start_time: datetime) -> ActiveFast:
    """Build a fast. Raises ValueError for a non-positive duration."""
    if duration <= 0:
        raise ValueError(f"Fast duration must be positive, got {duration}")
    return ActiveFast.begin(habit_id, duration, start_time)


def restart_fast(fast: ActiveFast, start_time: datetime) -> ActiveFast:
    """Same fast, new start; the target moves with it."""
    return ActiveFast.begin(fast.habit_id, fast.duration, start_time)


# ── Queries ───────────────────────────────────────────────────


def remaining_time(fast: ActiveFast, now: datetime) -> timedelta:
    return max(timedelta(0), fast.target_time - parse_timestamp(now))


def is_fast_complete(fast: ActiveFast, now: datetime) -> bool:
    return remaining_time(fast, now) == timedelta(0)


def fast_progress(fast: ActiveFast, now: datetime) -> float:
    """Percent elapsed, clamped to 0-100."""
    total = (fast.target_time - fast.start_time).total_seconds()
    if total <= 0:
        return 100.0
    elapsed = (parse_timestamp(now) - fast.start_time).total_seconds()
    return max(0.0, min(100.0, elapsed / total * 100))


def fast_status(fast: ActiveFast | None, now: datetime) -> str:
    if fast is None:
        return STATUS_NONE
    return STATUS_COMPLETE if is_fast_complete(fast, now) else STATUS_ACTIVE


def format_remaining_time(remaining: timedelta) -> str:
    """'12h 30m 45s', '45m 30s', '15s', or 'Complete!' once nothing is left."""
    seconds = int(remaining.total_seconds())
    if seconds <= 0:
        return "Complete!"
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    if hours:
        return f"{hours}h {minutes}m {secs}s"
    if minutes:
        return f"{minutes}m {secs}s"
    return f"{secs}s"
