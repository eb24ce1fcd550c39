"""Notification payloads for Hablits.

Only the content is computed here. Delivering the alert belongs to whatever
command is registered for the matching hook in hooks.yaml.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from hablits.models import ActiveFast, Habit, NotificationTime, Snapshot, format_timestamp, parse_timestamp
from hablits.queries import find_habit, sort_by_order

REMINDER_PREVIEW = 3


@dataclass(frozen=True)
class FastNotice:
    habit_name: str
    target_time: datetime
    title: str
    body: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "habitName": self.habit_name,
            "targetTime": format_timestamp(self.target_time),
            "title": self.title,
            "body": self.body,
        }


@dataclass(frozen=True)
class DailyReminder:
    habit_names: tuple[str, ...]
    hour: int
    minute: int
    title: str
    body: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "habitNames": list(self.habit_names),
            "hour": self.hour,
            "minute": self.minute,
            "title": self.title,
            "body": self.body,
        }


def _hours_label(duration: float) -> str:
    return str(int(duration)) if float(duration).is_integer() else str(duration)


def fast_completion_notice(fast: ActiveFast, habit_name: str, now: datetime | None = None) -> FastNotice | None:
    """Notice due at the fast's target time; None if it is already past *now*."""
    if now is not None and fast.target_time <= parse_timestamp(now):
        return None
    return FastNotice(
        habit_name=habit_name,
        target_time=fast.target_time,
        title=f"{habit_name} Complete!",
        body=f"Your {_hours_label(fast.duration)}-hour fast is complete. Great job!",
    )


def daily_reminder(habits: list[Habit], when: NotificationTime) -> DailyReminder | None:
    """Repeating daily reminder naming the first few habits. None without habits."""
    if not habits:
        return None
    names = tuple(h.name for h in habits)
    preview = ", ".join(names[:REMINDER_PREVIEW])
    more = f" and {len(names) - REMINDER_PREVIEW} more" if len(names) > REMINDER_PREVIEW else ""
    return DailyReminder(
        habit_names=names,
        hour=when.hour,
        minute=when.minute,
        title="Time for your habits!",
        body=f"Don't forget: {preview}{more}",
    )


def reminder_for(snapshot: Snapshot) -> DailyReminder | None:
    """The reminder the snapshot's preferences call for, if any."""
    if not snapshot.notifications_enabled:
        return None
    return daily_reminder(sort_by_order(snapshot.habits), snapshot.notification_time)


def notice_for_fast(snapshot: Snapshot, habit_id: str, now: datetime | None = None) -> FastNotice | None:
    fast = snapshot.active_fasts.get(habit_id)
    if fast is None:
        return None
    habit = find_habit(snapshot, habit_id)
    return fast_completion_notice(fast, habit.name if habit else "Fast", now)
