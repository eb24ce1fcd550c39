"""Tests for hablits/notifications.py."""

from dataclasses import replace
from datetime import datetime, timezone

from hablits.fasting import start_fast
from hablits.models import NotificationTime, SimpleHabit
from hablits.notifications import daily_reminder, fast_completion_notice, notice_for_fast, reminder_for

T = datetime(2026, 2, 11, 20, 0, tzinfo=timezone.utc)


def test_fast_completion_notice():
    notice = fast_completion_notice(start_fast("h1", 16, T), "Fasting", now=T)
    assert notice.title == "Fasting Complete!"
    assert notice.body == "Your 16-hour fast is complete. Great job!"
    assert notice.to_dict()["targetTime"] == "2026-02-12T12:00:00Z"


def test_fast_notice_with_fractional_hours():
    notice = fast_completion_notice(start_fast("h1", 13.5, T), "Fasting")
    assert notice.body == "Your 13.5-hour fast is complete. Great job!"


def test_no_notice_once_target_passed():
    fast = start_fast("h1", 12, T)
    assert fast_completion_notice(fast, "Fasting", now=datetime(2026, 2, 12, 9, tzinfo=timezone.utc)) is None


def test_notice_for_fast(snapshot):
    s = replace(snapshot, active_fasts={"h1": start_fast("h1", 12, T), "gone": start_fast("gone", 12, T)})
    assert notice_for_fast(s, "h1", T).title == "Meditate Complete!"
    assert notice_for_fast(s, "gone", T).title == "Fast Complete!"
    assert notice_for_fast(s, "h2", T) is None


def test_daily_reminder_previews_three_habits():
    habits = [SimpleHabit(id=str(i), name=n) for i, n in enumerate(["Read", "Walk", "Stretch", "Floss", "Sleep"])]
    reminder = daily_reminder(habits, NotificationTime(hour=8, minute=15))
    assert reminder.title == "Time for your habits!"
    assert reminder.body == "Don't forget: Read, Walk, Stretch and 2 more"
    assert (reminder.hour, reminder.minute) == (8, 15)
    assert daily_reminder([], NotificationTime()) is None


def test_reminder_for_follows_preferences(snapshot):
    assert reminder_for(snapshot) is None
    s = replace(snapshot, notifications_enabled=True)
    assert reminder_for(s).habit_names == ("Meditate", "Run", "Morning routine")
