"""Stats for Hablits.

Computes the figures behind the stats view: a daily completion series over a
7/30/90-day range, which weekdays go best, where completions come from by
identity, best and worst habits, and short text insights.
"""

from __future__ import annotations

import math
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any

from hablits.dates import DayLike, as_date, mask_index
from hablits.models import Habit, Snapshot
from hablits.queries import active_habits, streak, strict_streak


RANGES = {"7d": 7, "30d": 30, "90d": 90}
DAY_NAMES = ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]


@dataclass
class DayStat:
    date: date
    completion: float
    count: int

    def to_dict(self) -> dict[str, Any]:
        return {"date": self.date.isoformat(), "completion": round(self.completion, 3), "count": self.count}


@dataclass
class HabitPerformance:
    habit: Habit
    rate: float
    streak: int
    total_days: int
    completed_days: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "habitId": self.habit.id,
            "name": self.habit.name,
            "rate": round(self.rate, 3),
            "streak": self.streak,
            "totalDays": self.total_days,
            "completedDays": self.completed_days,
        }


@dataclass
class StatsSummary:
    total_habits: int = 0
    all_completions: int = 0
    avg_per_day: float = 0.0
    best_streak: int = 0
    days: list[DayStat] = field(default_factory=list)
    weekday_pattern: dict[str, float] = field(default_factory=dict)
    identity_breakdown: list[dict[str, Any]] = field(default_factory=list)
    best: list[HabitPerformance] = field(default_factory=list)
    worst: list[HabitPerformance] = field(default_factory=list)
    insights: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalHabits": self.total_habits,
            "allCompletions": self.all_completions,
            "avgPerDay": round(self.avg_per_day, 1),
            "bestStreak": self.best_streak,
            "days": [d.to_dict() for d in self.days],
            "weekdayPattern": {k: round(v, 3) for k, v in self.weekday_pattern.items()},
            "identityBreakdown": self.identity_breakdown,
            "best": [p.to_dict() for p in self.best],
            "worst": [p.to_dict() for p in self.worst],
            "insights": self.insights,
        }


def _percent(fraction: float) -> int:
    return math.floor(fraction * 100 + 0.5)


# ── Series ────────────────────────────────────────────────────


def completion_series(snapshot: Snapshot, today: DayLike, days: int = 30) -> list[DayStat]:
    """One entry per day, oldest first, ending on *today*."""
    end = as_date(today)
    series = []
    for i in range(days - 1, -1, -1):
        d = end - timedelta(days=i)
        active = active_habits(snapshot.habits, d)
        done = snapshot.logs.get(d.isoformat(), ())
        completed = sum(1 for h in active if h.id in done)
        completion = completed / len(active) if active else 0.0
        series.append(DayStat(date=d, completion=completion, count=completed))
    return series


def weekday_pattern(snapshot: Snapshot) -> dict[str, float]:
    """Average completion per weekday (Sun..Sat) over every logged day."""
    totals = [0.0] * 7
    counts = [0] * 7
    for key, ids in snapshot.logs.items():
        try:
            d = as_date(key)
        except ValueError:
            continue
        active = active_habits(snapshot.habits, d)
        if active:
            idx = mask_index(d)
            totals[idx] += len(ids) / len(active)
            counts[idx] += 1
    return {name: (totals[i] / counts[i] if counts[i] else 0.0) for i, name in enumerate(DAY_NAMES)}


def identity_breakdown(snapshot: Snapshot) -> list[dict[str, Any]]:
    """Completions per identity, identities without any left out."""
    counts: dict[str, int] = defaultdict(int)
    owner = {h.id: h.identity_id for h in snapshot.habits}
    for ids in snapshot.logs.values():
        for habit_id in ids:
            if habit_id in owner:
                counts[owner[habit_id]] += 1
    return [
        {"identityId": i.id, "name": i.name, "color": i.color, "count": counts[i.id]}
        for i in snapshot.identities
        if counts.get(i.id)
    ]


def best_streak(snapshot: Snapshot, today: DayLike) -> int:
    """Longest current run of consecutive days (no grace) across all habits."""
    return max((strict_streak(snapshot.logs, h.id, today) for h in snapshot.habits), default=0)


def habit_performance(
    snapshot: Snapshot, today: DayLike, days: int = 30
) -> tuple[list[HabitPerformance], list[HabitPerformance]]:
    """(best three, worst three) habits by completion rate over the range."""
    end = as_date(today)
    stats = []
    for habit in snapshot.habits:
        total = completed = 0
        for i in range(days):
            d = end - timedelta(days=i)
            if any(h.id == habit.id for h in active_habits(snapshot.habits, d)):
                total += 1
                if habit.id in snapshot.logs.get(d.isoformat(), ()):
                    completed += 1
        stats.append(HabitPerformance(
            habit=habit,
            rate=completed / total if total else 0.0,
            streak=streak(snapshot.logs, habit.id, end),
            total_days=total,
            completed_days=completed,
        ))

    ranked = sorted(stats, key=lambda p: p.rate, reverse=True)
    best = [p for p in ranked[:3] if p.total_days > 0]
    worst = [p for p in reversed(ranked[-3:]) if p.total_days > 0 and p.rate < 1]
    return best, worst


# ── Insights ──────────────────────────────────────────────────


def insights(pattern: dict[str, float], series: list[DayStat], top_streak: int) -> list[str]:
    out = []

    best_day, best_avg = None, 0.0
    for name, avg in pattern.items():
        if best_day is None or avg > best_avg:
            best_day, best_avg = name, avg
    if best_day and best_avg > 0:
        out.append(f"You're most consistent on {best_day}s ({_percent(best_avg)}% completion)")

    if top_streak >= 30:
        out.append(f"Incredible! Your best streak is {top_streak} days")
    elif top_streak >= 7:
        out.append(f"Great work! Your best streak is {top_streak} days")

    recent = series[-7:]
    older = series[-14:-7]
    avg_recent = sum(d.completion for d in recent) / len(recent) if recent else 0.0
    avg_older = sum(d.completion for d in older) / len(older) if older else 0.0
    if avg_recent > avg_older + 0.1:
        out.append(f"You're improving! Up {_percent(avg_recent - avg_older)}% from last week")
    elif avg_recent < avg_older - 0.1:
        out.append(f"Completion dropped {_percent(avg_older - avg_recent)}% from last week")

    perfect = sum(1 for d in series if d.completion == 1)
    if perfect:
        out.append(f"{perfect} perfect {'day' if perfect == 1 else 'days'} in this period")
    return out


def compute_stats(snapshot: Snapshot, today: DayLike, time_range: str = "30d") -> StatsSummary:
    """Everything the stats view shows, for one of the 7d/30d/90d ranges."""
    days = RANGES.get(time_range)
    if days is None:
        raise ValueError(f"Unknown range {time_range!r}; expected one of {', '.join(RANGES)}")

    series = completion_series(snapshot, today, days)
    pattern = weekday_pattern(snapshot)
    top = best_streak(snapshot, today)
    best, worst = habit_performance(snapshot, today, days)

    return StatsSummary(
        total_habits=len(snapshot.habits),
        all_completions=sum(len(ids) for ids in snapshot.logs.values()),
        avg_per_day=sum(d.count for d in series) / len(series) if series else 0.0,
        best_streak=top,
        days=series,
        weekday_pattern=pattern,
        identity_breakdown=identity_breakdown(snapshot),
        best=best,
        worst=worst,
        insights=insights(pattern, series, top),
    )
