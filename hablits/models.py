"""Typed dataclasses for the Hablits data model.

All models use from_dict/to_dict for JSON serialization.
camelCase in JSON is mapped to snake_case in Python.
Unknown keys are ignored; missing keys use defaults.

Entities are frozen: the engine builds new snapshots with
``dataclasses.replace`` and never mutates one in place.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, ClassVar, Union

logger = logging.getLogger(__name__)


GENERAL_IDENTITY_ID = "general"
ALL_IDENTITIES = "all"
DEFAULT_DAYS: tuple[bool, ...] = (True,) * 7

VALID_RECURRENCE = {"once", "daily", "custom"}

THEMES = (
    "light", "dark", "superdark", "retro", "chibi", "sunshine", "gameboy",
    "racer", "paper", "cyber", "ocean", "sunset", "cosmic", "forest",
    "bengal", "lion", "ladyhawke", "sakura",
)
PET_SPECIES = (
    "blob", "pixel", "paper", "robot", "droplet", "slime", "carmech", "navi",
    "fish", "butterfly", "star", "deer", "tiger", "lion", "hawk", "dragon",
)
HAT_TYPES = (
    "none", "cap", "visor", "snapback", "beanie", "beret", "flatcap", "party",
    "jester", "cone", "tophat", "bowler", "fedora", "wizard", "sorcerer",
    "mage", "crown", "laurel", "tiara", "sombrero", "safari", "straw", "halo",
    "circlet", "sun", "viking", "astronaut",
)


# ── Primitives ────────────────────────────────────────────────


def parse_days(value: Any) -> tuple[bool, ...]:
    """Normalize a weekday mask (index 0 = Sunday). Malformed masks mean every day."""
    if isinstance(value, (list, tuple)) and len(value) == 7:
        return tuple(bool(v) for v in value)
    return DEFAULT_DAYS


def parse_timestamp(value: Any) -> datetime:
    """Parse an ISO timestamp; 'Z' suffixes and naive values are read as UTC."""
    if isinstance(value, datetime):
        dt = value
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        dt = datetime.fromisoformat(text)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def format_timestamp(dt: datetime) -> str:
    text = dt.isoformat()
    if text.endswith("+00:00"):
        text = text[:-6] + "Z"
    return text


def _unique(ids: Any) -> tuple[str, ...]:
    """Ordered, duplicate-free tuple of string ids."""
    if not isinstance(ids, (list, tuple)):
        return ()
    out: list[str] = []
    for i in ids:
        s = str(i)
        if s not in out:
            out.append(s)
    return tuple(out)


# ── Habits ────────────────────────────────────────────────────


@dataclass(frozen=True)
class RoutineStep:
    id: str = ""
    name: str = ""
    duration: int | None = None  # minutes
    order: int = 0

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> RoutineStep:
        duration = d.get("duration")
        return cls(
            id=str(d.get("id", "")),
            name=str(d.get("name", "")),
            duration=int(duration) if duration is not None else None,
            order=int(d.get("order", 0) or 0),
        )

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"id": self.id, "name": self.name, "order": self.order}
        if self.duration is not None:
            d["duration"] = self.duration
        return d


@dataclass(frozen=True)
class _HabitBase:
    id: str = ""
    name: str = ""
    weekly_goal: int = 7
    identity_id: str = GENERAL_IDENTITY_ID
    created_at: str = ""
    days: tuple[bool, ...] = DEFAULT_DAYS
    order: int = 0

    is_routine: ClassVar[bool] = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "weeklyGoal": self.weekly_goal,
            "identityId": self.identity_id,
            "createdAt": self.created_at,
            "days": list(self.days),
            "order": self.order,
        }


@dataclass(frozen=True)
class SimpleHabit(_HabitBase):
    """A habit tracked as a single yes/no per day."""


@dataclass(frozen=True)
class RoutineHabit(_HabitBase):
    """A habit made of ordered steps; complete only when every step is."""

    steps: tuple[RoutineStep, ...] = ()

    is_routine: ClassVar[bool] = True

    def __post_init__(self) -> None:
        if not self.steps:
            raise ValueError(f"Routine {self.name or self.id!r} needs at least one step")

    def step_ids(self) -> tuple[str, ...]:
        return tuple(s.id for s in self.steps)

    def to_dict(self) -> dict[str, Any]:
        d = super().to_dict()
        d["isRoutine"] = True
        d["steps"] = [s.to_dict() for s in self.steps]
        return d


Habit = Union[SimpleHabit, RoutineHabit]


def habit_from_dict(d: dict[str, Any]) -> Habit:
    """Build the right habit variant. A routine without steps degrades to a simple habit."""
    common = dict(
        id=str(d.get("id", "")),
        name=str(d.get("name", "")),
        weekly_goal=int(d.get("weeklyGoal", 7) or 7),
        identity_id=str(d.get("identityId") or GENERAL_IDENTITY_ID),
        created_at=str(d.get("createdAt", "") or ""),
        days=parse_days(d.get("days")),
        order=int(d.get("order", 0) or 0),
    )
    steps = tuple(
        RoutineStep.from_dict(s) for s in (d.get("steps") or []) if isinstance(s, dict)
    )
    if d.get("isRoutine") and steps:
        return RoutineHabit(steps=steps, **common)
    return SimpleHabit(**common)


def validate_habit(d: dict[str, Any]) -> list[str]:
    """Validate a habit payload before it is dispatched. Returns a list of errors."""
    errors = []
    if not str(d.get("name", "")).strip():
        errors.append("Missing required field: name")
    goal = d.get("weeklyGoal", 7)
    if not isinstance(goal, int) or isinstance(goal, bool) or goal < 1 or goal > 7:
        errors.append("weeklyGoal must be integer 1-7")
    days = d.get("days")
    if days is not None and (not isinstance(days, (list, tuple)) or len(days) != 7):
        errors.append("days must be a list of 7 booleans (Sunday first)")
    if d.get("isRoutine"):
        steps = d.get("steps") or []
        if not steps:
            errors.append("A routine needs at least one step")
        for s in steps:
            if not isinstance(s, dict) or not str(s.get("name", "")).strip():
                errors.append("Every routine step needs a name")
                break
    return errors


# ── Identities & marks ────────────────────────────────────────


@dataclass(frozen=True)
class Identity:
    id: str = ""
    name: str = ""
    color: str = "#3ddc97"

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Identity:
        return cls(
            id=str(d.get("id", "")),
            name=str(d.get("name", "")),
            color=str(d.get("color", "#3ddc97")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "color": self.color}


GENERAL_IDENTITY = Identity(id=GENERAL_IDENTITY_ID, name="General", color="#3ddc97")


@dataclass(frozen=True)
class DayMarks:
    skip: tuple[str, ...] = ()
    fail: tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> DayMarks:
        return cls(skip=_unique(d.get("skip")), fail=_unique(d.get("fail")))

    def to_dict(self) -> dict[str, Any]:
        return {"skip": list(self.skip), "fail": list(self.fail)}

    def is_empty(self) -> bool:
        return not self.skip and not self.fail


# ── Day plan ──────────────────────────────────────────────────


@dataclass(frozen=True)
class HabitSchedule:
    time: str = "09:00"  # HH:MM
    duration: int = 30  # minutes
    recurring: str = "daily"  # once, daily, custom
    recurring_days: tuple[bool, ...] | None = None

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> HabitSchedule:
        recurring = str(d.get("recurring", "daily"))
        if recurring not in VALID_RECURRENCE:
            recurring = "daily"
        raw_days = d.get("recurringDays")
        return cls(
            time=str(d.get("time", "09:00")),
            duration=int(d.get("duration", 30)),
            recurring=recurring,
            recurring_days=parse_days(raw_days) if raw_days is not None else None,
        )

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "time": self.time,
            "duration": self.duration,
            "recurring": self.recurring,
        }
        if self.recurring_days is not None:
            d["recurringDays"] = list(self.recurring_days)
        return d


# ── Fasting ───────────────────────────────────────────────────


@dataclass(frozen=True)
class ActiveFast:
    habit_id: str
    start_time: datetime
    duration: float  # hours
    target_time: datetime

    @classmethod
    def begin(cls, habit_id: str, duration: float, start_time: datetime) -> ActiveFast:
        start = parse_timestamp(start_time)
        return cls(
            habit_id=habit_id,
            start_time=start,
            duration=duration,
            target_time=start + timedelta(hours=duration),
        )

    @classmethod
    def from_dict(cls, habit_id: str, d: dict[str, Any]) -> ActiveFast:
        start = parse_timestamp(d["startTime"])
        duration = d["duration"]
        target = d.get("targetTime")
        return cls(
            habit_id=str(d.get("habitId", habit_id)),
            start_time=start,
            duration=duration,
            target_time=parse_timestamp(target) if target else start + timedelta(hours=duration),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "habitId": self.habit_id,
            "startTime": format_timestamp(self.start_time),
            "duration": self.duration,
            "targetTime": format_timestamp(self.target_time),
        }


# ── Snapshot ──────────────────────────────────────────────────


@dataclass(frozen=True)
class NotificationTime:
    hour: int = 9
    minute: int = 0

    @classmethod
    def from_dict(cls, d: Any) -> NotificationTime:
        if not isinstance(d, dict):
            return cls()
        return cls(hour=int(d.get("hour", 9)), minute=int(d.get("minute", 0)))

    def to_dict(self) -> dict[str, Any]:
        return {"hour": self.hour, "minute": self.minute}


@dataclass(frozen=True)
class Snapshot:
    theme: str = "light"
    sfx_enabled: bool = True
    haptics_enabled: bool = True
    custom_accent_color: str | None = None
    notifications_enabled: bool = False
    notification_time: NotificationTime = field(default_factory=NotificationTime)
    identities: tuple[Identity, ...] = (GENERAL_IDENTITY,)
    current_identity_filter: str = ALL_IDENTITIES
    habits: tuple[Habit, ...] = ()
    logs: dict[str, tuple[str, ...]] = field(default_factory=dict)
    marks: dict[str, DayMarks] = field(default_factory=dict)
    day_plan_schedules: dict[str, HabitSchedule] = field(default_factory=dict)
    notes: dict[str, dict[str, str]] = field(default_factory=dict)
    routine_step_logs: dict[str, dict[str, tuple[str, ...]]] = field(default_factory=dict)
    has_completed_onboarding: bool = False
    pet_species: str = "blob"
    pet_hat: str = "none"
    active_fasts: dict[str, ActiveFast] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Snapshot:
        """Load a persisted snapshot, backfilling anything older versions lacked.

        Idempotent: ``from_dict(s.to_dict()) == s``.
        """
        if not d or not isinstance(d, dict):
            return cls()

        habits = tuple(habit_from_dict(h) for h in (d.get("habits") or []) if isinstance(h, dict))

        identities = [Identity.from_dict(i) for i in (d.get("identities") or []) if isinstance(i, dict)]
        if not any(i.id == GENERAL_IDENTITY_ID for i in identities):
            identities.insert(0, GENERAL_IDENTITY)

        logs: dict[str, tuple[str, ...]] = {}
        for day, ids in (d.get("logs") or {}).items():
            ids = _unique(ids)
            if ids:
                logs[day] = ids

        marks: dict[str, DayMarks] = {}
        for day, m in (d.get("marks") or {}).items():
            if isinstance(m, dict):
                dm = DayMarks.from_dict(m)
                if not dm.is_empty():
                    marks[day] = dm

        notes: dict[str, dict[str, str]] = {}
        for day, day_notes in (d.get("notes") or {}).items():
            if not isinstance(day_notes, dict):
                continue
            kept = {hid: str(n) for hid, n in day_notes.items() if n and str(n).strip()}
            if kept:
                notes[day] = kept

        step_logs: dict[str, dict[str, tuple[str, ...]]] = {}
        for day, per_habit in (d.get("routineStepLogs") or {}).items():
            if not isinstance(per_habit, dict):
                continue
            kept_steps = {hid: _unique(ids) for hid, ids in per_habit.items() if _unique(ids)}
            if kept_steps:
                step_logs[day] = kept_steps

        schedules: dict[str, HabitSchedule] = {}
        for hid, s in (d.get("dayPlanSchedules") or {}).items():
            if isinstance(s, dict):
                try:
                    schedules[hid] = HabitSchedule.from_dict(s)
                except (TypeError, ValueError):
                    logger.warning("Dropping malformed schedule for habit %s", hid)
        # Legacy single-time plans become daily 30-minute schedules
        for hid, t in (d.get("dayPlanTimes") or {}).items():
            if t and hid not in schedules:
                schedules[hid] = HabitSchedule(time=str(t), duration=30, recurring="daily")

        fasts: dict[str, ActiveFast] = {}
        for hid, f in (d.get("activeFasts") or {}).items():
            if not isinstance(f, dict):
                continue
            try:
                fasts[hid] = ActiveFast.from_dict(hid, f)
            except (KeyError, TypeError, ValueError):
                logger.warning("Dropping malformed fast for habit %s", hid)

        onboarded = d.get("hasCompletedOnboarding")
        if onboarded is None:
            onboarded = bool(habits)

        accent = d.get("customAccentColor")

        return cls(
            theme=str(d.get("theme") or "light"),
            sfx_enabled=bool(d.get("sfxEnabled", True)),
            haptics_enabled=bool(d.get("hapticsEnabled", True)),
            custom_accent_color=str(accent) if accent else None,
            notifications_enabled=bool(d.get("notificationsEnabled", False)),
            notification_time=NotificationTime.from_dict(d.get("notificationTime")),
            identities=tuple(identities),
            current_identity_filter=str(d.get("currentIdentityFilter") or ALL_IDENTITIES),
            habits=habits,
            logs=logs,
            marks=marks,
            day_plan_schedules=schedules,
            notes=notes,
            routine_step_logs=step_logs,
            has_completed_onboarding=bool(onboarded),
            pet_species=str(d.get("petSpecies") or "blob"),
            pet_hat=str(d.get("petHat") or "none"),
            active_fasts=fasts,
        )

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "theme": self.theme,
            "sfxEnabled": self.sfx_enabled,
            "hapticsEnabled": self.haptics_enabled,
            "notificationsEnabled": self.notifications_enabled,
            "notificationTime": self.notification_time.to_dict(),
            "identities": [i.to_dict() for i in self.identities],
            "currentIdentityFilter": self.current_identity_filter,
            "habits": [h.to_dict() for h in self.habits],
            "logs": {day: list(ids) for day, ids in self.logs.items()},
            "marks": {day: m.to_dict() for day, m in self.marks.items()},
            "dayPlanSchedules": {hid: s.to_dict() for hid, s in self.day_plan_schedules.items()},
            "notes": {day: dict(n) for day, n in self.notes.items()},
            "routineStepLogs": {
                day: {hid: list(ids) for hid, ids in per_habit.items()}
                for day, per_habit in self.routine_step_logs.items()
            },
            "hasCompletedOnboarding": self.has_completed_onboarding,
            "petSpecies": self.pet_species,
            "petHat": self.pet_hat,
            "activeFasts": {hid: f.to_dict() for hid, f in self.active_fasts.items()},
        }
        if self.custom_accent_color:
            d["customAccentColor"] = self.custom_accent_color
        return d
