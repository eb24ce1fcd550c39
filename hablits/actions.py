"""Action types accepted by the Hablits engine.

Each action is a small frozen dataclass. The wire form used by the HTTP API
and by persisted hooks is ``{"type": "TOGGLE_HABIT", "payload": {...}}``;
``action_from_dict`` turns that into an action, or None when the type is
unknown or the payload is malformed.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, ClassVar

from hablits.dates import day_key
from hablits.models import (
    GENERAL_IDENTITY_ID,
    DEFAULT_DAYS,
    Habit,
    HabitSchedule,
    Identity,
    Snapshot,
    habit_from_dict,
    parse_timestamp,
)

logger = logging.getLogger(__name__)


def new_id() -> str:
    return uuid.uuid4().hex


class _OnDay:
    """Mixin for actions that target one day: `date` is stored as its day key."""

    def __post_init__(self) -> None:
        object.__setattr__(self, "date", day_key(self.date))


# ── Habits ────────────────────────────────────────────────────


@dataclass(frozen=True)
class LoadState:
    data: dict[str, Any] | Snapshot
    type: ClassVar[str] = "LOAD_STATE"


@dataclass(frozen=True)
class AddHabit:
    habit: Habit
    type: ClassVar[str] = "ADD_HABIT"


@dataclass(frozen=True)
class UpdateHabit:
    habit: Habit
    type: ClassVar[str] = "UPDATE_HABIT"


@dataclass(frozen=True)
class DeleteHabit:
    habit_id: str
    type: ClassVar[str] = "DELETE_HABIT"


@dataclass(frozen=True)
class ReorderHabits:
    habit_ids: tuple[str, ...]
    type: ClassVar[str] = "REORDER_HABITS"


# ── Completion ────────────────────────────────────────────────


@dataclass(frozen=True)
class ToggleHabit(_OnDay):
    habit_id: str
    date: str
    type: ClassVar[str] = "TOGGLE_HABIT"


@dataclass(frozen=True)
class SkipHabit(_OnDay):
    habit_id: str
    date: str
    type: ClassVar[str] = "SKIP_HABIT"


@dataclass(frozen=True)
class FailHabit(_OnDay):
    habit_id: str
    date: str
    type: ClassVar[str] = "FAIL_HABIT"


@dataclass(frozen=True)
class ClearDay(_OnDay):
    date: str
    type: ClassVar[str] = "CLEAR_DAY"


@dataclass(frozen=True)
class ToggleRoutineStep(_OnDay):
    habit_id: str
    step_id: str
    date: str
    type: ClassVar[str] = "TOGGLE_ROUTINE_STEP"


# ── Identities ────────────────────────────────────────────────


@dataclass(frozen=True)
class AddIdentity:
    identity: Identity
    type: ClassVar[str] = "ADD_IDENTITY"


@dataclass(frozen=True)
class UpdateIdentity:
    identity: Identity
    type: ClassVar[str] = "UPDATE_IDENTITY"


@dataclass(frozen=True)
class DeleteIdentity:
    identity_id: str
    type: ClassVar[str] = "DELETE_IDENTITY"


@dataclass(frozen=True)
class SetIdentityFilter:
    identity_id: str
    type: ClassVar[str] = "SET_IDENTITY_FILTER"


# ── Day plan & notes ──────────────────────────────────────────


@dataclass(frozen=True)
class SetDayPlanSchedule:
    habit_id: str
    schedule: HabitSchedule | None
    type: ClassVar[str] = "SET_DAY_PLAN_SCHEDULE"


@dataclass(frozen=True)
class SetNote(_OnDay):
    habit_id: str
    date: str
    note: str
    type: ClassVar[str] = "SET_NOTE"


@dataclass(frozen=True)
class DeleteNote(_OnDay):
    habit_id: str
    date: str
    type: ClassVar[str] = "DELETE_NOTE"


# ── Fasting ───────────────────────────────────────────────────


@dataclass(frozen=True)
class StartFast:
    habit_id: str
    duration: float  # hours
    start_time: datetime
    type: ClassVar[str] = "START_FAST"


@dataclass(frozen=True)
class UpdateFastStartTime:
    habit_id: str
    start_time: datetime
    type: ClassVar[str] = "UPDATE_FAST_START_TIME"


@dataclass(frozen=True)
class EndFast:
    habit_id: str
    type: ClassVar[str] = "END_FAST"


# ── Preferences ───────────────────────────────────────────────


@dataclass(frozen=True)
class SetTheme:
    theme: str
    type: ClassVar[str] = "SET_THEME"


@dataclass(frozen=True)
class SetCustomAccentColor:
    color: str | None
    type: ClassVar[str] = "SET_CUSTOM_ACCENT_COLOR"


@dataclass(frozen=True)
class SetSfxEnabled:
    enabled: bool
    type: ClassVar[str] = "SET_SFX_ENABLED"


@dataclass(frozen=True)
class SetHapticsEnabled:
    enabled: bool
    type: ClassVar[str] = "SET_HAPTICS_ENABLED"


@dataclass(frozen=True)
class SetNotificationsEnabled:
    enabled: bool
    type: ClassVar[str] = "SET_NOTIFICATIONS_ENABLED"


@dataclass(frozen=True)
class SetNotificationTime:
    hour: int
    minute: int
    type: ClassVar[str] = "SET_NOTIFICATION_TIME"


@dataclass(frozen=True)
class CompleteOnboarding:
    type: ClassVar[str] = "COMPLETE_ONBOARDING"


@dataclass(frozen=True)
class SetPetSpecies:
    species: str
    type: ClassVar[str] = "SET_PET_SPECIES"


@dataclass(frozen=True)
class SetPetHat:
    hat: str
    type: ClassVar[str] = "SET_PET_HAT"


Action = (
    LoadState | AddHabit | UpdateHabit | DeleteHabit | ReorderHabits
    | ToggleHabit | SkipHabit | FailHabit | ClearDay | ToggleRoutineStep
    | AddIdentity | UpdateIdentity | DeleteIdentity | SetIdentityFilter
    | SetDayPlanSchedule | SetNote | DeleteNote
    | StartFast | UpdateFastStartTime | EndFast
    | SetTheme | SetCustomAccentColor | SetSfxEnabled | SetHapticsEnabled
    | SetNotificationsEnabled | SetNotificationTime | CompleteOnboarding
    | SetPetSpecies | SetPetHat
)


# ── Factories ─────────────────────────────────────────────────


def add_habit(
    name: str,
    weekly_goal: int = 7,
    identity_id: str = GENERAL_IDENTITY_ID,
    days: list[bool] | tuple[bool, ...] | None = None,
    steps: list[dict[str, Any]] | None = None,
    created_at: str = "",
    habit_id: str | None = None,
) -> AddHabit:
    """Build an ADD_HABIT action with a fresh id.

    *steps* are ``{"name", "duration"?}`` dicts; giving any makes the habit a routine.
    """
    data: dict[str, Any] = {
        "id": habit_id or new_id(),
        "name": name,
        "weeklyGoal": weekly_goal,
        "identityId": identity_id,
        "createdAt": created_at,
        "days": list(days) if days is not None else list(DEFAULT_DAYS),
    }
    if steps:
        data["isRoutine"] = True
        data["steps"] = [
            {"id": s.get("id") or new_id(), "name": s["name"], "duration": s.get("duration"), "order": i + 1}
            for i, s in enumerate(steps)
        ]
    return AddHabit(habit=habit_from_dict(data))


def add_identity(name: str, color: str = "#3ddc97", identity_id: str | None = None) -> AddIdentity:
    return AddIdentity(identity=Identity(id=identity_id or new_id(), name=name, color=color))


# ── Wire parsing ──────────────────────────────────────────────


def _habit_payload(p: dict[str, Any]) -> Habit:
    p = dict(p)
    if not p.get("id"):
        p["id"] = new_id()
    if p.get("steps"):
        p["steps"] = [
            s if s.get("id") else {**s, "id": new_id()}
            for s in p["steps"] if isinstance(s, dict)
        ]
    return habit_from_dict(p)


def _identity_payload(p: dict[str, Any]) -> Identity:
    p = dict(p)
    if not p.get("id"):
        p["id"] = new_id()
    return Identity.from_dict(p)


def _schedule_payload(p: dict[str, Any]) -> SetDayPlanSchedule:
    raw = p.get("schedule")
    return SetDayPlanSchedule(
        habit_id=str(p["habitId"]),
        schedule=HabitSchedule.from_dict(raw) if isinstance(raw, dict) else None,
    )


def _reorder_payload(p: Any) -> ReorderHabits:
    ids = []
    for item in p:
        ids.append(str(item["id"]) if isinstance(item, dict) else str(item))
    return ReorderHabits(habit_ids=tuple(ids))


def _hours(value: Any) -> float:
    hours = float(value)
    return int(hours) if hours.is_integer() else hours


def _id_payload(p: Any, key: str = "habitId") -> str:
    return str(p[key]) if isinstance(p, dict) else str(p)


_PARSERS: dict[str, Callable[[Any], Any]] = {
    "LOAD_STATE": lambda p: LoadState(data=dict(p)),
    "ADD_HABIT": lambda p: AddHabit(habit=_habit_payload(p)),
    "UPDATE_HABIT": lambda p: UpdateHabit(habit=habit_from_dict(p)),
    "DELETE_HABIT": lambda p: DeleteHabit(habit_id=_id_payload(p)),
    "REORDER_HABITS": _reorder_payload,
    "TOGGLE_HABIT": lambda p: ToggleHabit(habit_id=str(p["habitId"]), date=day_key(p["date"])),
    "SKIP_HABIT": lambda p: SkipHabit(habit_id=str(p["habitId"]), date=day_key(p["date"])),
    "FAIL_HABIT": lambda p: FailHabit(habit_id=str(p["habitId"]), date=day_key(p["date"])),
    "CLEAR_DAY": lambda p: ClearDay(date=day_key(p["date"] if isinstance(p, dict) else p)),
    "TOGGLE_ROUTINE_STEP": lambda p: ToggleRoutineStep(
        habit_id=str(p["habitId"]), step_id=str(p["stepId"]), date=day_key(p["date"])
    ),
    "ADD_IDENTITY": lambda p: AddIdentity(identity=_identity_payload(p)),
    "UPDATE_IDENTITY": lambda p: UpdateIdentity(identity=Identity.from_dict(p)),
    "DELETE_IDENTITY": lambda p: DeleteIdentity(identity_id=_id_payload(p, "identityId")),
    "SET_IDENTITY_FILTER": lambda p: SetIdentityFilter(identity_id=_id_payload(p, "identityId")),
    "SET_DAY_PLAN_SCHEDULE": _schedule_payload,
    "SET_NOTE": lambda p: SetNote(
        habit_id=str(p["habitId"]), date=day_key(p["date"]), note=str(p.get("note") or "")
    ),
    "DELETE_NOTE": lambda p: DeleteNote(habit_id=str(p["habitId"]), date=day_key(p["date"])),
    "START_FAST": lambda p: StartFast(
        habit_id=str(p["habitId"]),
        duration=_hours(p["duration"]),
        start_time=parse_timestamp(p["startTime"]),
    ),
    "UPDATE_FAST_START_TIME": lambda p: UpdateFastStartTime(
        habit_id=str(p["habitId"]), start_time=parse_timestamp(p["startTime"])
    ),
    "END_FAST": lambda p: EndFast(habit_id=_id_payload(p)),
    "SET_THEME": lambda p: SetTheme(theme=str(p)),
    "SET_CUSTOM_ACCENT_COLOR": lambda p: SetCustomAccentColor(color=str(p) if p else None),
    "SET_SFX_ENABLED": lambda p: SetSfxEnabled(enabled=bool(p)),
    "SET_HAPTICS_ENABLED": lambda p: SetHapticsEnabled(enabled=bool(p)),
    "SET_NOTIFICATIONS_ENABLED": lambda p: SetNotificationsEnabled(enabled=bool(p)),
    "SET_NOTIFICATION_TIME": lambda p: SetNotificationTime(hour=int(p["hour"]), minute=int(p["minute"])),
    "COMPLETE_ONBOARDING": lambda p: CompleteOnboarding(),
    "SET_PET_SPECIES": lambda p: SetPetSpecies(species=str(p)),
    "SET_PET_HAT": lambda p: SetPetHat(hat=str(p)),
}


def action_from_dict(d: Any) -> Action | None:
    """Parse ``{"type", "payload"}``. Unknown or malformed actions give None."""
    if not isinstance(d, dict):
        return None
    parser = _PARSERS.get(str(d.get("type", "")))
    if parser is None:
        logger.debug("Ignoring unknown action type %r", d.get("type"))
        return None
    try:
        return parser(d.get("payload"))
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        logger.debug("Ignoring malformed %s action: %s", d.get("type"), e)
        return None
