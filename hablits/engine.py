"""The Hablits state engine.

``apply(snapshot, action)`` is the only way state changes. It is pure and
total: it never reads the clock, never raises for bad input, and returns the
snapshot unchanged for unknown actions or stale targets (a habit deleted
while an action for it was in flight).

Cross-entity rules kept here:
- a habit is in at most one of done / skipped / failed per day;
- a routine is done on a day exactly when all its steps are done that day;
- deleting a habit removes every reference to it.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Callable, Iterable

from hablits.actions import (
    Action,
    AddHabit,
    AddIdentity,
    ClearDay,
    CompleteOnboarding,
    DeleteHabit,
    DeleteIdentity,
    DeleteNote,
    EndFast,
    FailHabit,
    LoadState,
    ReorderHabits,
    SetCustomAccentColor,
    SetDayPlanSchedule,
    SetHapticsEnabled,
    SetIdentityFilter,
    SetNote,
    SetNotificationsEnabled,
    SetNotificationTime,
    SetPetHat,
    SetPetSpecies,
    SetSfxEnabled,
    SetTheme,
    SkipHabit,
    StartFast,
    ToggleHabit,
    ToggleRoutineStep,
    UpdateFastStartTime,
    UpdateHabit,
    UpdateIdentity,
    action_from_dict,
)
from hablits.models import (
    ALL_IDENTITIES,
    GENERAL_IDENTITY_ID,
    HAT_TYPES,
    PET_SPECIES,
    THEMES,
    ActiveFast,
    DayMarks,
    Habit,
    NotificationTime,
    RoutineHabit,
    Snapshot,
)
from hablits.queries import (
    STATUS_DONE,
    STATUS_FAILED,
    STATUS_NONE,
    STATUS_SKIPPED,
    find_habit,
    habit_status,
)

logger = logging.getLogger(__name__)


NEXT_STATUS = {
    STATUS_NONE: STATUS_DONE,
    STATUS_DONE: STATUS_SKIPPED,
    STATUS_SKIPPED: STATUS_FAILED,
    STATUS_FAILED: STATUS_NONE,
}


# ── Immutable helpers ─────────────────────────────────────────


def _without(ids: tuple[str, ...], item: str) -> tuple[str, ...]:
    return tuple(i for i in ids if i != item)


def _with(ids: tuple[str, ...], item: str) -> tuple[str, ...]:
    return ids if item in ids else ids + (item,)


def _put(mapping: dict[str, Any], key: str, value: Any, empty: bool) -> dict[str, Any]:
    """Copy of *mapping* with key set, or removed when the value is empty."""
    out = dict(mapping)
    if empty:
        out.pop(key, None)
    else:
        out[key] = value
    return out


def _put_steps(
    step_logs: dict[str, dict[str, tuple[str, ...]]], day: str, habit_id: str, steps: tuple[str, ...]
) -> dict[str, dict[str, tuple[str, ...]]]:
    day_steps = _put(step_logs.get(day, {}), habit_id, steps, not steps)
    return _put(step_logs, day, day_steps, not day_steps)


# ── Status placement ──────────────────────────────────────────


def _place(snapshot: Snapshot, habit_id: str, day: str, status: str) -> Snapshot:
    """Put the habit in exactly one status bucket for the day. Steps untouched."""
    done = _without(snapshot.logs.get(day, ()), habit_id)
    if status == STATUS_DONE:
        done = _with(snapshot.logs.get(day, ()), habit_id)

    marks = snapshot.marks.get(day, DayMarks())
    skip = _without(marks.skip, habit_id)
    fail = _without(marks.fail, habit_id)
    if status == STATUS_SKIPPED:
        skip = skip + (habit_id,)
    elif status == STATUS_FAILED:
        fail = fail + (habit_id,)
    new_marks = DayMarks(skip=skip, fail=fail)

    return replace(
        snapshot,
        logs=_put(snapshot.logs, day, done, not done),
        marks=_put(snapshot.marks, day, new_marks, new_marks.is_empty()),
    )


def _sync_steps_to_status(snapshot: Snapshot, habit: Habit, day: str, done: bool) -> Snapshot:
    """Done fills every step for the day; any other status clears them."""
    if not isinstance(habit, RoutineHabit):
        return snapshot
    current = snapshot.routine_step_logs.get(day, {}).get(habit.id, ())
    if done:
        steps = current + tuple(s for s in habit.step_ids() if s not in current)
    else:
        steps = ()
    if steps == current:
        return snapshot
    return replace(snapshot, routine_step_logs=_put_steps(snapshot.routine_step_logs, day, habit.id, steps))


def _set_status(snapshot: Snapshot, habit: Habit, day: str, status: str) -> Snapshot:
    snapshot = _place(snapshot, habit.id, day, status)
    return _sync_steps_to_status(snapshot, habit, day, status == STATUS_DONE)


def _all_steps_done(habit: RoutineHabit, steps: tuple[str, ...]) -> bool:
    return set(habit.step_ids()).issubset(steps)


# ── Habit lifecycle ───────────────────────────────────────────


def _add_habit(snapshot: Snapshot, action: AddHabit) -> Snapshot:
    habit = action.habit
    if not habit.id or find_habit(snapshot, habit.id) is not None:
        return snapshot
    order = max((h.order for h in snapshot.habits), default=0) + 1
    return replace(snapshot, habits=snapshot.habits + (replace(habit, order=order),))


def _resync_routine(snapshot: Snapshot, habit: Habit) -> Snapshot:
    """Bring one habit's step logs back in line after its definition changed."""
    days = {day for day, per_habit in snapshot.routine_step_logs.items() if habit.id in per_habit}

    if not isinstance(habit, RoutineHabit):
        step_logs = snapshot.routine_step_logs
        for day in days:
            step_logs = _put_steps(step_logs, day, habit.id, ())
        return replace(snapshot, routine_step_logs=step_logs)

    days |= {day for day, ids in snapshot.logs.items() if habit.id in ids}
    valid = set(habit.step_ids())
    for day in sorted(days):
        current = snapshot.routine_step_logs.get(day, {}).get(habit.id, ())
        pruned = tuple(s for s in current if s in valid)
        if pruned != current:
            snapshot = replace(
                snapshot, routine_step_logs=_put_steps(snapshot.routine_step_logs, day, habit.id, pruned)
            )
        if habit.id in snapshot.logs.get(day, ()):
            snapshot = _sync_steps_to_status(snapshot, habit, day, True)
        elif _all_steps_done(habit, pruned):
            snapshot = _place(snapshot, habit.id, day, STATUS_DONE)
    return snapshot


def _update_habit(snapshot: Snapshot, action: UpdateHabit) -> Snapshot:
    existing = find_habit(snapshot, action.habit.id)
    if existing is None:
        return snapshot
    # Only REORDER_HABITS changes order
    updated = replace(action.habit, order=existing.order)
    habits = tuple(updated if h.id == updated.id else h for h in snapshot.habits)
    return _resync_routine(replace(snapshot, habits=habits), updated)


def _delete_habit(snapshot: Snapshot, action: DeleteHabit) -> Snapshot:
    habit_id = action.habit_id
    logs = {day: _without(ids, habit_id) for day, ids in snapshot.logs.items()}
    marks = {
        day: DayMarks(skip=_without(m.skip, habit_id), fail=_without(m.fail, habit_id))
        for day, m in snapshot.marks.items()
    }
    notes = {day: {h: n for h, n in dn.items() if h != habit_id} for day, dn in snapshot.notes.items()}
    step_logs = {
        day: {h: s for h, s in per_habit.items() if h != habit_id}
        for day, per_habit in snapshot.routine_step_logs.items()
    }
    return replace(
        snapshot,
        habits=tuple(h for h in snapshot.habits if h.id != habit_id),
        logs={day: ids for day, ids in logs.items() if ids},
        marks={day: m for day, m in marks.items() if not m.is_empty()},
        notes={day: dn for day, dn in notes.items() if dn},
        routine_step_logs={day: s for day, s in step_logs.items() if s},
        day_plan_schedules={h: s for h, s in snapshot.day_plan_schedules.items() if h != habit_id},
        active_fasts={h: f for h, f in snapshot.active_fasts.items() if h != habit_id},
    )


def _reorder_habits(snapshot: Snapshot, action: ReorderHabits) -> Snapshot:
    by_id = {h.id: h for h in snapshot.habits}
    listed: list[Habit] = []
    for habit_id in action.habit_ids:
        habit = by_id.pop(habit_id, None)
        if habit is not None:
            listed.append(habit)
    rest = [h for h in snapshot.habits if h.id in by_id]
    ordered = listed + sorted(rest, key=lambda h: h.order)
    return replace(snapshot, habits=tuple(replace(h, order=i + 1) for i, h in enumerate(ordered)))


# ── Completion ────────────────────────────────────────────────


def _toggle_habit(snapshot: Snapshot, action: ToggleHabit) -> Snapshot:
    habit = find_habit(snapshot, action.habit_id)
    if habit is None:
        return snapshot
    status = habit_status(snapshot, habit.id, action.date)
    return _set_status(snapshot, habit, action.date, NEXT_STATUS[status])


def _skip_habit(snapshot: Snapshot, action: SkipHabit) -> Snapshot:
    habit = find_habit(snapshot, action.habit_id)
    if habit is None:
        return snapshot
    return _set_status(snapshot, habit, action.date, STATUS_SKIPPED)


def _fail_habit(snapshot: Snapshot, action: FailHabit) -> Snapshot:
    habit = find_habit(snapshot, action.habit_id)
    if habit is None:
        return snapshot
    return _set_status(snapshot, habit, action.date, STATUS_FAILED)


def _clear_day(snapshot: Snapshot, action: ClearDay) -> Snapshot:
    day = action.date
    return replace(
        snapshot,
        logs=_put(snapshot.logs, day, (), True),
        marks=_put(snapshot.marks, day, None, True),
        routine_step_logs=_put(snapshot.routine_step_logs, day, None, True),
    )


def _toggle_routine_step(snapshot: Snapshot, action: ToggleRoutineStep) -> Snapshot:
    habit = find_habit(snapshot, action.habit_id)
    if not isinstance(habit, RoutineHabit) or action.step_id not in habit.step_ids():
        return snapshot

    day = action.date
    current = snapshot.routine_step_logs.get(day, {}).get(habit.id, ())
    if action.step_id in current:
        steps = _without(current, action.step_id)
    else:
        steps = current + (action.step_id,)
    snapshot = replace(snapshot, routine_step_logs=_put_steps(snapshot.routine_step_logs, day, habit.id, steps))

    is_done = habit.id in snapshot.logs.get(day, ())
    if _all_steps_done(habit, steps) and not is_done:
        snapshot = _place(snapshot, habit.id, day, STATUS_DONE)
    elif not _all_steps_done(habit, steps) and is_done:
        snapshot = _place(snapshot, habit.id, day, STATUS_NONE)
    return snapshot


# ── Identities ────────────────────────────────────────────────


def _add_identity(snapshot: Snapshot, action: AddIdentity) -> Snapshot:
    identity = action.identity
    if not identity.id or any(i.id == identity.id for i in snapshot.identities):
        return snapshot
    return replace(snapshot, identities=snapshot.identities + (identity,))


def _update_identity(snapshot: Snapshot, action: UpdateIdentity) -> Snapshot:
    if not any(i.id == action.identity.id for i in snapshot.identities):
        return snapshot
    return replace(
        snapshot,
        identities=tuple(action.identity if i.id == action.identity.id else i for i in snapshot.identities),
    )


def _delete_identity(snapshot: Snapshot, action: DeleteIdentity) -> Snapshot:
    identity_id = action.identity_id
    if identity_id == GENERAL_IDENTITY_ID:
        return snapshot
    habits = tuple(
        replace(h, identity_id=GENERAL_IDENTITY_ID) if h.identity_id == identity_id else h
        for h in snapshot.habits
    )
    current_filter = snapshot.current_identity_filter
    return replace(
        snapshot,
        identities=tuple(i for i in snapshot.identities if i.id != identity_id),
        habits=habits,
        current_identity_filter=ALL_IDENTITIES if current_filter == identity_id else current_filter,
    )


def _set_identity_filter(snapshot: Snapshot, action: SetIdentityFilter) -> Snapshot:
    target = action.identity_id
    if target != ALL_IDENTITIES and not any(i.id == target for i in snapshot.identities):
        return snapshot
    return replace(snapshot, current_identity_filter=target)


# ── Day plan & notes ──────────────────────────────────────────


def _set_day_plan_schedule(snapshot: Snapshot, action: SetDayPlanSchedule) -> Snapshot:
    if action.schedule is not None and find_habit(snapshot, action.habit_id) is None:
        return snapshot
    schedules = _put(snapshot.day_plan_schedules, action.habit_id, action.schedule, action.schedule is None)
    return replace(snapshot, day_plan_schedules=schedules)


def _set_note(snapshot: Snapshot, action: SetNote) -> Snapshot:
    if not action.note.strip():
        return _delete_note(snapshot, DeleteNote(habit_id=action.habit_id, date=action.date))
    if find_habit(snapshot, action.habit_id) is None:
        return snapshot
    day_notes = {**snapshot.notes.get(action.date, {}), action.habit_id: action.note}
    return replace(snapshot, notes={**snapshot.notes, action.date: day_notes})


def _delete_note(snapshot: Snapshot, action: DeleteNote) -> Snapshot:
    day_notes = snapshot.notes.get(action.date)
    if not day_notes or action.habit_id not in day_notes:
        return snapshot
    remaining = {h: n for h, n in day_notes.items() if h != action.habit_id}
    return replace(snapshot, notes=_put(snapshot.notes, action.date, remaining, not remaining))


# ── Fasting ───────────────────────────────────────────────────


def _start_fast(snapshot: Snapshot, action: StartFast) -> Snapshot:
    if not action.habit_id or action.duration <= 0:
        return snapshot
    fast = ActiveFast.begin(action.habit_id, action.duration, action.start_time)
    return replace(snapshot, active_fasts={**snapshot.active_fasts, action.habit_id: fast})


def _update_fast_start_time(snapshot: Snapshot, action: UpdateFastStartTime) -> Snapshot:
    existing = snapshot.active_fasts.get(action.habit_id)
    if existing is None:
        return snapshot
    fast = ActiveFast.begin(existing.habit_id, existing.duration, action.start_time)
    return replace(snapshot, active_fasts={**snapshot.active_fasts, action.habit_id: fast})


def _end_fast(snapshot: Snapshot, action: EndFast) -> Snapshot:
    if action.habit_id not in snapshot.active_fasts:
        return snapshot
    return replace(
        snapshot,
        active_fasts={h: f for h, f in snapshot.active_fasts.items() if h != action.habit_id},
    )


# ── Preferences ───────────────────────────────────────────────


def _set_theme(snapshot: Snapshot, action: SetTheme) -> Snapshot:
    if action.theme not in THEMES:
        return snapshot
    return replace(snapshot, theme=action.theme)


def _set_notification_time(snapshot: Snapshot, action: SetNotificationTime) -> Snapshot:
    if not (0 <= action.hour <= 23 and 0 <= action.minute <= 59):
        return snapshot
    return replace(snapshot, notification_time=NotificationTime(hour=action.hour, minute=action.minute))


def _set_pet_species(snapshot: Snapshot, action: SetPetSpecies) -> Snapshot:
    if action.species not in PET_SPECIES:
        return snapshot
    return replace(snapshot, pet_species=action.species)


def _set_pet_hat(snapshot: Snapshot, action: SetPetHat) -> Snapshot:
    if action.hat not in HAT_TYPES:
        return snapshot
    return replace(snapshot, pet_hat=action.hat)


def _load_state(snapshot: Snapshot, action: LoadState) -> Snapshot:
    if isinstance(action.data, Snapshot):
        return action.data
    try:
        return Snapshot.from_dict(action.data)
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        logger.warning("Ignoring malformed LOAD_STATE payload: %s", e)
        return snapshot


_HANDLERS: dict[type, Callable[[Snapshot, Any], Snapshot]] = {
    LoadState: _load_state,
    AddHabit: _add_habit,
    UpdateHabit: _update_habit,
    DeleteHabit: _delete_habit,
    ReorderHabits: _reorder_habits,
    ToggleHabit: _toggle_habit,
    SkipHabit: _skip_habit,
    FailHabit: _fail_habit,
    ClearDay: _clear_day,
    ToggleRoutineStep: _toggle_routine_step,
    AddIdentity: _add_identity,
    UpdateIdentity: _update_identity,
    DeleteIdentity: _delete_identity,
    SetIdentityFilter: _set_identity_filter,
    SetDayPlanSchedule: _set_day_plan_schedule,
    SetNote: _set_note,
    DeleteNote: _delete_note,
    StartFast: _start_fast,
    UpdateFastStartTime: _update_fast_start_time,
    EndFast: _end_fast,
    SetTheme: _set_theme,
    SetCustomAccentColor: lambda s, a: replace(s, custom_accent_color=a.color or None),
    SetSfxEnabled: lambda s, a: replace(s, sfx_enabled=a.enabled),
    SetHapticsEnabled: lambda s, a: replace(s, haptics_enabled=a.enabled),
    SetNotificationsEnabled: lambda s, a: replace(s, notifications_enabled=a.enabled),
    SetNotificationTime: _set_notification_time,
    CompleteOnboarding: lambda s, a: replace(s, has_completed_onboarding=True),
    SetPetSpecies: _set_pet_species,
    SetPetHat: _set_pet_hat,
}


# ── Invariants ────────────────────────────────────────────────


def check_invariants(snapshot: Snapshot) -> list[str]:
    """Return descriptions of any broken cross-entity rules (empty when consistent)."""
    problems = []
    days = set(snapshot.logs) | set(snapshot.marks)
    for day in sorted(days):
        done = set(snapshot.logs.get(day, ()))
        marks = snapshot.marks.get(day, DayMarks())
        skip, fail = set(marks.skip), set(marks.fail)
        for habit_id in sorted((done & skip) | (done & fail) | (skip & fail)):
            problems.append(f"{day}: habit {habit_id} has more than one status")

    for habit in snapshot.habits:
        if not isinstance(habit, RoutineHabit):
            continue
        step_days = {d for d, per_habit in snapshot.routine_step_logs.items() if habit.id in per_habit}
        done_days = {d for d, ids in snapshot.logs.items() if habit.id in ids}
        for day in sorted(step_days | done_days):
            steps = snapshot.routine_step_logs.get(day, {}).get(habit.id, ())
            if (day in done_days) != _all_steps_done(habit, steps):
                problems.append(f"{day}: routine {habit.id} status disagrees with its steps")

    known = {h.id for h in snapshot.habits}
    referenced = set(snapshot.day_plan_schedules)
    for ids in snapshot.logs.values():
        referenced.update(ids)
    for day_notes in snapshot.notes.values():
        referenced.update(day_notes)
    for habit_id in sorted(referenced - known):
        problems.append(f"dangling reference to habit {habit_id}")
    return problems


# ── Entry point ───────────────────────────────────────────────


def apply(snapshot: Snapshot, action: Action | dict[str, Any]) -> Snapshot:
    """Return the snapshot that results from *action*. Never raises for bad actions."""
    if isinstance(action, dict):
        action = action_from_dict(action)
    handler = _HANDLERS.get(type(action))
    if handler is None:
        return snapshot

    result = handler(snapshot, action)
    if result is not snapshot:
        logger.debug("Applied %s", action.type)
        if __debug__:
            for problem in check_invariants(result):
                logger.warning("Invariant broken after %s: %s", action.type, problem)
    return result


def apply_all(snapshot: Snapshot, actions: Iterable[Action | dict[str, Any]]) -> Snapshot:
    """Apply *actions* in order and return the final snapshot."""
    for action in actions:
        snapshot = apply(snapshot, action)
    return snapshot
