"""Hablits core library: habit model, state engine and queries.

Public API re-exports for convenient imports:
    from hablits import Snapshot, apply, ToggleHabit, active_habits, ...
"""

# Models
from hablits.models import (
    ALL_IDENTITIES,
    GENERAL_IDENTITY,
    GENERAL_IDENTITY_ID,
    ActiveFast,
    DayMarks,
    Habit,
    HabitSchedule,
    Identity,
    NotificationTime,
    RoutineHabit,
    RoutineStep,
    SimpleHabit,
    Snapshot,
    habit_from_dict,
    validate_habit,
)

# Dates
from hablits.dates import (
    add_days,
    day_key,
    is_same_day,
    mask_index,
    month_cells,
    month_end,
    month_start,
    parse_day_key,
    week_days,
    week_start,
)

# Queries
from hablits.queries import (
    active_habits,
    day_completion_percent,
    find_habit,
    habit_status,
    heatmap_level,
    is_active_on,
    sort_by_order,
    step_progress,
    streak,
    weekly_goal_met,
    weekly_progress,
)

# Actions & engine
from hablits.actions import (
    AddHabit,
    AddIdentity,
    ClearDay,
    DeleteHabit,
    DeleteIdentity,
    DeleteNote,
    EndFast,
    FailHabit,
    LoadState,
    ReorderHabits,
    SetDayPlanSchedule,
    SetIdentityFilter,
    SetNote,
    SkipHabit,
    StartFast,
    ToggleHabit,
    ToggleRoutineStep,
    UpdateFastStartTime,
    UpdateHabit,
    UpdateIdentity,
    action_from_dict,
    add_habit,
    add_identity,
)
from hablits.engine import apply, apply_all, check_invariants

# Scheduling
from hablits.scheduler import (
    quick_schedule,
    schedule_to_timeline_position,
    scheduled_habits,
    time_from_offset,
    timeline_position,
    unscheduled_habits,
)

# Fasting
from hablits.fasting import (
    FAST_DURATIONS,
    fast_progress,
    fast_status,
    format_remaining_time,
    is_fast_complete,
    is_fasting_habit,
    remaining_time,
)

# Backups
from hablits.backup import ImportFormatError, export_snapshot, import_snapshot

# Workspace & persistence
from hablits.workspace import workspace_root, today_str, now_local
from hablits.store import dispatch, load_snapshot, save_snapshot
