"""Snapshot persistence and serialized dispatch for Hablits.

``dispatch`` is the only writer of state.json: it takes the workspace lock,
loads the snapshot, applies one action, writes the result atomically and
releases the lock. Hooks for fasts and reminders run afterwards, outside the
lock. Readers call ``load_snapshot`` without locking; the atomic rename means
they see either the old file or the new one.
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Any

from hablits.actions import Action, LoadState, action_from_dict
from hablits.backup import import_snapshot, write_backup
from hablits.engine import apply
from hablits.fileio import locked, read_json, write_json_atomic
from hablits.hooks import run_hooks
from hablits.models import Snapshot
from hablits.notifications import notice_for_fast, reminder_for
from hablits.workspace import backups_dir, lock_path, now_local, state_path, workspace_root

logger = logging.getLogger(__name__)


def load_snapshot(root: Path | None = None) -> Snapshot:
    if root is None:
        root = workspace_root()
    return Snapshot.from_dict(read_json(state_path(root)))


def save_snapshot(snapshot: Snapshot, root: Path | None = None) -> None:
    if root is None:
        root = workspace_root()
    write_json_atomic(state_path(root), snapshot.to_dict())


def dispatch(
    action: Action | dict[str, Any],
    root: Path | None = None,
    now: datetime | None = None,
) -> tuple[Snapshot, list[dict[str, Any]]]:
    """Apply one action to the stored snapshot. Returns (snapshot, hook results).

    Unknown or malformed actions leave the file untouched.
    """
    if root is None:
        root = workspace_root()
    if isinstance(action, dict):
        action = action_from_dict(action)

    with locked(lock_path(root)):
        before = load_snapshot(root)
        after = apply(before, action)
        if after != before:
            save_snapshot(after, root)

    if after == before:
        return after, []
    logger.info("Dispatched %s", action.type)
    return after, _run_change_hooks(before, after, action, root, now or now_local(root))


def _run_change_hooks(
    before: Snapshot,
    after: Snapshot,
    action: Action,
    root: Path,
    now: datetime,
) -> list[dict[str, Any]]:
    results = []

    for habit_id, fast in after.active_fasts.items():
        if before.active_fasts.get(habit_id) == fast:
            continue
        notice = notice_for_fast(after, habit_id, now)
        context: dict[str, Any] = {"habitId": habit_id, **fast.to_dict()}
        if notice is not None:
            context["notification"] = notice.to_dict()
        results.extend(run_hooks("on_fast_start", context, root))

    for habit_id in before.active_fasts.keys() - after.active_fasts.keys():
        results.extend(run_hooks("on_fast_end", {"habitId": habit_id}, root))

    reminder_before, reminder_after = reminder_for(before), reminder_for(after)
    if reminder_before != reminder_after:
        context = {"enabled": reminder_after is not None}
        if reminder_after is not None:
            context["reminder"] = reminder_after.to_dict()
        results.extend(run_hooks("on_reminders_changed", context, root))

    results.extend(run_hooks("on_state_changed", {"action": action.type}, root))
    return results


# ── Backups ───────────────────────────────────────────────────


def export_backup(root: Path | None = None, now: datetime | None = None) -> Path:
    """Write the current snapshot to hablits/backups/ and return the file."""
    if root is None:
        root = workspace_root()
    return write_backup(load_snapshot(root), backups_dir(root), now or now_local(root))


def import_backup(
    payload: str | bytes | dict[str, Any],
    root: Path | None = None,
) -> tuple[Snapshot, list[dict[str, Any]]]:
    """Replace the stored snapshot with a backup. Raises ImportFormatError."""
    snapshot = import_snapshot(payload)
    return dispatch(LoadState(data=snapshot), root)
