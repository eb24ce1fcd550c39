"""Workspace root, settings, clock and path helpers for Hablits."""

from __future__ import annotations

import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from hablits.fileio import read_yaml, write_yaml_atomic

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS: dict[str, Any] = {
    "timezone": "UTC",
    "day_plan": {"start_hour": 5, "end_hour": 23},
    "log_level": "INFO",
}


def workspace_root() -> Path:
    """Get the workspace root directory (contains hablits/)."""
    return Path(
        os.environ.get("HABLITS_ROOT", str(Path.home() / "hablits"))
    ).expanduser().resolve()


# ── Path helpers ──────────────────────────────────────────────

def data_dir(root: Path | None = None) -> Path:
    if root is None:
        root = workspace_root()
    return root / "hablits"


def state_path(root: Path | None = None) -> Path:
    return data_dir(root) / "state.json"


def settings_path(root: Path | None = None) -> Path:
    return data_dir(root) / "settings.yaml"


def hooks_config_path(root: Path | None = None) -> Path:
    return data_dir(root) / "hooks.yaml"


def backups_dir(root: Path | None = None) -> Path:
    return data_dir(root) / "backups"


def lock_path(root: Path | None = None) -> Path:
    if root is None:
        root = workspace_root()
    return root / ".hablits.lock"


# ── Settings ──────────────────────────────────────────────────

def load_settings(root: Path | None = None) -> dict[str, Any]:
    """settings.yaml merged over the defaults (one level deep for day_plan)."""
    data = read_yaml(settings_path(root))
    settings = {**DEFAULT_SETTINGS, **data}
    day_plan = data.get("day_plan")
    settings["day_plan"] = {
        **DEFAULT_SETTINGS["day_plan"],
        **(day_plan if isinstance(day_plan, dict) else {}),
    }
    return settings


def save_settings(settings: dict[str, Any], root: Path | None = None) -> None:
    write_yaml_atomic(settings_path(root), settings)


def day_plan_window(root: Path | None = None) -> tuple[int, int]:
    """(start_hour, end_hour) for the day-plan timeline."""
    window = load_settings(root)["day_plan"]
    try:
        start, end = int(window["start_hour"]), int(window["end_hour"])
    except (TypeError, ValueError):
        logger.warning("Ignoring invalid day_plan window in settings.yaml")
        return 5, 23
    if not 0 <= start < end <= 24:
        logger.warning("Ignoring out-of-range day_plan window %s-%s", start, end)
        return 5, 23
    return start, end


def get_user_timezone(root: Path | None = None) -> ZoneInfo:
    """Get user's timezone from settings.yaml, defaulting to UTC."""
    name = load_settings(root).get("timezone") or "UTC"
    try:
        return ZoneInfo(str(name))
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown timezone %r in settings.yaml, using UTC", name)
        return ZoneInfo("UTC")


def today_str(root: Path | None = None) -> str:
    """Get today's date string (YYYY-MM-DD) in user's timezone."""
    tz = get_user_timezone(root)
    return datetime.now(tz).date().isoformat()


def now_local(root: Path | None = None) -> datetime:
    """Get current datetime in user's timezone."""
    tz = get_user_timezone(root)
    return datetime.now(tz)


def configure_logging(root: Path | None = None, filename: Path | None = None) -> None:
    """Set up root logging at the level named in settings.yaml."""
    level = str(load_settings(root).get("log_level") or "INFO").upper()
    if filename is not None:
        filename.parent.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        filename=str(filename) if filename is not None else None,
    )
