"""Backup export and import for Hablits.

A backup is the persisted snapshot wrapped in a small envelope:
``{"version": "1.0.0", "exportedAt": "<ISO>", "data": {...}}``.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any

from hablits.dates import DayLike, day_key
from hablits.fileio import write_json_atomic
from hablits.models import Snapshot, format_timestamp, parse_timestamp

logger = logging.getLogger(__name__)

BACKUP_VERSION = "1.0.0"


class ImportFormatError(ValueError):
    """The payload is not a Hablits backup."""


def backup_filename(day: DayLike) -> str:
    return f"hablits-backup-{day_key(day)}.json"


def export_snapshot(snapshot: Snapshot, exported_at: datetime) -> dict[str, Any]:
    return {
        "version": BACKUP_VERSION,
        "exportedAt": format_timestamp(parse_timestamp(exported_at)),
        "data": snapshot.to_dict(),
    }


def import_snapshot(payload: str | bytes | dict[str, Any]) -> Snapshot:
    """Validate a backup and return its snapshot with defaults filled in.

    Raises ImportFormatError when the envelope or its data is malformed.
    """
    if isinstance(payload, (str, bytes)):
        try:
            payload = json.loads(payload)
        except json.JSONDecodeError as e:
            raise ImportFormatError(f"Backup is not valid JSON: {e}") from e

    if not isinstance(payload, dict):
        raise ImportFormatError("Backup must be a JSON object")
    if not payload.get("version") or "data" not in payload:
        raise ImportFormatError("Invalid backup file format: missing version or data")
    data = payload["data"]
    if not isinstance(data, dict):
        raise ImportFormatError("Backup data must be an object")
    for key in ("habits", "identities"):
        if not isinstance(data.get(key), list):
            raise ImportFormatError(f"Backup data is missing the {key} list")

    try:
        snapshot = Snapshot.from_dict(data)
    except (TypeError, ValueError, AttributeError) as e:
        raise ImportFormatError(f"Backup data is malformed: {e}") from e
    logger.info("Imported backup version %s with %d habits", payload["version"], len(snapshot.habits))
    return snapshot


def write_backup(snapshot: Snapshot, directory: Path, exported_at: datetime) -> Path:
    """Write an export into *directory* and return its path."""
    exported_at = parse_timestamp(exported_at)
    path = directory / backup_filename(exported_at)
    write_json_atomic(path, export_snapshot(snapshot, exported_at))
    return path
