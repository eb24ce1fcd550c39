"""Shell hooks for Hablits.

Anything outside the snapshot that must react to a change (scheduling or
cancelling an OS notification, syncing a calendar) is a shell command listed
in hablits/hooks.yaml under one of the hook points below. Each command gets
the event as a JSON object on stdin.

    on_fast_start:
      - notify-at.sh
    on_state_changed:
      - command: ./sync.sh
        timeout: 10
"""

from __future__ import annotations

import json
import logging
import subprocess
from pathlib import Path
from typing import Any

from hablits.fileio import read_yaml
from hablits.workspace import hooks_config_path, workspace_root

logger = logging.getLogger(__name__)


VALID_HOOK_POINTS = {
    "on_fast_start",
    "on_fast_end",
    "on_reminders_changed",
    "on_state_changed",
}

DEFAULT_TIMEOUT = 30
OUTPUT_CAP = 4096


def load_hooks_config(root: Path | None = None) -> dict[str, Any]:
    """hooks.yaml as a dict; empty when the file is absent."""
    return read_yaml(hooks_config_path(root or workspace_root()))


def hook_commands(hook_point: str, root: Path | None = None) -> list[tuple[str, float]]:
    """(command, timeout) pairs registered for *hook_point*, malformed entries skipped."""
    entries = load_hooks_config(root).get(hook_point)
    if not isinstance(entries, list):
        return []
    commands = []
    for entry in entries:
        if isinstance(entry, str):
            entry = {"command": entry}
        if not isinstance(entry, dict) or not entry.get("command"):
            continue
        commands.append((str(entry["command"]), entry.get("timeout", DEFAULT_TIMEOUT)))
    return commands


def _run_command(command: str, timeout: float, stdin: str, cwd: Path) -> dict[str, Any]:
    try:
        proc = subprocess.run(
            command,
            shell=True,
            input=stdin,
            capture_output=True,
            text=True,
            timeout=timeout,
            cwd=str(cwd),
        )
    except subprocess.TimeoutExpired:
        logger.warning("Hook %r timed out after %ss", command, timeout)
        return {"exit_code": -1, "error": f"Hook timed out after {timeout}s"}
    except OSError as e:
        logger.warning("Hook %r could not start: %s", command, e)
        return {"exit_code": -1, "error": str(e)}

    if proc.returncode != 0:
        logger.warning("Hook %r exited with %d", command, proc.returncode)
    return {
        "exit_code": proc.returncode,
        "stdout": proc.stdout[:OUTPUT_CAP],
        "stderr": proc.stderr[:OUTPUT_CAP],
    }


def run_hooks(
    hook_point: str,
    context: dict[str, Any],
    root: Path | None = None,
) -> list[dict[str, Any]]:
    """Run every command registered for *hook_point*, in order.

    The command's stdin is ``{"hook_point": ..., **context}`` as JSON. Failures
    never propagate; each result dict carries ``exit_code`` plus either the
    captured output or an ``error``.
    """
    if hook_point not in VALID_HOOK_POINTS:
        logger.warning("Unknown hook point %s", hook_point)
        return []

    root = root or workspace_root()
    stdin = json.dumps({"hook_point": hook_point, **context}, ensure_ascii=False)
    results = []
    for command, timeout in hook_commands(hook_point, root):
        logger.debug("Running %s hook %r", hook_point, command)
        result = {"command": command, "hook_point": hook_point}
        result.update(_run_command(command, timeout, stdin, root))
        results.append(result)
    return results
