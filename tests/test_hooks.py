"""Tests for hablits/hooks.py — hook system."""

import json

import yaml

from hablits.hooks import load_hooks_config, run_hooks


def _write_hooks(workspace, config):
    config_path = workspace / "hablits" / "hooks.yaml"
    config_path.write_text(yaml.dump(config), encoding="utf-8")


def test_run_hooks_no_config(workspace):
    """No hooks.yaml -> no hooks run."""
    assert load_hooks_config(workspace) == {}
    results = run_hooks("on_fast_end", {"habitId": "h1"}, workspace)
    assert results == []


def test_run_hooks_with_echo(workspace):
    """Hook that echoes context via stdin."""
    _write_hooks(workspace, {"on_fast_end": ["cat"]})

    results = run_hooks("on_fast_end", {"habitId": "h1"}, workspace)
    assert len(results) == 1
    assert results[0]["exit_code"] == 0
    output = json.loads(results[0]["stdout"])
    assert output == {"hook_point": "on_fast_end", "habitId": "h1"}


def test_run_hooks_invalid_hook_point(workspace):
    _write_hooks(workspace, {"post_finalize": ["cat"]})
    assert run_hooks("post_finalize", {}, workspace) == []


def test_run_hooks_nonzero_exit(workspace):
    _write_hooks(workspace, {"on_state_changed": ["exit 3"]})
    results = run_hooks("on_state_changed", {"action": "SET_THEME"}, workspace)
    assert results[0]["exit_code"] == 3


def test_run_hooks_skips_malformed_entries(workspace):
    _write_hooks(workspace, {"on_state_changed": [42, {"timeout": 5}, "", "true"]})
    results = run_hooks("on_state_changed", {}, workspace)
    assert [r["command"] for r in results] == ["true"]


def test_run_hooks_timeout(workspace):
    """Hook timeout protection."""
    _write_hooks(workspace, {"on_fast_start": [{"command": "sleep 10", "timeout": 1}]})

    results = run_hooks("on_fast_start", {"habitId": "h1"}, workspace)
    assert len(results) == 1
    assert results[0]["exit_code"] == -1
    assert "timed out" in results[0].get("error", "").lower()


def test_run_hooks_uses_env_root(workspace):
    _write_hooks(workspace, {"on_reminders_changed": ["pwd"]})
    results = run_hooks("on_reminders_changed", {"enabled": False})
    assert results[0]["stdout"].strip() == str(workspace.resolve())
