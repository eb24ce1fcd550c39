"""Tests for hablits/workspace.py and hablits/fileio.py."""

import logging
import os

import yaml

from hablits.fileio import read_json, read_yaml, write_json_atomic, write_yaml_atomic
from hablits.workspace import (
    day_plan_window,
    get_user_timezone,
    load_settings,
    lock_path,
    save_settings,
    settings_path,
    state_path,
    today_str,
    workspace_root,
)


def test_workspace_root_from_env(workspace):
    assert workspace_root() == workspace.resolve()
    assert state_path() == workspace.resolve() / "hablits" / "state.json"
    assert lock_path(workspace) == workspace / ".hablits.lock"


def test_workspace_root_default(monkeypatch, tmp_path):
    monkeypatch.delenv("HABLITS_ROOT", raising=False)
    monkeypatch.setenv("HOME", str(tmp_path))
    assert workspace_root() == (tmp_path / "hablits").resolve()


def test_load_settings(workspace):
    settings = load_settings(workspace)
    assert settings["timezone"] == "UTC"
    assert settings["log_level"] == "DEBUG"
    assert day_plan_window(workspace) == (5, 23)


def test_settings_defaults_without_file(tmp_path):
    settings = load_settings(tmp_path)
    assert settings["day_plan"] == {"start_hour": 5, "end_hour": 23}
    assert settings["log_level"] == "INFO"


def test_partial_day_plan_is_merged(workspace):
    save_settings({"day_plan": {"start_hour": 6}}, workspace)
    assert day_plan_window(workspace) == (6, 23)


def test_invalid_day_plan_falls_back(workspace, caplog):
    save_settings({"day_plan": {"start_hour": 20, "end_hour": 8}}, workspace)
    with caplog.at_level(logging.WARNING):
        assert day_plan_window(workspace) == (5, 23)
    assert "out-of-range" in caplog.text

    save_settings({"day_plan": {"start_hour": "dawn"}}, workspace)
    assert day_plan_window(workspace) == (5, 23)


def test_timezone(workspace):
    save_settings({"timezone": "Asia/Tokyo"}, workspace)
    assert str(get_user_timezone(workspace)) == "Asia/Tokyo"
    assert len(today_str(workspace)) == 10


def test_unknown_timezone_falls_back_to_utc(workspace):
    save_settings({"timezone": "Mars/Olympus_Mons"}, workspace)
    assert str(get_user_timezone(workspace)) == "UTC"


def test_atomic_writes_leave_no_temp_files(tmp_path):
    write_json_atomic(tmp_path / "nested" / "data.json", {"a": 1})
    write_yaml_atomic(tmp_path / "nested" / "data.yaml", {"b": [1, 2]})
    assert read_json(tmp_path / "nested" / "data.json") == {"a": 1}
    assert read_yaml(tmp_path / "nested" / "data.yaml") == {"b": [1, 2]}
    assert sorted(os.listdir(tmp_path / "nested")) == ["data.json", "data.yaml"]


def test_read_json_non_object(tmp_path):
    path = tmp_path / "list.json"
    path.write_text("[1, 2]", encoding="utf-8")
    assert read_json(path) == {}
    assert read_json(tmp_path / "missing.json") == {}


def test_save_settings_is_yaml(workspace):
    save_settings({"timezone": "UTC", "log_level": "WARNING"}, workspace)
    data = yaml.safe_load(settings_path(workspace).read_text(encoding="utf-8"))
    assert data == {"timezone": "UTC", "log_level": "WARNING"}
