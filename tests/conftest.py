"""Shared test fixtures for Hablits tests."""

from __future__ import annotations

import json
import os
from datetime import date
from pathlib import Path

import pytest
import yaml

from hablits.models import Snapshot

# A Wednesday
TODAY = date(2026, 2, 11)


def seed_data() -> dict:
    return {
        "theme": "dark",
        "identities": [
            {"id": "general", "name": "General", "color": "#3ddc97"},
            {"id": "health", "name": "Health", "color": "#ff6b6b"},
        ],
        "habits": [
            {
                "id": "h1",
                "name": "Meditate",
                "weeklyGoal": 5,
                "identityId": "general",
                "createdAt": "2026-02-01T08:00:00Z",
                "days": [True] * 7,
                "order": 1,
            },
            {
                "id": "h2",
                "name": "Run",
                "weeklyGoal": 3,
                "identityId": "health",
                "createdAt": "2026-02-01T08:00:00Z",
                # Mon, Wed, Fri
                "days": [False, True, False, True, False, True, False],
                "order": 2,
            },
            {
                "id": "r1",
                "name": "Morning routine",
                "weeklyGoal": 7,
                "identityId": "general",
                "createdAt": "2026-02-01T08:00:00Z",
                "days": [True] * 7,
                "order": 3,
                "isRoutine": True,
                "steps": [
                    {"id": "s1", "name": "Stretch", "order": 1},
                    {"id": "s2", "name": "Water", "order": 2},
                    {"id": "s3", "name": "Journal", "duration": 10, "order": 3},
                ],
            },
        ],
        "hasCompletedOnboarding": True,
    }


@pytest.fixture
def snapshot() -> Snapshot:
    """Three habits: a daily simple habit, a Mon/Wed/Fri habit and a 3-step routine."""
    return Snapshot.from_dict(seed_data())


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """Create a temporary workspace with standard structure."""
    root = tmp_path / "workspace"
    (root / "hablits").mkdir(parents=True)

    settings = {
        "timezone": "UTC",
        "day_plan": {"start_hour": 5, "end_hour": 23},
        "log_level": "DEBUG",
    }
    (root / "hablits" / "settings.yaml").write_text(
        yaml.dump(settings, default_flow_style=False), encoding="utf-8"
    )

    (root / "hablits" / "state.json").write_text(
        json.dumps(Snapshot.from_dict(seed_data()).to_dict(), indent=2), encoding="utf-8"
    )

    # Set env var
    os.environ["HABLITS_ROOT"] = str(root)
    yield root
    # Cleanup
    if "HABLITS_ROOT" in os.environ:
        del os.environ["HABLITS_ROOT"]
