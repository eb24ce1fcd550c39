from __future__ import annotations

import os
import secrets
from datetime import date
from typing import Any

from fastapi import Body, Depends, FastAPI, HTTPException, status
from fastapi.responses import HTMLResponse
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from hablits import (
    ImportFormatError,
    action_from_dict,
    active_habits,
    day_completion_percent,
    dispatch,
    export_snapshot,
    habit_status,
    heatmap_level,
    load_snapshot,
    month_cells,
    now_local,
    step_progress,
    streak,
    today_str,
    validate_habit,
    weekly_progress,
)
from hablits.analytics import compute_stats
from hablits.dates import parse_day_key
from hablits.fasting import fast_progress, fast_status, format_remaining_time, remaining_time
from hablits.scheduler import scheduled_habits, unscheduled_habits, validate_schedule
from hablits.store import import_backup
from hablits.workspace import day_plan_window


# ── HTML helpers ──────────────────────────────────────────────

def _escape(s: str) -> str:
    return (
        s.replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
    )


STATUS_MARKS = {"none": "[ ]", "done": "[x]", "skipped": "[-]", "failed": "[!]"}


# ── Auth ──────────────────────────────────────────────────────

app = FastAPI(title="Hablits", version="0.1.0")

security = HTTPBasic(auto_error=False)


def get_current_user(credentials: HTTPBasicCredentials | None = Depends(security)) -> str:
    expected_username = os.environ.get("HABLITS_USERNAME", "")
    expected_password = os.environ.get("HABLITS_PASSWORD", "")

    if credentials is None:
        if not expected_username or not expected_password:
            return "guest"
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Basic"},
        )

    if not expected_username or not expected_password:
        return "guest"

    correct_username = secrets.compare_digest(credentials.username.encode("utf-8"), expected_username.encode("utf-8"))
    correct_password = secrets.compare_digest(credentials.password.encode("utf-8"), expected_password.encode("utf-8"))

    if not (correct_username and correct_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Basic"},
        )

    return credentials.username


def _day(value: str | None) -> date:
    if not value:
        return parse_day_key(today_str())
    try:
        return parse_day_key(value)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid date: {value}")


def _today_rows(day: date) -> list[dict[str, Any]]:
    snapshot = load_snapshot()
    rows = []
    for habit in active_habits(snapshot.habits, day, snapshot.current_identity_filter):
        done_steps, total_steps = step_progress(snapshot, habit, day)
        rows.append({
            "habit": habit.to_dict(),
            "status": habit_status(snapshot, habit.id, day),
            "streak": streak(snapshot.logs, habit.id, day),
            "weeklyProgress": weekly_progress(snapshot.logs, habit.id, day),
            "steps": {"done": done_steps, "total": total_steps},
            "note": snapshot.notes.get(day.isoformat(), {}).get(habit.id),
        })
    return rows


# ── Pages ─────────────────────────────────────────────────────

@app.get("/healthz")
def healthz() -> dict[str, str]:
    return {"ok": "true"}


@app.get("/", response_class=HTMLResponse)
def index(username: str = Depends(get_current_user)) -> HTMLResponse:
    day = _day(None)
    rows = _today_rows(day)
    items = "".join(
        f'<li><span class="mono">{STATUS_MARKS[r["status"]]}</span> {_escape(r["habit"]["name"])}'
        f' <span class="muted">streak {r["streak"]}</span></li>'
        for r in rows
    ) or '<li class="muted">No habits today.</li>'
    html = f"""<!doctype html>
<html>
<head><meta charset="utf-8"><title>Hablits</title></head>
<body>
<h1>Today, {day.isoformat()}</h1>
<ul>{items}</ul>
</body>
</html>"""
    return HTMLResponse(html)


# ── State & actions ───────────────────────────────────────────

@app.get("/api/state")
def api_get_state(username: str = Depends(get_current_user)) -> dict[str, Any]:
    return load_snapshot().to_dict()


@app.post("/api/actions")
def api_dispatch(payload: dict[str, Any] = Body(...), username: str = Depends(get_current_user)) -> dict[str, Any]:
    kind = payload.get("type")
    body = payload.get("payload")
    if kind in ("ADD_HABIT", "UPDATE_HABIT") and isinstance(body, dict):
        errors = validate_habit(body)
        if errors:
            raise HTTPException(status_code=400, detail="; ".join(errors))
    if kind == "SET_DAY_PLAN_SCHEDULE" and isinstance(body, dict) and isinstance(body.get("schedule"), dict):
        errors = validate_schedule(body["schedule"])
        if errors:
            raise HTTPException(status_code=400, detail="; ".join(errors))

    action = action_from_dict(payload)
    if action is None:
        raise HTTPException(status_code=400, detail=f"Unknown or malformed action: {kind}")

    before = load_snapshot()
    snapshot, hooks = dispatch(action)
    return {
        "ok": True,
        "changed": snapshot != before,
        "state": snapshot.to_dict(),
        "hooks": hooks,
    }


# ── Views ─────────────────────────────────────────────────────

@app.get("/api/today")
def api_today(date: str | None = None, username: str = Depends(get_current_user)) -> dict[str, Any]:
    day = _day(date)
    snapshot = load_snapshot()
    return {
        "date": day.isoformat(),
        "completion": round(
            day_completion_percent(snapshot.habits, snapshot.logs, day, snapshot.current_identity_filter), 3
        ),
        "habits": _today_rows(day),
    }


@app.get("/api/calendar")
def api_calendar(month: str | None = None, username: str = Depends(get_current_user)) -> dict[str, Any]:
    day = _day(month)
    snapshot = load_snapshot()
    cells = [
        None if d is None else {"date": d.isoformat(), "level": heatmap_level(snapshot.habits, snapshot.logs, d)}
        for d in month_cells(day)
    ]
    return {"month": day.strftime("%Y-%m"), "cells": cells}


@app.get("/api/day_plan")
def api_day_plan(date: str | None = None, username: str = Depends(get_current_user)) -> dict[str, Any]:
    day = _day(date)
    snapshot = load_snapshot()
    start_hour, end_hour = day_plan_window()
    return {
        "date": day.isoformat(),
        "window": {"startHour": start_hour, "endHour": end_hour},
        "scheduled": [
            {"habit": e.habit.to_dict(), "schedule": e.schedule.to_dict(), "position": round(e.position, 3)}
            for e in scheduled_habits(snapshot, day, start_hour, end_hour)
        ],
        "unscheduled": [h.to_dict() for h in unscheduled_habits(snapshot, day)],
    }


@app.get("/api/stats")
def api_stats(range: str = "30d", username: str = Depends(get_current_user)) -> dict[str, Any]:
    try:
        stats = compute_stats(load_snapshot(), today_str(), range)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return stats.to_dict()


@app.get("/api/fasts")
def api_fasts(username: str = Depends(get_current_user)) -> dict[str, Any]:
    snapshot = load_snapshot()
    now = now_local()
    fasts = []
    for habit_id, fast in snapshot.active_fasts.items():
        left = remaining_time(fast, now)
        fasts.append({
            **fast.to_dict(),
            "status": fast_status(fast, now),
            "remaining": format_remaining_time(left),
            "remainingSeconds": int(left.total_seconds()),
            "progress": round(fast_progress(fast, now), 1),
        })
    return {"fasts": fasts}


# ── Backups ───────────────────────────────────────────────────

@app.get("/api/export")
def api_export(username: str = Depends(get_current_user)) -> dict[str, Any]:
    return export_snapshot(load_snapshot(), now_local())


@app.post("/api/import")
def api_import(payload: dict[str, Any] = Body(...), username: str = Depends(get_current_user)) -> dict[str, Any]:
    try:
        snapshot, hooks = import_backup(payload)
    except ImportFormatError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"ok": True, "habits": len(snapshot.habits), "hooks": hooks}
