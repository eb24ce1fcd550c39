#!/usr/bin/env python3
"""Hablits TUI: today's habits in the terminal, powered by Textual."""

from __future__ import annotations

import sys
from datetime import date, timedelta

from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.reactive import reactive
from textual.widgets import DataTable, Footer, Header, Label, Static

from hablits import (
    FailHabit,
    SkipHabit,
    ToggleHabit,
    active_habits,
    day_completion_percent,
    dispatch,
    habit_status,
    load_snapshot,
    now_local,
    step_progress,
    streak,
    today_str,
    weekly_progress,
    workspace_root,
)
from hablits.analytics import compute_stats
from hablits.dates import parse_day_key
from hablits.fasting import fast_status, format_remaining_time, remaining_time
from hablits.queries import find_habit
from hablits.workspace import configure_logging, data_dir


STATUS_LABELS = {"none": "·", "done": "✓", "skipped": "skip", "failed": "fail"}

CSS = """
#main-layout { height: 1fr; }

.section-title {
    text-style: bold;
    color: $accent;
    padding: 0 1;
    margin: 1 0 0 0;
}

#habits-table { height: 1fr; }

#stats-pane {
    width: 40;
    padding: 0 1;
    border-left: tall $primary-background-darken-2;
}

#fasts { height: auto; padding: 0 1; color: $warning; }

#status-bar {
    dock: bottom;
    height: 1;
    background: $primary-background;
    color: $text-muted;
    padding: 0 2;
}
"""


# ── Panes ──────────────────────────────────────────────────────


class StatsPane(Vertical):
    """30-day summary and insights."""

    def compose(self) -> ComposeResult:
        yield Label("Stats (30d)", classes="section-title")
        yield Static(id="stats-info")

    def refresh_stats(self, today: date) -> None:
        stats = compute_stats(load_snapshot(), today, "30d")
        lines = [
            f"Habits: {stats.total_habits}",
            f"All-time completions: {stats.all_completions}",
            f"Avg/day: {stats.avg_per_day:.1f}",
            f"Best streak: {stats.best_streak} days",
            "",
        ]
        lines.extend(f"• {text}" for text in stats.insights)
        self.query_one("#stats-info", Static).update("\n".join(lines))


# ── Main app ───────────────────────────────────────────────────


class HablitsApp(App):
    """Hablits, an interactive habit tracker."""

    TITLE = "Hablits"
    CSS = CSS

    BINDINGS = [
        Binding("space", "toggle", "Toggle"),
        Binding("s", "skip", "Skip"),
        Binding("f", "fail", "Fail"),
        Binding("left", "prev_day", "Prev day"),
        Binding("right", "next_day", "Next day"),
        Binding("t", "go_today", "Today"),
        Binding("q", "quit", "Quit"),
    ]

    day: reactive[date] = reactive(date.today)

    def __init__(self) -> None:
        super().__init__()
        self._row_ids: list[str] = []

    def compose(self) -> ComposeResult:
        yield Header()
        yield Horizontal(
            Vertical(
                Label("", id="day-title", classes="section-title"),
                DataTable(id="habits-table", cursor_type="row"),
                Static(id="fasts"),
            ),
            StatsPane(id="stats-pane"),
            id="main-layout",
        )
        yield Static(id="status-bar")
        yield Footer()

    def on_mount(self) -> None:
        table = self.query_one("#habits-table", DataTable)
        table.add_columns("", "Habit", "Steps", "Week", "Streak")
        self.day = parse_day_key(today_str())
        self._reload()
        self.set_interval(1, self._refresh_fasts)

    def watch_day(self, day: date) -> None:
        if self.is_mounted:
            self._reload()

    def _reload(self) -> None:
        snapshot = load_snapshot()
        table = self.query_one("#habits-table", DataTable)
        cursor = table.cursor_row
        table.clear()
        self._row_ids = []

        habits = active_habits(snapshot.habits, self.day, snapshot.current_identity_filter)
        for habit in habits:
            done, total = step_progress(snapshot, habit, self.day)
            table.add_row(
                STATUS_LABELS[habit_status(snapshot, habit.id, self.day)],
                habit.name,
                f"{done}/{total}" if total else "",
                f"{weekly_progress(snapshot.logs, habit.id, self.day)}/{habit.weekly_goal}",
                str(streak(snapshot.logs, habit.id, self.day)),
            )
            self._row_ids.append(habit.id)
        if self._row_ids:
            table.move_cursor(row=min(cursor, len(self._row_ids) - 1))

        pct = day_completion_percent(snapshot.habits, snapshot.logs, self.day, snapshot.current_identity_filter)
        self.query_one("#day-title", Label).update(f"{self.day.strftime('%A %d %B %Y')}  {pct:.0%}")
        self.query_one("#status-bar", Static).update(f"Workspace: {workspace_root()}")
        self.query_one(StatsPane).refresh_stats(parse_day_key(today_str()))
        self._refresh_fasts()

    def _refresh_fasts(self) -> None:
        snapshot = load_snapshot()
        now = now_local()
        lines = []
        for habit_id, fast in snapshot.active_fasts.items():
            habit = find_habit(snapshot, habit_id)
            name = habit.name if habit else habit_id
            if fast_status(fast, now) == "complete":
                lines.append(f"{name}: Complete!")
            else:
                lines.append(f"{name}: {format_remaining_time(remaining_time(fast, now))} left")
        self.query_one("#fasts", Static).update("\n".join(lines))

    def _selected_habit(self) -> str | None:
        table = self.query_one("#habits-table", DataTable)
        if not self._row_ids or table.cursor_row < 0:
            return None
        return self._row_ids[min(table.cursor_row, len(self._row_ids) - 1)]

    def _send(self, action_cls) -> None:
        habit_id = self._selected_habit()
        if habit_id is None:
            return
        dispatch(action_cls(habit_id=habit_id, date=self.day.isoformat()))
        self._reload()

    def action_toggle(self) -> None:
        self._send(ToggleHabit)

    def action_skip(self) -> None:
        self._send(SkipHabit)

    def action_fail(self) -> None:
        self._send(FailHabit)

    def action_prev_day(self) -> None:
        self.day = self.day - timedelta(days=1)

    def action_next_day(self) -> None:
        self.day = self.day + timedelta(days=1)

    def action_go_today(self) -> None:
        self.day = parse_day_key(today_str())


# ── Entry point ────────────────────────────────────────────────


def main() -> None:
    root = workspace_root()
    if not root.exists():
        print(f"Workspace not found: {root}")
        print("Set HABLITS_ROOT or create the directory first.")
        sys.exit(1)

    configure_logging(root, filename=data_dir(root) / "hablits.log")
    app = HablitsApp()
    app.run()


if __name__ == "__main__":
    main()
