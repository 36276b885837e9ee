from __future__ import annotations

import asyncio
from collections import deque
from typing import Any

from textual.app import App, ComposeResult
from textual.containers import Horizontal, Vertical
from textual.widgets import Footer, Markdown, Static

from .config import TrackerConfig
from .progress import MilestoneProgress, ProgressSummary
from .runtime.events import EventBus
from .runtime.scheduler import Scheduler
from .tracker import CycleResult, ProgressTracker

ACTIVITY_MAX_LINES = 40
ACTIVITY_PANEL_LINES = 12


class ProgressDashboardApp(App[None]):
    CSS = """
    Screen {
        layout: vertical;
    }

    #status-bar {
        height: 1;
        padding: 0 1;
        background: $boost;
        color: $text;
    }

    #main {
        height: 1fr;
    }

    #report {
        width: 2fr;
        border: solid $accent;
        padding: 0 1;
    }

    #sidebar {
        width: 1fr;
        border: solid $secondary;
        padding: 0 1;
    }

    .panel {
        height: 1fr;
        border: solid $primary;
        margin: 0 0 1 0;
        padding: 0 1;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("ctrl+c", "quit", "Quit"),
        ("r", "refresh_now", "Update Now"),
    ]

    def __init__(self, *, config: TrackerConfig, event_bus: EventBus | None = None) -> None:
        super().__init__()
        self.config = config
        self.event_bus = event_bus or EventBus(config.paths.events)
        self.tracker = ProgressTracker(config, event_bus=self.event_bus)
        self.scheduler = Scheduler(
            self._cycle,
            interval_s=config.schedule.interval_s,
            policy=config.schedule.policy,
            event_bus=self.event_bus,
        )
        self.activity: deque[str] = deque(maxlen=ACTIVITY_MAX_LINES)
        self._cycle_lock = asyncio.Lock()
        self._unsubscribe = self.event_bus.subscribe(self._on_event)

    def compose(self) -> ComposeResult:
        yield Static("", id="status-bar")
        with Horizontal(id="main"):
            yield Markdown("_Waiting for the first update..._", id="report")
            with Vertical(id="sidebar"):
                yield Static("", id="panel-summary", classes="panel")
                yield Static("", id="panel-milestones", classes="panel")
                yield Static(_activity_text([]), id="panel-activity", classes="panel")
        yield Footer()

    def on_mount(self) -> None:
        self.status_bar = self.query_one("#status-bar", Static)
        self.report_view = self.query_one("#report", Markdown)
        self.summary_panel = self.query_one("#panel-summary", Static)
        self.milestones_panel = self.query_one("#panel-milestones", Static)
        self.activity_panel = self.query_one("#panel-activity", Static)
        self.title = f"{self.config.project.name} progress"
        self.scheduler.start()
        self._refresh_panels()

    async def on_unmount(self) -> None:
        self._unsubscribe()
        await self.scheduler.stop()

    async def action_refresh_now(self) -> None:
        async with self._cycle_lock:
            result = await asyncio.to_thread(self.tracker.run)
        if result is not None:
            await self._show_result(result)
        self._refresh_panels()

    async def _cycle(self) -> None:
        # Errors propagate so the scheduler counts and publishes them.
        async with self._cycle_lock:
            result = await asyncio.to_thread(self.tracker.run_cycle)
        await self._show_result(result)
        self._refresh_panels()

    async def _show_result(self, result: CycleResult) -> None:
        self.summary_panel.update(_summary_panel_text(result.summary))
        self.milestones_panel.update(_milestones_panel_text(result.snapshot.milestones))
        try:
            report_text = await asyncio.to_thread(result.report_path.read_text, encoding="utf-8")
        except OSError as exc:
            report_text = f"_Report unavailable: {exc}_"
        await self.report_view.update(report_text)

    def _refresh_panels(self) -> None:
        status_bar = getattr(self, "status_bar", None)
        if status_bar is not None:
            status_bar.update(
                _status_bar_text(
                    cycles=self.scheduler.cycles_run,
                    failures=self.scheduler.failures,
                    last_result=self.tracker.last_result,
                    interval_s=self.config.schedule.interval_s,
                )
            )
        activity_panel = getattr(self, "activity_panel", None)
        if activity_panel is not None:
            activity_panel.update(_activity_text(list(self.activity)))

    def _on_event(self, event: dict[str, Any]) -> None:
        self.activity.append(_activity_line(event))
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            # Published from a cycle running in a worker thread.
            self.call_from_thread(self._refresh_panels)
            return
        self._refresh_panels()


def _summary_panel_text(summary: ProgressSummary) -> str:
    return "\n".join(
        [
            "Summary",
            f"total: {summary.total}",
            f"completed: {summary.completed} ({summary.completed_percent}%)",
            f"in progress: {summary.in_progress} ({summary.in_progress_percent}%)",
            f"not started: {summary.not_started} ({summary.not_started_percent}%)",
            f"blocked: {summary.blocked} ({summary.blocked_percent}%)",
        ]
    )


def _milestones_panel_text(milestones: list[MilestoneProgress]) -> str:
    if not milestones:
        return "Milestones\n- none configured"
    lines = ["Milestones"]
    for milestone in milestones:
        lines.append(
            f"- {milestone.name}: {milestone.completed}/{milestone.total} ({milestone.percent}%) {milestone.status}"
        )
    return "\n".join(lines)


def _activity_line(event: dict[str, Any]) -> str:
    stamp = str(event.get("ts") or "")[11:19] or "--:--:--"
    message = " ".join(str(event.get("message") or "").split())
    return f"{stamp} [{event.get('severity') or 'info'}] {message}"


def _activity_text(entries: list[str]) -> str:
    if not entries:
        return "Activity\n- idle"
    # Newest first; the panel only has room for the tail of the feed.
    lines = ["Activity"]
    for entry in reversed(entries[-ACTIVITY_PANEL_LINES:]):
        lines.append(f"- {entry}")
    return "\n".join(lines)


def _status_bar_text(
    *,
    cycles: int,
    failures: int,
    last_result: CycleResult | None,
    interval_s: float,
) -> str:
    last_text = last_result.finished_at.strftime("%H:%M:%S UTC") if last_result is not None else "never"
    return f"cycles: {cycles} | failures: {failures} | last update: {last_text} | every {interval_s:g}s"


def run_terminal_app(*, config: TrackerConfig) -> int:
    app = ProgressDashboardApp(config=config)
    app.run(mouse=False)
    return 0
