from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable

from .config import TrackerConfig
from .history import record_snapshot
from .progress import MilestoneProgress, ProgressSummary, calculate_milestones, calculate_progress
from .report import render_report, write_report
from .runtime.events import EventBus
from .tasks import TaskRecord, read_tasks


def _utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)


@dataclass(frozen=True)
class ProgressSnapshot:
    tasks: list[TaskRecord]
    summary: ProgressSummary
    milestones: list[MilestoneProgress]


@dataclass(frozen=True)
class CycleResult:
    snapshot: ProgressSnapshot
    report_path: Path
    log_path: Path
    log_entries: int
    finished_at: datetime

    @property
    def summary(self) -> ProgressSummary:
        return self.snapshot.summary


class ProgressTracker:
    """Runs the parse -> calculate -> render -> log cycle for one project."""

    def __init__(
        self,
        config: TrackerConfig,
        *,
        event_bus: EventBus | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.config = config
        self.event_bus = event_bus or EventBus(config.paths.events)
        self.clock = clock or _utc_now
        self.last_result: CycleResult | None = None

    def snapshot(self) -> ProgressSnapshot:
        tasks = read_tasks(
            self.config.paths.tasks,
            event_bus=self.event_bus,
            blocked_marker=self.config.parser.blocked_marker,
        )
        return ProgressSnapshot(
            tasks=tasks,
            summary=calculate_progress(tasks),
            milestones=calculate_milestones(tasks, self.config.milestones),
        )

    def run_cycle(self, now: datetime | None = None) -> CycleResult:
        """One full cycle. Report and log write failures propagate.

        Callers that loop (the scheduler, the dashboard) own the error guard;
        ``run`` is the guarded form for one-shot use.
        """

        now = now or self.clock()
        paths = self.config.paths
        self.event_bus.publish_event(
            "cycle.started",
            f"[{now.isoformat()}] Updating progress tracker...",
            metadata={"tasks_path": str(paths.tasks)},
        )
        snapshot = self.snapshot()

        content = render_report(
            snapshot.tasks,
            snapshot.summary,
            snapshot.milestones,
            config=self.config,
            now=now,
        )
        write_report(paths.report, content)

        log = record_snapshot(
            paths.log,
            snapshot.summary,
            snapshot.tasks,
            now=now,
            max_entries=self.config.schedule.max_log_entries,
            event_bus=self.event_bus,
        )
        result = CycleResult(
            snapshot=snapshot,
            report_path=paths.report,
            log_path=paths.log,
            log_entries=len(log.entries),
            finished_at=now,
        )
        self.last_result = result

        summary = result.summary
        self.event_bus.publish_event(
            "cycle.completed",
            f"Progress updated: {summary.completed}/{summary.total} tasks completed ({summary.completed_percent}%)",
            metadata={
                "progress": summary.to_dict(),
                "report": str(result.report_path),
                "log_entries": result.log_entries,
            },
        )
        return result

    def run(self, now: datetime | None = None) -> CycleResult | None:
        """Guarded cycle: failures are published, never raised."""

        try:
            return self.run_cycle(now)
        except Exception as exc:  # noqa: BLE001
            self.event_bus.publish_event(
                "cycle.error",
                f"Error updating progress: {exc}",
                severity="error",
                metadata={"error": type(exc).__name__},
            )
            return None
