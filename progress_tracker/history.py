from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
import json
from pathlib import Path
from typing import Any

from .progress import ProgressSummary
from .runtime.events import EventBus
from .tasks import TaskRecord


MAX_LOG_ENTRIES = 100


def iso_timestamp(value: datetime) -> str:
    stamp = value.astimezone(timezone.utc).isoformat(timespec="milliseconds")
    return stamp.replace("+00:00", "Z")


@dataclass
class ProgressLog:
    entries: list[dict[str, Any]] = field(default_factory=list)
    start_date: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"entries": list(self.entries), "startDate": self.start_date}


def load_progress_log(path: Path, *, now: datetime, event_bus: EventBus | None = None) -> ProgressLog:
    """Read the history log, starting fresh when it is missing or unusable."""

    fresh = ProgressLog(entries=[], start_date=iso_timestamp(now))
    if not path.exists():
        return fresh

    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except Exception as exc:  # noqa: BLE001
        _warn(event_bus, path, f"progress log unreadable, starting fresh: {exc}")
        return fresh

    if not isinstance(payload, dict) or not isinstance(payload.get("entries"), list):
        _warn(event_bus, path, "progress log has unexpected shape, starting fresh")
        return fresh

    entries = [entry for entry in payload["entries"] if isinstance(entry, dict)]
    start_date = payload.get("startDate")
    return ProgressLog(
        entries=entries,
        start_date=start_date if isinstance(start_date, str) and start_date else fresh.start_date,
    )


def _warn(event_bus: EventBus | None, path: Path, message: str) -> None:
    if event_bus is None:
        return
    event_bus.publish_event(
        "history.load.warn",
        message,
        severity="warn",
        source="history",
        metadata={"path": str(path)},
    )


def build_entry(summary: ProgressSummary, tasks: list[TaskRecord], *, now: datetime) -> dict[str, Any]:
    return {
        "timestamp": iso_timestamp(now),
        "progress": summary.to_dict(),
        "activeTasks": sum(1 for task in tasks if task.is_active),
        "completedTasks": sum(1 for task in tasks if task.is_completed),
    }


def append_entry(log: ProgressLog, entry: dict[str, Any], *, max_entries: int = MAX_LOG_ENTRIES) -> ProgressLog:
    log.entries.append(entry)
    if len(log.entries) > max_entries:
        log.entries = log.entries[-max_entries:]
    return log


def save_progress_log(path: Path, log: ProgressLog) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(log.to_dict(), indent=2), encoding="utf-8")
    return path


def record_snapshot(
    path: Path,
    summary: ProgressSummary,
    tasks: list[TaskRecord],
    *,
    now: datetime,
    max_entries: int = MAX_LOG_ENTRIES,
    event_bus: EventBus | None = None,
) -> ProgressLog:
    log = load_progress_log(path, now=now, event_bus=event_bus)
    append_entry(log, build_entry(summary, tasks, now=now), max_entries=max_entries)
    save_progress_log(path, log)
    return log
