from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
import re

from .runtime.events import EventBus


_TASK_LINE_BASE = r"^- \[(?P<status>[{markers}])\] (?P<number>[0-9]+)\. (?P<title>.+)"
_STATUS_CHARS = " x-"


class TaskStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    BLOCKED = "blocked"

    @property
    def label(self) -> str:
        return _STATUS_LABELS[self]


_STATUS_LABELS = {
    TaskStatus.NOT_STARTED: "Not Started",
    TaskStatus.IN_PROGRESS: "In Progress",
    TaskStatus.COMPLETED: "Completed",
    TaskStatus.BLOCKED: "Blocked",
}


@dataclass(frozen=True)
class TaskRecord:
    number: int
    title: str
    status: TaskStatus
    raw_line: str

    @property
    def is_completed(self) -> bool:
        return self.status is TaskStatus.COMPLETED

    @property
    def is_active(self) -> bool:
        return self.status is TaskStatus.IN_PROGRESS


def _task_line_pattern(blocked_marker: str | None) -> re.Pattern[str]:
    markers = _STATUS_CHARS + (blocked_marker or "")
    return re.compile(_TASK_LINE_BASE.format(markers=re.escape(markers)))


def _status_for(char: str, blocked_marker: str | None) -> TaskStatus:
    if char == "x":
        return TaskStatus.COMPLETED
    if char == "-":
        return TaskStatus.IN_PROGRESS
    if blocked_marker and char == blocked_marker:
        return TaskStatus.BLOCKED
    return TaskStatus.NOT_STARTED


def parse_tasks(text: str, *, blocked_marker: str | None = None) -> list[TaskRecord]:
    """Extract task records from checklist text.

    A task line looks like ``- [x] 12. Title``. The bracket holds ``x``
    (completed), ``-`` (in progress) or a space (not started); any other line
    is skipped. ``blocked_marker`` optionally admits one more bracket
    character that maps to blocked.
    """

    pattern = _task_line_pattern(blocked_marker)
    tasks: list[TaskRecord] = []
    for line in text.split("\n"):
        match = pattern.match(line)
        if not match:
            continue
        tasks.append(
            TaskRecord(
                number=int(match.group("number")),
                title=match.group("title").strip(),
                status=_status_for(match.group("status"), blocked_marker),
                raw_line=line,
            )
        )
    return tasks


def read_tasks(
    path: Path,
    *,
    event_bus: EventBus | None = None,
    blocked_marker: str | None = None,
) -> list[TaskRecord]:
    try:
        text = path.read_text(encoding="utf-8")
    except Exception as exc:  # noqa: BLE001
        if event_bus is not None:
            event_bus.publish_event(
                "tasks.read.error",
                f"Error parsing tasks file {path}: {exc}",
                severity="warn",
                source="parser",
                metadata={"path": str(path)},
            )
        return []
    return parse_tasks(text, blocked_marker=blocked_marker)


def filter_status(tasks: list[TaskRecord], status: TaskStatus) -> list[TaskRecord]:
    return [task for task in tasks if task.status is status]
