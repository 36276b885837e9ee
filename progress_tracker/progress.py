from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable

from .tasks import TaskRecord, TaskStatus


MILESTONE_NOT_STARTED = "Not Started"
MILESTONE_IN_PROGRESS = "In Progress"
MILESTONE_COMPLETED = "Completed"


def percent_of(part: int, total: int) -> int:
    """Whole percent of part/total, rounding halves up; 0 when total is 0."""

    if total <= 0:
        return 0
    return (200 * part + total) // (2 * total)


def milestone_percent(completed: int, total: int) -> int:
    """Like percent_of, but a partly done milestone never shows 0 or 100."""

    percent = percent_of(completed, total)
    if 0 < completed < total:
        return min(99, max(1, percent))
    return percent


@dataclass(frozen=True)
class MilestoneDefinition:
    name: str
    tasks: tuple[int, ...]
    target: str
    goal: str | None = None

    @property
    def task_range(self) -> str:
        if not self.tasks:
            return "-"
        return f"{self.tasks[0]}-{self.tasks[-1]}"


@dataclass(frozen=True)
class MilestoneProgress:
    definition: MilestoneDefinition
    completed: int
    total: int
    percent: int
    status: str

    @property
    def name(self) -> str:
        return self.definition.name


@dataclass(frozen=True)
class ProgressSummary:
    total: int
    completed: int
    in_progress: int
    not_started: int
    blocked: int
    completed_percent: int
    in_progress_percent: int
    not_started_percent: int
    blocked_percent: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "completed": self.completed,
            "inProgress": self.in_progress,
            "notStarted": self.not_started,
            "blocked": self.blocked,
            "completedPercent": self.completed_percent,
            "inProgressPercent": self.in_progress_percent,
            "notStartedPercent": self.not_started_percent,
            "blockedPercent": self.blocked_percent,
        }


def calculate_progress(tasks: Iterable[TaskRecord]) -> ProgressSummary:
    counts = {status: 0 for status in TaskStatus}
    for task in tasks:
        counts[task.status] += 1
    total = sum(counts.values())

    completed = counts[TaskStatus.COMPLETED]
    in_progress = counts[TaskStatus.IN_PROGRESS]
    not_started = counts[TaskStatus.NOT_STARTED]
    blocked = counts[TaskStatus.BLOCKED]
    return ProgressSummary(
        total=total,
        completed=completed,
        in_progress=in_progress,
        not_started=not_started,
        blocked=blocked,
        completed_percent=percent_of(completed, total),
        in_progress_percent=percent_of(in_progress, total),
        not_started_percent=percent_of(not_started, total),
        blocked_percent=percent_of(blocked, total),
    )


def milestone_status_label(percent: int) -> str:
    if percent == 100:
        return MILESTONE_COMPLETED
    if percent > 0:
        return MILESTONE_IN_PROGRESS
    return MILESTONE_NOT_STARTED


def calculate_milestones(
    tasks: Iterable[TaskRecord],
    milestones: Iterable[MilestoneDefinition],
) -> list[MilestoneProgress]:
    task_list = list(tasks)
    out: list[MilestoneProgress] = []
    for milestone in milestones:
        wanted = set(milestone.tasks)
        members = [task for task in task_list if task.number in wanted]
        completed = sum(1 for task in members if task.is_completed)
        percent = milestone_percent(completed, len(members))
        out.append(
            MilestoneProgress(
                definition=milestone,
                completed=completed,
                total=len(members),
                percent=percent,
                status=milestone_status_label(percent),
            )
        )
    return out


def current_milestone(milestones: list[MilestoneProgress]) -> MilestoneProgress | None:
    for milestone in milestones:
        if milestone.status == MILESTONE_IN_PROGRESS:
            return milestone
    return milestones[0] if milestones else None
