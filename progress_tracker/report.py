from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

from .config import TrackerConfig
from .progress import MilestoneProgress, ProgressSummary, current_milestone
from .tasks import TaskRecord, TaskStatus, filter_status


SECTION_TASKS_LIMIT = 3
TABLE_TITLE_MAX_CHARS = 20
_STATUS_PROGRESS = {
    TaskStatus.COMPLETED: "100%",
    TaskStatus.IN_PROGRESS: "50%",
}


def format_report_timestamp(value: datetime) -> str:
    return value.astimezone(timezone.utc).strftime("%Y-%m-%d %H:%M:%S") + " UTC"


def _task_bullets(tasks: list[TaskRecord], *, empty: str) -> str:
    if not tasks:
        return f"- {empty}"
    return "\n".join(f"- {task.number}. {task.title}" for task in tasks)


def _short_title(title: str) -> str:
    if len(title) <= TABLE_TITLE_MAX_CHARS:
        return title
    return title[:TABLE_TITLE_MAX_CHARS] + "..."


def _task_table(tasks: list[TaskRecord], config: TrackerConfig) -> str:
    lines = [
        "| Task | Status | Progress | Estimated Hours | Actual Hours | Assignee | Notes |",
        "|------|--------|----------|----------------|--------------|----------|-------|",
    ]
    for task in tasks:
        progress = _STATUS_PROGRESS.get(task.status, "0%")
        hours = config.estimated_hours(task.number)
        lines.append(
            f"| {task.number}. {_short_title(task.title)} | {task.status.label} | {progress} | {hours} | 0 | - | - |"
        )
    return "\n".join(lines)


def _sprint_section(milestones: list[MilestoneProgress], config: TrackerConfig) -> list[str]:
    sprint = current_milestone(milestones)
    if sprint is None:
        return [
            "**Sprint**: None configured  ",
            "**Sprint Goal**: Complete assigned tasks  ",
            "**Sprint Progress**: 0/0 tasks completed  ",
        ]
    return [
        f"**Sprint**: {sprint.name}  ",
        f"**Sprint Goal**: {config.goal_for(sprint.definition)}  ",
        f"**Sprint Progress**: {sprint.completed}/{sprint.total} tasks completed  ",
    ]


def _milestone_sections(milestones: list[MilestoneProgress]) -> str:
    if not milestones:
        return "- No milestones configured"
    blocks = []
    for index, milestone in enumerate(milestones, start=1):
        blocks.append(
            "\n".join(
                [
                    f"### Milestone {index}: {milestone.name} (Tasks {milestone.definition.task_range})",
                    f"- **Progress**: {milestone.completed}/{milestone.total} ({milestone.percent}%)",
                    f"- **Target Date**: {milestone.definition.target}",
                    f"- **Status**: {milestone.status}",
                ]
            )
        )
    return "\n\n".join(blocks)


def render_report(
    tasks: list[TaskRecord],
    summary: ProgressSummary,
    milestones: list[MilestoneProgress],
    *,
    config: TrackerConfig,
    now: datetime,
) -> str:
    timestamp = format_report_timestamp(now)
    next_timestamp = format_report_timestamp(now + timedelta(seconds=config.schedule.interval_s))
    project = config.project

    active = filter_status(tasks, TaskStatus.IN_PROGRESS)[:SECTION_TASKS_LIMIT]
    recently_completed = filter_status(tasks, TaskStatus.COMPLETED)[-SECTION_TASKS_LIMIT:]
    upcoming = filter_status(tasks, TaskStatus.NOT_STARTED)[:SECTION_TASKS_LIMIT]
    blocked = filter_status(tasks, TaskStatus.BLOCKED)

    total_hours = project.total_estimated_hours
    blockers = (
        "\n".join(f"- Task {task.number}: {task.title}" for task in blocked)
        if blocked
        else "- None currently identified"
    )
    notes = "\n".join(f"- {note}" for note in project.notes) if project.notes else "- None"

    sections = [
        f"# {project.name} - Progress Tracker",
        "",
        "## Project Overview",
        f"**Project Name**: {project.name}  ",
        f"**Start Date**: {project.start_date}  ",
        f"**Target Completion**: {project.target_completion}  ",
        f"**Last Updated**: {timestamp}  ",
        "",
        "## Progress Summary",
        f"- **Total Tasks**: {summary.total}",
        f"- **Completed**: {summary.completed} ({summary.completed_percent}%)",
        f"- **In Progress**: {summary.in_progress} ({summary.in_progress_percent}%)",
        f"- **Not Started**: {summary.not_started} ({summary.not_started_percent}%)",
        f"- **Blocked**: {summary.blocked} ({summary.blocked_percent}%)",
        "",
        "## Current Sprint Status",
        *_sprint_section(milestones, config),
        "",
        "### Active Tasks",
        _task_bullets(active, empty="None currently active"),
        "",
        "### Recently Completed",
        _task_bullets(recently_completed, empty="None yet"),
        "",
        f"### Upcoming Tasks (Next {SECTION_TASKS_LIMIT})",
        _task_bullets(upcoming, empty="None remaining"),
        "",
        "## Milestone Progress",
        "",
        _milestone_sections(milestones),
        "",
        "## Detailed Task Status",
        "",
        _task_table(tasks, config),
        "",
        "## Time Tracking",
        f"- **Total Estimated Hours**: {total_hours}",
        "- **Total Actual Hours**: 0",
        f"- **Remaining Hours**: {total_hours}",
        "- **Average Hours per Day**: 0",
        "- **Projected Completion**: TBD",
        "",
        "## Blockers & Issues",
        blockers,
        "",
        "## Notes & Updates",
        notes,
        "",
        "---",
        f"*Last auto-update: {timestamp}*  ",
        f"*Next update: {next_timestamp}*",
    ]
    return "\n".join(sections) + "\n"


def write_report(path: Path, content: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path
