from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
import math
import tomllib

from .progress import MilestoneDefinition


CONFIG_FILENAME = "progress.toml"
SCHEDULE_POLICIES = ("fixed_rate", "fixed_delay")
MIN_INTERVAL_S = 1.0
MAX_INTERVAL_S = 7 * 24 * 60 * 60

DEFAULT_MILESTONES: tuple[MilestoneDefinition, ...] = (
    MilestoneDefinition(name="Foundation & Core Engine", tasks=(1, 2, 3, 4, 5, 6), target="Week 2"),
    MilestoneDefinition(name="Component System & UI", tasks=(7, 8, 9, 10, 11, 12), target="Week 4"),
    MilestoneDefinition(name="AI Integration & Templates", tasks=(13, 14, 15, 16, 17, 18), target="Week 6"),
    MilestoneDefinition(name="Advanced Features", tasks=(19, 20, 21, 22, 23, 24), target="Week 8"),
    MilestoneDefinition(name="Character System & ML", tasks=(25, 26, 27, 28), target="Week 10"),
    MilestoneDefinition(name="Testing & Deployment", tasks=(29, 30, 31, 32), target="Week 12"),
)

DEFAULT_GOALS: dict[str, str] = {
    "Foundation & Core Engine": "Establish project foundation and core canvas functionality",
    "Component System & UI": "Build component library and user interface",
    "AI Integration & Templates": "Integrate AI assistance and template system",
    "Advanced Features": "Implement advanced design and collaboration features",
    "Character System & ML": "Add character design and machine learning capabilities",
    "Testing & Deployment": "Complete testing and prepare for deployment",
}

DEFAULT_ESTIMATES: dict[int, int] = {
    1: 8, 2: 12, 3: 16, 4: 10, 5: 12, 6: 14, 7: 10, 8: 8, 9: 12, 10: 10,
    11: 16, 12: 12, 13: 14, 14: 18, 15: 12, 16: 10, 17: 20, 18: 8, 19: 16, 20: 14,
    21: 12, 22: 10, 23: 12, 24: 10, 25: 14, 26: 16, 27: 18, 28: 12, 29: 20, 30: 12,
    31: 10, 32: 16,
}

DEFAULT_NOTES: tuple[str, ...] = (
    "Project specification completed",
    "Ready to begin implementation",
    "Next: Set up development environment",
)


def _as_int(value, *, default: int) -> int:
    if isinstance(value, bool):
        return int(default)
    try:
        return int(value)
    except Exception:  # noqa: BLE001
        return int(default)


def _as_str(value, *, default: str) -> str:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return default


def _as_str_list(value) -> list[str]:
    if isinstance(value, list):
        out: list[str] = []
        for item in value:
            if isinstance(item, str) and item.strip():
                out.append(item.strip())
        return out
    if isinstance(value, str) and value.strip():
        return [value.strip()]
    return []


def _as_int_list(value) -> list[int]:
    if not isinstance(value, list):
        return []
    out: list[int] = []
    for item in value:
        number = _as_int(item, default=0)
        if number > 0:
            out.append(number)
    return out


@dataclass(frozen=True)
class ProjectConfig:
    name: str = "VST3 Interface Designer"
    start_date: str = "2025-01-08"
    target_completion: str = "TBD"
    total_estimated_hours: int = 424
    default_estimate_hours: int = 8
    notes: tuple[str, ...] = DEFAULT_NOTES


@dataclass(frozen=True)
class PathsConfig:
    tasks: Path = Path("tasks.md")
    report: Path = Path("progress-tracker.md")
    log: Path = Path("progress-log.json")
    events: Path | None = None


@dataclass(frozen=True)
class ScheduleConfig:
    interval_s: float = 5 * 60
    policy: str = "fixed_rate"
    max_log_entries: int = 100


@dataclass(frozen=True)
class ParserConfig:
    # Off by default: the checklist grammar only knows ' ', 'x' and '-'.
    blocked_marker: str | None = None


@dataclass(frozen=True)
class TrackerConfig:
    project: ProjectConfig = field(default_factory=ProjectConfig)
    paths: PathsConfig = field(default_factory=PathsConfig)
    schedule: ScheduleConfig = field(default_factory=ScheduleConfig)
    parser: ParserConfig = field(default_factory=ParserConfig)
    milestones: tuple[MilestoneDefinition, ...] = DEFAULT_MILESTONES
    estimates: dict[int, int] = field(default_factory=lambda: dict(DEFAULT_ESTIMATES))
    goals: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_GOALS))

    def estimated_hours(self, task_number: int) -> int:
        return self.estimates.get(task_number, self.project.default_estimate_hours)

    def goal_for(self, milestone: MilestoneDefinition) -> str:
        if milestone.goal:
            return milestone.goal
        return self.goals.get(milestone.name, "Complete assigned tasks")


def default_config(root: Path) -> TrackerConfig:
    """Defaults with every file path anchored at ``root``."""

    return TrackerConfig(paths=_resolve_paths(PathsConfig(), root))


def _resolve_paths(paths: PathsConfig, root: Path) -> PathsConfig:
    def anchor(path: Path) -> Path:
        return path if path.is_absolute() else root / path

    return PathsConfig(
        tasks=anchor(paths.tasks),
        report=anchor(paths.report),
        log=anchor(paths.log),
        events=anchor(paths.events) if paths.events is not None else None,
    )


def _blocked_marker(value) -> tuple[str | None, str]:
    if value is None or value == "":
        return None, ""
    if not isinstance(value, str) or len(value) != 1:
        return None, "parser.blocked_marker must be a single character; ignoring"
    if value in {" ", "x", "-"}:
        return None, f"parser.blocked_marker {value!r} collides with a built-in status; ignoring"
    return value, ""


def coerce_interval(
    value, *, default: float = ScheduleConfig.interval_s, name: str = "schedule.interval_s"
) -> tuple[float, str]:
    """Return (interval_s, warning) for a configured or command-line interval.

    Missing values use the default quietly. Values that are not numbers, not
    finite or longer than a week use the default with a warning. Anything
    shorter than a second is raised to one second.
    """

    if value is None:
        return float(default), ""
    if isinstance(value, bool):
        return float(default), f"{name} {value!r} is not a number; using {default:g}"
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        return float(default), f"{name} {value!r} is not a number; using {default:g}"
    if not math.isfinite(seconds) or seconds > MAX_INTERVAL_S:
        return float(default), f"{name} {value!r} out of range (max {MAX_INTERVAL_S}); using {default:g}"
    return max(MIN_INTERVAL_S, seconds), ""


def _milestones_from(value) -> tuple[MilestoneDefinition, ...] | None:
    if not isinstance(value, list):
        return None
    out: list[MilestoneDefinition] = []
    for item in value:
        if not isinstance(item, dict):
            continue
        name = _as_str(item.get("name"), default="")
        tasks = _as_int_list(item.get("tasks"))
        if not name or not tasks:
            continue
        goal = item.get("goal")
        out.append(
            MilestoneDefinition(
                name=name,
                tasks=tuple(tasks),
                target=_as_str(item.get("target"), default="TBD"),
                goal=goal.strip() if isinstance(goal, str) and goal.strip() else None,
            )
        )
    return tuple(out)


def _estimates_from(value) -> dict[int, int] | None:
    if not isinstance(value, dict):
        return None
    out: dict[int, int] = {}
    for key, hours in value.items():
        number = _as_int(key, default=0)
        if number <= 0:
            continue
        out[number] = max(0, _as_int(hours, default=0))
    return out


def _goals_from(value) -> dict[str, str] | None:
    if not isinstance(value, dict):
        return None
    return {str(key): str(goal).strip() for key, goal in value.items() if isinstance(goal, str) and goal.strip()}


def load_tracker_toml(path: Path) -> tuple[TrackerConfig, str]:
    """Load tracker config from progress.toml.

    Relative paths in the file resolve against the directory holding it.
    Returns (config, warning). Warning is empty on success.
    """

    root = path.parent
    if not path.exists():
        return default_config(root), ""

    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except Exception as exc:  # noqa: BLE001
        return default_config(root), f"{path.name} parse failed: {exc}"

    project = data.get("project") if isinstance(data.get("project"), dict) else {}
    paths = data.get("paths") if isinstance(data.get("paths"), dict) else {}
    schedule = data.get("schedule") if isinstance(data.get("schedule"), dict) else {}
    parser = data.get("parser") if isinstance(data.get("parser"), dict) else {}

    warnings: list[str] = []

    policy = _as_str(schedule.get("policy"), default=ScheduleConfig.policy).lower()
    if policy not in SCHEDULE_POLICIES:
        warnings.append(f"schedule.policy {policy!r} unknown; using {ScheduleConfig.policy}")
        policy = ScheduleConfig.policy

    interval_s, interval_warning = coerce_interval(schedule.get("interval_s"), default=ScheduleConfig.interval_s)
    if interval_warning:
        warnings.append(interval_warning)

    blocked_marker, marker_warning = _blocked_marker(parser.get("blocked_marker"))
    if marker_warning:
        warnings.append(marker_warning)

    events_raw = paths.get("events")
    notes = _as_str_list(project.get("notes")) if "notes" in project else list(ProjectConfig.notes)
    milestones = _milestones_from(data.get("milestones"))
    estimates = _estimates_from(data.get("estimates"))
    goals = _goals_from(data.get("goals"))

    cfg = TrackerConfig(
        project=ProjectConfig(
            name=_as_str(project.get("name"), default=ProjectConfig.name),
            start_date=_as_str(project.get("start_date"), default=ProjectConfig.start_date),
            target_completion=_as_str(project.get("target_completion"), default=ProjectConfig.target_completion),
            total_estimated_hours=max(
                0, _as_int(project.get("total_estimated_hours"), default=ProjectConfig.total_estimated_hours)
            ),
            default_estimate_hours=max(
                0, _as_int(project.get("default_estimate_hours"), default=ProjectConfig.default_estimate_hours)
            ),
            notes=tuple(notes),
        ),
        paths=_resolve_paths(
            PathsConfig(
                tasks=Path(_as_str(paths.get("tasks"), default=str(PathsConfig.tasks))),
                report=Path(_as_str(paths.get("report"), default=str(PathsConfig.report))),
                log=Path(_as_str(paths.get("log"), default=str(PathsConfig.log))),
                events=Path(events_raw.strip()) if isinstance(events_raw, str) and events_raw.strip() else None,
            ),
            root,
        ),
        schedule=ScheduleConfig(
            interval_s=interval_s,
            policy=policy,
            max_log_entries=max(1, _as_int(schedule.get("max_log_entries"), default=ScheduleConfig.max_log_entries)),
        ),
        parser=ParserConfig(blocked_marker=blocked_marker),
        milestones=milestones if milestones is not None else DEFAULT_MILESTONES,
        estimates=estimates if estimates is not None else dict(DEFAULT_ESTIMATES),
        goals=goals if goals is not None else dict(DEFAULT_GOALS),
    )

    return cfg, "; ".join(warnings)


def explain_tracker_toml(config: TrackerConfig, *, path: Path | None = None) -> str:
    location = str(path) if path is not None else CONFIG_FILENAME
    marker = repr(config.parser.blocked_marker) if config.parser.blocked_marker else "(disabled)"
    lines = [
        f"{CONFIG_FILENAME} guide ({location})",
        "",
        "[project]",
        f"- name: project name shown in the report header (current: {config.project.name})",
        f"- start_date: informational start date (current: {config.project.start_date})",
        f"- target_completion: informational target date (current: {config.project.target_completion})",
        f"- total_estimated_hours: time-tracking total (current: {config.project.total_estimated_hours})",
        f"- default_estimate_hours: estimate for tasks missing from [estimates] (current: {config.project.default_estimate_hours})",
        f"- notes: lines for the Notes & Updates section (current: {len(config.project.notes)})",
        "",
        "[paths]",
        f"- tasks: checklist to read (current: {config.paths.tasks})",
        f"- report: status report to overwrite (current: {config.paths.report})",
        f"- log: JSON history log (current: {config.paths.log})",
        f"- events: optional JSONL event log (current: {config.paths.events or '(none)'})",
        "",
        "[schedule]",
        f"- interval_s: seconds between cycles (current: {config.schedule.interval_s:g})",
        f"- policy: fixed_rate | fixed_delay (current: {config.schedule.policy})",
        f"- max_log_entries: history entries kept (current: {config.schedule.max_log_entries})",
        "",
        "[parser]",
        f"- blocked_marker: optional bracket character meaning blocked (current: {marker})",
        "",
        "[[milestones]]",
        f"- name, tasks, target, goal: milestone groupings (current: {len(config.milestones)} defined)",
        "",
        "[estimates] / [goals]",
        f"- task number -> hours (current: {len(config.estimates)}), milestone name -> goal (current: {len(config.goals)})",
    ]
    return "\n".join(lines)
