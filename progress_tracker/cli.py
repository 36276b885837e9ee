from __future__ import annotations

import argparse
import contextlib
from dataclasses import dataclass, replace
from datetime import datetime, timezone
import os
from pathlib import Path
import sys
from typing import Any

from . import __version__
from .config import TrackerConfig, coerce_interval, explain_tracker_toml, load_tracker_toml
from .history import load_progress_log
from .paths import config_path, runtime_log_path
from .runtime.events import EventBus
from .runtime.scheduler import run_scheduler
from .tracker import ProgressTracker


@dataclass(frozen=True)
class ConsoleHooks:
    emit_console: bool = True
    log_file: Path | None = None


def _emit_runtime_log(message: str, *, level: str = "info", hooks: ConsoleHooks | None = None) -> None:
    if hooks and hooks.log_file is not None:
        _append_runtime_log(hooks.log_file, level=level, message=message)
    if hooks is None or hooks.emit_console:
        stderr = level in {"warn", "error"}
        print(message, file=sys.stderr if stderr else sys.stdout)


def _append_runtime_log(log_file: Path, *, level: str, message: str) -> None:
    normalized_message = " ".join(message.split())
    stamp = datetime.now(tz=timezone.utc).replace(microsecond=0).isoformat()
    line = f"{stamp} [{level.lower()}] {normalized_message}\n"
    with contextlib.suppress(Exception):
        log_file.parent.mkdir(parents=True, exist_ok=True)
        with log_file.open("a", encoding="utf-8") as handle:
            handle.write(line)


def _console_subscriber(hooks: ConsoleHooks):
    def _handle(event: dict[str, Any]) -> None:
        if event.get("severity") == "debug":
            return
        _emit_runtime_log(str(event.get("message") or ""), level=str(event.get("severity") or "info"), hooks=hooks)

    return _handle


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="progress-tracker",
        description="Rewrite a project status report and progress log from a markdown task checklist.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    sub = parser.add_subparsers(dest="cmd", required=False)

    def add_config_arg(command: argparse.ArgumentParser) -> None:
        command.add_argument("--config", help="Path to progress.toml (default: discovered from the working directory)")

    run = sub.add_parser("run", help="Update now, then keep updating on a fixed interval.")
    run.add_argument("--interval", type=float, default=None, help="Seconds between updates (default from config)")
    run.add_argument("--once", action="store_true", help="Run a single update and exit")
    add_config_arg(run)

    app = sub.add_parser("app", help="Start the live terminal dashboard.")
    app.add_argument("--interval", type=float, default=None, help="Seconds between updates (default from config)")
    add_config_arg(app)

    status = sub.add_parser("status", help="Print the current progress summary without writing files.")
    add_config_arg(status)

    doctor = sub.add_parser("doctor", help="Check config and file locations.")
    add_config_arg(doctor)

    explain = sub.add_parser("config", help="Explain the effective configuration.")
    add_config_arg(explain)

    return parser


def _load_config(args: argparse.Namespace) -> tuple[TrackerConfig, Path, str]:
    path = config_path(getattr(args, "config", None))
    config, warning = load_tracker_toml(path)
    interval = getattr(args, "interval", None)
    if interval is not None:
        interval_s, interval_warning = coerce_interval(interval, default=config.schedule.interval_s, name="--interval")
        if interval_warning:
            warning = "; ".join(part for part in (warning, interval_warning) if part)
        config = replace(config, schedule=replace(config.schedule, interval_s=interval_s))
    return config, path, warning


def _build_tracker(config: TrackerConfig, hooks: ConsoleHooks) -> ProgressTracker:
    event_bus = EventBus(config.paths.events)
    event_bus.subscribe(_console_subscriber(hooks))
    return ProgressTracker(config, event_bus=event_bus)


def cmd_run(args: argparse.Namespace) -> int:
    config, path, warning = _load_config(args)
    hooks = ConsoleHooks(log_file=runtime_log_path(path.parent))
    if warning:
        _emit_runtime_log(f"config: {warning}", level="warn", hooks=hooks)

    tracker = _build_tracker(config, hooks)
    if args.once:
        return 0 if tracker.run() is not None else 1

    _emit_runtime_log(f"Starting {config.project.name} progress tracker...", hooks=hooks)
    _emit_runtime_log(
        f"Updates every {config.schedule.interval_s:g} seconds. Press Ctrl+C to stop.",
        hooks=hooks,
    )
    try:
        run_scheduler(
            tracker.run_cycle,
            interval_s=config.schedule.interval_s,
            policy=config.schedule.policy,
            event_bus=tracker.event_bus,
        )
    except KeyboardInterrupt:
        _emit_runtime_log("status: stopped", hooks=hooks)
        return 130
    return 0


def _terminal_text_ui_unavailable_reason() -> str:
    if not sys.stdout.isatty():
        return "stdout is not a terminal"
    term = os.environ.get("TERM", "").strip().lower()
    if term in {"", "dumb"}:
        return f"TERM={term or 'unset'}"
    return ""


def _run_terminal_app_entry(*, config: TrackerConfig) -> int:
    from .app import run_terminal_app

    return run_terminal_app(config=config)


def cmd_app(args: argparse.Namespace) -> int:
    reason = _terminal_text_ui_unavailable_reason()
    if reason:
        print(f"Dashboard unavailable ({reason}); falling back to text updates.", file=sys.stderr)
        return cmd_run(argparse.Namespace(interval=args.interval, once=False, config=args.config))

    config, _path, warning = _load_config(args)
    if warning:
        print(f"config: {warning}", file=sys.stderr)
    try:
        return _run_terminal_app_entry(config=config)
    except ModuleNotFoundError as exc:
        if exc.name != "textual":
            raise
        print("Dashboard requires `textual`; falling back to text updates.", file=sys.stderr)
        return cmd_run(argparse.Namespace(interval=args.interval, once=False, config=args.config))


def cmd_status(args: argparse.Namespace) -> int:
    config, _path, warning = _load_config(args)
    if warning:
        print(f"config: {warning}", file=sys.stderr)
    tracker = _build_tracker(config, ConsoleHooks())
    snapshot = tracker.snapshot()
    summary = snapshot.summary
    lines = [
        f"{config.project.name}: {summary.completed}/{summary.total} tasks completed ({summary.completed_percent}%)",
        f"- in progress: {summary.in_progress} ({summary.in_progress_percent}%)",
        f"- not started: {summary.not_started} ({summary.not_started_percent}%)",
        f"- blocked: {summary.blocked} ({summary.blocked_percent}%)",
    ]
    for milestone in snapshot.milestones:
        lines.append(f"- {milestone.name}: {milestone.completed}/{milestone.total} ({milestone.percent}%) {milestone.status}")
    print("\n".join(lines))
    return 0


def cmd_doctor(args: argparse.Namespace) -> int:
    config, path, warning = _load_config(args)
    lines, problems = _doctor_report(config, path, warning)
    print("\n".join(lines))
    if problems:
        print("\nProblems:", file=sys.stderr)
        for problem in problems:
            print(f"- {problem}", file=sys.stderr)
        return 1
    return 0


def _doctor_report(config: TrackerConfig, path: Path, warning: str) -> tuple[list[str], list[str]]:
    problems: list[str] = []
    if warning:
        problems.append(f"config: {warning}")

    paths = config.paths
    if not paths.tasks.is_file():
        problems.append(f"tasks checklist not found: {paths.tasks}")

    bus = EventBus()
    log = load_progress_log(paths.log, now=datetime.now(tz=timezone.utc), event_bus=bus)
    for event in bus.recent(min_severity="warn"):
        problems.append(event["message"])

    for target in (paths.report.parent, paths.log.parent):
        if target.exists() and not os.access(target, os.W_OK):
            problems.append(f"directory not writable: {target}")

    lines = [
        "progress-tracker doctor",
        f"- config: {path} ({'present' if path.exists() else 'defaults'})",
        f"- tasks: {paths.tasks} ({'present' if paths.tasks.is_file() else 'missing'})",
        f"- report: {paths.report}",
        f"- log: {paths.log} ({len(log.entries)} entries)",
        f"- events: {paths.events or '(disabled)'}",
        f"- interval: {config.schedule.interval_s:g}s ({config.schedule.policy})",
        f"- milestones: {len(config.milestones)}",
        f"- blocked marker: {config.parser.blocked_marker or '(disabled)'}",
    ]
    return lines, problems


def cmd_config(args: argparse.Namespace) -> int:
    config, path, warning = _load_config(args)
    print(explain_tracker_toml(config, path=path))
    if warning:
        print(f"\nconfig: {warning}", file=sys.stderr)
        return 1
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    argv = list(argv) if argv is not None else list(sys.argv[1:])
    if not argv:
        argv = ["run"]
    args = parser.parse_args(argv)

    if args.cmd == "run":
        return cmd_run(args)
    if args.cmd == "app":
        return cmd_app(args)
    if args.cmd == "status":
        return cmd_status(args)
    if args.cmd == "doctor":
        return cmd_doctor(args)
    if args.cmd == "config":
        return cmd_config(args)

    parser.error(f"Unknown command: {args.cmd}")
    return 2
