from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path

from progress_tracker.config import PathsConfig, TrackerConfig, default_config


FIXED_NOW = datetime(2025, 1, 9, 12, 30, 0, tzinfo=timezone.utc)

SAMPLE_CHECKLIST = """# Implementation Plan

- [x] 1. Setup project
  - notes that are not tasks
- [x] 2. Build rendering engine
- [-] 3. Design canvas
- [ ] 4. Wire up parameter bindings
- [ ] 7. Component library
* [x] 8. Not a dash list item
- [x] nine. Not numbered
"""


def write_checklist(root: Path, text: str, *, name: str = "tasks.md") -> Path:
    path = root / name
    path.write_text(text, encoding="utf-8")
    return path


def tracker_config(root: Path, **overrides) -> TrackerConfig:
    config = default_config(root)
    if overrides:
        config = replace(config, **overrides)
    return config


def with_paths(config: TrackerConfig, **paths) -> TrackerConfig:
    current = config.paths
    return replace(
        config,
        paths=PathsConfig(
            tasks=paths.get("tasks", current.tasks),
            report=paths.get("report", current.report),
            log=paths.get("log", current.log),
            events=paths.get("events", current.events),
        ),
    )
