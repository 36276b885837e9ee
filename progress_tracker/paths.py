from __future__ import annotations

from pathlib import Path

from .config import CONFIG_FILENAME


def find_project_root(start: Path | None = None) -> Path:
    """Best-effort project root discovery.

    We prefer a `progress.toml` sentinel, then a `tasks.md` checklist. If
    neither is found walking upwards, return the start directory so the
    tracker still runs (and reports zero tasks).
    """

    here = (start or Path.cwd()).resolve()
    for candidate in [here, *here.parents]:
        if (candidate / CONFIG_FILENAME).exists():
            return candidate
    for candidate in [here, *here.parents]:
        if (candidate / "tasks.md").exists():
            return candidate
    return here


def config_path(explicit: str | Path | None = None, *, start: Path | None = None) -> Path:
    if explicit:
        return Path(explicit).expanduser().resolve()
    return find_project_root(start) / CONFIG_FILENAME


def runtime_log_path(root: Path) -> Path:
    return root / ".progress" / "runtime.log"
