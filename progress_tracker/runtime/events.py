from __future__ import annotations

from collections import deque
from collections.abc import Callable
import contextlib
from datetime import datetime, timezone
import json
import secrets
import time
from pathlib import Path
from typing import Any

EventHandler = Callable[[dict[str, Any]], Any]

SEVERITIES = ("debug", "info", "warn", "error")
RECENT_EVENTS_MAX = 200


def utc_now_iso() -> str:
    return datetime.now(tz=timezone.utc).replace(microsecond=0).isoformat()


def new_event_id() -> str:
    stamp = int(time.time() * 1000)
    token = secrets.token_hex(4)
    return f"evt-{stamp}-{token}"


class EventBus:
    """Observability sink for tracker cycles.

    Every published event is kept in a short in-memory history, handed to
    subscribers (console printer, dashboard) and, when the bus was built with
    a log path, appended to a JSONL file.
    """

    def __init__(self, log_path: Path | None = None, *, recent_max: int = RECENT_EVENTS_MAX) -> None:
        self._log_path = log_path
        self._handlers: list[EventHandler] = []
        self._recent: deque[dict[str, Any]] = deque(maxlen=max(1, recent_max))
        self.events_written = 0
        self.write_failures = 0
        if self._log_path is not None:
            self._prepare_log_path()

    def subscribe(self, handler: EventHandler) -> Callable[[], None]:
        self._handlers.append(handler)

        def _unsubscribe() -> None:
            with contextlib.suppress(ValueError):
                self._handlers.remove(handler)

        return _unsubscribe

    def recent(self, limit: int | None = None, *, min_severity: str = "debug") -> list[dict[str, Any]]:
        floor = _severity_rank(min_severity)
        events = [event for event in self._recent if _severity_rank(event["severity"]) >= floor]
        if limit is not None:
            events = events[-max(0, limit) :]
        return events

    def publish(self, event: dict[str, Any]) -> dict[str, Any]:
        normalized = self._normalize_event(event)
        self._recent.append(normalized)
        if self._log_path is not None:
            self._append_to_disk(normalized)
        self._dispatch(normalized)
        return normalized

    def publish_event(
        self,
        event_type: str,
        message: str,
        *,
        severity: str = "info",
        source: str = "tracker",
        metadata: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        return self.publish(
            {
                "type": str(event_type or "tracker.event"),
                "severity": str(severity or "info"),
                "source": str(source or "tracker"),
                "message": str(message or ""),
                "metadata": metadata or {},
            }
        )

    def _prepare_log_path(self) -> None:
        self._log_path.parent.mkdir(parents=True, exist_ok=True)
        self._log_path.touch(exist_ok=True)

    def _append_to_disk(self, event: dict[str, Any]) -> None:
        if self._log_path is None:
            return
        # The audit log must never take a cycle down with it.
        try:
            with self._log_path.open("a", encoding="utf-8") as handle:
                handle.write(json.dumps(event, sort_keys=True, ensure_ascii=True))
                handle.write("\n")
        except OSError:
            self.write_failures += 1
            return
        self.events_written += 1

    def _normalize_event(self, event: dict[str, Any]) -> dict[str, Any]:
        metadata = event.get("metadata")
        if not isinstance(metadata, dict):
            metadata = {}
        severity = str(event.get("severity") or "info").lower()
        if severity not in SEVERITIES:
            severity = "info"
        return {
            "id": str(event.get("id") or new_event_id()),
            "ts": str(event.get("ts") or utc_now_iso()),
            "type": str(event.get("type") or "tracker.event"),
            "severity": severity,
            "source": str(event.get("source") or "tracker"),
            "message": str(event.get("message") or ""),
            "metadata": metadata,
        }

    def _dispatch(self, event: dict[str, Any]) -> None:
        for handler in list(self._handlers):
            try:
                handler(event)
            except Exception:
                continue


def _severity_rank(severity: str) -> int:
    try:
        return SEVERITIES.index(severity)
    except ValueError:
        return 1
