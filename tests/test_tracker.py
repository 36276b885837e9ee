from __future__ import annotations

import json
from pathlib import Path
from tempfile import TemporaryDirectory
import unittest

from progress_tracker.runtime.events import EventBus
from progress_tracker.tracker import ProgressTracker
from tests.helpers import FIXED_NOW, SAMPLE_CHECKLIST, tracker_config, with_paths, write_checklist


class TestProgressTracker(unittest.TestCase):
    def test_run_cycle_writes_report_and_log(self) -> None:
        with TemporaryDirectory() as tmp:
            root = Path(tmp)
            write_checklist(root, SAMPLE_CHECKLIST)
            config = tracker_config(root)
            tracker = ProgressTracker(config, event_bus=EventBus(), clock=lambda: FIXED_NOW)

            result = tracker.run_cycle()

            self.assertEqual(5, result.summary.total)
            self.assertEqual(1, result.log_entries)
            report = config.paths.report.read_text(encoding="utf-8")
            self.assertIn("- **Total Tasks**: 5", report)
            self.assertIn("- 3. Design canvas", report)
            payload = json.loads(config.paths.log.read_text(encoding="utf-8"))
            self.assertEqual(2, payload["entries"][0]["completedTasks"])
            self.assertIs(result, tracker.last_result)

    def test_missing_checklist_is_zero_tasks_not_a_crash(self) -> None:
        with TemporaryDirectory() as tmp:
            root = Path(tmp)
            bus = EventBus()
            tracker = ProgressTracker(tracker_config(root), event_bus=bus, clock=lambda: FIXED_NOW)

            result = tracker.run()

            self.assertIsNotNone(result)
            assert result is not None
            self.assertEqual(0, result.summary.total)
            types = [event["type"] for event in bus.recent()]
            self.assertIn("tasks.read.error", types)
            self.assertEqual("cycle.completed", types[-1])

    def test_write_failure_is_published_not_raised(self) -> None:
        with TemporaryDirectory() as tmp:
            root = Path(tmp)
            write_checklist(root, SAMPLE_CHECKLIST)
            blocker = root / "not-a-dir"
            blocker.write_text("", encoding="utf-8")
            config = with_paths(tracker_config(root), report=blocker / "report.md")
            bus = EventBus()
            tracker = ProgressTracker(config, event_bus=bus, clock=lambda: FIXED_NOW)

            with self.assertRaises(OSError):
                tracker.run_cycle()

            self.assertIsNone(tracker.run())
            last = bus.recent()[-1]
            self.assertEqual("cycle.error", last["type"])
            self.assertEqual("error", last["severity"])

    def test_completed_message_matches_summary(self) -> None:
        with TemporaryDirectory() as tmp:
            root = Path(tmp)
            write_checklist(root, "- [x] 1. Setup project\n- [ ] 2. Build UI\n")
            bus = EventBus()
            ProgressTracker(tracker_config(root), event_bus=bus, clock=lambda: FIXED_NOW).run()
            self.assertEqual(
                "Progress updated: 1/2 tasks completed (50%)",
                bus.recent()[-1]["message"],
            )

    def test_snapshot_does_not_write(self) -> None:
        with TemporaryDirectory() as tmp:
            root = Path(tmp)
            write_checklist(root, SAMPLE_CHECKLIST)
            config = tracker_config(root)
            snapshot = ProgressTracker(config, event_bus=EventBus()).snapshot()
            self.assertEqual(2, snapshot.summary.completed)
            self.assertFalse(config.paths.report.exists())
            self.assertFalse(config.paths.log.exists())


if __name__ == "__main__":
    unittest.main()
