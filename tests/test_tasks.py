from __future__ import annotations

from pathlib import Path
from tempfile import TemporaryDirectory
import unittest

from progress_tracker.runtime.events import EventBus
from progress_tracker.tasks import TaskStatus, filter_status, parse_tasks, read_tasks
from tests.helpers import SAMPLE_CHECKLIST, write_checklist


class TestParseTasks(unittest.TestCase):
    def test_only_grammar_lines_become_records(self) -> None:
        tasks = parse_tasks(SAMPLE_CHECKLIST)
        self.assertEqual([1, 2, 3, 4, 7], [task.number for task in tasks])

    def test_status_characters_map_to_statuses(self) -> None:
        tasks = parse_tasks("- [x] 1. Done\n- [-] 2. Doing\n- [ ] 3. Todo\n")
        self.assertEqual(
            [TaskStatus.COMPLETED, TaskStatus.IN_PROGRESS, TaskStatus.NOT_STARTED],
            [task.status for task in tasks],
        )

    def test_title_is_trimmed_and_raw_line_kept(self) -> None:
        line = "- [-] 3. Design canvas   "
        tasks = parse_tasks(line)
        self.assertEqual(1, len(tasks))
        self.assertEqual("Design canvas", tasks[0].title)
        self.assertEqual(line, tasks[0].raw_line)
        self.assertEqual(TaskStatus.IN_PROGRESS, tasks[0].status)

    def test_unknown_status_character_is_not_a_task(self) -> None:
        self.assertEqual([], parse_tasks("- [?] 5. Unknown marker\n- [X] 6. Uppercase\n"))

    def test_task_numbers_are_ascii_digits_only(self) -> None:
        text = "- [x] ٣. Arabic-indic three\n- [ ] ４. Fullwidth four\n- [ ] 5. Plain five\n"
        self.assertEqual([5], [task.number for task in parse_tasks(text)])

    def test_blocked_marker_is_opt_in(self) -> None:
        text = "- [!] 5. Waiting on vendor\n- [ ] 6. Todo\n"
        self.assertEqual([6], [task.number for task in parse_tasks(text)])

        tasks = parse_tasks(text, blocked_marker="!")
        self.assertEqual([5, 6], [task.number for task in tasks])
        self.assertEqual(TaskStatus.BLOCKED, tasks[0].status)
        self.assertEqual([5], [task.number for task in filter_status(tasks, TaskStatus.BLOCKED)])

    def test_parsing_is_idempotent(self) -> None:
        self.assertEqual(parse_tasks(SAMPLE_CHECKLIST), parse_tasks(SAMPLE_CHECKLIST))

    def test_empty_text_has_no_tasks(self) -> None:
        self.assertEqual([], parse_tasks(""))

    def test_status_labels(self) -> None:
        self.assertEqual("In Progress", TaskStatus.IN_PROGRESS.label)
        self.assertEqual("Blocked", TaskStatus.BLOCKED.label)


class TestReadTasks(unittest.TestCase):
    def test_reads_checklist_file(self) -> None:
        with TemporaryDirectory() as tmp:
            path = write_checklist(Path(tmp), "- [x] 1. Setup project\n- [ ] 2. Build UI\n")
            tasks = read_tasks(path)
            self.assertEqual(["Setup project", "Build UI"], [task.title for task in tasks])

    def test_missing_file_degrades_to_zero_tasks_and_publishes(self) -> None:
        with TemporaryDirectory() as tmp:
            bus = EventBus()
            captured: list[dict[str, object]] = []
            bus.subscribe(captured.append)

            tasks = read_tasks(Path(tmp) / "missing.md", event_bus=bus)

            self.assertEqual([], tasks)
            self.assertEqual(["tasks.read.error"], [event["type"] for event in captured])
            self.assertEqual("warn", captured[0]["severity"])


if __name__ == "__main__":
    unittest.main()
