from __future__ import annotations

import argparse
import contextlib
import io
from pathlib import Path
from tempfile import TemporaryDirectory
import unittest
from unittest.mock import patch

from progress_tracker import cli
from tests.helpers import SAMPLE_CHECKLIST, write_checklist


def _run_main(argv: list[str]) -> tuple[int, str, str]:
    out = io.StringIO()
    err = io.StringIO()
    with contextlib.redirect_stdout(out), contextlib.redirect_stderr(err):
        code = cli.main(argv)
    return code, out.getvalue(), err.getvalue()


class TestCliRun(unittest.TestCase):
    def test_run_once_writes_report_log_and_runtime_log(self) -> None:
        with TemporaryDirectory() as tmp:
            root = Path(tmp)
            write_checklist(root, SAMPLE_CHECKLIST)

            code, out, _err = _run_main(["run", "--once", "--config", str(root / "progress.toml")])

            self.assertEqual(0, code)
            self.assertIn("Progress updated: 2/5 tasks completed (40%)", out)
            self.assertTrue((root / "progress-tracker.md").exists())
            self.assertTrue((root / "progress-log.json").exists())
            runtime_log = (root / ".progress" / "runtime.log").read_text(encoding="utf-8")
            self.assertIn("[info] Progress updated", runtime_log)

    def test_no_arguments_starts_the_scheduler(self) -> None:
        with TemporaryDirectory() as tmp:
            with (
                patch("progress_tracker.cli.config_path", return_value=Path(tmp) / "progress.toml"),
                patch("progress_tracker.cli.run_scheduler") as scheduler_mock,
            ):
                code, out, _err = _run_main([])
        self.assertEqual(0, code)
        scheduler_mock.assert_called_once()
        self.assertEqual(300.0, scheduler_mock.call_args.kwargs["interval_s"])
        self.assertIn("Press Ctrl+C to stop.", out)

    def test_non_finite_interval_override_is_rejected(self) -> None:
        with TemporaryDirectory() as tmp:
            config = str(Path(tmp) / "progress.toml")
            with patch("progress_tracker.cli.run_scheduler") as scheduler_mock:
                code, _out, err = _run_main(["run", "--interval", "inf", "--config", config])
        self.assertEqual(0, code)
        self.assertEqual(300.0, scheduler_mock.call_args.kwargs["interval_s"])
        self.assertIn("--interval inf out of range", err)

    def test_scheduler_receives_the_unguarded_cycle(self) -> None:
        with TemporaryDirectory() as tmp:
            config = str(Path(tmp) / "progress.toml")
            with patch("progress_tracker.cli.run_scheduler") as scheduler_mock:
                _run_main(["run", "--interval", "5", "--config", config])
        cycle = scheduler_mock.call_args.args[0]
        self.assertEqual("run_cycle", cycle.__name__)

    def test_keyboard_interrupt_exits_130(self) -> None:
        with TemporaryDirectory() as tmp:
            config = str(Path(tmp) / "progress.toml")
            with patch("progress_tracker.cli.run_scheduler", side_effect=KeyboardInterrupt):
                code, _out, _err = _run_main(["run", "--interval", "5", "--config", config])
        self.assertEqual(130, code)

    def test_status_prints_summary_without_writing(self) -> None:
        with TemporaryDirectory() as tmp:
            root = Path(tmp)
            write_checklist(root, "- [x] 1. Setup project\n- [ ] 2. Build UI\n")

            code, out, _err = _run_main(["status", "--config", str(root / "progress.toml")])

            self.assertEqual(0, code)
            self.assertIn("1/2 tasks completed (50%)", out)
            self.assertIn("Foundation & Core Engine: 1/2 (50%) In Progress", out)
            self.assertFalse((root / "progress-tracker.md").exists())

    def test_doctor_flags_missing_checklist_and_corrupt_log(self) -> None:
        with TemporaryDirectory() as tmp:
            root = Path(tmp)
            (root / "progress-log.json").write_text("{", encoding="utf-8")

            code, out, err = _run_main(["doctor", "--config", str(root / "progress.toml")])

            self.assertEqual(1, code)
            self.assertIn("progress-tracker doctor", out)
            self.assertIn("tasks checklist not found", err)
            self.assertIn("progress log unreadable", err)

    def test_doctor_passes_on_healthy_project(self) -> None:
        with TemporaryDirectory() as tmp:
            root = Path(tmp)
            write_checklist(root, SAMPLE_CHECKLIST)
            code, _out, err = _run_main(["doctor", "--config", str(root / "progress.toml")])
            self.assertEqual(0, code)
            self.assertEqual("", err)

    def test_config_explains_effective_settings(self) -> None:
        with TemporaryDirectory() as tmp:
            code, out, _err = _run_main(["config", "--config", str(Path(tmp) / "progress.toml")])
        self.assertEqual(0, code)
        self.assertIn("[schedule]", out)


class TestCliAppMode(unittest.TestCase):
    def test_cmd_app_uses_dashboard_when_terminal_is_capable(self) -> None:
        args = argparse.Namespace(interval=12.0, config=None)
        with (
            patch("progress_tracker.cli._terminal_text_ui_unavailable_reason", return_value=""),
            patch("progress_tracker.cli._run_terminal_app_entry", return_value=7) as app_mock,
            patch("progress_tracker.cli.cmd_run", return_value=99) as run_mock,
        ):
            code = cli.cmd_app(args)

        self.assertEqual(7, code)
        self.assertEqual(12.0, app_mock.call_args.kwargs["config"].schedule.interval_s)
        run_mock.assert_not_called()

    def test_cmd_app_falls_back_to_text_updates_when_terminal_is_dumb(self) -> None:
        args = argparse.Namespace(interval=30.0, config=None)
        with (
            patch("progress_tracker.cli._terminal_text_ui_unavailable_reason", return_value="TERM=dumb"),
            patch("progress_tracker.cli._run_terminal_app_entry", return_value=7) as app_mock,
            patch("progress_tracker.cli.cmd_run", return_value=42) as run_mock,
            contextlib.redirect_stderr(io.StringIO()),
        ):
            code = cli.cmd_app(args)

        self.assertEqual(42, code)
        app_mock.assert_not_called()
        run_args = run_mock.call_args.args[0]
        self.assertEqual(30.0, run_args.interval)
        self.assertFalse(run_args.once)

    def test_cmd_app_falls_back_when_textual_missing(self) -> None:
        args = argparse.Namespace(interval=None, config=None)
        missing = ModuleNotFoundError("No module named 'textual'")
        missing.name = "textual"
        with (
            patch("progress_tracker.cli._terminal_text_ui_unavailable_reason", return_value=""),
            patch("progress_tracker.cli._run_terminal_app_entry", side_effect=missing),
            patch("progress_tracker.cli.cmd_run", return_value=5) as run_mock,
            contextlib.redirect_stderr(io.StringIO()),
        ):
            code = cli.cmd_app(args)

        self.assertEqual(5, code)
        run_mock.assert_called_once()
        self.assertFalse(run_mock.call_args.args[0].once)


if __name__ == "__main__":
    unittest.main()
