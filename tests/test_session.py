"""Editor-event wiring and session lifecycle tests for ``Waymark``."""

from __future__ import annotations

import json
import tempfile
import unittest
from pathlib import Path

from waymark.host import HeadlessHost
from waymark.paths import normalize_path
from waymark.scheduler import ManualClock, Scheduler
from waymark.session import Waymark
from waymark.state import SessionClock


class SessionCase(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        self.bookmarks_path = self.root / "data" / "bookmarks.json"
        self.clock = ManualClock()
        self.scheduler = Scheduler(self.clock)
        self.jobs: list = []
        self.host = HeadlessHost()
        self.session = self._session(self.host)
        self.state = self.session.state
        self.fname = self._file("a.py")

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def _session(self, host: HeadlessHost) -> Waymark:
        return Waymark(
            host.callbacks(),
            scheduler=self.scheduler,
            clock=SessionClock(monotonic_ms=lambda: self.clock() * 1000.0, epoch=lambda: 1_700_000_000.0),
            spawn=self.jobs.append,
            bookmarks_path=self.bookmarks_path,
        )

    def _file(self, name: str, lines: int = 100) -> str:
        path = self.root / name
        path.write_text("".join(f"line {index}\n" for index in range(1, lines + 1)), encoding="utf-8")
        return normalize_path(str(path))

    def _tick(self, seconds: float) -> None:
        self.clock.advance(seconds)
        self.scheduler.run_due()


class IdleTrackingTests(SessionCase):
    def test_idle_cursor_records_automark(self) -> None:
        self.host.set_cursor(self.fname, 10)
        self.session.on_key()

        self._tick(2.9)
        self.assertEqual(self.state.automarks, [])

        self._tick(0.2)
        self.assertEqual([mark.row for mark in self.state.automarks], [10])

    def test_keystrokes_restart_idle_timer(self) -> None:
        self.host.set_cursor(self.fname, 10)
        self.session.on_key()
        self._tick(2.0)
        self.session.on_key()
        self._tick(2.0)
        self.assertEqual(self.state.automarks, [])

        self._tick(1.5)
        self.assertEqual(len(self.state.automarks), 1)

    def test_insert_mode_keys_do_not_arm_timer(self) -> None:
        self.host.set_cursor(self.fname, 10)
        self.session.on_key("i")
        self._tick(5.0)
        self.assertEqual(self.state.automarks, [])

    def test_leaving_insert_mode_records_position(self) -> None:
        self.host.set_cursor(self.fname, 25)
        self.session.on_insert_leave()
        self.assertEqual([mark.row for mark in self.state.automarks], [25])

    def test_ignored_buffer_is_not_tracked(self) -> None:
        self.host.set_cursor(self.fname, 10)
        self.host.ignored = True
        self.session.on_key()
        self._tick(5.0)
        self.session.on_buffer_leave()
        self.assertEqual(self.state.automarks, [])


class ForcedRecordTests(SessionCase):
    def test_buffer_leave_records_even_small_moves(self) -> None:
        self.host.set_cursor(self.fname, 10)
        self.session.on_buffer_leave()
        self.host.set_cursor(self.fname, 30)
        self.session.on_buffer_leave()
        self.assertEqual([mark.row for mark in self.state.automarks], [10, 30])

    def test_buffer_leave_during_navigation_is_skipped(self) -> None:
        self.host.set_cursor(self.fname, 10)
        self.state.navigating = True
        self.session.on_buffer_leave()
        self.assertEqual(self.state.automarks, [])

    def test_definition_request_records_origin(self) -> None:
        self.host.set_cursor(self.fname, 42)
        self.session.on_lsp_request("textDocument/hover")
        self.assertEqual(self.state.automarks, [])

        self.session.on_lsp_request("textDocument/definition")
        self.assertEqual([mark.row for mark in self.state.automarks], [42])

    def test_completed_lsp_request_is_ignored(self) -> None:
        self.host.set_cursor(self.fname, 42)
        self.session.on_lsp_request("textDocument/definition", pending=False)
        self.assertEqual(self.state.automarks, [])


class BufferLifecycleTests(SessionCase):
    def test_unload_keeps_edited_row_and_enter_reanchors(self) -> None:
        self.host.set_cursor(self.fname, 10)
        self.session.add_bookmark()
        self.host.insert_lines(self.fname, 1, 5)

        self.session.on_buffer_unload(self.fname)
        self.assertEqual(self.state.bookmarks[0].row, 15)
        self.assertEqual(self.host.anchor_count(self.fname), 0)

        self.session.on_buffer_enter(self.fname)
        self.assertEqual(self.host.anchor_count(self.fname), 1)

    def test_write_collapses_bookmarks_merged_by_edits(self) -> None:
        self.host.set_cursor(self.fname, 10)
        self.session.add_bookmark()
        self.host.set_cursor(self.fname, 11)
        self.session.add_bookmark()

        self.host.delete_lines(self.fname, 10, 2)
        self.session.on_buffer_write(self.fname)

        self.assertEqual(len(self.state.bookmarks), 1)
        self.assertEqual(self.state.bookmarks[0].row, 10)
        self.assertEqual(self.host.anchor_count(self.fname), 1)

    def test_rename_moves_marks_to_new_path(self) -> None:
        self.host.set_cursor(self.fname, 10)
        self.session.add_bookmark()
        self.session.on_buffer_leave()
        new_name = str(self.root / "b.py")

        self.session.on_buffer_rename(self.fname, new_name)

        self.assertEqual(self.state.bookmarks[0].fname, normalize_path(new_name))


class LifecycleTests(SessionCase):
    def test_shutdown_saves_and_startup_restores(self) -> None:
        self.host.set_cursor(self.fname, 10)
        self.session.add_bookmark()

        self.assertTrue(self.session.shutdown())

        data = json.loads(self.bookmarks_path.read_text(encoding="utf-8"))
        self.assertEqual([entry["row"] for entry in data["bookmarks"]], [10])
        self.assertEqual(self.jobs, [])

        restored = self._session(HeadlessHost())
        self.assertEqual(restored.startup(), 1)
        self.assertEqual(restored.get_bookmarks()[0].fname, self.fname)

    def test_debounced_save_runs_on_background_job(self) -> None:
        self.host.set_cursor(self.fname, 10)
        self.session.add_bookmark()

        self._tick(0.5)
        self.assertEqual(len(self.jobs), 1)
        self.jobs[0]()

        self.assertTrue(self.bookmarks_path.exists())

    def test_startup_prunes_bookmarks_of_deleted_files(self) -> None:
        gone = self._file("gone.py")
        self.host.set_cursor(self.fname, 10)
        self.session.add_bookmark()
        self.host.set_cursor(gone, 1)
        self.session.add_bookmark()
        self.session.shutdown()
        Path(gone).unlink()

        restored = self._session(HeadlessHost())

        self.assertEqual(restored.startup(), 1)
        self.assertEqual(restored.get_bookmarks()[0].fname, self.fname)

    def test_idle_after_jump_refreshes_landing_mark_without_duplicating(self) -> None:
        other = self._file("b.py")
        self.host.set_cursor(self.fname, 10)
        self.session.on_buffer_leave()
        self.host.set_cursor(other, 50)
        self.session.on_buffer_leave()

        self.session.prev_automark(2)
        self.assertFalse(self.state.navigating)
        self.session.on_key()
        self._tick(3.5)

        self.assertEqual([(mark.fname, mark.row) for mark in self.state.automarks], [(other, 50), (self.fname, 10)])


if __name__ == "__main__":
    unittest.main()
