"""Tests for archive file discovery and parallel per-file mapping."""

import threading
import time
from pathlib import Path

import pytest

from mail_archive.services.archive_scan import iter_archive_files, map_files


class TestIterArchiveFiles:
    """Test archive file discovery."""

    def test_skips_attachments_and_hidden_files(self, tmp_path):
        (tmp_path / "INBOX").mkdir()
        (tmp_path / "INBOX" / "b.md").write_text("x", encoding="utf-8")
        (tmp_path / "INBOX" / "a.md").write_text("x", encoding="utf-8")
        (tmp_path / "INBOX" / ".tmp-123.md").write_text("x", encoding="utf-8")
        (tmp_path / "attachments" / "INBOX").mkdir(parents=True)
        (tmp_path / "attachments" / "INBOX" / "notes.md").write_text("x", encoding="utf-8")

        found = [p.relative_to(tmp_path).as_posix() for p in iter_archive_files(tmp_path)]

        assert found == ["INBOX/a.md", "INBOX/b.md"]


class TestMapFiles:
    """Test bounded parallel mapping."""

    def test_results_in_input_order(self):
        paths = [Path(name) for name in ("c", "a", "b")]
        assert map_files(lambda p: p.name, paths, max_workers=3) == ["c", "a", "b"]

    def test_timeout_raised_without_waiting_for_stuck_worker(self):
        release = threading.Event()

        def stuck(path):
            release.wait(5)
            return path

        started = time.monotonic()
        try:
            with pytest.raises(TimeoutError):
                map_files(stuck, [Path("slow.md")], timeout=0.2)
            elapsed = time.monotonic() - started
        finally:
            release.set()

        assert elapsed < 2.0

    def test_pending_files_cancelled_after_timeout(self):
        release = threading.Event()
        seen = []

        def record(path):
            seen.append(path.name)
            if path.name == "slow.md":
                release.wait(5)
            return path

        paths = [Path("slow.md")] + [Path(f"{i}.md") for i in range(20)]
        try:
            with pytest.raises(TimeoutError):
                map_files(record, paths, max_workers=1, timeout=0.2)
        finally:
            release.set()

        assert seen[0] == "slow.md"
        assert len(seen) < len(paths)

    def test_cancel_event_skips_files(self):
        cancel = threading.Event()
        cancel.set()

        assert map_files(lambda p: p, [Path("a.md"), Path("b.md")], cancel_event=cancel) == []
