"""Tests for AttachmentStore."""

import hashlib
import threading
from pathlib import PurePosixPath

import pytest

from mail_archive.errors import AttachmentCollisionError
from mail_archive.services.attachments.attachment_store import AttachmentStore


class TestAttachmentStore:
    """Test content-addressed attachment placement."""

    @pytest.fixture
    def store(self, tmp_path):
        return AttachmentStore(tmp_path)

    def test_relative_path_format(self, store):
        digest = hashlib.sha256(b"data").hexdigest()
        result = store.relative_path("INBOX.Work", "report.pdf", digest)

        assert result == PurePosixPath(f"attachments/INBOX/Work/report_{digest[:6]}.pdf")

    def test_relative_path_with_counter(self, store):
        result = store.relative_path("INBOX", "report.pdf", "abcdef0123", counter=2)
        assert result == PurePosixPath("attachments/INBOX/report_abcdef_2.pdf")

    def test_relative_path_without_extension(self, store):
        result = store.relative_path("INBOX", "README", "abcdef0123")
        assert result == PurePosixPath("attachments/INBOX/README_abcdef")

    def test_hostile_filename_sanitized(self, store):
        result = store.relative_path("INBOX", "../../etc/passwd", "abcdef0123")

        assert result.parts[:2] == ("attachments", "INBOX")
        assert ".." not in result.parts
        assert len(result.parts) == 3

    def test_empty_filename_uses_fallback(self, store):
        result = store.relative_path("INBOX", "", "abcdef0123")
        assert result.name == "attachment_abcdef"

    def test_store_writes_payload(self, store, tmp_path):
        ref = store.store("INBOX", "report.pdf", b"payload")

        assert (tmp_path / ref.stored_path).read_bytes() == b"payload"
        assert ref.original_filename == "report.pdf"
        assert ref.size == 7
        assert ref.content_hash == hashlib.sha256(b"payload").hexdigest()

    def test_identical_payload_deduplicated(self, store, tmp_path):
        first = store.store("INBOX", "report.pdf", b"payload")
        second = store.store("INBOX", "report.pdf", b"payload")

        assert first == second
        assert len(list((tmp_path / "attachments" / "INBOX").iterdir())) == 1

    def test_same_name_different_payload_gets_distinct_paths(self, store):
        first = store.store("INBOX", "report.pdf", b"version one")
        second = store.store("INBOX", "report.pdf", b"version two")

        assert first.stored_path != second.stored_path

    def test_collision_with_foreign_content_raises(self, store, tmp_path):
        relative = store.relative_path("INBOX", "report.pdf", hashlib.sha256(b"payload").hexdigest())
        target = tmp_path / relative
        target.parent.mkdir(parents=True)
        target.write_bytes(b"something else")

        with pytest.raises(AttachmentCollisionError) as exc_info:
            store.store("INBOX", "report.pdf", b"payload")
        assert exc_info.value.path == target
        assert target.read_bytes() == b"something else"

    def test_counter_retry_avoids_collision(self, store, tmp_path):
        relative = store.relative_path("INBOX", "report.pdf", hashlib.sha256(b"payload").hexdigest())
        (tmp_path / relative).parent.mkdir(parents=True)
        (tmp_path / relative).write_bytes(b"something else")

        ref = store.store("INBOX", "report.pdf", b"payload", counter=2)

        assert ref.stored_path.endswith("_2.pdf")
        assert (tmp_path / ref.stored_path).read_bytes() == b"payload"

    def test_long_filename_truncated_to_name_limit(self, store, tmp_path):
        digest = hashlib.sha256(b"data").hexdigest()
        result = store.relative_path("INBOX", "a" * 300 + ".pdf", digest, counter=2)

        assert len(result.name.encode("utf-8")) <= 255
        assert result.name.endswith(f"_{digest[:6]}_2.pdf")

    def test_multibyte_filename_truncated_on_character_boundary(self, store):
        result = store.relative_path("INBOX", "é" * 200 + ".pdf", "abcdef0123")

        encoded = result.name.encode("utf-8")
        assert len(encoded) <= 255
        assert encoded.decode("utf-8") == result.name
        assert result.name.startswith("éé")

    def test_long_filename_stored(self, store, tmp_path):
        ref = store.store("INBOX", "a" * 300 + ".pdf", b"payload")

        assert (tmp_path / ref.stored_path).read_bytes() == b"payload"
        assert ref.original_filename == "a" * 300 + ".pdf"

    def test_concurrent_store_of_same_payload(self, store, tmp_path):
        barrier = threading.Barrier(2)
        refs = []

        def worker():
            barrier.wait()
            refs.append(store.store("INBOX", "report.pdf", b"shared payload"))

        threads = [threading.Thread(target=worker) for _ in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(refs) == 2
        assert refs[0] == refs[1]
        stored = [p for p in (tmp_path / "attachments" / "INBOX").iterdir()]
        assert len(stored) == 1
        assert stored[0].read_bytes() == b"shared payload"
