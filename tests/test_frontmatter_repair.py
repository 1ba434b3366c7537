"""Tests for FrontmatterRepairer."""

import threading

import pytest

from mail_archive.models.results import RepairStatus
from mail_archive.services.codec.frontmatter_codec import FrontmatterCodec
from mail_archive.services.repair.frontmatter_repair import FrontmatterRepairer

LEGACY_TEXT = (
    "---\n"
    "from: Alice <alice@example.com>\n"
    "date: !Date 2024-01-15\n"
    "subject: !str Hello\n"
    "tags: !!set {INBOX: null}\n"
    "---\n"
    "Body kept   \r\n\n\n\nexactly\n"
)

STRICT_TEXT = (
    "---\n"
    "message_id: <a@example.com>\n"
    "date: '2024-01-15T10:00:00+00:00'\n"
    "from: alice@example.com\n"
    "to: []\n"
    "subject: Hi\n"
    "folder: INBOX\n"
    "attachments: []\n"
    "---\n"
    "Body\n"
)


@pytest.fixture
def archive(tmp_path):
    (tmp_path / "INBOX").mkdir()
    (tmp_path / "INBOX" / "legacy.md").write_text(LEGACY_TEXT, encoding="utf-8")
    (tmp_path / "INBOX" / "strict.md").write_text(STRICT_TEXT, encoding="utf-8")
    (tmp_path / "INBOX" / "broken.md").write_text("---\nfrom: [unclosed\n---\n", encoding="utf-8")
    return tmp_path


class TestFrontmatterRepairer:
    """Test the legacy frontmatter repair pass."""

    def test_dry_run_reports_without_writing(self, archive):
        report = FrontmatterRepairer(archive).run()

        assert report.dry_run
        assert report.repaired == 1
        assert report.already_valid == 1
        assert report.unrepairable == 1
        assert [r.path.name for r in report.pending] == ["legacy.md"]
        assert (archive / "INBOX" / "legacy.md").read_bytes().decode("utf-8") == LEGACY_TEXT

    def test_results_in_path_order(self, archive):
        report = FrontmatterRepairer(archive).run()
        assert [r.path.name for r in report.results] == ["broken.md", "legacy.md", "strict.md"]

    def test_apply_rewrites_frontmatter(self, archive):
        report = FrontmatterRepairer(archive).run(apply=True)

        assert report.repaired == 1
        assert report.pending == []
        text = (archive / "INBOX" / "legacy.md").read_bytes().decode("utf-8")
        assert "!" not in text.split("---\n")[1]
        assert text.endswith("---\nBody kept   \r\n\n\n\nexactly\n")

        metadata, _ = FrontmatterCodec().parse_text(text)
        assert metadata["date"] == "2024-01-15"
        assert metadata["subject"] == "Hello"
        assert metadata["tags"] == ["INBOX"]

    def test_apply_is_idempotent(self, archive):
        FrontmatterRepairer(archive).run(apply=True)
        first = (archive / "INBOX" / "legacy.md").read_bytes()

        report = FrontmatterRepairer(archive).run(apply=True)

        assert report.repaired == 0
        assert report.already_valid == 2
        assert (archive / "INBOX" / "legacy.md").read_bytes() == first

    def test_valid_and_broken_files_untouched(self, archive):
        broken_before = (archive / "INBOX" / "broken.md").read_bytes()
        FrontmatterRepairer(archive).run(apply=True)

        assert (archive / "INBOX" / "strict.md").read_text(encoding="utf-8") == STRICT_TEXT
        assert (archive / "INBOX" / "broken.md").read_bytes() == broken_before

    def test_repaired_file_decodes(self, archive):
        FrontmatterRepairer(archive).run(apply=True)
        document = FrontmatterCodec().decode_file(archive / "INBOX" / "legacy.md", archive)

        assert document.subject == "Hello"
        assert document.folder == "INBOX"
        assert document.body == "Body kept   \r\n\n\n\nexactly"

    def test_attachments_tree_skipped(self, archive):
        stored = archive / "attachments" / "INBOX"
        stored.mkdir(parents=True)
        (stored / "notes_abcdef.md").write_text("not an archive file", encoding="utf-8")

        report = FrontmatterRepairer(archive).run()

        assert all("attachments" not in r.path.parts for r in report.results)

    def test_missing_root_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            FrontmatterRepairer(tmp_path / "missing").run()

    def test_cancelled_run_processes_nothing(self, archive):
        cancel = threading.Event()
        cancel.set()

        report = FrontmatterRepairer(archive, cancel_event=cancel).run(apply=True)

        assert report.results == []
        assert (archive / "INBOX" / "legacy.md").read_bytes().decode("utf-8") == LEGACY_TEXT

    def test_repair_file_status(self, archive):
        repairer = FrontmatterRepairer(archive)

        assert repairer.repair_file(archive / "INBOX" / "strict.md").status == RepairStatus.ALREADY_VALID
        assert repairer.repair_file(archive / "INBOX" / "broken.md").status == RepairStatus.UNREPAIRABLE
