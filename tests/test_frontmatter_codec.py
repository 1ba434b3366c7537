"""Tests for FrontmatterCodec and the YAML dialects."""

import hashlib
from datetime import datetime, timedelta, timezone

import pytest

from mail_archive.errors import FrontmatterParseError
from mail_archive.models.email_document import AttachmentRef, EmailDocument
from mail_archive.services.codec.frontmatter_codec import FrontmatterCodec, split_frontmatter


@pytest.fixture
def codec():
    return FrontmatterCodec()


@pytest.fixture
def document():
    return EmailDocument(
        message_id="<abc123@example.com>",
        date=datetime(2024, 1, 15, 10, 0, tzinfo=timezone.utc),
        from_address="Alice <alice@example.com>",
        to_addresses=("Bob <bob@example.com>",),
        subject="Quarterly report",
        folder="INBOX",
        body="Hello Bob\n\n> earlier text",
    )


def stored_ref(root, relative, payload, name):
    target = root / relative
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(payload)
    return AttachmentRef(
        original_filename=name,
        content_hash=hashlib.sha256(payload).hexdigest(),
        size=len(payload),
        stored_path=relative,
    )


class TestRender:
    """Test rendering documents to file text."""

    def test_render_key_order(self, codec, document):
        text = codec.render(document)
        keys = [line.split(":", 1)[0] for line in text.split("\n") if line and line[0].isalpha() and ":" in line]

        assert text.startswith("---\n")
        assert keys[:7] == ["message_id", "date", "from", "to", "subject", "folder", "attachments"]

    def test_render_has_no_tags(self, codec, document):
        fm_text, _ = split_frontmatter(codec.render(document))
        assert "!" not in fm_text

    def test_render_is_deterministic(self, codec, document):
        assert codec.render(document) == codec.render(document)

    def test_render_ends_with_newline(self, codec, document):
        assert codec.render(document).endswith("Hello Bob\n\n> earlier text\n")

    def test_encode_appends_attachment_links(self, codec, document, tmp_path):
        ref = stored_ref(tmp_path, "attachments/INBOX/report_abcdef.pdf", b"pdf", "report.pdf")
        doc = EmailDocument(**{**document.__dict__, "attachments": (ref,)})

        _, body = codec.encode(doc)

        assert body.endswith("### Attachments\n- [report.pdf](<attachments/INBOX/report_abcdef.pdf>)")


class TestRoundTrip:
    """Test decode(render(doc)) == doc."""

    def test_round_trip_plain(self, codec, document, tmp_path):
        path = tmp_path / "INBOX" / "email.md"
        path.parent.mkdir()
        path.write_text(codec.render(document), encoding="utf-8")

        assert codec.decode_file(path, tmp_path) == document

    def test_round_trip_with_attachments(self, codec, document, tmp_path):
        refs = (
            stored_ref(tmp_path, "attachments/INBOX/a_111111.pdf", b"first", "a.pdf"),
            stored_ref(tmp_path, "attachments/INBOX/b_1_222222.txt", b"second", "b[1].txt"),
        )
        doc = EmailDocument(**{**document.__dict__, "attachments": refs})
        path = tmp_path / "INBOX" / "email.md"
        path.parent.mkdir()
        path.write_text(codec.render(doc), encoding="utf-8")

        assert codec.decode_file(path, tmp_path) == doc

    def test_round_trip_empty_body_and_recipients(self, codec, document, tmp_path):
        doc = EmailDocument(**{**document.__dict__, "body": "", "to_addresses": ()})
        path = tmp_path / "email.md"
        path.write_text(codec.render(doc), encoding="utf-8")

        assert codec.decode_file(path, tmp_path) == doc

    def test_round_trip_yaml_special_subject(self, codec, document, tmp_path):
        doc = EmailDocument(**{**document.__dict__, "subject": "Re: [ext] #1 - yes: no? 'quoted' \"x\""})
        path = tmp_path / "email.md"
        path.write_text(codec.render(doc), encoding="utf-8")

        assert codec.decode_file(path, tmp_path).subject == doc.subject

    def test_round_trip_non_utc_offset(self, codec, document, tmp_path):
        when = datetime(2024, 1, 15, 10, 0, tzinfo=timezone(timedelta(hours=2)))
        doc = EmailDocument(**{**document.__dict__, "date": when})
        path = tmp_path / "email.md"
        path.write_text(codec.render(doc), encoding="utf-8")

        assert codec.decode_file(path, tmp_path).date == when


class TestStrictParsing:
    """Test strict dialect rejection."""

    def test_missing_block_rejected(self, codec, tmp_path):
        path = tmp_path / "plain.md"
        path.write_text("# Just markdown\n", encoding="utf-8")

        with pytest.raises(FrontmatterParseError) as exc_info:
            codec.decode_file(path)
        assert exc_info.value.path == path

    def test_tagged_value_rejected(self, codec):
        text = "---\nfrom: a@example.com\ndate: !Date 2024-01-15\n---\nbody\n"

        with pytest.raises(FrontmatterParseError):
            codec.parse_text(text)

    def test_set_literal_rejected(self, codec):
        text = "---\nfrom: a@example.com\ntags: !!set {INBOX: null}\n---\n"

        with pytest.raises(FrontmatterParseError):
            codec.parse_text(text)

    def test_non_mapping_rejected(self, codec):
        with pytest.raises(FrontmatterParseError):
            codec.parse_text("---\n- a\n- b\n---\n")

    def test_missing_sender_rejected(self, codec, tmp_path):
        path = tmp_path / "email.md"
        path.write_text("---\ndate: '2024-01-15T10:00:00+00:00'\n---\nbody\n", encoding="utf-8")

        with pytest.raises(FrontmatterParseError):
            codec.decode_file(path)

    def test_invalid_utf8_rejected(self, codec, tmp_path):
        path = tmp_path / "email.md"
        path.write_bytes(b"---\nfrom: \xff\n---\n")

        with pytest.raises(FrontmatterParseError):
            codec.decode_file(path)

    def test_unreadable_file_rejected(self, codec, tmp_path):
        path = tmp_path / "vanished.md"

        with pytest.raises(FrontmatterParseError) as exc_info:
            codec.decode_file(path)
        assert exc_info.value.path == path


class TestLegacyParsing:
    """Test tolerant reading of the legacy tagged dialect."""

    LEGACY = (
        "---\n"
        "from: Alice <alice@example.com>\n"
        "to: Bob <bob@example.com>, carol@example.com\n"
        "date: !Date 2024-01-15\n"
        "subject: !str Hello\n"
        "tags: !!set {INBOX: null}\n"
        "---\n"
        "Body text\n"
    )

    def test_legacy_tags_unwrapped(self, codec):
        metadata, rest = codec.parse_text(self.LEGACY, legacy=True)

        assert metadata["date"] == "2024-01-15"
        assert metadata["subject"] == "Hello"
        assert metadata["tags"] == ["INBOX"]
        assert metadata["to"] == ["Bob <bob@example.com>", "carol@example.com"]
        assert rest == "Body text\n"

    def test_legacy_document(self, codec, tmp_path):
        path = tmp_path / "Work" / "old.md"
        path.parent.mkdir()
        path.write_text(self.LEGACY, encoding="utf-8")

        doc = codec.decode_file(path, tmp_path, legacy=True)

        assert doc.folder == "INBOX"
        assert doc.date == datetime(2024, 1, 15, tzinfo=timezone.utc)
        assert doc.body == "Body text"
        assert doc.message_id.endswith("@mail-archive.invalid>")

    def test_folder_from_directory_when_untagged(self, codec, tmp_path):
        path = tmp_path / "Work" / "old.md"
        path.parent.mkdir()
        path.write_text("---\nfrom: a@example.com\ndate: 2024-01-15\n---\n", encoding="utf-8")

        assert codec.decode_file(path, tmp_path, legacy=True).folder == "Work"

    def test_python_tuple_unwrapped(self, codec):
        text = "---\nfrom: a@example.com\nto: !!python/tuple [b@example.com]\n---\n"
        metadata, _ = codec.parse_text(text, legacy=True)

        assert metadata["to"] == ["b@example.com"]

    def test_broken_yaml_still_rejected(self, codec):
        with pytest.raises(FrontmatterParseError):
            codec.parse_text("---\nfrom: [unclosed\n---\n", legacy=True)


class TestRewriteFrontmatter:
    """Test replacing the frontmatter while keeping the body bytes."""

    def test_body_preserved_byte_for_byte(self, codec):
        text = "---\nsubject: !str Hi\n---\nLine one  \r\n\n\n\nLine two\n"
        rewritten = codec.rewrite_frontmatter(text, {"subject": "Hi"})

        assert rewritten == "---\nsubject: Hi\n---\nLine one  \r\n\n\n\nLine two\n"

    def test_split_frontmatter_empty_block(self):
        assert split_frontmatter("---\n---\nbody") == ("", "body")
