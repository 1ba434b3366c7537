"""EmailDocument <-> Markdown file with YAML frontmatter."""

import hashlib
import logging
import re
from datetime import date, datetime, timezone
from email.utils import getaddresses, parsedate_to_datetime
from pathlib import Path, PurePosixPath
from typing import List, Optional, Tuple

import frontmatter

from mail_archive.errors import FrontmatterParseError
from mail_archive.models.email_document import AttachmentRef, EmailDocument
from .message_decoder import derive_message_id, format_address
from .yaml_dialects import LegacyYAMLHandler, StrictYAMLHandler, load_mapping, normalize_value

logger = logging.getLogger(__name__)

ATTACHMENTS_HEADING = "### Attachments"

_FRONTMATTER_BLOCK = re.compile(r"\A---[ \t]*\r?\n(.*?\r?\n)?---[ \t]*(?:\r?\n|\Z)", re.S)
_ATTACHMENT_LINK = re.compile(r"^- \[((?:\\.|[^\]\\])*)\]\(<([^>]*)>\)$")


def split_frontmatter(text: str) -> Tuple[str, str]:
    """
    Split file text into the frontmatter block and everything after it.

    Returns:
        (yaml text, rest of the file after the closing delimiter line)

    Raises:
        FrontmatterParseError: If the file does not start with a frontmatter block
    """
    match = _FRONTMATTER_BLOCK.match(text)
    if not match:
        raise FrontmatterParseError("Frontmatter block is missing")
    return match.group(1) or "", text[match.end():]


def _escape_link_text(text: str) -> str:
    return text.replace("\\", "\\\\").replace("[", "\\[").replace("]", "\\]")


def _unescape_link_text(text: str) -> str:
    return re.sub(r"\\(.)", r"\1", text)


def render_attachment_section(attachments) -> str:
    lines = [ATTACHMENTS_HEADING]
    for ref in attachments:
        lines.append(f"- [{_escape_link_text(ref.original_filename)}](<{ref.stored_path}>)")
    return "\n".join(lines)


def _split_attachment_section(body: str, paths: List[str]) -> Tuple[str, dict]:
    """Separate the rendered attachment list from the body if it matches ``paths``."""
    if not paths:
        return body, {}

    marker = f"\n\n{ATTACHMENTS_HEADING}\n"
    if body.startswith(f"{ATTACHMENTS_HEADING}\n"):
        index, head = 0, ""
    else:
        index = body.rfind(marker)
        if index < 0:
            return body, {}
        head = body[:index]

    section = body[index:].strip().split("\n")[1:]
    names = {}
    linked_paths = []
    for line in section:
        match = _ATTACHMENT_LINK.match(line)
        if not match:
            return body, {}
        names[match.group(2)] = _unescape_link_text(match.group(1))
        linked_paths.append(match.group(2))

    if linked_paths != list(paths):
        return body, {}
    return head, names


def _parse_date(value) -> datetime:
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    else:
        text = str(value or "").strip()
        if not text:
            raise FrontmatterParseError("Frontmatter date is missing")
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            try:
                parsed = parsedate_to_datetime(text)
            except (TypeError, ValueError, IndexError) as e:
                raise FrontmatterParseError(f"Frontmatter date is invalid: {text!r}") from e
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _parse_recipients(value) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [format_address(name, addr) for name, addr in getaddresses([value]) if addr]
    if isinstance(value, list):
        return [str(v) for v in value if v not in (None, "")]
    raise FrontmatterParseError(f"Frontmatter 'to' has unsupported type {type(value).__name__}")


def file_digest(path: Path) -> Tuple[str, int]:
    """sha256 hex digest and size of a file."""
    digest = hashlib.sha256()
    size = 0
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(65536), b""):
            digest.update(chunk)
            size += len(chunk)
    return digest.hexdigest(), size


class FrontmatterCodec:
    """Serialize EmailDocuments to archive files and read them back."""

    def __init__(self):
        self.handler = StrictYAMLHandler()
        self.legacy_handler = LegacyYAMLHandler()

    def to_metadata(self, document: EmailDocument) -> dict:
        """Frontmatter mapping for a document, in canonical key order."""
        return {
            "message_id": document.message_id,
            "date": document.date.isoformat(),
            "from": document.from_address,
            "to": list(document.to_addresses),
            "subject": document.subject,
            "folder": document.folder,
            "attachments": [ref.stored_path for ref in document.attachments],
        }

    def encode(self, document: EmailDocument) -> Tuple[str, str]:
        """
        Encode a document.

        Returns:
            (strict YAML frontmatter, Markdown body with attachment links)
        """
        body = document.body
        if document.attachments:
            section = render_attachment_section(document.attachments)
            body = f"{body}\n\n{section}" if body else section
        return self.dump_metadata(self.to_metadata(document)), body

    def render(self, document: EmailDocument) -> str:
        """Complete archive file text for a document."""
        metadata = self.to_metadata(document)
        _, body = self.encode(document)
        post = frontmatter.Post(body, handler=self.handler, **metadata)
        return frontmatter.dumps(post, handler=self.handler) + "\n"

    def dump_metadata(self, metadata: dict) -> str:
        """Strict YAML text for a metadata mapping (no delimiters)."""
        return self.handler.export(metadata)

    def rewrite_frontmatter(self, text: str, metadata: dict) -> str:
        """Replace the frontmatter block of ``text``, keeping everything after it byte-for-byte."""
        _, rest = split_frontmatter(text)
        return f"---\n{self.dump_metadata(metadata)}\n---\n{rest}"

    def parse_text(self, text: str, legacy: bool = False) -> Tuple[dict, str]:
        """
        Parse the frontmatter mapping out of file text.

        Args:
            text: Full archive file text
            legacy: Accept the tagged legacy dialect and normalize its values

        Returns:
            (metadata mapping, rest of the file)

        Raises:
            FrontmatterParseError: If the block is missing or does not load
        """
        fm_text, rest = split_frontmatter(text)
        if legacy:
            metadata = normalize_value(load_mapping(self.legacy_handler, fm_text))
            if isinstance(metadata.get("to"), str):
                metadata["to"] = _parse_recipients(metadata["to"])
            return metadata, rest
        return load_mapping(self.handler, fm_text), rest

    def decode_file(
        self,
        path: Path,
        export_root: Optional[Path] = None,
        legacy: bool = False,
        resolve_attachments: bool = True,
    ) -> EmailDocument:
        """
        Read an archive file back into an EmailDocument.

        Args:
            path: Markdown file
            export_root: Archive root used to resolve attachment paths and folder
            legacy: Tolerate the legacy tagged dialect
            resolve_attachments: Recompute digest and size of stored attachments

        Raises:
            FrontmatterParseError: If the file cannot be read, or the frontmatter
                is absent, not strict YAML, or lacks required fields
        """
        try:
            text = path.read_bytes().decode("utf-8")
        except UnicodeDecodeError as e:
            raise FrontmatterParseError(f"{path} is not UTF-8: {e}", path=path) from e
        except OSError as e:
            raise FrontmatterParseError(f"Cannot read {path}: {e}", path=path) from e

        try:
            metadata, rest = self.parse_text(text, legacy=legacy)
            return self.document_from_metadata(
                metadata, rest, path, export_root, resolve_attachments
            )
        except FrontmatterParseError as e:
            if e.path is None:
                e.path = path
            raise

    def document_from_metadata(
        self,
        metadata: dict,
        rest: str,
        path: Optional[Path] = None,
        export_root: Optional[Path] = None,
        resolve_attachments: bool = True,
    ) -> EmailDocument:
        sender = metadata.get("from")
        if not sender or not isinstance(sender, str):
            raise FrontmatterParseError("Frontmatter 'from' is missing")

        sent_date = _parse_date(metadata.get("date"))
        subject = "" if metadata.get("subject") is None else str(metadata.get("subject"))
        to_addresses = _parse_recipients(metadata.get("to"))
        folder = self._folder_for(metadata, path, export_root)

        message_id = metadata.get("message_id")
        if not message_id:
            seed = f"{sent_date.isoformat()}|{sender}|{subject}".encode("utf-8")
            message_id = derive_message_id(seed)

        paths = metadata.get("attachments") or []
        if not isinstance(paths, list):
            raise FrontmatterParseError("Frontmatter 'attachments' must be a sequence")
        paths = [str(p) for p in paths]

        body, names = _split_attachment_section(rest.strip(), paths)
        attachments = [
            self._attachment_ref(p, names.get(p), export_root, resolve_attachments) for p in paths
        ]

        return EmailDocument(
            message_id=str(message_id),
            date=sent_date,
            from_address=sender,
            to_addresses=tuple(to_addresses),
            subject=subject,
            folder=folder,
            body=body,
            attachments=tuple(attachments),
        )

    @staticmethod
    def _folder_for(metadata: dict, path: Optional[Path], export_root: Optional[Path]) -> str:
        folder = metadata.get("folder")
        if folder:
            return str(folder)

        tags = metadata.get("tags")
        if isinstance(tags, list) and tags:
            return str(tags[0])

        if path is not None and export_root is not None:
            try:
                relative = path.parent.relative_to(export_root)
            except ValueError:
                relative = None
            if relative is not None and relative.parts:
                return "/".join(relative.parts)
        return "INBOX"

    @staticmethod
    def _attachment_ref(
        stored_path: str,
        name: Optional[str],
        export_root: Optional[Path],
        resolve: bool,
    ) -> AttachmentRef:
        content_hash, size = "", 0
        if resolve and export_root is not None:
            target = export_root / stored_path
            if target.is_file():
                content_hash, size = file_digest(target)
            else:
                logger.debug("Attachment %s not found under %s", stored_path, export_root)
        return AttachmentRef(
            original_filename=name or PurePosixPath(stored_path).name,
            content_hash=content_hash,
            size=size,
            stored_path=stored_path,
        )
