"""Rule-based retention classification of archive files."""

import json
import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import parseaddr
from pathlib import Path
from typing import List, Optional

from mail_archive.config.sort_config import SortConfig
from mail_archive.errors import FrontmatterParseError
from mail_archive.models.email_document import EmailDocument
from mail_archive.models.sort_rule import MatchTarget, SortEntry, SortReport, SortRule
from mail_archive.services.archive_scan import iter_archive_files, map_files
from mail_archive.services.codec.frontmatter_codec import FrontmatterCodec
from mail_archive.services.reporting.metadata_formatter import MetadataFormatter
from mail_archive.utils.path_utils import atomic_write_bytes

logger = logging.getLogger(__name__)

CATCH_ALL_RULE = "default"
UNREADABLE_RULE = "unreadable"


@dataclass
class _FileOutcome:
    relative_path: str
    entry: SortEntry
    error: Optional[str] = None
    summary: Optional[str] = None


def document_fields(document: EmailDocument, now: datetime) -> dict:
    """Addressable fields of a document, keyed by MatchTarget value."""
    sender = parseaddr(document.from_address)[1] or document.from_address
    age = (now - document.date).days
    return {
        MatchTarget.SENDER.value: sender,
        MatchTarget.SUBJECT.value: document.subject,
        MatchTarget.FOLDER.value: document.folder,
        MatchTarget.AGE_DAYS.value: max(age, 0),
    }


class EmailClassifier:
    """
    Assign exactly one retention category to every archive file.

    Rules are evaluated in ascending priority; the first match wins and the
    configured default category catches everything else. The report is a
    pure function of the files, the rules and ``now``.
    """

    def __init__(
        self,
        config: SortConfig,
        codec: Optional[FrontmatterCodec] = None,
        formatter: Optional[MetadataFormatter] = None,
        max_workers: int = 4,
        timeout: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
    ):
        """
        Initialize classifier.

        Args:
            config: Validated rule set
            codec: Frontmatter codec used to read files
            formatter: Formatter for verbose per-file summaries
            max_workers: Thread pool size
            timeout: Per-file timeout in seconds
            cancel_event: Set to stop scheduling further files
        """
        self.config = config
        self.rules: List[SortRule] = config.build_rules()
        self.default_category = config.default_category
        self.codec = codec or FrontmatterCodec()
        self.formatter = formatter or MetadataFormatter({})
        self.max_workers = max_workers
        self.timeout = timeout
        self.cancel_event = cancel_event

    def classify_document(self, document: EmailDocument, now: datetime) -> SortEntry:
        """Evaluate the rules against one decoded document."""
        fields = document_fields(document, now)
        for rule in self.rules:
            reason = rule.evaluate(fields)
            if reason is not None:
                return SortEntry(category=rule.category, matched_rule=rule.name, reasons=[reason])

        return SortEntry(
            category=self.default_category,
            matched_rule=CATCH_ALL_RULE,
            reasons=["no rule matched"],
        )

    def classify(self, root: Path, now: Optional[datetime] = None, verbose: bool = False) -> SortReport:
        """
        Classify every archive file under ``root``.

        Args:
            root: Archive directory (the attachments subtree is skipped)
            now: Reference time for message age; defaults to the current UTC time
            verbose: Log a decoded summary line per file

        Returns:
            SortReport with one entry per file

        Raises:
            FileNotFoundError: If root does not exist
        """
        if not root.is_dir():
            raise FileNotFoundError(f"Directory not found: {root}")

        now = now or datetime.now(timezone.utc)
        paths = list(iter_archive_files(root))
        logger.info("Classifying %d files under %s", len(paths), root)

        outcomes = map_files(
            lambda path: self._classify_file(root, path, now, verbose),
            paths,
            max_workers=self.max_workers,
            timeout=self.timeout,
            cancel_event=self.cancel_event,
        )

        report = SortReport()
        for outcome in outcomes:
            report.entries[outcome.relative_path] = outcome.entry
            if outcome.error is not None:
                report.errors.append(outcome.relative_path)
            if verbose and outcome.summary:
                logger.info(
                    "%s -> %s (%s)\n  %s",
                    outcome.relative_path,
                    outcome.entry.category.value,
                    outcome.entry.matched_rule,
                    outcome.summary,
                )
        return report

    def _classify_file(self, root: Path, path: Path, now: datetime, verbose: bool) -> _FileOutcome:
        relative = path.relative_to(root).as_posix()
        try:
            document = self._decode(root, path)
        except FrontmatterParseError as e:
            logger.warning("Cannot decode %s: %s", relative, e)
            entry = SortEntry(
                category=self.default_category,
                matched_rule=UNREADABLE_RULE,
                reasons=[f"frontmatter unreadable: {e}"],
            )
            return _FileOutcome(relative, entry, error=str(e))

        entry = self.classify_document(document, now)
        summary = None
        if verbose:
            summary = self.formatter.format_source_metadata(
                sender=document.from_address,
                sent_date=document.date,
                subject=document.subject,
            )
        return _FileOutcome(relative, entry, summary=summary)

    def _decode(self, root: Path, path: Path) -> EmailDocument:
        """Strict decode, falling back to the legacy dialect without touching the file."""
        try:
            return self.codec.decode_file(path, root, resolve_attachments=False)
        except FrontmatterParseError as e:
            logger.debug("Strict decode failed for %s, trying legacy dialect: %s", path, e)
        return self.codec.decode_file(path, root, legacy=True, resolve_attachments=False)

    @staticmethod
    def render_report(report: SortReport) -> str:
        """JSON text of a report; identical reports render byte-identically."""
        return json.dumps(report.to_dict(), indent=2, sort_keys=True, ensure_ascii=False) + "\n"

    def save_report(self, report: SortReport, output_path: Path) -> None:
        """Write the report JSON atomically."""
        atomic_write_bytes(output_path, self.render_report(report).encode("utf-8"))
        logger.info("Sort report written to %s", output_path)
