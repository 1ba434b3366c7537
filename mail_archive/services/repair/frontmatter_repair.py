"""Detect legacy-dialect frontmatter and rewrite it as strict YAML."""

import logging
import threading
from pathlib import Path
from typing import Optional

from mail_archive.errors import FilesystemError, FrontmatterParseError
from mail_archive.models.results import RepairReport, RepairResult, RepairStatus
from mail_archive.services.archive_scan import iter_archive_files, map_files
from mail_archive.services.codec.frontmatter_codec import FrontmatterCodec
from mail_archive.utils.path_utils import atomic_write_bytes

logger = logging.getLogger(__name__)


class FrontmatterRepairer:
    """
    Scan an archive tree and repair frontmatter that fails strict parsing.

    Each file is tried with the strict loader first; only on failure is the
    legacy loader used, and its normalized mapping re-serialized with the
    strict dumper. The body after the closing delimiter is never touched.
    """

    def __init__(
        self,
        root: Path,
        codec: Optional[FrontmatterCodec] = None,
        max_workers: int = 4,
        timeout: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
    ):
        self.root = root
        self.codec = codec or FrontmatterCodec()
        self.max_workers = max_workers
        self.timeout = timeout
        self.cancel_event = cancel_event

    def run(self, apply: bool = False) -> RepairReport:
        """
        Repair the tree.

        Args:
            apply: Write repaired files; the default only reports pending changes

        Returns:
            RepairReport with per-file results in path order

        Raises:
            FileNotFoundError: If the root directory does not exist
        """
        if not self.root.is_dir():
            raise FileNotFoundError(f"Directory not found: {self.root}")

        paths = list(iter_archive_files(self.root))
        logger.info("Scanning %d files under %s", len(paths), self.root)

        results = map_files(
            lambda path: self.repair_file(path, apply=apply),
            paths,
            max_workers=self.max_workers,
            timeout=self.timeout,
            cancel_event=self.cancel_event,
        )
        return RepairReport(results=results, dry_run=not apply)

    def repair_file(self, path: Path, apply: bool = False) -> RepairResult:
        """Classify and optionally repair a single file."""
        try:
            text = path.read_bytes().decode("utf-8")
        except (OSError, UnicodeDecodeError) as e:
            return RepairResult(path, RepairStatus.UNREPAIRABLE, detail=f"unreadable: {e}")

        try:
            self.codec.parse_text(text)
            return RepairResult(path, RepairStatus.ALREADY_VALID)
        except FrontmatterParseError as strict_error:
            logger.debug("Strict parse failed for %s: %s", path, strict_error)

        try:
            metadata, _ = self.codec.parse_text(text, legacy=True)
            repaired = self.codec.rewrite_frontmatter(text, metadata)
        except FrontmatterParseError as e:
            logger.warning("Cannot repair %s: %s", path, e)
            return RepairResult(path, RepairStatus.UNREPAIRABLE, detail=str(e))

        if not apply:
            return RepairResult(path, RepairStatus.REPAIRED, detail="pending")

        try:
            atomic_write_bytes(path, repaired.encode("utf-8"))
        except FilesystemError as e:
            logger.error("Failed to write repaired %s: %s", path, e)
            return RepairResult(path, RepairStatus.UNREPAIRABLE, detail=str(e))

        logger.info("Repaired %s", path)
        return RepairResult(path, RepairStatus.REPAIRED, applied=True)
