"""Deterministic, atomic placement of archive files."""

import logging
import threading
from email.utils import parseaddr
from pathlib import Path
from typing import Callable, Dict, Optional

from mail_archive.models.email_document import EmailDocument
from mail_archive.models.results import WriteOutcome, WriteResult
from mail_archive.services.codec.frontmatter_codec import FrontmatterCodec
from mail_archive.utils.path_utils import address_initials, atomic_write_bytes, folder_to_relative_path

logger = logging.getLogger(__name__)

MAX_SUFFIX = 10_000


def base_filename(document: EmailDocument) -> str:
    """
    Filename stem derived from (date, from, to).

    Examples:
        2024-01-15, alice@x.com -> bob@y.com gives ``email_2024-01-15_AL_to_BO``
    """
    sender = parseaddr(document.from_address)[1] or document.from_address
    recipient = ""
    if document.to_addresses:
        recipient = parseaddr(document.to_addresses[0])[1] or document.to_addresses[0]

    return (
        f"email_{document.date.strftime('%Y-%m-%d')}"
        f"_{address_initials(sender)}_to_{address_initials(recipient)}"
    )


class ArchiveWriter:
    """Write EmailDocuments under ``<export_root>/<folder>/``."""

    def __init__(self, export_root: Path, codec: Optional[FrontmatterCodec] = None):
        """
        Initialize writer.

        Args:
            export_root: Archive root directory
            codec: Frontmatter codec used to serialize documents
        """
        self.export_root = export_root
        self.codec = codec or FrontmatterCodec()
        self._folder_locks: Dict[Path, threading.Lock] = {}
        self._guard = threading.Lock()

    def folder_directory(self, folder: str) -> Path:
        return self.export_root / folder_to_relative_path(folder)

    def write(
        self,
        document: EmailDocument,
        skip_existing: bool = True,
        after_write: Optional[Callable[[WriteResult], None]] = None,
    ) -> WriteResult:
        """
        Write a document to the archive.

        Args:
            document: Document to write
            skip_existing: Treat an existing file with the base name as already exported
            after_write: Hook run only after a successful ``Written`` outcome

        Returns:
            WriteResult with the outcome and final path

        Raises:
            FilesystemError: If the write or rename fails

        Notes:
            - Existence alone decides skip-existing; content is not compared
            - Colliding names get ``_2``, ``_3``, ... in scan order
        """
        directory = self.folder_directory(document.folder)
        stem = base_filename(document)
        content = self.codec.render(document).encode("utf-8")

        with self._lock_for(directory):
            target = directory / f"{stem}.md"

            if target.exists():
                if skip_existing:
                    logger.debug("Skipping existing %s", target)
                    return WriteResult(WriteOutcome.SKIPPED_EXISTING, target)
                target = self._next_free_name(directory, stem)

            atomic_write_bytes(target, content)

        logger.debug("Wrote %s", target)
        result = WriteResult(WriteOutcome.WRITTEN, target)

        if after_write is not None:
            after_write(result)
        return result

    @staticmethod
    def _next_free_name(directory: Path, stem: str) -> Path:
        for counter in range(2, MAX_SUFFIX):
            candidate = directory / f"{stem}_{counter}.md"
            if not candidate.exists():
                return candidate
        raise RuntimeError(f"No free filename for {stem} in {directory}")

    def _lock_for(self, directory: Path) -> threading.Lock:
        with self._guard:
            lock = self._folder_locks.get(directory)
            if lock is None:
                lock = self._folder_locks[directory] = threading.Lock()
            return lock
