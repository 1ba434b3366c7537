"""Content-addressed attachment storage with per-path deduplication."""

import hashlib
import logging
import threading
from pathlib import Path, PurePosixPath
from typing import Dict, Optional

from mail_archive.errors import AttachmentCollisionError
from mail_archive.models.email_document import AttachmentRef
from mail_archive.services.codec.frontmatter_codec import file_digest
from mail_archive.utils.path_utils import (
    MAX_NAME_BYTES,
    atomic_write_bytes,
    folder_to_relative_path,
    sanitize_filename,
    truncate_utf8,
)

logger = logging.getLogger(__name__)

ATTACHMENTS_DIRNAME = "attachments"
SHORT_HASH_LENGTH = 6
# longer "extensions" are treated as part of the stem
MAX_SUFFIX_BYTES = 32


class AttachmentStore:
    """
    Place attachment payloads under ``<export_root>/attachments/<folder>/``.

    The stored name is ``<sanitized stem>_<hash6><ext>``. Byte-identical
    payloads with the same name in the same folder share one file.
    """

    def __init__(self, export_root: Path):
        """
        Initialize store.

        Args:
            export_root: Archive root directory
        """
        self.export_root = export_root
        self._locks: Dict[Path, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def relative_path(
        self,
        folder: str,
        filename: str,
        content_hash: str,
        counter: Optional[int] = None,
    ) -> PurePosixPath:
        """
        Deterministic stored path for an attachment, relative to the export root.

        Examples:
            >>> store.relative_path("INBOX", "report.pdf", "a1b2c3d4...")
            PurePosixPath('attachments/INBOX/report_a1b2c3.pdf')
        """
        safe_name = sanitize_filename(filename)
        suffix = PurePosixPath(safe_name).suffix
        if len(suffix.encode("utf-8")) > MAX_SUFFIX_BYTES:
            suffix = ""
        stem = safe_name[: -len(suffix)] if suffix else safe_name

        tail = f"_{content_hash[:SHORT_HASH_LENGTH]}"
        if counter is not None:
            tail = f"{tail}_{counter}"

        # <stem><tail><suffix> must fit in one directory entry
        budget = MAX_NAME_BYTES - len(tail.encode("utf-8")) - len(suffix.encode("utf-8"))
        stem = truncate_utf8(stem, budget) or "attachment"

        return PurePosixPath(ATTACHMENTS_DIRNAME) / folder_to_relative_path(folder) / f"{stem}{tail}{suffix}"

    def store(
        self,
        folder: str,
        filename: str,
        data: bytes,
        counter: Optional[int] = None,
    ) -> AttachmentRef:
        """
        Store a payload, reusing an identical existing file.

        Args:
            folder: Source mailbox folder
            filename: Original attachment filename
            data: Payload bytes
            counter: Disambiguating suffix used when retrying after a collision

        Returns:
            AttachmentRef for the stored (or already present) file

        Raises:
            AttachmentCollisionError: If the target path holds different content
            FilesystemError: If the write fails
        """
        content_hash = hashlib.sha256(data).hexdigest()
        relative = self.relative_path(folder, filename, content_hash, counter)
        target = self.export_root / relative

        with self._lock_for(target):
            if target.exists():
                existing_hash, existing_size = file_digest(target)
                if existing_size != len(data) or existing_hash != content_hash:
                    raise AttachmentCollisionError(
                        f"{relative} already exists with different content", path=target
                    )
                logger.debug("Reusing stored attachment %s", relative)
            else:
                atomic_write_bytes(target, data)
                logger.debug("Stored attachment %s (%d bytes)", relative, len(data))

        return AttachmentRef(
            original_filename=filename,
            content_hash=content_hash,
            size=len(data),
            stored_path=relative.as_posix(),
        )

    def _lock_for(self, target: Path) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(target)
            if lock is None:
                lock = self._locks[target] = threading.Lock()
            return lock
