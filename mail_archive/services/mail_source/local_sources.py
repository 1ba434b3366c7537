"""Mail sources backed by local mbox files and Maildir directories."""

import logging
import mailbox
from pathlib import Path
from typing import Dict, Iterator, List, Set

from .base import FetchedMessage, MailSource

logger = logging.getLogger(__name__)


class MboxMailSource(MailSource):
    """
    Mail source over mbox files.

    ``path`` is either a single mbox file (one folder named after its stem)
    or a directory whose regular files are mbox folders.
    """

    def __init__(self, path: Path):
        if not path.exists():
            raise FileNotFoundError(f"Mailbox not found: {path}")
        self.path = path
        self._pending: Dict[str, Set[str]] = {}

    def _folder_files(self) -> Dict[str, Path]:
        if self.path.is_file():
            return {self.path.stem: self.path}
        return {
            p.stem: p
            for p in sorted(self.path.iterdir())
            if p.is_file() and not p.name.startswith(".")
        }

    def list_folders(self) -> List[str]:
        return sorted(self._folder_files(), key=lambda name: (name.upper() != "INBOX", name.lower()))

    def fetch(self, folder: str) -> Iterator[FetchedMessage]:
        path = self._folder_files().get(folder)
        if path is None:
            raise FileNotFoundError(f"No mbox folder named {folder!r} in {self.path}")

        mbox = mailbox.mbox(str(path), create=False)
        try:
            for key in mbox.keys():
                yield FetchedMessage(uid=str(key), folder=folder, raw=mbox.get_bytes(key))
        finally:
            mbox.close()

    def delete(self, folder: str, uid: str) -> None:
        self._pending.setdefault(folder, set()).add(uid)

    def expunge(self, folder: str) -> None:
        uids = self._pending.pop(folder, set())
        path = self._folder_files().get(folder)
        if not uids or path is None:
            return

        mbox = mailbox.mbox(str(path), create=False)
        mbox.lock()
        try:
            for uid in uids:
                mbox.discard(int(uid))
            mbox.flush()
        finally:
            mbox.unlock()
            mbox.close()
        logger.info("Removed %d messages from %s", len(uids), path)


class MaildirMailSource(MailSource):
    """
    Mail source over a Maildir++ tree.

    The top-level Maildir is the ``INBOX`` folder; subfolders keep their
    Maildir++ names.
    """

    INBOX = "INBOX"

    def __init__(self, path: Path):
        if not path.exists() or not path.is_dir():
            raise FileNotFoundError(f"Maildir not found: {path}")
        self.path = path
        self._pending: Dict[str, Set[str]] = {}

    def _open(self, folder: str) -> mailbox.Maildir:
        root = mailbox.Maildir(str(self.path), factory=None, create=False)
        if folder == self.INBOX:
            return root
        return root.get_folder(folder)

    def list_folders(self) -> List[str]:
        root = mailbox.Maildir(str(self.path), factory=None, create=False)
        return [self.INBOX] + sorted(root.list_folders(), key=str.lower)

    def fetch(self, folder: str) -> Iterator[FetchedMessage]:
        maildir = self._open(folder)
        for key in sorted(maildir.keys()):
            yield FetchedMessage(uid=key, folder=folder, raw=maildir.get_bytes(key))

    def delete(self, folder: str, uid: str) -> None:
        self._pending.setdefault(folder, set()).add(uid)

    def expunge(self, folder: str) -> None:
        uids = self._pending.pop(folder, set())
        if not uids:
            return
        maildir = self._open(folder)
        for uid in sorted(uids):
            maildir.discard(uid)
        logger.info("Removed %d messages from Maildir folder %s", len(uids), folder)
