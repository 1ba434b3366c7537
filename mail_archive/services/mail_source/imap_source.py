"""Thin imaplib-backed mail source."""

import imaplib
import logging
import re
import socket
import ssl
from typing import Iterator, List, Optional

from .base import FetchedMessage, MailSource

logger = logging.getLogger(__name__)

_LIST_LINE = re.compile(r"^\((?P<flags>[^)]*)\)\s+(?:\"(?P<delim>[^\"]*)\"|NIL)\s+(?P<name>.+)$")


def parse_folder_line(line: bytes) -> Optional[str]:
    """Folder name from one LIST response line, or None for \\Noselect entries."""
    text = line.decode("utf-8", errors="replace")
    match = _LIST_LINE.match(text)
    if not match:
        return None

    flags = {token.lower() for token in match.group("flags").split()}
    if "\\noselect" in flags:
        return None

    name = match.group("name").strip()
    if name.startswith('"') and name.endswith('"'):
        name = name[1:-1].replace(r"\\", "\\").replace(r"\"", '"')
    return name


def quote_mailbox_name(folder_name: str) -> str:
    escaped = folder_name.replace("\\", "\\\\").replace('"', r"\"")
    return f'"{escaped}"'


class ImapMailSource(MailSource):
    """Fetch raw messages over IMAPS. One instance holds one connection."""

    def __init__(
        self,
        host: str,
        port: int,
        username: str,
        password: str,
        timeout: Optional[float] = None,
    ):
        self.host = host
        self.port = port
        self.username = username
        self._password = password
        self.timeout = timeout
        self._imap: Optional[imaplib.IMAP4_SSL] = None
        self._selected: Optional[str] = None

    def _connection(self) -> imaplib.IMAP4_SSL:
        if self._imap is None:
            logger.debug("Connecting to %s:%s as %s", self.host, self.port, self.username)
            try:
                imap = imaplib.IMAP4_SSL(
                    self.host,
                    self.port,
                    ssl_context=ssl.create_default_context(),
                    timeout=self.timeout,
                )
                imap.login(self.username, self._password)
            except socket.timeout as e:
                raise TimeoutError(f"Timed out connecting to {self.host}:{self.port}") from e
            self._imap = imap
        return self._imap

    def _select(self, folder: str) -> imaplib.IMAP4_SSL:
        imap = self._connection()
        if self._selected != folder:
            status, data = imap.select(quote_mailbox_name(folder))
            if status != "OK":
                raise imaplib.IMAP4.error(f"Cannot select {folder}: {data!r}")
            self._selected = folder
        return imap

    def list_folders(self) -> List[str]:
        status, data = self._connection().list()
        if status != "OK" or data is None:
            return ["INBOX"]

        folders = [name for name in (parse_folder_line(line) for line in data if line) if name]
        if not any(name.upper() == "INBOX" for name in folders):
            folders.append("INBOX")
        return sorted(folders, key=lambda name: (name.upper() != "INBOX", name.lower()))

    def fetch(self, folder: str) -> Iterator[FetchedMessage]:
        try:
            imap = self._select(folder)
            status, data = imap.uid("SEARCH", None, "ALL")
            if status != "OK" or not data or data[0] is None:
                return
            uids = data[0].split()

            for uid in uids:
                status, fetch_data = imap.uid("FETCH", uid, "(BODY.PEEK[])")
                if status != "OK" or not fetch_data:
                    logger.warning("Failed to fetch UID %s in %s", uid.decode(), folder)
                    continue
                for part in fetch_data:
                    if isinstance(part, tuple) and len(part) >= 2 and isinstance(part[1], bytes):
                        yield FetchedMessage(uid=uid.decode(), folder=folder, raw=part[1])
                        break
        except socket.timeout as e:
            raise TimeoutError(f"Timed out fetching from {folder}") from e

    def delete(self, folder: str, uid: str) -> None:
        imap = self._select(folder)
        imap.uid("STORE", uid, "+FLAGS", "(\\Deleted)")

    def expunge(self, folder: str) -> None:
        self._select(folder).expunge()

    def close(self) -> None:
        if self._imap is None:
            return
        try:
            if self._selected is not None:
                self._imap.close()
            self._imap.logout()
        except (imaplib.IMAP4.error, OSError) as e:
            logger.debug("Error while closing IMAP connection: %s", e)
        finally:
            self._imap = None
            self._selected = None
