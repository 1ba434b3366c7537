"""Contact collection and CSV export, grouped by message audience."""

import csv
import io
import logging
import threading
from datetime import date
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set

from mail_archive.services.codec.email_type import EmailType
from mail_archive.utils.path_utils import atomic_write_bytes, sanitize_filename

logger = logging.getLogger(__name__)

CSV_HEADER = ["Name", "Email", "Type", "Source", "Notes"]


def display_name_from_address(address: str) -> str:
    """
    Guess a display name from an address local part.

    Examples:
        >>> display_name_from_address("john.doe@example.com")
        'John Doe'
    """
    local_part = address.split("@", 1)[0]
    return " ".join(word[:1].upper() + word[1:] for word in local_part.replace(".", " ").split())


class ContactsCollector:
    """
    Thread-safe set of contact addresses per EmailType.

    Folder workers add concurrently; the CSV is rendered once at the end of
    the run.
    """

    def __init__(self):
        self._contacts: Dict[EmailType, Set[str]] = {email_type: set() for email_type in EmailType}
        self._lock = threading.Lock()

    def add(self, email_type: EmailType, contacts: Iterable[str]) -> None:
        with self._lock:
            self._contacts[email_type].update(c for c in contacts if c)

    def contacts(self, email_type: EmailType) -> List[str]:
        with self._lock:
            return sorted(self._contacts[email_type])

    def __len__(self) -> int:
        with self._lock:
            return sum(len(contacts) for contacts in self._contacts.values())

    def render_csv(self, account_name: str) -> str:
        """Render all contacts, grouped by type in EmailType order and sorted within each group."""
        output = io.StringIO()
        writer = csv.writer(output)
        writer.writerow(CSV_HEADER)

        for email_type in EmailType:
            for contact in self.contacts(email_type):
                writer.writerow([
                    display_name_from_address(contact),
                    contact,
                    email_type.label,
                    account_name,
                    f"Collected from {account_name} emails",
                ])
        return output.getvalue()

    def write_csv(self, base_dir: Path, account_name: str, today: Optional[date] = None) -> Path:
        """
        Write ``contacts_<account>_<YYYY-MM-DD>.csv`` under ``base_dir``.

        Returns:
            Path of the written file

        Raises:
            FilesystemError: If the file cannot be written
        """
        today = today or date.today()
        target = base_dir / f"contacts_{sanitize_filename(account_name)}_{today.isoformat()}.csv"
        atomic_write_bytes(target, self.render_csv(account_name).encode("utf-8"))
        logger.info("Wrote %d contacts to %s", len(self), target)
        return target
