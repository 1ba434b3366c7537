"""Email document data model."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Tuple


@dataclass(frozen=True)
class AttachmentRef:
    """
    Reference to a binary part stored under the archive's attachments tree.

    Attributes:
        original_filename: Filename as announced by the message (decoded)
        content_hash: sha256 hex digest of the payload
        size: Payload size in bytes
        stored_path: POSIX path relative to the export root
    """

    original_filename: str
    content_hash: str
    size: int
    stored_path: str

    def __post_init__(self):
        """Validate fields after initialization."""
        if self.size < 0:
            raise ValueError("size must be >= 0")
        if not self.stored_path:
            raise ValueError("stored_path is required")


@dataclass(frozen=True)
class EmailDocument:
    """
    Canonical representation of one archived message.

    Attributes:
        message_id: RFC 5322 Message-ID, or a derived identity when absent
        date: Timezone-aware sent date
        from_address: Sender, formatted as "Name <addr>" or bare address
        to_addresses: Recipients in header order
        subject: Decoded subject line
        folder: Source mailbox folder
        body: Markdown body (quotes beyond the configured depth elided)
        attachments: Stored attachment references
    """

    message_id: str
    date: datetime
    from_address: str
    to_addresses: Tuple[str, ...]
    subject: str
    folder: str
    body: str
    attachments: Tuple[AttachmentRef, ...] = field(default_factory=tuple)

    def __post_init__(self):
        """Validate fields after initialization."""
        if not self.message_id:
            raise ValueError("message_id is required")
        if self.date.tzinfo is None:
            raise ValueError("date must be timezone-aware")
        # accept lists from callers but keep the instance hashable
        object.__setattr__(self, "to_addresses", tuple(self.to_addresses))
        object.__setattr__(self, "attachments", tuple(self.attachments))
