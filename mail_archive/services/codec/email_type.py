"""Audience analysis of raw messages (direct, group, newsletter, mailing list)."""

from dataclasses import dataclass, field
from email.message import Message
from email.utils import getaddresses
from enum import Enum
from typing import List

from mail_archive.utils.unicode_utils import decode_email_header

NEWSLETTER_MARKERS = ("newsletter", "bulletin", "digest")
LIST_HEADERS = ("List-Id", "List-Unsubscribe")


class EmailType(Enum):
    """Audience of a message, inferred from its headers."""

    DIRECT = "direct"
    GROUP = "group"
    NEWSLETTER = "newsletter"
    MAILING_LIST = "mailing_list"
    UNKNOWN = "unknown"

    @property
    def label(self) -> str:
        """Human-readable name, e.g. ``Mailing List``."""
        return self.value.replace("_", " ").title()


@dataclass
class EmailAnalysis:
    """
    Addresses and audience type of one message.

    Attributes:
        email_type: Inferred audience
        sender: First From address
        to: To addresses in header order
        cc: Cc addresses in header order
        contacts: Every distinct address seen, sorted
    """

    email_type: EmailType
    sender: str = ""
    to: List[str] = field(default_factory=list)
    cc: List[str] = field(default_factory=list)
    contacts: List[str] = field(default_factory=list)


def _raw_header_values(msg: Message, name: str) -> List[str]:
    # raw values sidestep header-object parsing of malformed address lists
    return [str(v) for k, v in msg.raw_items() if k.lower() == name.lower()]


def header_addresses(msg: Message, name: str) -> List[str]:
    """Lower-cased bare addresses of a header, in order, without duplicates."""
    seen: List[str] = []
    for _, address in getaddresses(_raw_header_values(msg, name)):
        address = address.strip().lower()
        if address and "@" in address and address not in seen:
            seen.append(address)
    return seen


def analyze_email_type(msg: Message) -> EmailAnalysis:
    """
    Classify a message by its audience.

    The checks run in order and the first hit wins:
    more than one To or Cc recipient is a group message; a subject naming a
    newsletter, bulletin or digest is a newsletter; a List-Id or
    List-Unsubscribe header marks a mailing list; one sender and one
    recipient is direct; anything else is unknown.

    Examples:
        From a@x.com, To b@y.com, Subject "Weekly Newsletter" -> NEWSLETTER
    """
    senders = header_addresses(msg, "From")
    to = header_addresses(msg, "To")
    cc = header_addresses(msg, "Cc")
    subject = " ".join(decode_email_header(v) for v in _raw_header_values(msg, "Subject")).lower()

    if len(to) > 1 or len(cc) > 1:
        email_type = EmailType.GROUP
    elif any(marker in subject for marker in NEWSLETTER_MARKERS):
        email_type = EmailType.NEWSLETTER
    elif any(_raw_header_values(msg, header) for header in LIST_HEADERS):
        email_type = EmailType.MAILING_LIST
    elif len(senders) == 1 and len(to) == 1:
        email_type = EmailType.DIRECT
    else:
        email_type = EmailType.UNKNOWN

    return EmailAnalysis(
        email_type=email_type,
        sender=senders[0] if senders else "",
        to=to,
        cc=cc,
        contacts=sorted(set(senders + to + cc)),
    )
