"""Mail and credential sources consumed by the exporter."""

from .base import CredentialSource, FetchedMessage, MailSource
from .credentials import EnvCredentialSource
from .imap_source import ImapMailSource
from .local_sources import MaildirMailSource, MboxMailSource

__all__ = [
    "CredentialSource",
    "FetchedMessage",
    "MailSource",
    "EnvCredentialSource",
    "ImapMailSource",
    "MaildirMailSource",
    "MboxMailSource",
]
