"""Archive pipeline services"""

from .archive import ArchiveExporter, ArchiveWriter
from .attachments import AttachmentStore
from .codec import FrontmatterCodec, MessageDecoder
from .mail_source import EnvCredentialSource, ImapMailSource, MaildirMailSource, MboxMailSource
from .reporting import ContactsCollector, MetadataFormatter
from .repair import FrontmatterRepairer
from .sorting import EmailClassifier

__all__ = [
    "ArchiveExporter",
    "ArchiveWriter",
    "AttachmentStore",
    "FrontmatterCodec",
    "MessageDecoder",
    "EnvCredentialSource",
    "ImapMailSource",
    "MaildirMailSource",
    "MboxMailSource",
    "ContactsCollector",
    "MetadataFormatter",
    "FrontmatterRepairer",
    "EmailClassifier",
]
