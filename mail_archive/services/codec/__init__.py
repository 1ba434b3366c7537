"""Document codec: raw messages and archive files to EmailDocuments."""

from .email_type import EmailAnalysis, EmailType, analyze_email_type
from .frontmatter_codec import FrontmatterCodec, split_frontmatter
from .message_decoder import AttachmentPart, DecodedMessage, MessageDecoder
from .quoting import OMISSION_MARKER, limit_quote_depth

__all__ = [
    "EmailAnalysis",
    "EmailType",
    "analyze_email_type",
    "FrontmatterCodec",
    "split_frontmatter",
    "AttachmentPart",
    "DecodedMessage",
    "MessageDecoder",
    "OMISSION_MARKER",
    "limit_quote_depth",
]
