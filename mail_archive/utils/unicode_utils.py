"""Unicode, email header decoding and text normalization utilities."""

import re
from email.header import decode_header

_EXCESS_BLANK_LINES = re.compile(r"\n{3,}")


def decode_email_header(header_value: str) -> str:
    """
    Decode RFC 2047 encoded-word header to Unicode string.

    Args:
        header_value: Raw header value (may be encoded)

    Returns:
        Decoded Unicode string

    Examples:
        >>> decode_email_header("=?UTF-8?B?5Lit5paH?=")
        '中文'
    """
    if not header_value:
        return ""

    decoded_parts = []
    for content, encoding in decode_header(str(header_value)):
        if isinstance(content, bytes):
            if encoding:
                try:
                    decoded_parts.append(content.decode(encoding))
                except (UnicodeDecodeError, LookupError):
                    decoded_parts.append(content.decode("utf-8", errors="replace"))
            else:
                try:
                    decoded_parts.append(content.decode("ascii"))
                except UnicodeDecodeError:
                    decoded_parts.append(content.decode("utf-8", errors="replace"))
        else:
            decoded_parts.append(str(content))

    return "".join(decoded_parts)


def truncate_subject(subject: str | None, max_length: int = 50) -> str:
    """
    Truncate subject to max_length with '...' if needed.

    Examples:
        >>> truncate_subject("Short subject")
        'Short subject'
        >>> truncate_subject("This is a very long subject that exceeds the maximum length", 30)
        'This is a very long subject ...'
    """
    if not subject:
        return ""

    if len(subject) <= max_length:
        return subject

    return subject[: max_length - 3] + "..."


def normalize_line_breaks(text: str) -> str:
    """
    Normalize a message body for storage.

    CRLF and lone CR become LF, trailing whitespace is removed from every
    line, runs of blank lines collapse to one and the whole text is stripped.
    """
    if not text:
        return ""

    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = "\n".join(line.rstrip() for line in text.split("\n"))
    return _EXCESS_BLANK_LINES.sub("\n\n", text).strip()
