"""Path, filename and Message-ID normalization utilities."""

import errno
import os
import re
import tempfile
from pathlib import Path, PurePosixPath

from mail_archive.errors import FilesystemError

_RESERVED_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f\x7f]')
_INITIALS_SPLIT = re.compile(r"[._+\-]+")

# NAME_MAX on common Linux and macOS filesystems
MAX_NAME_BYTES = 255

# errno values meaning the target volume itself cannot take writes
SYSTEMIC_ERRNOS = frozenset(
    code
    for code in (
        errno.ENOSPC,
        errno.EROFS,
        errno.EACCES,
        errno.EPERM,
        getattr(errno, "EDQUOT", None),
    )
    if code is not None
)


def normalize_message_id(message_id: str) -> str:
    """
    Normalize Message-ID to standard format with angle brackets.

    Args:
        message_id: Raw Message-ID (may or may not have brackets)

    Returns:
        Message-ID in format <id@domain>

    Raises:
        ValueError: If message_id is empty or malformed

    Examples:
        >>> normalize_message_id("abc@domain.com")
        '<abc@domain.com>'
        >>> normalize_message_id("<abc@domain.com>")
        '<abc@domain.com>'
    """
    if not message_id or not message_id.strip():
        raise ValueError("Message-ID is empty")

    clean_id = message_id.strip()

    if clean_id.startswith("<"):
        clean_id = clean_id[1:]
    if clean_id.endswith(">"):
        clean_id = clean_id[:-1]

    if "@" not in clean_id:
        raise ValueError(f"Invalid Message-ID format: {message_id}")

    return f"<{clean_id}>"


def sanitize_filename(filename: str, fallback: str = "attachment") -> str:
    """
    Make a filename safe to place on disk.

    Path separators, control characters and characters reserved on common
    filesystems are replaced with ``_``. Leading and trailing dots and spaces
    are trimmed so the name can never escape its directory.

    Examples:
        >>> sanitize_filename("../etc/passwd")
        '_etc_passwd'
        >>> sanitize_filename('a:b?.pdf')
        'a_b_.pdf'
        >>> sanitize_filename("???")
        'attachment'
    """
    cleaned = _RESERVED_CHARS.sub("_", filename or "").strip(" .")
    if not cleaned.replace("_", "").strip(" ."):
        return fallback
    return cleaned


def truncate_utf8(text: str, max_bytes: int) -> str:
    """
    Cut ``text`` so its UTF-8 encoding fits in ``max_bytes``.

    Multi-byte characters are never split.

    Examples:
        >>> truncate_utf8("résumé", 3)
        'ré'
    """
    encoded = text.encode("utf-8")
    if len(encoded) <= max_bytes:
        return text
    return encoded[: max(max_bytes, 0)].decode("utf-8", errors="ignore")


def folder_to_relative_path(folder: str) -> PurePosixPath:
    """
    Map a mailbox folder name onto a relative directory path.

    ``.`` and ``/`` are both treated as hierarchy separators, so
    ``INBOX.Sent`` and ``INBOX/Sent`` land in the same ``INBOX/Sent`` tree.
    Each segment is sanitized.
    """
    segments = [
        truncate_utf8(sanitize_filename(segment, fallback="_"), MAX_NAME_BYTES)
        for segment in re.split(r"[./]", folder or "")
        if segment.strip()
    ]
    if not segments:
        segments = ["INBOX"]
    return PurePosixPath(*segments)


def address_initials(address: str) -> str:
    """
    Deterministic two-letter abbreviation of an address local-part.

    Examples:
        >>> address_initials("john.doe@example.com")
        'JD'
        >>> address_initials("alice@x.com")
        'AL'
        >>> address_initials("")
        'XX'
    """
    local_part = (address or "").rsplit("@", 1)[0] if "@" in (address or "") else (address or "")
    tokens = [t for t in _INITIALS_SPLIT.split(local_part.lower()) if t and t[0].isalnum()]

    if len(tokens) >= 2:
        initials = tokens[0][0] + tokens[1][0]
    elif tokens:
        initials = tokens[0][:2]
    else:
        return "XX"

    initials = "".join(c if c.isalnum() else "X" for c in initials)
    return initials.upper().ljust(2, "X")


def atomic_write_bytes(target: Path, data: bytes) -> None:
    """
    Write ``data`` to ``target`` so the final name never shows partial content.

    The payload goes to a temporary file in the same directory, is flushed to
    disk and then renamed over ``target``.

    Raises:
        FilesystemError: If the directory, write or rename fails
    """
    tmp_name = None
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=".tmp-", suffix=target.suffix)
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, target)
        tmp_name = None
    except OSError as e:
        raise FilesystemError(
            f"Cannot write {target}: {e}",
            path=target,
            systemic=e.errno in SYSTEMIC_ERRNOS,
        ) from e
    finally:
        if tmp_name is not None:
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
