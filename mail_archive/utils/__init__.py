"""Utility functions"""

from .path_utils import (
    address_initials,
    atomic_write_bytes,
    folder_to_relative_path,
    normalize_message_id,
    sanitize_filename,
)
from .unicode_utils import decode_email_header, normalize_line_breaks, truncate_subject

__all__ = [
    "address_initials",
    "atomic_write_bytes",
    "folder_to_relative_path",
    "normalize_message_id",
    "sanitize_filename",
    "decode_email_header",
    "normalize_line_breaks",
    "truncate_subject",
]
