"""Exception taxonomy shared by the archive pipeline."""

from pathlib import Path
from typing import Optional


class ArchiveError(Exception):
    """Base exception for archive pipeline errors."""

    pass


class MalformedMessageError(ArchiveError):
    """Raised when required headers (From, Date) of a raw message cannot be parsed."""

    pass


class FrontmatterParseError(ArchiveError):
    """Raised when an archive file has no frontmatter or it is not strict YAML."""

    def __init__(self, message: str, path: Optional[Path] = None):
        super().__init__(message)
        self.path = path


class AttachmentCollisionError(ArchiveError):
    """Raised when a stored attachment path already holds different content."""

    def __init__(self, message: str, path: Path):
        super().__init__(message)
        self.path = path


class FilesystemError(ArchiveError):
    """
    Raised when a write or rename fails.

    ``systemic`` is set when the failure means the volume itself is unusable
    (disk full, read-only, permission denied); callers abort the folder then.
    """

    def __init__(self, message: str, path: Optional[Path] = None, systemic: bool = False):
        super().__init__(message)
        self.path = path
        self.systemic = systemic


class RuleConfigError(ArchiveError):
    """Raised when a sort rule set cannot be loaded or validated."""

    pass


class CredentialError(ArchiveError):
    """Raised when no secret is available for an account."""

    pass
