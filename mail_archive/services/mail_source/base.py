"""Abstract interfaces for the mail and credential collaborators."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterator, List


@dataclass(frozen=True)
class FetchedMessage:
    """
    One raw message as delivered by a mail source.

    Attributes:
        uid: Source-specific identity, used for delete requests
        folder: Mailbox folder the message was fetched from
        raw: Complete RFC 5322 bytes
    """

    uid: str
    folder: str
    raw: bytes


class MailSource(ABC):
    """
    Abstract mail source.

    Implementations yield raw messages per folder and accept deletion
    requests; connection and authentication failures surface as their own
    exceptions and are not interpreted by the archive pipeline.
    """

    @abstractmethod
    def list_folders(self) -> List[str]:
        """
        List the folders available in this source.

        Returns:
            Folder names, INBOX first when present
        """
        pass

    @abstractmethod
    def fetch(self, folder: str) -> Iterator[FetchedMessage]:
        """
        Yield the messages of one folder in a stable scan order.

        Args:
            folder: Folder name as returned by list_folders

        Yields:
            FetchedMessage for each message

        Raises:
            TimeoutError: If the source does not answer in time
        """
        pass

    @abstractmethod
    def delete(self, folder: str, uid: str) -> None:
        """
        Mark a message for deletion.

        Notes:
            - Deletion takes effect on expunge(folder)
        """
        pass

    @abstractmethod
    def expunge(self, folder: str) -> None:
        """Permanently remove messages marked for deletion in ``folder``."""
        pass

    def close(self) -> None:
        """Release connections or file handles."""
        pass

    def __enter__(self) -> "MailSource":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class CredentialSource(ABC):
    """Abstract provider of account secrets."""

    @abstractmethod
    def get_secret(self, account_name: str) -> str:
        """
        Return the plaintext secret for an account.

        Raises:
            CredentialError: If no secret is available for this account
        """
        pass
