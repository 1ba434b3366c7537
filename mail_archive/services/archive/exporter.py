"""Export orchestration: mail source -> codec -> attachment store -> archive writer."""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from pathlib import Path
from typing import Callable, Dict, List, Optional

from mail_archive.config.archive_config import AccountConfig
from mail_archive.errors import AttachmentCollisionError, FilesystemError, MalformedMessageError
from mail_archive.models.email_document import AttachmentRef
from mail_archive.models.results import ExportStats, WriteOutcome, WriteResult
from mail_archive.services.attachments.attachment_store import AttachmentStore
from mail_archive.services.codec.message_decoder import AttachmentPart, MessageDecoder
from mail_archive.services.mail_source.base import FetchedMessage, MailSource
from mail_archive.services.reporting.contacts_report import ContactsCollector
from .archive_writer import ArchiveWriter

logger = logging.getLogger(__name__)


class ArchiveExporter:
    """
    Export the folders of one account into its archive directory.

    Folders are independent units of work: each one opens its own source
    from ``source_factory`` and touches only its own subtree.
    """

    def __init__(
        self,
        account: AccountConfig,
        source_factory: Callable[[], MailSource],
        cancel_event: Optional[threading.Event] = None,
    ):
        """
        Initialize exporter.

        Args:
            account: Account settings (export directory, quote depth, ...)
            source_factory: Opens a fresh mail source (one connection per folder unit)
            cancel_event: Set to stop at the next message boundary
        """
        self.account = account
        self.source_factory = source_factory
        self.cancel_event = cancel_event or threading.Event()

        self.export_root = account.get_export_directory()
        self.decoder = MessageDecoder(
            quote_depth=account.quote_depth,
            skip_signature_images=account.skip_signature_images,
            signature_image_max_bytes=account.signature_image_max_bytes,
        )
        self.store = AttachmentStore(self.export_root)
        self.writer = ArchiveWriter(self.export_root)
        self.contacts = ContactsCollector() if account.collect_contacts else None
        self.contacts_path: Optional[Path] = None

    def export_account(self) -> Dict[str, ExportStats]:
        """
        Export every non-ignored folder of the account.

        Returns:
            Folder name -> ExportStats, in folder listing order

        Notes:
            - With collect_contacts, the contacts CSV is written to contacts_path
        """
        with self.source_factory() as source:
            folders = source.list_folders()

        ignored = {name.lower() for name in self.account.ignored_folders}
        selected: List[str] = []
        for folder in folders:
            if folder.lower() in ignored:
                logger.info("Ignored folder: %s", folder)
                continue
            selected.append(folder)

        results: Dict[str, ExportStats] = {}
        with ThreadPoolExecutor(max_workers=self.account.max_workers) as pool:
            futures = {folder: pool.submit(self._export_folder_unit, folder) for folder in selected}
            try:
                for folder in selected:
                    results[folder] = futures[folder].result()
                    logger.info("%s: %s", folder, results[folder].summary_line())
            except KeyboardInterrupt:
                # workers stop at their next message boundary
                logger.warning("Interrupted, finishing in-flight messages")
                self.cancel_event.set()
                raise

        if self.contacts is not None:
            self._write_contacts()
        return results

    def _export_folder_unit(self, folder: str) -> ExportStats:
        try:
            with self.source_factory() as source:
                return self.export_folder(folder, source)
        except TimeoutError as e:
            logger.error("Timed out exporting %s: %s", folder, e)
            return ExportStats(aborted=True, errors=[f"timeout: {e}"])

    def export_folder(self, folder: str, source: MailSource) -> ExportStats:
        """
        Export one folder.

        Args:
            folder: Folder name
            source: Open mail source

        Returns:
            ExportStats for the folder

        Raises:
            TimeoutError: If the source times out

        Notes:
            - Malformed messages are counted and skipped
            - A systemic FilesystemError aborts the folder
            - Messages are deleted from the source only after they were written
            - A failed delete or expunge is recorded in errors; the message stays on the source
        """
        stats = ExportStats()
        logger.info("Exporting %s ...", folder)

        for fetched in source.fetch(folder):
            if self.cancel_event.is_set():
                logger.info("Export of %s cancelled", folder)
                stats.cancelled = True
                break

            try:
                result = self.export_message(fetched, source, stats)
            except MalformedMessageError as e:
                logger.warning("Skipping malformed message %s in %s: %s", fetched.uid, folder, e)
                stats.failed += 1
                stats.errors.append(f"{fetched.uid}: {e}")
                continue
            except FilesystemError as e:
                stats.failed += 1
                stats.errors.append(f"{fetched.uid}: {e}")
                if e.systemic:
                    logger.error("Aborting export of %s: %s", folder, e)
                    stats.aborted = True
                    break
                logger.warning("Failed to write message %s in %s: %s", fetched.uid, folder, e)
                continue

            if result.outcome == WriteOutcome.WRITTEN:
                stats.exported += 1
            else:
                stats.skipped += 1

        if self.account.delete_after_export and stats.exported:
            try:
                source.expunge(folder)
            except TimeoutError:
                raise
            except Exception as e:
                logger.error("Failed to expunge %s: %s", folder, e)
                stats.errors.append(f"expunge failed: {e}")

        return stats

    def export_message(
        self,
        fetched: FetchedMessage,
        source: Optional[MailSource] = None,
        stats: Optional[ExportStats] = None,
    ) -> WriteResult:
        """
        Decode, store attachments and write one message.

        Raises:
            MalformedMessageError: If From or Date cannot be parsed
            FilesystemError: If an attachment or the document cannot be written
        """
        stats = stats if stats is not None else ExportStats()
        decoded = self.decoder.decode(fetched.raw, fetched.folder)

        refs: List[AttachmentRef] = []
        for part in decoded.attachments:
            ref = self._store_attachment(fetched.folder, part)
            if ref is None:
                stats.omitted_attachments.append(
                    f"{decoded.document.message_id}: {part.filename}"
                )
                continue
            refs.append(ref)

        document = replace(decoded.document, attachments=tuple(refs))

        after_write = None
        if self.account.delete_after_export and source is not None:
            def after_write(result: WriteResult) -> None:
                self._delete_from_source(source, fetched, stats)

        result = self.writer.write(document, skip_existing=self.account.skip_existing, after_write=after_write)

        written = result.outcome == WriteOutcome.WRITTEN
        if self.contacts is not None and decoded.analysis is not None and written:
            self.contacts.add(decoded.analysis.email_type, decoded.analysis.contacts)
        return result

    def _delete_from_source(self, source: MailSource, fetched: FetchedMessage, stats: ExportStats) -> None:
        """Mark a written message for deletion; a failure leaves it on the server."""
        try:
            source.delete(fetched.folder, fetched.uid)
        except TimeoutError:
            raise
        except Exception as e:
            logger.error("Failed to delete %s from %s: %s", fetched.uid, fetched.folder, e)
            stats.errors.append(f"{fetched.uid}: delete failed: {e}")

    def _write_contacts(self) -> None:
        try:
            self.contacts_path = self.contacts.write_csv(self.export_root, self.account.name)
        except FilesystemError as e:
            logger.error("Failed to write contacts file: %s", e)

    def _store_attachment(self, folder: str, part: AttachmentPart) -> Optional[AttachmentRef]:
        """Store with one counter-suffixed retry; None when both paths collide."""
        try:
            return self.store.store(folder, part.filename, part.payload)
        except AttachmentCollisionError as e:
            logger.debug("Attachment collision at %s, retrying with suffix", e.path)

        try:
            return self.store.store(folder, part.filename, part.payload, counter=2)
        except AttachmentCollisionError as e:
            logger.warning("Omitting attachment %s: %s", part.filename, e)
            return None
