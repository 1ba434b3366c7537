"""Raw RFC 5322 message to EmailDocument conversion."""

import hashlib
import logging
import mimetypes
from dataclasses import dataclass, field
from datetime import timezone
from email import message_from_bytes
from email.message import Message
from email.policy import default
from email.utils import getaddresses, parseaddr, parsedate_to_datetime
from typing import List, Optional

from mail_archive.errors import MalformedMessageError
from mail_archive.models.email_document import EmailDocument
from mail_archive.utils.path_utils import normalize_message_id
from mail_archive.utils.unicode_utils import decode_email_header, normalize_line_breaks
from .email_type import EmailAnalysis, analyze_email_type
from .html_text import html_to_markdown
from .quoting import limit_quote_depth

logger = logging.getLogger(__name__)

DERIVED_ID_DOMAIN = "mail-archive.invalid"


@dataclass
class AttachmentPart:
    """Binary part waiting to be placed by the attachment store."""

    filename: str
    content_type: str
    payload: bytes


@dataclass
class DecodedMessage:
    """
    Result of decoding one raw message.

    Attributes:
        document: Canonical document, attachments not yet resolved
        attachments: Binary parts to store, in MIME tree order
        skipped_images: Number of signature images dropped
        analysis: Audience type and addresses, for contact collection
    """

    document: EmailDocument
    attachments: List[AttachmentPart] = field(default_factory=list)
    skipped_images: int = 0
    analysis: Optional[EmailAnalysis] = None


def format_address(name: str, address: str) -> str:
    """Render a (name, address) pair as ``Name <address>`` or the bare address."""
    name = decode_email_header(name).strip().strip('"')
    if name and name != address:
        return f"{name} <{address}>"
    return address


def derive_message_id(seed: bytes) -> str:
    """Stable stand-in identity for messages without a Message-ID header."""
    digest = hashlib.sha256(seed).hexdigest()[:32]
    return f"<{digest}@{DERIVED_ID_DOMAIN}>"


class MessageDecoder:
    """Decode raw message bytes into EmailDocument instances."""

    def __init__(
        self,
        quote_depth: Optional[int] = 1,
        skip_signature_images: bool = False,
        signature_image_max_bytes: int = 20_000,
    ):
        """
        Initialize decoder.

        Args:
            quote_depth: Deepest quoted-reply level kept in the body (None keeps all)
            skip_signature_images: Drop small unreferenced inline images
            signature_image_max_bytes: Size limit for the signature heuristic
        """
        self.quote_depth = quote_depth
        self.skip_signature_images = skip_signature_images
        self.signature_image_max_bytes = signature_image_max_bytes

    def decode(self, raw_message: bytes, folder: str) -> DecodedMessage:
        """
        Decode a raw message.

        Args:
            raw_message: Message bytes as fetched from the server
            folder: Source mailbox folder

        Returns:
            DecodedMessage with the document and pending attachments

        Raises:
            MalformedMessageError: If From or Date cannot be parsed

        Notes:
            - text/plain is preferred; HTML-only bodies are converted lossily
            - Quotes deeper than quote_depth are elided
        """
        msg = message_from_bytes(raw_message, policy=default)

        from_address = self._parse_sender(msg)
        sent_date = self._parse_date(msg)
        to_addresses = self._parse_recipients(msg)
        subject = decode_email_header(self._header(msg, "Subject")).strip()
        message_id = self._message_id(msg) or derive_message_id(raw_message)

        plain_body, html_body, binary_parts = self._split_parts(msg)

        # a blank plain alternative loses to a non-empty HTML one
        if plain_body is not None and (plain_body.strip() or not (html_body or "").strip()):
            body = plain_body
        elif html_body is not None:
            body = html_to_markdown(html_body)
        else:
            body = ""

        body = normalize_line_breaks(body)
        body = normalize_line_breaks(limit_quote_depth(body, self.quote_depth))

        attachments: List[AttachmentPart] = []
        skipped_images = 0
        referenced_text = (plain_body or "") + (html_body or "")

        for part in binary_parts:
            payload = part.get_payload(decode=True) or b""
            if not payload:
                logger.debug("Skipping attachment with empty payload in %s", message_id)
                continue

            if self.skip_signature_images and self._is_signature_image(part, payload, referenced_text):
                logger.debug("Skipping signature image (%d bytes) in %s", len(payload), message_id)
                skipped_images += 1
                continue

            attachments.append(
                AttachmentPart(
                    filename=self._attachment_filename(part),
                    content_type=part.get_content_type(),
                    payload=payload,
                )
            )

        document = EmailDocument(
            message_id=message_id,
            date=sent_date,
            from_address=from_address,
            to_addresses=tuple(to_addresses),
            subject=subject,
            folder=folder,
            body=body,
        )
        return DecodedMessage(
            document=document,
            attachments=attachments,
            skipped_images=skipped_images,
            analysis=analyze_email_type(msg),
        )

    def _header(self, msg: Message, name: str) -> str:
        """Header value as text; unparsable structured headers fall back to the raw value."""
        try:
            value = msg.get(name)
        except (ValueError, TypeError, IndexError, AttributeError) as e:
            logger.debug("Falling back to raw %s header: %s", name, e)
            value = next((v for k, v in msg.raw_items() if k.lower() == name.lower()), None)
        return str(value) if value is not None else ""

    def _parse_sender(self, msg: Message) -> str:
        name, address = parseaddr(self._header(msg, "From"))
        if not address:
            raise MalformedMessageError("From header is missing or unparsable")
        return format_address(name, address)

    def _parse_date(self, msg: Message):
        date_header = self._header(msg, "Date")
        if not date_header:
            raise MalformedMessageError("Date header is missing")
        try:
            sent_date = parsedate_to_datetime(date_header)
        except (TypeError, ValueError, IndexError) as e:
            raise MalformedMessageError(f"Date header is unparsable: {date_header!r}") from e
        if sent_date is None:
            raise MalformedMessageError(f"Date header is unparsable: {date_header!r}")
        if sent_date.tzinfo is None:
            sent_date = sent_date.replace(tzinfo=timezone.utc)
        return sent_date

    def _parse_recipients(self, msg: Message) -> List[str]:
        values = []
        try:
            values = [str(v) for v in msg.get_all("To", [])]
        except (ValueError, TypeError, IndexError, AttributeError):
            values = [v for k, v in msg.raw_items() if k.lower() == "to"]
        return [format_address(name, addr) for name, addr in getaddresses(values) if addr]

    def _message_id(self, msg: Message) -> Optional[str]:
        message_id = self._header(msg, "Message-ID").strip()
        if not message_id:
            return None
        try:
            return normalize_message_id(message_id)
        except ValueError:
            return message_id

    def _split_parts(self, msg: Message):
        """Walk the MIME tree into (plain body, html body, binary parts)."""
        plain_body: Optional[str] = None
        html_body: Optional[str] = None
        binary_parts: List[Message] = []

        for part in msg.walk():
            if part.is_multipart():
                continue

            if self._is_attachment(part):
                binary_parts.append(part)
                continue

            content_type = part.get_content_type()
            if content_type == "text/plain" and plain_body is None:
                plain_body = self._decode_text(part)
            elif content_type == "text/html" and html_body is None:
                html_body = self._decode_text(part)

        return plain_body, html_body, binary_parts

    @staticmethod
    def _is_attachment(part: Message) -> bool:
        if part.get_content_disposition() == "attachment":
            return True
        if part.get_filename():
            return True
        return part.get_content_maintype() != "text"

    @staticmethod
    def _decode_text(part: Message) -> str:
        try:
            return part.get_content()
        except (LookupError, UnicodeDecodeError, KeyError):
            payload = part.get_payload(decode=True) or b""
            return payload.decode("utf-8", errors="replace")

    def _is_signature_image(self, part: Message, payload: bytes, referenced_text: str) -> bool:
        """Inline image without a filename, small, and not referenced from the body."""
        if part.get_content_maintype() != "image":
            return False
        if part.get_filename() or part.get_content_disposition() == "attachment":
            return False
        if len(payload) > self.signature_image_max_bytes:
            return False

        content_id = str(part.get("Content-ID", "")).strip().strip("<>")
        if content_id and f"cid:{content_id}" in referenced_text:
            return False
        return True

    @staticmethod
    def _attachment_filename(part: Message) -> str:
        filename = part.get_filename()
        if filename:
            return decode_email_header(filename)

        extension = mimetypes.guess_extension(part.get_content_type()) or ".bin"
        return f"attachment{extension}"
