"""Attachment storage."""

from .attachment_store import ATTACHMENTS_DIRNAME, AttachmentStore

__all__ = ["ATTACHMENTS_DIRNAME", "AttachmentStore"]
