"""Metadata formatting for console summaries."""

from datetime import datetime
from typing import Dict

from mail_archive.utils.unicode_utils import truncate_subject

DEFAULT_SOURCE_TEMPLATE = "📧 {sender} | {date} | {subject}"


class MetadataFormatter:
    """Format document metadata for display in verbose output."""

    def __init__(self, config: Dict):
        """
        Initialize formatter with configuration.

        Args:
            config: Configuration dict with display_templates
        """
        self.source_template = config.get("display_templates", {}).get(
            "source_metadata", DEFAULT_SOURCE_TEMPLATE
        )
        self.subject_max_length = config.get("display_templates", {}).get("subject_max_length", 50)

    def format_source_metadata(
        self,
        sender: str,
        sent_date: datetime,
        subject: str,
    ) -> str:
        """
        Format source metadata string.

        Args:
            sender: Sender as stored in the frontmatter
            sent_date: Email sent date
            subject: Email subject

        Returns:
            Formatted metadata string
        """
        date_str = sent_date.strftime("%Y-%m-%d %H:%M")
        subject_preview = truncate_subject(subject, max_length=self.subject_max_length)

        return self.source_template.format(
            sender=sender,
            date=date_str,
            subject=subject_preview,
        )
