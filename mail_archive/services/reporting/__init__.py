"""Console and file reporting helpers."""

from .contacts_report import ContactsCollector
from .metadata_formatter import MetadataFormatter

__all__ = ["ContactsCollector", "MetadataFormatter"]
