"""Archive writing and export orchestration."""

from .archive_writer import ArchiveWriter, base_filename
from .exporter import ArchiveExporter

__all__ = ["ArchiveWriter", "ArchiveExporter", "base_filename"]
