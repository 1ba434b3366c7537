"""Markdown mailbox archive: export, frontmatter repair and rule-based sorting."""

__version__ = "0.1.0"
