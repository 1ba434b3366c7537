"""Data models for the mail archive"""

from .email_document import AttachmentRef, EmailDocument
from .results import (
    ExportStats,
    RepairReport,
    RepairResult,
    RepairStatus,
    WriteOutcome,
    WriteResult,
)
from .sort_rule import Category, MatchTarget, MatchType, SortEntry, SortReport, SortRule

__all__ = [
    "AttachmentRef",
    "EmailDocument",
    "ExportStats",
    "RepairReport",
    "RepairResult",
    "RepairStatus",
    "WriteOutcome",
    "WriteResult",
    "Category",
    "MatchTarget",
    "MatchType",
    "SortEntry",
    "SortReport",
    "SortRule",
]
