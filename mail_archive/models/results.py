"""Result types returned by the export and repair passes."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional


class WriteOutcome(Enum):
    """Outcome of writing one document."""

    WRITTEN = "written"
    SKIPPED_EXISTING = "skipped_existing"


@dataclass
class WriteResult:
    """Outcome and final path of an archive write."""

    outcome: WriteOutcome
    path: Path


@dataclass
class ExportStats:
    """Per-folder export counters."""

    exported: int = 0
    skipped: int = 0
    failed: int = 0
    omitted_attachments: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    aborted: bool = False
    cancelled: bool = False

    def merge(self, other: "ExportStats") -> "ExportStats":
        return ExportStats(
            exported=self.exported + other.exported,
            skipped=self.skipped + other.skipped,
            failed=self.failed + other.failed,
            omitted_attachments=self.omitted_attachments + other.omitted_attachments,
            errors=self.errors + other.errors,
            aborted=self.aborted or other.aborted,
            cancelled=self.cancelled or other.cancelled,
        )

    def summary_line(self) -> str:
        line = f"{self.exported} exported, {self.skipped} skipped, {self.failed} failed"
        if self.omitted_attachments:
            line += f", {len(self.omitted_attachments)} attachments omitted"
        if self.aborted:
            line += " (aborted)"
        return line


class RepairStatus(Enum):
    """Per-file outcome of the frontmatter repair pass."""

    ALREADY_VALID = "already_valid"
    REPAIRED = "repaired"
    UNREPAIRABLE = "unrepairable"


@dataclass
class RepairResult:
    """Repair outcome for one file."""

    path: Path
    status: RepairStatus
    detail: Optional[str] = None
    applied: bool = False


@dataclass
class RepairReport:
    """Merged outcome of a repair run."""

    results: List[RepairResult] = field(default_factory=list)
    dry_run: bool = True

    def _count(self, status: RepairStatus) -> int:
        return sum(1 for r in self.results if r.status == status)

    @property
    def repaired(self) -> int:
        return self._count(RepairStatus.REPAIRED)

    @property
    def already_valid(self) -> int:
        return self._count(RepairStatus.ALREADY_VALID)

    @property
    def unrepairable(self) -> int:
        return self._count(RepairStatus.UNREPAIRABLE)

    @property
    def pending(self) -> List[RepairResult]:
        return [r for r in self.results if r.status == RepairStatus.REPAIRED and not r.applied]
