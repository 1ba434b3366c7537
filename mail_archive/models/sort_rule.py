"""Classification rule and report data models."""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional


class Category(Enum):
    """Retention category assigned by the classifier."""

    DELETE = "delete"
    SUMMARIZE = "summarize"
    KEEP = "keep"


class MatchTarget(Enum):
    """Document field a rule looks at."""

    SENDER = "sender"
    SUBJECT = "subject"
    FOLDER = "folder"
    AGE_DAYS = "age_days"


class MatchType(Enum):
    """How a rule pattern is compared with the field value."""

    CONTAINS = "contains"
    REGEX = "regex"
    RANGE = "range"
    ADDRESS = "address"


@dataclass
class SortRule:
    """
    One classification predicate.

    Lower ``priority`` is evaluated first; ``order`` keeps ties stable in
    configuration order.
    """

    name: str
    target: MatchTarget
    match: MatchType
    category: Category
    priority: int = 100
    pattern: Optional[str] = None
    min_days: Optional[int] = None
    max_days: Optional[int] = None
    order: int = 0
    _regex: Optional[re.Pattern] = field(default=None, init=False, repr=False, compare=False)

    def __post_init__(self):
        if self.match == MatchType.REGEX and self.pattern is not None:
            self._regex = re.compile(self.pattern, re.IGNORECASE)

    @property
    def sort_key(self) -> tuple:
        return (self.priority, self.order)

    def evaluate(self, fields: Dict[str, object]) -> Optional[str]:
        """
        Evaluate the rule against decoded document fields.

        Args:
            fields: Mapping of MatchTarget value to field value

        Returns:
            A human-readable reason when the rule matches, None otherwise
        """
        value = fields.get(self.target.value)
        if value is None:
            return None

        if self.match == MatchType.RANGE:
            age = int(value)
            if self.min_days is not None and age < self.min_days:
                return None
            if self.max_days is not None and age > self.max_days:
                return None
            low = "-inf" if self.min_days is None else self.min_days
            high = "inf" if self.max_days is None else self.max_days
            return f"{self.target.value} {age} in range [{low}, {high}]"

        text = str(value).lower()
        pattern = (self.pattern or "").lower()

        if self.match == MatchType.CONTAINS:
            if pattern and pattern in text:
                return f"{self.target.value} contains '{self.pattern}'"
        elif self.match == MatchType.REGEX:
            if self._regex is not None and self._regex.search(str(value)):
                return f"{self.target.value} matches /{self.pattern}/"
        elif self.match == MatchType.ADDRESS:
            if address_matches(text, pattern):
                return f"{self.target.value} address matches '{self.pattern}'"

        return None


def address_matches(address: str, entry: str) -> bool:
    """
    Match an address against a whitelist-style entry.

    ``user@host`` matches exactly, ``@host`` matches a domain suffix and
    ``user@`` matches a local-part prefix.
    """
    if not address or not entry:
        return False
    if entry.startswith("@"):
        return address.endswith(entry)
    if entry.endswith("@"):
        return address.startswith(entry)
    return address == entry


@dataclass
class SortEntry:
    """Classification outcome for one archive file."""

    category: Category
    matched_rule: str
    reasons: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "category": self.category.value,
            "matched_rule": self.matched_rule,
            "reasons": list(self.reasons),
        }


@dataclass
class SortReport:
    """
    Batch output of a classification run.

    Attributes:
        entries: Relative POSIX file path -> SortEntry
        errors: Relative paths whose frontmatter could not be decoded
    """

    entries: Dict[str, SortEntry] = field(default_factory=dict)
    errors: List[str] = field(default_factory=list)

    @property
    def summary(self) -> Dict[str, int]:
        counts = {category.value: 0 for category in Category}
        for entry in self.entries.values():
            counts[entry.category.value] += 1
        return counts

    def to_dict(self) -> dict:
        return {
            "entries": {path: self.entries[path].to_dict() for path in sorted(self.entries)},
            "summary": self.summary,
            "total": len(self.entries),
            "errors": sorted(self.errors),
        }
