"""Configuration models for the classification rule set."""

import re
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from mail_archive.models.sort_rule import Category, MatchTarget, MatchType, SortRule

DEFAULT_DELETE_KEYWORDS = [
    "newsletter",
    "bulletin",
    "digest",
    "promotion",
    "offer",
    "coupon",
    "sale",
    "unsubscribe",
    "marketing",
    "advertisement",
]

DEFAULT_KEEP_KEYWORDS = [
    "contract",
    "invoice",
    "legal",
    "urgent",
    "important",
    "confidential",
]


class SortRuleConfig(BaseModel):
    """One rule as written in the rule file."""

    name: Optional[str] = None
    target: MatchTarget
    match: MatchType = MatchType.CONTAINS
    pattern: Optional[str] = None
    min_days: Optional[int] = None
    max_days: Optional[int] = None
    category: Category
    priority: int = 100

    @model_validator(mode="after")
    def validate_predicate(self) -> "SortRuleConfig":
        if self.match == MatchType.RANGE:
            if self.target != MatchTarget.AGE_DAYS:
                raise ValueError("range matching only applies to age_days")
            if self.min_days is None and self.max_days is None:
                raise ValueError("range rule needs min_days or max_days")
            if (
                self.min_days is not None
                and self.max_days is not None
                and self.min_days > self.max_days
            ):
                raise ValueError("min_days must not exceed max_days")
            return self

        if self.target == MatchTarget.AGE_DAYS:
            raise ValueError("age_days rules must use range matching")
        if not self.pattern:
            raise ValueError(f"{self.match.value} rule needs a pattern")
        if self.match == MatchType.REGEX:
            try:
                re.compile(self.pattern)
            except re.error as e:
                raise ValueError(f"Invalid regex '{self.pattern}': {e}")
        return self

    def display_name(self, index: int) -> str:
        if self.name:
            return self.name
        return f"{self.category.value}:{self.target.value}:{self.pattern or self.match.value}#{index}"


class SortConfig(BaseModel):
    """Contents of the sort rule file."""

    default_category: Category = Category.KEEP
    whitelist: list[str] = Field(default_factory=list)
    whitelist_priority: int = 0
    rules: list[SortRuleConfig] = Field(default_factory=list)

    @field_validator("whitelist")
    def validate_whitelist(cls, v: list[str]) -> list[str]:
        cleaned = [entry.strip().lower() for entry in v if entry and entry.strip()]
        for entry in cleaned:
            if "@" not in entry:
                raise ValueError(f"Whitelist entry must contain '@': {entry}")
        return cleaned

    def build_rules(self) -> list[SortRule]:
        """Compile whitelist and configured rules into evaluation order."""
        rules: list[SortRule] = []
        order = 0

        for entry in self.whitelist:
            rules.append(
                SortRule(
                    name=f"whitelist:{entry}",
                    target=MatchTarget.SENDER,
                    match=MatchType.ADDRESS,
                    category=Category.KEEP,
                    priority=self.whitelist_priority,
                    pattern=entry,
                    order=order,
                )
            )
            order += 1

        for index, rule in enumerate(self.rules):
            rules.append(
                SortRule(
                    name=rule.display_name(index),
                    target=rule.target,
                    match=rule.match,
                    category=rule.category,
                    priority=rule.priority,
                    pattern=rule.pattern,
                    min_days=rule.min_days,
                    max_days=rule.max_days,
                    order=order,
                )
            )
            order += 1

        return sorted(rules, key=lambda r: r.sort_key)

    @classmethod
    def default(cls) -> "SortConfig":
        """Rule set mirroring the built-in keyword lists."""
        rules = [
            SortRuleConfig(
                name=f"keep-subject-{keyword}",
                target=MatchTarget.SUBJECT,
                pattern=keyword,
                category=Category.KEEP,
                priority=10,
            )
            for keyword in DEFAULT_KEEP_KEYWORDS
        ]
        rules += [
            SortRuleConfig(
                name=f"delete-subject-{keyword}",
                target=MatchTarget.SUBJECT,
                pattern=keyword,
                category=Category.DELETE,
                priority=20,
            )
            for keyword in DEFAULT_DELETE_KEYWORDS
        ]
        rules.append(
            SortRuleConfig(
                name="summarize-old",
                target=MatchTarget.AGE_DAYS,
                match=MatchType.RANGE,
                min_days=365,
                category=Category.SUMMARIZE,
                priority=50,
            )
        )
        return cls(rules=rules)
