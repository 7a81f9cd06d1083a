"""Deterministic, rule-based transaction categorization.

A household owns a set of rules, each mapping a pattern to a category. The
engine evaluates them against a candidate transaction and returns the
category of the first matching rule together with a source tag and a
confidence.

Ordering of rules:
- ``priority`` is a precedence weight, not an execution slot. The rule with
  the HIGHER priority number wins when several rules match.
- Within the same priority, more specific matchers win:
  merchant before keyword before regex.
- Remaining ties are broken by the longer pattern, then by rule id, so the
  outcome never depends on the order rules were stored in.

Rules are definitional, so a rule match always carries confidence 1.0.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from functools import lru_cache
from uuid import UUID

logger = logging.getLogger(__name__)

RULE_KIND_MERCHANT = "merchant"
RULE_KIND_KEYWORD = "keyword"
RULE_KIND_REGEX = "regex"

# Tie-break order for rules of equal priority.
KIND_SPECIFICITY: dict[str, int] = {
    RULE_KIND_MERCHANT: 0,
    RULE_KIND_KEYWORD: 1,
    RULE_KIND_REGEX: 2,
}

SOURCE_FALLBACK = "fallback"
SOURCE_MANUAL = "manual"
SOURCE_IMPORTED = "imported"
SOURCE_AI_SUGGESTION = "ai_suggestion"


def rule_source(kind: str) -> str:
    """Source tag recorded on a transaction categorized by a rule of ``kind``."""
    return f"rule_{kind}"


@dataclass(frozen=True)
class CategorizationCandidate:
    """Transaction fields the engine looks at."""

    description: str = ""
    merchant: str | None = None
    amount: int = 0
    direction: str = "expense"


@dataclass(frozen=True)
class RuleSpec:
    """A household rule, detached from the ORM."""

    kind: str
    pattern: str
    category_id: UUID
    priority: int = 0
    is_active: bool = True
    id: UUID | None = None

    @classmethod
    def from_model(cls, rule) -> "RuleSpec":
        return cls(
            kind=rule.kind,
            pattern=rule.pattern,
            category_id=rule.category_id,
            priority=rule.priority,
            is_active=rule.is_active,
            id=rule.id,
        )


@dataclass(frozen=True)
class CategorizationResult:
    category_id: UUID | None
    source: str
    confidence: float
    matched_rule_id: UUID | None = None
    reason: str | None = None

    @property
    def needs_review(self) -> bool:
        return self.category_id is None

    @classmethod
    def fallback(cls) -> "CategorizationResult":
        return cls(category_id=None, source=SOURCE_FALLBACK, confidence=0.0, reason="no rule matched")


@lru_cache(maxsize=512)
def compile_pattern(pattern: str) -> re.Pattern[str]:
    """Compile a regex rule pattern (case-insensitive). Raises re.error."""
    return re.compile(pattern, re.IGNORECASE)


def _sort_key(rule: RuleSpec) -> tuple:
    return (
        -rule.priority,
        KIND_SPECIFICITY.get(rule.kind, len(KIND_SPECIFICITY)),
        -len(rule.pattern),
        str(rule.id or ""),
    )


def order_rules(rules: list[RuleSpec]) -> list[RuleSpec]:
    """Return active rules in evaluation order."""
    return sorted((r for r in rules if r.is_active), key=_sort_key)


def rule_matches(rule: RuleSpec, candidate: CategorizationCandidate) -> bool:
    """Check one rule against a candidate.

    Raises:
        re.error: If a regex rule does not compile
    """
    pattern = rule.pattern or ""
    if not pattern:
        return False

    if rule.kind == RULE_KIND_MERCHANT:
        merchant = (candidate.merchant or "").strip()
        if not merchant:
            return False
        return pattern.lower() in merchant.lower()

    description = candidate.description or ""
    if not description:
        return False

    if rule.kind == RULE_KIND_KEYWORD:
        return pattern.lower() in description.lower()
    if rule.kind == RULE_KIND_REGEX:
        return compile_pattern(pattern).search(description) is not None

    logger.warning("Unknown rule kind, skipping", extra={"rule_id": str(rule.id), "kind": rule.kind})
    return False


def match_rules(candidate: CategorizationCandidate, rules: list[RuleSpec]) -> CategorizationResult:
    """Evaluate rules in precedence order and return the first match.

    A rule that fails to evaluate (e.g., a broken regex) is logged and
    skipped; it never aborts categorization.
    """
    for rule in order_rules(rules):
        try:
            matched = rule_matches(rule, candidate)
        except re.error as e:
            logger.warning(
                "Skipping rule with invalid pattern",
                extra={"rule_id": str(rule.id), "pattern": rule.pattern, "error": str(e)},
            )
            continue

        if matched:
            return CategorizationResult(
                category_id=rule.category_id,
                source=rule_source(rule.kind),
                confidence=1.0,
                matched_rule_id=rule.id,
                reason=f"{rule.kind} rule '{rule.pattern}' (priority {rule.priority})",
            )

    return CategorizationResult.fallback()
