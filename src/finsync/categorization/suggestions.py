"""AI suggestion contract and rule drafting helpers.

The engine does not ship a model. A ``CategorySuggester`` is any object that
returns a ``CategorySuggestion`` for a candidate; suggestions at or above
``AI_CONFIDENCE_THRESHOLD`` are treated like a rule match and may be turned
into a persistent rule.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Protocol
from uuid import UUID

from finsync.categorization.rules import (
    RULE_KIND_KEYWORD,
    RULE_KIND_MERCHANT,
    RULE_KIND_REGEX,
    CategorizationCandidate,
    compile_pattern,
)

AI_CONFIDENCE_THRESHOLD = 0.75
AI_RULE_PRIORITY = 5
CORRECTION_RULE_PRIORITY = 10

PROVENANCE_MANUAL = "manual"
PROVENANCE_CORRECTION = "correction"
PROVENANCE_AI_SUGGESTION = "ai_suggestion"

MIN_MERCHANT_PATTERN = 3
MIN_KEYWORD_LENGTH = 4

_WORD_RE = re.compile(r"\w+", re.UNICODE)


@dataclass(frozen=True)
class CategorySuggestion:
    category_id: UUID
    confidence: float
    reason: str | None = None


class CategorySuggester(Protocol):
    """External model boundary."""

    async def suggest(self, candidate: CategorizationCandidate) -> CategorySuggestion | None: ...


@dataclass(frozen=True)
class RuleDraft:
    """A rule to be persisted, not yet stored."""

    kind: str
    pattern: str
    category_id: UUID
    priority: int
    created_from: str


def is_confident(suggestion: CategorySuggestion | None, threshold: float = AI_CONFIDENCE_THRESHOLD) -> bool:
    return suggestion is not None and suggestion.confidence >= threshold


def extract_keyword(description: str | None, min_length: int = MIN_KEYWORD_LENGTH) -> str | None:
    """Longest word of the description with at least ``min_length`` characters."""
    words = [w for w in _WORD_RE.findall(description or "") if len(w) >= min_length and not w.isdigit()]
    if not words:
        return None
    # max() keeps the first of equal-length words
    return max(words, key=len)


def _draft_from_candidate(
    candidate: CategorizationCandidate,
    category_id: UUID,
    priority: int,
    created_from: str,
    keyword_min_length: int,
) -> RuleDraft | None:
    merchant = (candidate.merchant or "").strip()
    if len(merchant) >= MIN_MERCHANT_PATTERN:
        return RuleDraft(RULE_KIND_MERCHANT, merchant, category_id, priority, created_from)

    keyword = extract_keyword(candidate.description, keyword_min_length)
    if keyword:
        return RuleDraft(RULE_KIND_KEYWORD, keyword, category_id, priority, created_from)
    return None


def rule_from_suggestion(
    candidate: CategorizationCandidate,
    suggestion: CategorySuggestion,
    threshold: float = AI_CONFIDENCE_THRESHOLD,
    priority: int = AI_RULE_PRIORITY,
) -> RuleDraft | None:
    """Draft a rule from a confident suggestion.

    Pattern is the merchant when present, otherwise the longest keyword of
    the description. Returns None below the threshold or when nothing usable
    can be extracted.
    """
    if not is_confident(suggestion, threshold):
        return None
    return _draft_from_candidate(
        candidate, suggestion.category_id, priority, PROVENANCE_AI_SUGGESTION, MIN_MERCHANT_PATTERN
    )


def suggest_rule_from_correction(
    candidate: CategorizationCandidate,
    category_id: UUID,
    priority: int = CORRECTION_RULE_PRIORITY,
) -> RuleDraft | None:
    """Draft a rule from a user's manual correction."""
    return _draft_from_candidate(
        candidate, category_id, priority, PROVENANCE_CORRECTION, MIN_KEYWORD_LENGTH
    )


def validate_pattern(kind: str, pattern: str) -> str | None:
    """Return an error message if the pattern is unusable for ``kind``."""
    if kind not in (RULE_KIND_MERCHANT, RULE_KIND_KEYWORD, RULE_KIND_REGEX):
        return f"Unknown rule kind: {kind}"
    if not pattern or not pattern.strip():
        return "Pattern must not be empty"
    if kind == RULE_KIND_REGEX:
        try:
            compile_pattern(pattern)
        except re.error as e:
            return f"Invalid regular expression: {e}"
    return None


def rule_matches_text(kind: str, pattern: str, text: str) -> bool:
    """Test a pattern against free text, as the rule tester does.

    Merchant and keyword rules are case-insensitive substring checks; regex
    rules use a case-insensitive search. Invalid regexes never match.
    """
    if not pattern or not text:
        return False
    if kind == RULE_KIND_REGEX:
        try:
            return compile_pattern(pattern).search(text) is not None
        except re.error:
            return False
    return pattern.lower() in text.lower()
