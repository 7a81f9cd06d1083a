"""Transaction categorization.

Rule evaluation is deterministic and local. An optional external suggester
can run ahead of the rules; its confident suggestions count as a match.
"""

from __future__ import annotations

from .rules import (
    SOURCE_AI_SUGGESTION,
    SOURCE_FALLBACK,
    SOURCE_IMPORTED,
    SOURCE_MANUAL,
    CategorizationCandidate,
    CategorizationResult,
    RuleSpec,
    match_rules,
    order_rules,
)
from .suggestions import (
    AI_CONFIDENCE_THRESHOLD,
    CategorySuggester,
    CategorySuggestion,
    RuleDraft,
    extract_keyword,
    is_confident,
    rule_from_suggestion,
    rule_matches_text,
    suggest_rule_from_correction,
    validate_pattern,
)


def categorize(
    candidate: CategorizationCandidate,
    rules: list[RuleSpec],
    suggestion: CategorySuggestion | None = None,
    threshold: float = AI_CONFIDENCE_THRESHOLD,
) -> CategorizationResult:
    """Categorize a candidate transaction.

    Args:
        candidate: Description, merchant, amount and direction
        rules: The household's rules (inactive ones are ignored)
        suggestion: Optional external suggestion, evaluated before rules
        threshold: Minimum suggestion confidence to accept it

    Returns:
        The category with its source tag and confidence. When nothing
        matches, ``category_id`` is None, source is "fallback" and the
        confidence is 0.
    """
    if is_confident(suggestion, threshold):
        return CategorizationResult(
            category_id=suggestion.category_id,
            source=SOURCE_AI_SUGGESTION,
            confidence=suggestion.confidence,
            reason=suggestion.reason,
        )
    return match_rules(candidate, rules)


__all__ = [
    "AI_CONFIDENCE_THRESHOLD",
    "SOURCE_AI_SUGGESTION",
    "SOURCE_FALLBACK",
    "SOURCE_IMPORTED",
    "SOURCE_MANUAL",
    "CategorizationCandidate",
    "CategorizationResult",
    "CategorySuggester",
    "CategorySuggestion",
    "RuleDraft",
    "RuleSpec",
    "categorize",
    "extract_keyword",
    "match_rules",
    "order_rules",
    "rule_from_suggestion",
    "rule_matches_text",
    "suggest_rule_from_correction",
    "validate_pattern",
]
