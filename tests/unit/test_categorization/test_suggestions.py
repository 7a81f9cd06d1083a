from uuid import uuid4

import pytest

from finsync.categorization import (
    CategorizationCandidate,
    CategorySuggestion,
    extract_keyword,
    rule_from_suggestion,
    rule_matches_text,
    suggest_rule_from_correction,
    validate_pattern,
)


def test_extract_keyword_picks_longest_word() -> None:
    assert extract_keyword("POS 1234 Supermarket Ltd") == "Supermarket"


def test_extract_keyword_skips_numbers_and_short_words() -> None:
    assert extract_keyword("123456 ab cd") is None
    assert extract_keyword(None) is None


def test_suggestion_below_threshold_drafts_nothing() -> None:
    candidate = CategorizationCandidate(description="Cafe Joe", merchant="Cafe Joe")
    suggestion = CategorySuggestion(category_id=uuid4(), confidence=0.74)

    assert rule_from_suggestion(candidate, suggestion) is None


def test_confident_suggestion_drafts_merchant_rule() -> None:
    category_id = uuid4()
    candidate = CategorizationCandidate(description="Cafe Joe - Haifa", merchant="Cafe Joe")
    suggestion = CategorySuggestion(category_id=category_id, confidence=0.75)

    draft = rule_from_suggestion(candidate, suggestion)

    assert draft is not None
    assert draft.kind == "merchant"
    assert draft.pattern == "Cafe Joe"
    assert draft.category_id == category_id
    assert draft.priority == 5
    assert draft.created_from == "ai_suggestion"


def test_confident_suggestion_without_merchant_drafts_keyword_rule() -> None:
    candidate = CategorizationCandidate(description="monthly gym membership", merchant=None)
    suggestion = CategorySuggestion(category_id=uuid4(), confidence=0.95)

    draft = rule_from_suggestion(candidate, suggestion)

    assert draft.kind == "keyword"
    assert draft.pattern == "membership"


def test_correction_drafts_rule_with_correction_priority() -> None:
    category_id = uuid4()
    candidate = CategorizationCandidate(description="Shufersal Deal - Tel Aviv", merchant="Shufersal Deal")

    draft = suggest_rule_from_correction(candidate, category_id)

    assert draft.kind == "merchant"
    assert draft.pattern == "Shufersal Deal"
    assert draft.priority == 10
    assert draft.created_from == "correction"


def test_correction_without_usable_text_drafts_nothing() -> None:
    candidate = CategorizationCandidate(description="12 ab", merchant="x")

    assert suggest_rule_from_correction(candidate, uuid4()) is None


@pytest.mark.parametrize(
    "kind,pattern,valid",
    [
        ("keyword", "coffee", True),
        ("merchant", "Shufersal", True),
        ("regex", r"^wolt\s", True),
        ("regex", "([", False),
        ("keyword", "   ", False),
        ("category", "x", False),
    ],
)
def test_validate_pattern(kind: str, pattern: str, valid: bool) -> None:
    assert (validate_pattern(kind, pattern) is None) is valid


def test_rule_matches_text() -> None:
    assert rule_matches_text("keyword", "WOLT", "Wolt delivery") is True
    assert rule_matches_text("regex", r"del+ivery$", "Wolt delivery") is True
    assert rule_matches_text("regex", "([", "Wolt delivery") is False
    assert rule_matches_text("keyword", "wolt", "") is False
