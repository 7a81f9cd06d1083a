"""Bulk categorization against an in-memory transaction store.

The fake repository yields to the event loop on every call, so two
concurrent passes interleave the way two request handlers would.
"""

import asyncio
from collections import Counter
from types import SimpleNamespace
from unittest.mock import ANY, AsyncMock, MagicMock
from uuid import uuid4

import pytest

from finsync.categorization import CategorySuggestion
from finsync.services.categorization import CategorizationService

GROCERIES = uuid4()
DINING = uuid4()


class FakeTransactionRepo:
    def __init__(self, rows):
        self.rows = {row.id: row for row in rows}
        self.claims = Counter()
        self.categorized = Counter()
        self.fail_on: set = set()

    async def get_uncategorized_batch(self, household_id, limit):
        await asyncio.sleep(0)
        pending = [r for r in self.rows.values() if r.category_id is None and not r.is_processing]
        return pending[:limit]

    async def count_uncategorized(self, household_id):
        return sum(1 for r in self.rows.values() if r.category_id is None)

    async def claim_for_processing(self, transaction_id):
        await asyncio.sleep(0)
        row = self.rows[transaction_id]
        if row.is_processing or row.category_id is not None:
            return False
        row.is_processing = True
        self.claims[transaction_id] += 1
        return True

    async def release(self, transaction_id):
        await asyncio.sleep(0)
        self.rows[transaction_id].is_processing = False

    async def set_category(self, household_id, transaction_ids, category_id, source, confidence, needs_review):
        await asyncio.sleep(0)
        for transaction_id in transaction_ids:
            if transaction_id in self.fail_on:
                raise RuntimeError("write failed")
            row = self.rows[transaction_id]
            row.category_id = category_id
            row.categorization_source = source
            self.categorized[transaction_id] += 1
        return len(transaction_ids)


class FakeSuggester:
    def __init__(self, suggestion):
        self.suggestion = suggestion
        self.calls = 0

    async def suggest(self, candidate):
        self.calls += 1
        return self.suggestion


def _row(description: str, merchant: str | None = None) -> SimpleNamespace:
    return SimpleNamespace(
        id=uuid4(),
        description=description,
        merchant=merchant,
        amount=1000,
        direction="expense",
        category_id=None,
        categorization_source="fallback",
        is_processing=False,
    )


def _service(txn_repo: FakeTransactionRepo, suggester=None) -> CategorizationService:
    db = MagicMock()
    db.commit = AsyncMock()
    db.flush = AsyncMock()
    db.rollback = AsyncMock()

    service = CategorizationService(db, suggester=suggester)
    service.transaction_repo = txn_repo
    service.category_repo = MagicMock()
    service.category_repo.get_all_by_household = AsyncMock(
        return_value=[SimpleNamespace(id=GROCERIES), SimpleNamespace(id=DINING)]
    )
    service.rule_repo = MagicMock()
    service.rule_repo.get_active_by_household = AsyncMock(
        return_value=[
            SimpleNamespace(
                id=uuid4(), kind="keyword", pattern="shufersal", category_id=GROCERIES, priority=1, is_active=True
            )
        ]
    )
    service.rule_repo.find_by_pattern = AsyncMock(return_value=[])
    return service


@pytest.mark.asyncio
async def test_concurrent_passes_never_double_categorize():
    rows = [_row(f"Shufersal branch {i}") for i in range(12)]
    repo = FakeTransactionRepo(rows)
    household_id = uuid4()

    first, second = await asyncio.gather(
        _service(repo).apply_categorization(household_id, batch_size=20),
        _service(repo).apply_categorization(household_id, batch_size=20),
    )

    assert first.updated + second.updated == 12
    assert first.skipped + second.skipped == 12
    assert all(count == 1 for count in repo.categorized.values())
    assert all(count == 1 for count in repo.claims.values())
    assert not any(row.is_processing for row in rows)
    assert first.remaining == 0 or second.remaining == 0


@pytest.mark.asyncio
async def test_batch_size_bounds_one_pass():
    rows = [_row(f"Shufersal {i}") for i in range(5)]
    repo = FakeTransactionRepo(rows)

    result = await _service(repo).apply_categorization(uuid4(), batch_size=2)

    assert result.updated == 2
    assert result.remaining == 3
    assert result.message == "Categorized 2 of 2 transactions, 3 remaining"


@pytest.mark.asyncio
async def test_failure_releases_lock_and_continues():
    rows = [_row("Shufersal a"), _row("Shufersal b")]
    repo = FakeTransactionRepo(rows)
    repo.fail_on = {rows[0].id}
    service = _service(repo)

    result = await service.apply_categorization(uuid4())

    assert result.failed == 1
    assert result.updated == 1
    assert not any(row.is_processing for row in rows)
    service.db.rollback.assert_awaited()


@pytest.mark.asyncio
async def test_unmatched_rows_are_released_uncategorized():
    rows = [_row("Netflix subscription")]
    repo = FakeTransactionRepo(rows)

    result = await _service(repo).apply_categorization(uuid4())

    assert result.unmatched == 1
    assert rows[0].category_id is None
    assert rows[0].is_processing is False


@pytest.mark.asyncio
async def test_nothing_to_do():
    result = await _service(FakeTransactionRepo([])).apply_categorization(uuid4())

    assert result.updated == 0
    assert result.message == "No transactions need categorization"


@pytest.mark.asyncio
async def test_confident_suggestion_applies_and_drafts_rule():
    rows = [_row("Cafe Joe Haifa", merchant="Cafe Joe")]
    repo = FakeTransactionRepo(rows)
    suggester = FakeSuggester(CategorySuggestion(category_id=DINING, confidence=0.9))
    service = _service(repo, suggester)

    result = await service.apply_categorization(uuid4())

    assert result.updated == 1
    assert rows[0].category_id == DINING
    assert rows[0].categorization_source == "ai_suggestion"
    service.rule_repo.find_by_pattern.assert_awaited_once_with(ANY, "merchant", "Cafe Joe")
    rule = service.db.add.call_args.args[0]
    assert (rule.kind, rule.pattern, rule.priority, rule.created_from) == ("merchant", "Cafe Joe", 5, "ai_suggestion")


@pytest.mark.asyncio
async def test_weak_suggestion_leaves_row_for_review():
    rows = [_row("Cafe Joe Haifa", merchant="Cafe Joe")]
    repo = FakeTransactionRepo(rows)
    service = _service(repo, FakeSuggester(CategorySuggestion(category_id=DINING, confidence=0.4)))

    result = await service.apply_categorization(uuid4())

    assert result.unmatched == 1
    service.db.add.assert_not_called()


@pytest.mark.asyncio
async def test_suggestion_for_foreign_category_is_not_applied():
    rows = [_row("Cafe Joe Haifa", merchant="Cafe Joe")]
    repo = FakeTransactionRepo(rows)
    service = _service(repo, FakeSuggester(CategorySuggestion(category_id=uuid4(), confidence=0.99)))

    result = await service.apply_categorization(uuid4())

    assert result.unmatched == 1
    assert rows[0].category_id is None
