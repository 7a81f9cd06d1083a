"""Recategorization and bulk categorization of household transactions."""

import logging
from dataclasses import dataclass
from datetime import date
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from finsync.categorization import (
    SOURCE_MANUAL,
    CategorizationCandidate,
    CategorizationResult,
    CategorySuggester,
    RuleSpec,
    categorize,
    match_rules,
    rule_from_suggestion,
    suggest_rule_from_correction,
)
from finsync.categorization.suggestions import RuleDraft
from finsync.config import settings
from finsync.core.exceptions import CrossHouseholdError, LockConflictError, NotFoundError
from finsync.models.category_rule import CategoryRule
from finsync.models.transaction import Transaction
from finsync.repositories.account import AccountRepository
from finsync.repositories.category import CategoryRepository
from finsync.repositories.rule import RuleRepository
from finsync.repositories.transaction import TransactionRepository

logger = logging.getLogger(__name__)


@dataclass
class RecategorizeResult:
    transaction: Transaction
    rule: CategoryRule | None = None


@dataclass
class BulkApplyResult:
    """Outcome of one bounded bulk-apply pass.

    ``remaining`` is how many uncategorized transactions are left, so the
    caller can invoke again for the next batch.
    """

    updated: int
    skipped: int
    unmatched: int
    failed: int
    remaining: int
    message: str


def _candidate(txn: Transaction) -> CategorizationCandidate:
    return CategorizationCandidate(
        description=txn.description or "",
        merchant=txn.merchant,
        amount=txn.amount,
        direction=txn.direction,
    )


class CategorizationService:
    """Service layer for manual and bulk categorization."""

    def __init__(self, db: AsyncSession, suggester: CategorySuggester | None = None):
        """Initialize categorization service.

        Args:
            db: Database session
            suggester: Optional external model consulted when no rule matches
        """
        self.db = db
        self.suggester = suggester
        self.account_repo = AccountRepository(db)
        self.transaction_repo = TransactionRepository(db)
        self.category_repo = CategoryRepository(db)
        self.rule_repo = RuleRepository(db)

    async def recategorize(
        self,
        household_id: UUID,
        transaction_id: UUID,
        category_id: UUID,
        create_rule: bool = False,
    ) -> RecategorizeResult:
        """Manually assign a category to one transaction.

        When ``create_rule`` is set and the transaction has a merchant, a
        merchant rule (provenance "correction") makes future imports follow
        the correction: a new rule is added, or the existing rule for that
        merchant is retargeted to ``category_id``.

        Raises:
            NotFoundError: If the transaction or category does not exist
            CrossHouseholdError: If either belongs to another household
        """
        txn = await self.transaction_repo.get_owned(household_id, transaction_id)
        await self.category_repo.get_owned(household_id, category_id)

        txn.category_id = category_id
        txn.categorization_source = SOURCE_MANUAL
        txn.confidence = 1.0
        txn.needs_review = False

        rule = None
        if create_rule and txn.merchant:
            draft = suggest_rule_from_correction(
                CategorizationCandidate(merchant=txn.merchant),
                category_id,
                priority=settings.correction_rule_priority,
            )
            if draft is not None:
                rule = await self._apply_correction_rule(household_id, draft)

        await self.db.commit()
        await self.db.refresh(txn)
        logger.info(
            "Transaction recategorized",
            extra={
                "household_id": str(household_id),
                "transaction_id": str(transaction_id),
                "rule_id": str(rule.id) if rule else None,
            },
        )
        return RecategorizeResult(transaction=txn, rule=rule)

    async def batch_recategorize(
        self,
        household_id: UUID,
        transaction_ids: list[UUID],
        category_id: UUID,
        create_rule: bool = False,
    ) -> int:
        """Manually assign one category to several transactions.

        Returns:
            Number of transactions updated
        """
        await self.category_repo.get_owned(household_id, category_id)
        unique_ids = list(dict.fromkeys(transaction_ids))
        txns = await self._get_all_owned(household_id, unique_ids)

        merchants = list(dict.fromkeys(t.merchant for t in txns if t.merchant))
        if create_rule:
            for merchant in merchants:
                draft = suggest_rule_from_correction(
                    CategorizationCandidate(merchant=merchant),
                    category_id,
                    priority=settings.correction_rule_priority,
                )
                if draft is not None:
                    await self._apply_correction_rule(household_id, draft)
            await self.db.flush()

        updated = await self.transaction_repo.set_category(
            household_id, unique_ids, category_id, SOURCE_MANUAL, 1.0, needs_review=False
        )
        logger.info(
            "Transactions recategorized",
            extra={"household_id": str(household_id), "updated": updated},
        )
        return updated

    async def toggle_ignore(self, household_id: UUID, transaction_id: UUID) -> Transaction:
        """Flip whether a transaction is left out of bulk categorization."""
        txn = await self.transaction_repo.get_owned(household_id, transaction_id)
        txn.is_ignored = not txn.is_ignored
        await self.db.commit()
        await self.db.refresh(txn)
        logger.info(
            "Transaction ignore toggled",
            extra={
                "household_id": str(household_id),
                "transaction_id": str(transaction_id),
                "is_ignored": txn.is_ignored,
            },
        )
        return txn

    async def batch_ignore(self, household_id: UUID, transaction_ids: list[UUID], is_ignored: bool = True) -> int:
        """Set the ignored flag on several transactions.

        All transactions must belong to the household; otherwise nothing
        is changed.

        Returns:
            Number of transactions updated
        """
        unique_ids = list(dict.fromkeys(transaction_ids))
        await self._get_all_owned(household_id, unique_ids)
        updated = await self.transaction_repo.set_ignored(household_id, unique_ids, is_ignored)
        logger.info(
            "Transactions ignore flag set",
            extra={"household_id": str(household_id), "updated": updated, "is_ignored": is_ignored},
        )
        return updated

    async def create_manual_transaction(
        self,
        household_id: UUID,
        account_id: UUID,
        txn_date: date,
        amount: int,
        direction: str,
        description: str = "",
        merchant: str | None = None,
        notes: str | None = None,
        category_id: UUID | None = None,
    ) -> Transaction:
        """Record a transaction entered by hand.

        Raises:
            NotFoundError: If the account or category does not exist
            CrossHouseholdError: If either belongs to another household
        """
        await self.account_repo.get_owned(household_id, account_id)
        candidate = CategorizationCandidate(
            description=description, merchant=merchant, amount=amount, direction=direction
        )
        result = await self.categorize_new_transaction(household_id, candidate, category_id)

        txn = Transaction(
            household_id=household_id,
            account_id=account_id,
            txn_date=txn_date,
            description=description,
            merchant=merchant,
            amount=amount,
            direction=direction,
            notes=notes,
            category_id=result.category_id,
            categorization_source=result.source,
            confidence=result.confidence,
            needs_review=result.needs_review,
        )
        txn = await self.transaction_repo.create(txn)
        logger.info(
            "Manual transaction created",
            extra={
                "household_id": str(household_id),
                "transaction_id": str(txn.id),
                "categorization_source": result.source,
            },
        )
        return txn

    async def categorize_new_transaction(
        self,
        household_id: UUID,
        candidate: CategorizationCandidate,
        category_id: UUID | None = None,
    ) -> CategorizationResult:
        """Categorization for a manually entered transaction.

        A category chosen by the user is final (manual, confidence 1);
        otherwise the household rules decide and a miss means review.
        """
        if category_id is not None:
            await self.category_repo.get_owned(household_id, category_id)
            return CategorizationResult(category_id=category_id, source=SOURCE_MANUAL, confidence=1.0)

        rules = await self._load_rules(household_id)
        return categorize(candidate, rules)

    async def apply_categorization(self, household_id: UUID, batch_size: int | None = None) -> BulkApplyResult:
        """Categorize one bounded batch of uncategorized transactions.

        Each transaction is claimed with an atomic conditional update before
        rules are evaluated and released in ``finally``, so concurrent calls
        never process the same row and no row stays locked after a failure.
        """
        limit = batch_size or settings.bulk_categorization_batch_size
        batch = await self.transaction_repo.get_uncategorized_batch(household_id, limit)
        if not batch:
            remaining = await self.transaction_repo.count_uncategorized(household_id)
            return BulkApplyResult(0, 0, 0, 0, remaining, "No transactions need categorization")

        # Plain values only: commits and rollbacks below may expire ORM rows.
        work = [(txn.id, _candidate(txn)) for txn in batch]
        rules = await self._load_rules(household_id)
        valid_categories = {c.id for c in await self.category_repo.get_all_by_household(household_id)}

        updated = skipped = unmatched = failed = 0
        for transaction_id, candidate in work:
            if not await self.transaction_repo.claim_for_processing(transaction_id):
                skipped += 1
                conflict = LockConflictError(details={"transaction_id": str(transaction_id)})
                logger.debug("Transaction already claimed, skipping", extra=conflict.details)
                continue

            try:
                result = await self._evaluate(household_id, candidate, rules, valid_categories)
                if result.category_id is not None and result.category_id in valid_categories:
                    await self.transaction_repo.set_category(
                        household_id,
                        [transaction_id],
                        result.category_id,
                        result.source,
                        result.confidence,
                        needs_review=False,
                    )
                    updated += 1
                else:
                    unmatched += 1
            except Exception as e:
                failed += 1
                if settings.debug:
                    logger.exception(
                        "Bulk categorization failed for transaction",
                        extra={"transaction_id": str(transaction_id), "error_type": type(e).__name__},
                    )
                else:
                    logger.error(
                        "Bulk categorization failed for transaction",
                        extra={"transaction_id": str(transaction_id), "error_type": type(e).__name__},
                    )
                await self.db.rollback()
            finally:
                await self.transaction_repo.release(transaction_id)

        remaining = await self.transaction_repo.count_uncategorized(household_id)
        message = f"Categorized {updated} of {len(work)} transactions, {remaining} remaining"
        logger.info(
            "Bulk categorization pass complete",
            extra={
                "household_id": str(household_id),
                "updated": updated,
                "skipped": skipped,
                "unmatched": unmatched,
                "failed": failed,
                "remaining": remaining,
            },
        )
        return BulkApplyResult(updated, skipped, unmatched, failed, remaining, message)

    async def _evaluate(
        self,
        household_id: UUID,
        candidate: CategorizationCandidate,
        rules: list[RuleSpec],
        valid_categories: set[UUID],
    ) -> CategorizationResult:
        result = match_rules(candidate, rules)
        if result.category_id is not None or self.suggester is None:
            return result

        suggestion = await self.suggester.suggest(candidate)
        result = categorize(candidate, [], suggestion, threshold=settings.ai_suggestion_threshold)
        if result.category_id not in valid_categories:
            return CategorizationResult.fallback()

        draft = rule_from_suggestion(
            candidate, suggestion, threshold=settings.ai_suggestion_threshold, priority=settings.ai_rule_priority
        )
        if draft is not None:
            rule = await self._add_rule_if_new(household_id, draft)
            if rule is not None:
                await self.db.commit()
                rules.append(RuleSpec.from_model(rule))
        return result

    async def _add_rule_if_new(self, household_id: UUID, draft: RuleDraft) -> CategoryRule | None:
        """Persist a drafted rule unless the pattern is already covered by one of the same kind."""
        existing = await self.rule_repo.find_by_pattern(household_id, draft.kind, draft.pattern)
        if existing:
            logger.info("Rule for pattern exists, not creating", extra={"rule_id": str(existing[0].id)})
            return None
        return await self._create_rule(household_id, draft)

    async def _apply_correction_rule(self, household_id: UUID, draft: RuleDraft) -> CategoryRule | None:
        """Make future imports follow a manual correction.

        An active rule with the same kind, pattern and category already does,
        so nothing changes. Otherwise an existing rule for the pattern is
        retargeted instead of adding a competing rule of equal precedence,
        and any other rule for the same pattern is disabled.

        Returns:
            The created or retargeted rule, or None when nothing changed
        """
        existing = await self.rule_repo.find_by_pattern(household_id, draft.kind, draft.pattern)
        if not existing:
            return await self._create_rule(household_id, draft)

        if any(r.category_id == draft.category_id and r.is_active for r in existing):
            logger.info("Correction already covered by a rule", extra={"household_id": str(household_id)})
            return None

        same_category = [r for r in existing if r.category_id == draft.category_id]
        rule = same_category[0] if same_category else existing[0]
        previous_category_id = rule.category_id
        rule.category_id = draft.category_id
        rule.created_from = draft.created_from
        rule.priority = max(rule.priority, draft.priority)
        rule.is_active = True
        for other in existing:
            if other is not rule:
                other.is_active = False
        await self.db.flush()
        logger.info(
            "Rule retargeted by correction",
            extra={
                "household_id": str(household_id),
                "rule_id": str(rule.id),
                "previous_category_id": str(previous_category_id),
                "disabled": len(existing) - 1,
            },
        )
        return rule

    async def _create_rule(self, household_id: UUID, draft: RuleDraft) -> CategoryRule:
        rule = CategoryRule(
            household_id=household_id,
            category_id=draft.category_id,
            kind=draft.kind,
            pattern=draft.pattern,
            priority=draft.priority,
            created_from=draft.created_from,
        )
        self.db.add(rule)
        await self.db.flush()
        logger.info(
            "Rule created",
            extra={"household_id": str(household_id), "rule_id": str(rule.id), "created_from": draft.created_from},
        )
        return rule

    async def _get_all_owned(self, household_id: UUID, transaction_ids: list[UUID]) -> list[Transaction]:
        txns = await self.transaction_repo.get_many_by_household(household_id, transaction_ids)
        found = {t.id for t in txns}
        for missing in (i for i in transaction_ids if i not in found):
            other = await self.transaction_repo.get_by_id(missing)
            if other is not None:
                raise CrossHouseholdError(details={"id": str(missing), "model": "Transaction"})
            raise NotFoundError("API_002", {"id": str(missing)})
        return txns

    async def _load_rules(self, household_id: UUID) -> list[RuleSpec]:
        return [RuleSpec.from_model(r) for r in await self.rule_repo.get_active_by_household(household_id)]
