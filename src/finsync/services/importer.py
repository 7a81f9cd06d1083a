"""Import mapped provider transactions into a household.

Per transaction: drop known external ids, resolve the destination account,
categorize, then persist inside a SAVEPOINT so a single failure never
aborts the rest of the batch.
"""

import logging
from dataclasses import dataclass, field
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from finsync.categorization import (
    SOURCE_IMPORTED,
    CategorizationCandidate,
    CategorizationResult,
    RuleSpec,
    categorize,
)
from finsync.config import settings
from finsync.core.exceptions import TransactionImportError
from finsync.models.account import Account
from finsync.models.category import Category
from finsync.models.transaction import Transaction
from finsync.providers.mapper import MappedTransaction
from finsync.repositories.account import AccountRepository
from finsync.repositories.category import CategoryRepository
from finsync.repositories.rule import RuleRepository

logger = logging.getLogger(__name__)


@dataclass
class ImportResult:
    found: int = 0
    new: int = 0
    duplicates: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)


class TransactionImporter:
    """Persists mapped transactions for one connection."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.account_repo = AccountRepository(db)
        self.category_repo = CategoryRepository(db)
        self.rule_repo = RuleRepository(db)

    async def import_transactions(
        self,
        household_id: UUID,
        transactions: list[MappedTransaction],
        existing_external_ids: set[str],
        account_mappings: dict[str, str] | None = None,
        account_type: str = "checking",
    ) -> ImportResult:
        """Import a batch, skipping transactions already known to the household.

        Args:
            household_id: Owning household
            transactions: Mapped provider transactions
            existing_external_ids: External ids already stored; updated in
                place with every id imported here
            account_mappings: External account id -> account id overrides
            account_type: Type used for auto-created accounts

        Returns:
            Counts of found, new, duplicate and failed transactions
        """
        result = ImportResult(found=len(transactions))
        rules = [RuleSpec.from_model(r) for r in await self.rule_repo.get_active_by_household(household_id)]
        account_cache: dict[str, UUID] = {}
        category_cache: dict[str, UUID] = {}

        for mapped in transactions:
            if mapped.external_id in existing_external_ids:
                result.duplicates += 1
                continue
            # Marked before persisting so in-batch repeats are dropped too.
            existing_external_ids.add(mapped.external_id)

            try:
                async with self.db.begin_nested():
                    account_id = account_cache.get(mapped.external_account_id)
                    if account_id is None:
                        account_id = await self._resolve_account(
                            household_id, mapped.external_account_id, account_mappings or {}, account_type
                        )
                        account_cache[mapped.external_account_id] = account_id

                    categorization = await self._categorize(household_id, mapped, rules, category_cache)
                    self.db.add(
                        Transaction(
                            household_id=household_id,
                            account_id=account_id,
                            txn_date=mapped.txn_date,
                            description=mapped.description,
                            merchant=mapped.merchant,
                            amount=mapped.amount,
                            direction=mapped.direction,
                            notes=mapped.notes,
                            external_id=mapped.external_id,
                            category_id=categorization.category_id,
                            categorization_source=categorization.source,
                            confidence=categorization.confidence,
                            needs_review=categorization.needs_review,
                        )
                    )
                    await self.db.flush()
                result.new += 1
            except Exception as e:
                error = TransactionImportError(
                    details={"external_id": mapped.external_id, "error_type": type(e).__name__}
                )
                if settings.debug:
                    logger.exception("Transaction import failed", extra=error.details)
                else:
                    logger.error("Transaction import failed", extra=error.details)
                result.failed += 1
                result.errors.append(f"{mapped.external_id}: {type(e).__name__}")
                # Savepoint rollback can discard rows created for this
                # transaction, so cached ids are no longer trustworthy.
                account_cache.clear()
                category_cache.clear()

        await self.db.commit()
        logger.info(
            "Import complete",
            extra={
                "household_id": str(household_id),
                "found": result.found,
                "new": result.new,
                "duplicates": result.duplicates,
                "failed": result.failed,
            },
        )
        return result

    async def _resolve_account(
        self,
        household_id: UUID,
        external_account_id: str,
        account_mappings: dict[str, str],
        account_type: str,
    ) -> UUID:
        """Mapping table, then existing account by external id, then auto-create."""
        mapped_id = account_mappings.get(external_account_id)
        if mapped_id:
            try:
                account = await self.account_repo.get_by_household(household_id, UUID(str(mapped_id)))
            except ValueError:
                account = None
            if account is not None:
                return account.id
            logger.warning(
                "Account mapping is stale, falling back",
                extra={"external_account_id": external_account_id, "mapped_account_id": str(mapped_id)},
            )

        account = await self.account_repo.get_by_external_id(household_id, external_account_id)
        if account is not None:
            return account.id

        account = Account(
            household_id=household_id,
            name=f"Account {external_account_id[-4:]}",
            type=account_type,
            external_account_id=external_account_id,
        )
        self.db.add(account)
        await self.db.flush()
        logger.info(
            "Auto-created account",
            extra={"household_id": str(household_id), "account_id": str(account.id)},
        )
        return account.id

    async def _categorize(
        self,
        household_id: UUID,
        mapped: MappedTransaction,
        rules: list[RuleSpec],
        category_cache: dict[str, UUID],
    ) -> CategorizationResult:
        """Provider-supplied category first, then household rules."""
        label = (mapped.external_category or "").strip()
        if label:
            category_id = category_cache.get(label)
            if category_id is None:
                category_id = await self._find_or_create_category(household_id, label, mapped.direction)
                category_cache[label] = category_id
            return CategorizationResult(
                category_id=category_id, source=SOURCE_IMPORTED, confidence=1.0, reason=f"provider category '{label}'"
            )

        candidate = CategorizationCandidate(
            description=mapped.description,
            merchant=mapped.merchant,
            amount=mapped.amount,
            direction=mapped.direction,
        )
        return categorize(candidate, rules)

    async def _find_or_create_category(self, household_id: UUID, name: str, direction: str) -> UUID:
        category = await self.category_repo.get_by_name(household_id, name)
        if category is not None:
            return category.id

        category_type = "income" if direction == "income" else "varying"
        category = Category(
            household_id=household_id,
            name=name[:100],
            type=category_type,
            sort_order=await self.category_repo.max_sort_order(household_id, category_type) + 1,
        )
        self.db.add(category)
        await self.db.flush()
        logger.info(
            "Created category from provider label",
            extra={"household_id": str(household_id), "category_id": str(category.id)},
        )
        return category.id
