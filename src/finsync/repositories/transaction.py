"""Transaction repository with household-scoped queries and the processing lock."""
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from finsync.models.transaction import Transaction
from finsync.repositories.base import BaseRepository


class TransactionRepository(BaseRepository[Transaction]):
    """Repository for Transaction model."""

    not_found_code = "API_002"

    def __init__(self, db: AsyncSession):
        super().__init__(db, Transaction)

    async def get_by_household(self, household_id: UUID, transaction_id: UUID) -> Transaction | None:
        """Get transaction only if it belongs to the specified household."""
        result = await self.db.execute(
            select(Transaction).where(
                Transaction.id == transaction_id, Transaction.household_id == household_id
            )
        )
        return result.scalar_one_or_none()

    async def get_many_by_household(self, household_id: UUID, transaction_ids: list[UUID]) -> list[Transaction]:
        if not transaction_ids:
            return []
        result = await self.db.execute(
            select(Transaction).where(
                Transaction.household_id == household_id, Transaction.id.in_(transaction_ids)
            )
        )
        return list(result.scalars().all())

    async def get_external_ids(self, household_id: UUID) -> set[str]:
        """All external identifiers already imported for a household."""
        result = await self.db.execute(
            select(Transaction.external_id).where(
                Transaction.household_id == household_id, Transaction.external_id.is_not(None)
            )
        )
        return set(result.scalars().all())

    def _uncategorized_filter(self, household_id: UUID):
        return (
            Transaction.household_id == household_id,
            Transaction.category_id.is_(None),
            Transaction.is_ignored == False,
        )

    async def get_uncategorized_batch(self, household_id: UUID, limit: int) -> list[Transaction]:
        """Uncategorized, non-ignored, unlocked transactions, newest first."""
        result = await self.db.execute(
            select(Transaction)
            .where(*self._uncategorized_filter(household_id), Transaction.is_processing == False)
            .order_by(Transaction.txn_date.desc(), Transaction.id)
            .limit(limit)
        )
        return list(result.scalars().all())

    async def count_uncategorized(self, household_id: UUID) -> int:
        result = await self.db.execute(
            select(func.count(Transaction.id)).where(*self._uncategorized_filter(household_id))
        )
        return result.scalar_one()

    async def claim_for_processing(self, transaction_id: UUID) -> bool:
        """Atomically set the processing lock.

        Succeeds only if the row is unlocked and still uncategorized; the
        check and the write happen in one conditional UPDATE.
        """
        result = await self.db.execute(
            update(Transaction)
            .where(
                Transaction.id == transaction_id,
                Transaction.is_processing == False,
                Transaction.category_id.is_(None),
            )
            .values(is_processing=True)
        )
        await self.db.commit()
        return result.rowcount == 1

    async def release(self, transaction_id: UUID) -> None:
        """Clear the processing lock."""
        await self.db.execute(
            update(Transaction)
            .where(Transaction.id == transaction_id)
            .values(is_processing=False)
        )
        await self.db.commit()

    async def set_category(
        self,
        household_id: UUID,
        transaction_ids: list[UUID],
        category_id: UUID | None,
        source: str,
        confidence: float,
        needs_review: bool,
    ) -> int:
        """Assign a category to transactions of one household."""
        if not transaction_ids:
            return 0
        result = await self.db.execute(
            update(Transaction)
            .where(Transaction.household_id == household_id, Transaction.id.in_(transaction_ids))
            .values(
                category_id=category_id,
                categorization_source=source,
                confidence=confidence,
                needs_review=needs_review,
            )
        )
        await self.db.commit()
        return int(result.rowcount or 0)

    async def set_ignored(self, household_id: UUID, transaction_ids: list[UUID], is_ignored: bool) -> int:
        """Include or exclude transactions of one household from bulk categorization."""
        if not transaction_ids:
            return 0
        result = await self.db.execute(
            update(Transaction)
            .where(Transaction.household_id == household_id, Transaction.id.in_(transaction_ids))
            .values(is_ignored=is_ignored)
        )
        await self.db.commit()
        return int(result.rowcount or 0)
