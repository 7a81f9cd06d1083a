"""Account repository with household-scoped queries."""
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from finsync.models.account import Account
from finsync.repositories.base import BaseRepository


class AccountRepository(BaseRepository[Account]):
    """Repository for Account model."""

    not_found_code = "API_007"

    def __init__(self, db: AsyncSession):
        super().__init__(db, Account)

    async def get_by_household(self, household_id: UUID, account_id: UUID) -> Account | None:
        """Get account only if it belongs to the specified household."""
        result = await self.db.execute(
            select(Account).where(Account.id == account_id, Account.household_id == household_id)
        )
        return result.scalar_one_or_none()

    async def get_by_external_id(self, household_id: UUID, external_account_id: str) -> Account | None:
        """Find the account previously provisioned for an external account."""
        result = await self.db.execute(
            select(Account)
            .where(
                Account.household_id == household_id,
                Account.external_account_id == external_account_id,
            )
            .order_by(Account.created_at)
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def count_by_ids(self, household_id: UUID, account_ids: list[UUID]) -> int:
        """Count how many of the given account ids belong to the household."""
        if not account_ids:
            return 0
        result = await self.db.execute(
            select(Account.id).where(Account.household_id == household_id, Account.id.in_(account_ids))
        )
        return len(result.scalars().all())
