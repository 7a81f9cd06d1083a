"""Category rule repository."""
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from finsync.models.category import Category
from finsync.models.category_rule import CategoryRule
from finsync.repositories.base import BaseRepository


class RuleRepository(BaseRepository[CategoryRule]):
    """Repository for CategoryRule model."""

    not_found_code = "API_004"

    def __init__(self, db: AsyncSession):
        super().__init__(db, CategoryRule)

    async def get_all_by_household(self, household_id: UUID) -> list[CategoryRule]:
        """Get all rules for a household, highest priority first."""
        result = await self.db.execute(
            select(CategoryRule)
            .where(CategoryRule.household_id == household_id)
            .order_by(CategoryRule.priority.desc(), CategoryRule.created_at)
        )
        return list(result.scalars().all())

    async def get_active_by_household(self, household_id: UUID) -> list[CategoryRule]:
        """Get active rules for a household (evaluation order is decided by the engine)."""
        result = await self.db.execute(
            select(CategoryRule).where(
                CategoryRule.household_id == household_id, CategoryRule.is_active == True
            )
        )
        return list(result.scalars().all())

    async def find_by_pattern(self, household_id: UUID, kind: str, pattern: str) -> list[CategoryRule]:
        """Rules of ``kind`` whose pattern equals ``pattern`` ignoring case, oldest first."""
        result = await self.db.execute(
            select(CategoryRule)
            .where(
                CategoryRule.household_id == household_id,
                CategoryRule.kind == kind,
                func.lower(CategoryRule.pattern) == pattern.strip().lower(),
            )
            .order_by(CategoryRule.created_at)
        )
        return list(result.scalars().all())

    async def get_broken(self, household_id: UUID) -> list[CategoryRule]:
        """Rules whose target category no longer exists in the household."""
        existing = select(Category.id).where(Category.household_id == household_id)
        result = await self.db.execute(
            select(CategoryRule).where(
                CategoryRule.household_id == household_id,
                CategoryRule.category_id.not_in(existing),
            )
        )
        return list(result.scalars().all())
