"""Category repository with household-scoped queries."""
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from finsync.models.category import Category
from finsync.models.category_rule import CategoryRule
from finsync.models.transaction import Transaction
from finsync.repositories.base import BaseRepository


class CategoryRepository(BaseRepository[Category]):
    """Repository for Category model."""

    not_found_code = "API_003"

    def __init__(self, db: AsyncSession):
        super().__init__(db, Category)

    async def get_all_by_household(self, household_id: UUID) -> list[Category]:
        """Get all categories for a household in display order."""
        result = await self.db.execute(
            select(Category)
            .where(Category.household_id == household_id)
            .order_by(Category.type, Category.sort_order, Category.name)
        )
        return list(result.scalars().all())

    async def get_by_household(self, household_id: UUID, category_id: UUID) -> Category | None:
        """Get category only if it belongs to the specified household."""
        result = await self.db.execute(
            select(Category).where(Category.id == category_id, Category.household_id == household_id)
        )
        return result.scalar_one_or_none()

    async def get_by_name(self, household_id: UUID, name: str) -> Category | None:
        """Find a category by exact name within the household."""
        result = await self.db.execute(
            select(Category)
            .where(Category.household_id == household_id, Category.name == name)
            .order_by(Category.created_at)
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def get_children_ids(self, parent_ids: list[UUID]) -> list[tuple[UUID, UUID]]:
        """Return ``(child_id, parent_id)`` pairs for the given parents."""
        if not parent_ids:
            return []
        result = await self.db.execute(
            select(Category.id, Category.parent_id).where(Category.parent_id.in_(parent_ids))
        )
        return [(row.id, row.parent_id) for row in result]

    async def get_parent_id(self, category_id: UUID) -> UUID | None:
        """Return the parent of a category (None for roots or unknown ids)."""
        result = await self.db.execute(select(Category.parent_id).where(Category.id == category_id))
        return result.scalar_one_or_none()

    async def max_sort_order(self, household_id: UUID, category_type: str) -> int:
        """Highest sort order among categories of one type."""
        result = await self.db.execute(
            select(func.max(Category.sort_order)).where(
                Category.household_id == household_id, Category.type == category_type
            )
        )
        return result.scalar_one_or_none() or 0

    async def delete_many(self, household_id: UUID, category_ids: list[UUID]) -> int:
        """Delete categories, uncategorize their transactions and drop their rules."""
        await self.db.execute(
            update(Transaction)
            .where(Transaction.household_id == household_id, Transaction.category_id.in_(category_ids))
            .values(category_id=None, categorization_source="fallback", confidence=0.0, needs_review=True)
        )
        await self.db.execute(
            delete(CategoryRule).where(
                CategoryRule.household_id == household_id, CategoryRule.category_id.in_(category_ids)
            )
        )
        result = await self.db.execute(
            delete(Category).where(Category.household_id == household_id, Category.id.in_(category_ids))
        )
        await self.db.commit()
        return int(result.rowcount or 0)
