"""Category tree management."""

import logging
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from finsync.core.exceptions import ValidationError
from finsync.models.category import CATEGORY_TYPES, Category
from finsync.repositories.category import CategoryRepository

logger = logging.getLogger(__name__)

# Deepest category nesting walked when following parent or child links
MAX_CATEGORY_DEPTH = 32


class CategoryService:
    """Service layer for categories."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.category_repo = CategoryRepository(db)

    async def list_categories(self, household_id: UUID) -> list[Category]:
        return await self.category_repo.get_all_by_household(household_id)

    async def create_category(
        self,
        household_id: UUID,
        name: str,
        category_type: str,
        parent_id: UUID | None = None,
        icon: str | None = None,
    ) -> Category:
        if category_type not in CATEGORY_TYPES:
            raise ValidationError("VAL_001", {"field": "type", "value": category_type})
        if parent_id is not None:
            await self.category_repo.get_owned(household_id, parent_id)

        category = Category(
            household_id=household_id,
            parent_id=parent_id,
            name=name,
            type=category_type,
            icon=icon,
            sort_order=await self.category_repo.max_sort_order(household_id, category_type) + 1,
        )
        return await self.category_repo.create(category)

    async def descendant_ids(self, household_id: UUID, category_id: UUID) -> list[UUID]:
        """All descendants of a category, breadth first.

        Walks an explicit worklist; ids already seen are not revisited and
        the walk stops at ``MAX_CATEGORY_DEPTH`` levels.
        """
        await self.category_repo.get_owned(household_id, category_id)
        seen: set[UUID] = {category_id}
        descendants: list[UUID] = []
        frontier = [category_id]
        depth = 0

        while frontier:
            if depth >= MAX_CATEGORY_DEPTH:
                logger.warning(
                    "Category tree deeper than limit, truncating",
                    extra={"category_id": str(category_id), "max_depth": MAX_CATEGORY_DEPTH},
                )
                break
            next_frontier = []
            for child_id, _parent_id in await self.category_repo.get_children_ids(frontier):
                if child_id in seen:
                    continue
                seen.add(child_id)
                descendants.append(child_id)
                next_frontier.append(child_id)
            frontier = next_frontier
            depth += 1

        return descendants

    async def set_parent(self, household_id: UUID, category_id: UUID, parent_id: UUID | None) -> Category:
        """Move a category under a new parent (or to the root).

        Raises:
            ValidationError: VAL_002 if the move would create a cycle
        """
        category = await self.category_repo.get_owned(household_id, category_id)
        if parent_id is not None:
            await self.category_repo.get_owned(household_id, parent_id)
            if await self._is_ancestor_or_self(category_id, parent_id):
                raise ValidationError(
                    "VAL_002", {"category_id": str(category_id), "parent_id": str(parent_id)}
                )

        category.parent_id = parent_id
        await self.db.commit()
        await self.db.refresh(category)
        return category

    async def _is_ancestor_or_self(self, category_id: UUID, node_id: UUID) -> bool:
        """True if ``category_id`` is ``node_id`` or one of its ancestors."""
        current: UUID | None = node_id
        visited: set[UUID] = set()
        for _ in range(MAX_CATEGORY_DEPTH + 1):
            if current is None:
                return False
            if current == category_id or current in visited:
                return True
            visited.add(current)
            current = await self.category_repo.get_parent_id(current)
        # Chain longer than any valid tree
        return True

    async def delete_category(self, household_id: UUID, category_id: UUID) -> int:
        """Delete a category and its descendants.

        Their transactions become uncategorized and flagged for review;
        rules targeting them are removed.

        Returns:
            Number of categories deleted
        """
        ids = [category_id, *await self.descendant_ids(household_id, category_id)]
        deleted = await self.category_repo.delete_many(household_id, ids)
        logger.info(
            "Categories deleted",
            extra={"household_id": str(household_id), "deleted": deleted},
        )
        return deleted
