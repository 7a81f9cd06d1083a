"""Base repository with generic CRUD operations."""
from typing import Generic, Type, TypeVar
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from finsync.core.exceptions import CrossHouseholdError, NotFoundError
from finsync.models.base import BaseModel

T = TypeVar("T", bound=BaseModel)


class BaseRepository(Generic[T]):
    """Generic repository providing CRUD operations for any model."""

    # Catalog code raised when a record is missing.
    not_found_code = "API_001"

    def __init__(self, db: AsyncSession, model: Type[T]):
        self.db = db
        self.model = model

    async def get_by_id(self, id: UUID) -> T | None:
        """Get a single record by ID."""
        result = await self.db.execute(select(self.model).where(self.model.id == id))
        return result.scalar_one_or_none()

    async def get_owned(self, household_id: UUID, id: UUID) -> T:
        """Get a record that must belong to the given household.

        Raises:
            NotFoundError: If no record has this ID
            CrossHouseholdError: If the record belongs to another household
        """
        obj = await self.get_by_id(id)
        if obj is None:
            raise NotFoundError(self.not_found_code, {"id": str(id)})
        if obj.household_id != household_id:
            raise CrossHouseholdError(details={"id": str(id), "model": self.model.__name__})
        return obj

    async def create(self, obj: T) -> T:
        """Create a new record."""
        self.db.add(obj)
        await self.db.commit()
        await self.db.refresh(obj)
        return obj

    async def delete(self, id: UUID) -> bool:
        """Delete a record by ID."""
        obj = await self.get_by_id(id)
        if not obj:
            return False

        await self.db.delete(obj)
        await self.db.commit()
        return True
