"""Bank connection repository with household-scoped queries."""
from datetime import datetime
from uuid import UUID

from sqlalchemy import delete, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from finsync.models.connection import BankConnection
from finsync.models.sync_job import SyncJob
from finsync.repositories.base import BaseRepository


class ConnectionRepository(BaseRepository[BankConnection]):
    """Repository for BankConnection with household-scoped security."""

    not_found_code = "API_001"

    def __init__(self, db: AsyncSession):
        super().__init__(db, BankConnection)

    async def get_all_by_household(self, household_id: UUID) -> list[BankConnection]:
        """Get all connections for a household, newest first."""
        result = await self.db.execute(
            select(BankConnection)
            .where(BankConnection.household_id == household_id)
            .order_by(BankConnection.created_at.desc())
        )
        return list(result.scalars().all())

    async def get_active_by_household(self, household_id: UUID) -> list[BankConnection]:
        """Get active connections for a household in creation order."""
        result = await self.db.execute(
            select(BankConnection)
            .where(BankConnection.household_id == household_id, BankConnection.is_active == True)
            .order_by(BankConnection.created_at)
        )
        return list(result.scalars().all())

    async def get_all_active(self) -> list[BankConnection]:
        """Get active connections across all households (cron sync)."""
        result = await self.db.execute(
            select(BankConnection)
            .where(BankConnection.is_active == True)
            .order_by(BankConnection.household_id, BankConnection.created_at)
        )
        return list(result.scalars().all())

    def _stale_filter(self, household_id: UUID, threshold: datetime):
        return (
            BankConnection.household_id == household_id,
            BankConnection.is_active == True,
            or_(BankConnection.last_sync_at.is_(None), BankConnection.last_sync_at < threshold),
        )

    async def get_stale_by_household(
        self, household_id: UUID, threshold: datetime
    ) -> list[BankConnection]:
        """Get active connections that have not synced since ``threshold``."""
        result = await self.db.execute(
            select(BankConnection)
            .where(*self._stale_filter(household_id, threshold))
            .order_by(BankConnection.created_at)
        )
        return list(result.scalars().all())

    async def count_stale_by_household(self, household_id: UUID, threshold: datetime) -> int:
        """Count active connections that have not synced since ``threshold``."""
        result = await self.db.execute(
            select(BankConnection.id).where(*self._stale_filter(household_id, threshold))
        )
        return len(result.scalars().all())

    async def record_sync_outcome(
        self,
        connection_id: UUID,
        status: str,
        synced_at: datetime,
        deactivate: bool = False,
    ) -> None:
        """Update last-sync fields (and optionally deactivate) with one statement."""
        values: dict = {"last_sync_at": synced_at, "last_sync_status": status}
        if deactivate:
            values["is_active"] = False
        await self.db.execute(
            update(BankConnection).where(BankConnection.id == connection_id).values(**values)
        )
        await self.db.commit()

    async def delete_with_jobs(self, connection_id: UUID) -> None:
        """Delete a connection and its sync history. Synced transactions are kept."""
        await self.db.execute(delete(SyncJob).where(SyncJob.connection_id == connection_id))
        await self.db.execute(delete(BankConnection).where(BankConnection.id == connection_id))
        await self.db.commit()
