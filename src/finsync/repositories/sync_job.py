"""Sync job repository."""
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from finsync.models.sync_job import (
    JOB_STATUS_ERROR,
    JOB_STATUS_RUNNING,
    JOB_STATUS_SUCCESS,
    SyncJob,
)
from finsync.repositories.base import BaseRepository


class SyncJobRepository(BaseRepository[SyncJob]):
    """Repository for SyncJob records.

    Completion uses a conditional UPDATE on ``status = 'running'`` so a
    terminal job is never moved back or overwritten.
    """

    def __init__(self, db: AsyncSession):
        super().__init__(db, SyncJob)

    async def start(self, connection_id: UUID) -> SyncJob:
        """Create and commit a running job before any external call."""
        job = SyncJob(
            connection_id=connection_id,
            status=JOB_STATUS_RUNNING,
            started_at=datetime.now(timezone.utc),
        )
        return await self.create(job)

    async def _complete(self, job_id: UUID, values: dict) -> bool:
        result = await self.db.execute(
            update(SyncJob)
            .where(SyncJob.id == job_id, SyncJob.status == JOB_STATUS_RUNNING)
            .values(completed_at=datetime.now(timezone.utc), **values)
        )
        await self.db.commit()
        return bool(result.rowcount)

    async def mark_success(self, job_id: UUID, found: int, new: int) -> bool:
        """Mark a running job as successful with found/new counts."""
        return await self._complete(
            job_id,
            {
                "status": JOB_STATUS_SUCCESS,
                "transactions_found": found,
                "transactions_new": new,
            },
        )

    async def mark_error(self, job_id: UUID, message: str, found: int = 0) -> bool:
        """Mark a running job as failed with an error message."""
        return await self._complete(
            job_id,
            {"status": JOB_STATUS_ERROR, "error_message": message, "transactions_found": found},
        )

    async def get_history(self, connection_id: UUID, limit: int = 10) -> list[SyncJob]:
        """Get the most recent jobs for a connection."""
        result = await self.db.execute(
            select(SyncJob)
            .where(SyncJob.connection_id == connection_id)
            .order_by(SyncJob.started_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())
