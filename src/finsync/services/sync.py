"""Sync orchestration for bank connections.

One sync attempt of one connection:

1. A ``running`` SyncJob is committed before any external call.
2. Stored credentials (and the long-term token, if any) are decrypted.
3. The provider adapter scrapes, bounded by ``provider_timeout_seconds``.
4. A failed scrape is classified as auth-required (connection deactivated)
   or transient (connection stays active). The job is marked ``error``.
5. A successful scrape is mapped, deduplicated against the household's
   known external ids and imported; the job is marked ``success``.

The job always ends in a terminal state. Unexpected exceptions mark it
``error`` and are re-raised; household-wide syncs catch them per
connection so one bad connection never blocks the others.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from uuid import UUID

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from finsync.config import settings
from finsync.core.errors import get_user_message
from finsync.core.exceptions import CredentialError
from finsync.core.vault import decrypt_credentials, decrypt_token
from finsync.models.connection import (
    SYNC_STATUS_AUTH_REQUIRED,
    SYNC_STATUS_ERROR,
    SYNC_STATUS_SUCCESS,
    BankConnection,
)
from finsync.models.account import ACCOUNT_TYPES
from finsync.providers.base import ERROR_EXCEPTION, ERROR_TIMEOUT, ScrapeResult
from finsync.providers.mapper import map_account_transactions
from finsync.providers.registry import ProviderRegistry
from finsync.repositories.connection import ConnectionRepository
from finsync.repositories.sync_job import SyncJobRepository
from finsync.repositories.transaction import TransactionRepository
from finsync.services.importer import TransactionImporter

logger = logging.getLogger(__name__)

# Provider error types that mean the user must re-authenticate
AUTH_ERROR_TYPES = frozenset({"AUTH_REQUIRED", "INVALID_PASSWORD", "CHANGE_PASSWORD", "ACCOUNT_BLOCKED"})
# Case-insensitive message fragments with the same meaning
AUTH_ERROR_MARKERS = ("re-authenticate", "expired", "idtoken")

FAILURE_AUTH_REQUIRED = "auth_required"
FAILURE_TRANSIENT = "transient"

# Account type used when a provider account is auto-provisioned
PROVIDER_ACCOUNT_TYPES = {"isracard": "credit"}


def classify_failure(error_type: str | None, error_message: str | None) -> str:
    """Decide whether a failed scrape needs user re-authentication."""
    if error_type and error_type.upper() in AUTH_ERROR_TYPES:
        return FAILURE_AUTH_REQUIRED
    message = (error_message or "").lower()
    if any(marker in message for marker in AUTH_ERROR_MARKERS):
        return FAILURE_AUTH_REQUIRED
    return FAILURE_TRANSIENT


@dataclass(frozen=True)
class ConnectionSnapshot:
    """Plain copy of the connection fields a sync needs."""

    id: UUID
    household_id: UUID
    provider: str
    display_name: str
    encrypted_credentials: str
    encrypted_token: str | None
    account_mappings: dict

    @classmethod
    def from_model(cls, connection: BankConnection) -> "ConnectionSnapshot":
        return cls(
            id=connection.id,
            household_id=connection.household_id,
            provider=connection.provider,
            display_name=connection.display_name,
            encrypted_credentials=connection.encrypted_credentials,
            encrypted_token=connection.encrypted_token,
            account_mappings=dict(connection.account_mappings or {}),
        )


@dataclass
class ConnectionSyncResult:
    connection_id: UUID
    display_name: str
    success: bool
    transactions_found: int = 0
    transactions_new: int = 0
    status: str | None = None
    error_message: str | None = None
    job_id: UUID | None = None

    @property
    def auth_required(self) -> bool:
        return self.status == SYNC_STATUS_AUTH_REQUIRED


@dataclass
class SyncBatchResult:
    """Aggregate of several connection syncs."""

    success: bool
    message: str
    synced_connections: int = 0
    total_connections: int = 0
    total_transactions_found: int = 0
    total_transactions_new: int = 0
    errors: list[str] = field(default_factory=list)
    details: list[ConnectionSyncResult] = field(default_factory=list)
    duration_ms: int = 0


class SyncService:
    """Service layer for connection synchronization."""

    def __init__(
        self,
        db: AsyncSession,
        registry: ProviderRegistry,
        timeout_seconds: float | None = None,
        lookback_days: int | None = None,
    ):
        """Initialize sync service.

        Args:
            db: Database session
            registry: Provider adapters
            timeout_seconds: Upper bound for one adapter call
            lookback_days: How far back a sync fetches by default
        """
        self.db = db
        self.registry = registry
        self.timeout_seconds = timeout_seconds or settings.provider_timeout_seconds
        self.lookback_days = lookback_days or settings.sync_lookback_days
        self.connection_repo = ConnectionRepository(db)
        self.job_repo = SyncJobRepository(db)
        self.transaction_repo = TransactionRepository(db)
        self.importer = TransactionImporter(db)

    # ------------------------------------------------------------------
    # Single connection
    # ------------------------------------------------------------------

    async def sync_connection(
        self,
        household_id: UUID,
        connection_id: UUID,
        existing_external_ids: set[str] | None = None,
        start_date: date | None = None,
    ) -> ConnectionSyncResult:
        """Sync one connection of a household.

        Raises:
            NotFoundError: If the connection does not exist
            CrossHouseholdError: If it belongs to another household
        """
        connection = await self.connection_repo.get_owned(household_id, connection_id)
        return await self._sync(ConnectionSnapshot.from_model(connection), existing_external_ids, start_date)

    async def _sync(
        self,
        connection: ConnectionSnapshot,
        existing_external_ids: set[str] | None,
        start_date: date | None = None,
    ) -> ConnectionSyncResult:
        # A failure to write the job row propagates to the caller.
        job = await self.job_repo.start(connection.id)
        job_id = job.id
        log_extra = {"connection_id": str(connection.id), "provider": connection.provider, "job_id": str(job_id)}
        logger.info("Sync started", extra=log_extra)

        found = 0
        try:
            try:
                credentials = decrypt_credentials(connection.encrypted_credentials)
                token = decrypt_token(connection.encrypted_token) if connection.encrypted_token else None
            except CredentialError as e:
                logger.error("Credential decryption failed", extra={**log_extra, "error_code": e.error_code})
                return await self._fail(connection, job_id, get_user_message(e.error_code), FAILURE_TRANSIENT)

            adapter = self.registry.get_adapter(connection.provider)
            since = start_date or (date.today() - timedelta(days=self.lookback_days))
            result = await self._scrape(adapter, since, credentials, token)

            if not result.success:
                kind = classify_failure(result.error_type, result.error_message)
                logger.warning(
                    "Scrape failed",
                    extra={**log_extra, "error_type": result.error_type, "failure": kind},
                )
                return await self._fail(connection, job_id, result.error_message or "Sync failed", kind)

            mapped = map_account_transactions(result.accounts)
            found = len(mapped)
            if existing_external_ids is None:
                existing_external_ids = await self.transaction_repo.get_external_ids(connection.household_id)

            imported = await self.importer.import_transactions(
                connection.household_id,
                mapped,
                existing_external_ids,
                account_mappings=connection.account_mappings,
                account_type=self._account_type(connection.provider),
            )

            await self.job_repo.mark_success(job_id, found, imported.new)
            await self.connection_repo.record_sync_outcome(
                connection.id, SYNC_STATUS_SUCCESS, datetime.now(timezone.utc)
            )
            logger.info("Sync completed", extra={**log_extra, "found": found, "new": imported.new})
            return ConnectionSyncResult(
                connection_id=connection.id,
                display_name=connection.display_name,
                success=True,
                transactions_found=found,
                transactions_new=imported.new,
                status=SYNC_STATUS_SUCCESS,
                job_id=job_id,
            )

        except Exception as e:
            if settings.debug:
                logger.exception("Unexpected sync error", extra={**log_extra, "error_type": type(e).__name__})
            else:
                logger.error("Unexpected sync error", extra={**log_extra, "error_type": type(e).__name__})
            await self.db.rollback()
            await self.job_repo.mark_error(job_id, f"Unexpected error: {type(e).__name__}: {e}", found)
            await self.connection_repo.record_sync_outcome(
                connection.id, SYNC_STATUS_ERROR, datetime.now(timezone.utc)
            )
            raise

    async def _scrape(self, adapter, since: date, credentials: dict, token: str | None) -> ScrapeResult:
        """Run the adapter with a timeout; transport faults become transient failures."""
        try:
            return await asyncio.wait_for(
                adapter.scrape(since, credentials, token), timeout=self.timeout_seconds
            )
        except asyncio.TimeoutError:
            return ScrapeResult.failure(
                ERROR_TIMEOUT, f"Provider did not respond within {self.timeout_seconds:g} seconds"
            )
        except httpx.TransportError as e:
            return ScrapeResult.failure(ERROR_EXCEPTION, f"Network error talking to provider: {type(e).__name__}")

    async def _fail(
        self, connection: ConnectionSnapshot, job_id: UUID, message: str, kind: str
    ) -> ConnectionSyncResult:
        auth_required = kind == FAILURE_AUTH_REQUIRED
        status = SYNC_STATUS_AUTH_REQUIRED if auth_required else SYNC_STATUS_ERROR
        await self.job_repo.mark_error(job_id, message)
        await self.connection_repo.record_sync_outcome(
            connection.id, status, datetime.now(timezone.utc), deactivate=auth_required
        )
        if auth_required:
            logger.warning("Connection deactivated, re-authentication required", extra={"connection_id": str(connection.id)})
        return ConnectionSyncResult(
            connection_id=connection.id,
            display_name=connection.display_name,
            success=False,
            status=status,
            error_message=message,
            job_id=job_id,
        )

    @staticmethod
    def _account_type(provider: str) -> str:
        account_type = PROVIDER_ACCOUNT_TYPES.get(provider, "checking")
        return account_type if account_type in ACCOUNT_TYPES else "checking"

    # ------------------------------------------------------------------
    # Many connections
    # ------------------------------------------------------------------

    async def sync_household(self, household_id: UUID) -> SyncBatchResult:
        """Sync every active connection of a household, sequentially."""
        connections = await self.connection_repo.get_active_by_household(household_id)
        return await self._sync_many(connections, empty_message="No active connections to sync")

    async def sync_all_active(self) -> SyncBatchResult:
        """Sync every active connection of every household (cron)."""
        connections = await self.connection_repo.get_all_active()
        return await self._sync_many(connections, empty_message="No active connections to sync")

    async def sync_stale_for_household(
        self, household_id: UUID, threshold_hours: int | None = None
    ) -> SyncBatchResult:
        """Sync active connections that have not synced within the threshold."""
        connections = await self.connection_repo.get_stale_by_household(
            household_id, self._stale_threshold(threshold_hours)
        )
        return await self._sync_many(connections, empty_message="All connections are up to date")

    async def has_stale_connections(self, household_id: UUID, threshold_hours: int | None = None) -> bool:
        count = await self.connection_repo.count_stale_by_household(
            household_id, self._stale_threshold(threshold_hours)
        )
        return count > 0

    @staticmethod
    def _stale_threshold(threshold_hours: int | None) -> datetime:
        hours = settings.sync_stale_threshold_hours if threshold_hours is None else threshold_hours
        return datetime.now(timezone.utc) - timedelta(hours=hours)

    async def _sync_many(self, connections: list[BankConnection], empty_message: str) -> SyncBatchResult:
        started = time.monotonic()
        # Snapshot first: a rollback after a failed sync expires loaded rows.
        snapshots = [ConnectionSnapshot.from_model(c) for c in connections]
        if not snapshots:
            return SyncBatchResult(success=True, message=empty_message)

        batch = SyncBatchResult(success=False, message="", total_connections=len(snapshots))
        # Known external ids, loaded once per household for the whole batch
        existing_ids: dict[UUID, set[str]] = {}

        for connection in snapshots:
            if connection.household_id not in existing_ids:
                existing_ids[connection.household_id] = await self.transaction_repo.get_external_ids(
                    connection.household_id
                )
            try:
                result = await self._sync(connection, existing_ids[connection.household_id])
            except Exception as e:
                message = f"{type(e).__name__}: {e}"
                result = ConnectionSyncResult(
                    connection_id=connection.id,
                    display_name=connection.display_name,
                    success=False,
                    status=SYNC_STATUS_ERROR,
                    error_message=message,
                )

            batch.details.append(result)
            if result.success:
                batch.synced_connections += 1
                batch.total_transactions_found += result.transactions_found
                batch.total_transactions_new += result.transactions_new
            else:
                batch.errors.append(f"{connection.display_name}: {result.error_message}")

        batch.success = batch.synced_connections > 0
        batch.message = f"Synced {batch.synced_connections}/{batch.total_connections} connections"
        batch.duration_ms = int((time.monotonic() - started) * 1000)
        logger.info(
            "Batch sync finished",
            extra={
                "synced": batch.synced_connections,
                "total": batch.total_connections,
                "new": batch.total_transactions_new,
            },
        )
        return batch
