"""Bank connection management: setup, two-factor, account mappings."""

import logging
from uuid import UUID

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from finsync.core.exceptions import (
    TransientProviderError,
    TwoFactorError,
    TwoFactorSessionExpiredError,
    ValidationError,
)
from finsync.core.vault import decrypt_credentials, encrypt_credentials, encrypt_token
from finsync.models.connection import SYNC_STATUS_PENDING, BankConnection
from finsync.models.sync_job import SyncJob
from finsync.providers.registry import ProviderRegistry
from finsync.repositories.account import AccountRepository
from finsync.repositories.connection import ConnectionRepository
from finsync.repositories.sync_job import SyncJobRepository

logger = logging.getLogger(__name__)


class ConnectionService:
    """Service layer for bank connection operations."""

    def __init__(self, db: AsyncSession, registry: ProviderRegistry):
        self.db = db
        self.registry = registry
        self.connection_repo = ConnectionRepository(db)
        self.job_repo = SyncJobRepository(db)
        self.account_repo = AccountRepository(db)

    async def list_connections(self, household_id: UUID) -> list[BankConnection]:
        return await self.connection_repo.get_all_by_household(household_id)

    async def get_connection(self, household_id: UUID, connection_id: UUID) -> BankConnection:
        return await self.connection_repo.get_owned(household_id, connection_id)

    async def create_connection(
        self,
        household_id: UUID,
        provider: str,
        display_name: str,
        credentials: dict,
    ) -> BankConnection:
        """Store a new connection with encrypted credentials.

        Two-factor providers start inactive with status "pending" until
        ``complete_two_factor`` stores a long-term token.

        Raises:
            ProviderNotSupportedError: Unknown provider tag
            CredentialError: Credentials missing the provider's fields
        """
        adapter = self.registry.get_adapter(provider)
        parsed = adapter.parse_credentials(credentials)

        connection = BankConnection(
            household_id=household_id,
            provider=adapter.provider.value,
            display_name=display_name,
            encrypted_credentials=encrypt_credentials(parsed.model_dump()),
            is_active=not adapter.requires_two_factor,
            last_sync_status=SYNC_STATUS_PENDING if adapter.requires_two_factor else None,
            account_mappings={},
        )
        connection = await self.connection_repo.create(connection)
        logger.info(
            "Connection created",
            extra={
                "household_id": str(household_id),
                "connection_id": str(connection.id),
                "provider": connection.provider,
            },
        )
        return connection

    async def delete_connection(self, household_id: UUID, connection_id: UUID) -> None:
        """Delete a connection and its sync jobs. Imported transactions stay."""
        await self.connection_repo.get_owned(household_id, connection_id)
        await self.connection_repo.delete_with_jobs(connection_id)
        logger.info("Connection deleted", extra={"connection_id": str(connection_id)})

    async def init_two_factor(self, household_id: UUID, connection_id: UUID) -> str:
        """Start the two-factor exchange and return its session id.

        Raises:
            TwoFactorError: PROV_003 if the provider has no two-factor step,
                AUTH_003 if the provider refused to send a code
            TransientProviderError: Network failure talking to the provider
        """
        connection = await self.connection_repo.get_owned(household_id, connection_id)
        adapter = self.registry.get_adapter(connection.provider)
        if not adapter.requires_two_factor:
            raise TwoFactorError("PROV_003", {"provider": connection.provider})

        credentials = decrypt_credentials(connection.encrypted_credentials)
        try:
            result = await adapter.init_two_factor(credentials, owner=str(connection_id))
        except httpx.TransportError as e:
            raise TransientProviderError(details={"error_type": type(e).__name__}) from e

        if not result.success or not result.session_id:
            raise TwoFactorError(details={"reason": result.error_message})
        logger.info("Two-factor initiated", extra={"connection_id": str(connection_id)})
        return result.session_id

    async def complete_two_factor(
        self,
        household_id: UUID,
        connection_id: UUID,
        code: str,
        session_id: str,
    ) -> BankConnection:
        """Finish the two-factor exchange and store the long-term token.

        Raises:
            TwoFactorSessionExpiredError: Session unknown, expired, already used
                or started for another connection
            TwoFactorError: The provider rejected the code
        """
        connection = await self.connection_repo.get_owned(household_id, connection_id)
        adapter = self.registry.get_adapter(connection.provider)
        if not adapter.requires_two_factor:
            raise TwoFactorError("PROV_003", {"provider": connection.provider})

        credentials = decrypt_credentials(connection.encrypted_credentials)
        try:
            result = await adapter.complete_two_factor(
                credentials, code, session_id, owner=str(connection_id)
            )
        except httpx.TransportError as e:
            raise TransientProviderError(details={"error_type": type(e).__name__}) from e

        if result.session_expired:
            raise TwoFactorSessionExpiredError(details={"connection_id": str(connection_id)})
        if not result.success or not result.long_term_token:
            raise TwoFactorError(details={"reason": result.error_message})

        connection.encrypted_token = encrypt_token(result.long_term_token)
        connection.is_active = True
        connection.last_sync_status = SYNC_STATUS_PENDING
        await self.db.commit()
        await self.db.refresh(connection)
        logger.info("Two-factor completed, connection active", extra={"connection_id": str(connection_id)})
        return connection

    async def update_account_mappings(
        self,
        household_id: UUID,
        connection_id: UUID,
        mappings: dict[str, UUID],
    ) -> BankConnection:
        """Replace the external-account -> account mapping table.

        Raises:
            ValidationError: VAL_003 if a target account is not the household's
        """
        connection = await self.connection_repo.get_owned(household_id, connection_id)
        targets = list({UUID(str(v)) for v in mappings.values()})
        owned = await self.account_repo.count_by_ids(household_id, targets)
        if owned != len(targets):
            raise ValidationError("VAL_003", {"connection_id": str(connection_id)})

        connection.account_mappings = {str(k): str(v) for k, v in mappings.items()}
        await self.db.commit()
        await self.db.refresh(connection)
        return connection

    async def sync_history(self, household_id: UUID, connection_id: UUID, limit: int = 10) -> list[SyncJob]:
        await self.connection_repo.get_owned(household_id, connection_id)
        return await self.job_repo.get_history(connection_id, limit)
