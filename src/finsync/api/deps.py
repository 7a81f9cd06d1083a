"""FastAPI dependency injection for household scoping, database and services."""

from functools import lru_cache
from typing import Annotated
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from finsync.core.exceptions import FinanceSyncError
from finsync.core.security import get_household_id_from_token, verify_cron_secret
from finsync.db.session import get_db
from finsync.providers.registry import ProviderRegistry
from finsync.services.categorization import CategorizationService
from finsync.services.category import CategoryService
from finsync.services.connection import ConnectionService
from finsync.services.rule import RuleService
from finsync.services.sync import SyncService

# Bearer token scheme
security = HTTPBearer()


@lru_cache
def get_provider_registry() -> ProviderRegistry:
    """Process-wide adapters sharing one two-factor session store."""
    return ProviderRegistry.default()


async def get_current_household_id(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
) -> UUID:
    """
    Extract the household id from a JWT bearer token.

    Raises:
        HTTPException: If token is invalid, expired or has a malformed subject
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        return get_household_id_from_token(credentials.credentials)
    except JWTError:
        raise credentials_exception
    except ValueError:
        raise credentials_exception


async def verify_cron_request(authorization: Annotated[str | None, Header()] = None) -> None:
    """Accept ``Authorization: Bearer <CRON_SECRET>`` only."""
    provided = None
    if authorization and authorization.lower().startswith("bearer "):
        provided = authorization[7:].strip()
    if not verify_cron_secret(provided):
        raise FinanceSyncError("API_006", http_status=status.HTTP_401_UNAUTHORIZED)


async def get_connection_service(
    db: AsyncSession = Depends(get_db),
    registry: ProviderRegistry = Depends(get_provider_registry),
) -> ConnectionService:
    return ConnectionService(db, registry)


async def get_sync_service(
    db: AsyncSession = Depends(get_db),
    registry: ProviderRegistry = Depends(get_provider_registry),
) -> SyncService:
    return SyncService(db, registry)


async def get_categorization_service(db: AsyncSession = Depends(get_db)) -> CategorizationService:
    return CategorizationService(db)


async def get_rule_service(db: AsyncSession = Depends(get_db)) -> RuleService:
    return RuleService(db)


async def get_category_service(db: AsyncSession = Depends(get_db)) -> CategoryService:
    return CategoryService(db)
