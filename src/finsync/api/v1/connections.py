"""Bank connection endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status

from finsync.api.deps import get_connection_service, get_current_household_id, get_sync_service
from finsync.schemas.connection import (
    AccountMappingsRequest,
    ConnectionCreateRequest,
    ConnectionListResult,
    ConnectionResponse,
    ProviderListResult,
    SyncHistoryResult,
    SyncJobResponse,
    TwoFactorCompleteRequest,
    TwoFactorInitResponse,
)
from finsync.schemas.sync import ConnectionSyncResponse
from finsync.services.connection import ConnectionService
from finsync.services.sync import SyncService

router = APIRouter(prefix="/connections", tags=["connections"])


@router.get("/providers", response_model=ProviderListResult, summary="List supported providers")
async def list_providers(
    service: ConnectionService = Depends(get_connection_service),
) -> ProviderListResult:
    """Supported institutions and the credential fields each one needs."""
    return ProviderListResult(providers=service.registry.list_providers())


@router.get("", response_model=ConnectionListResult, summary="List household connections")
async def list_connections(
    household_id: UUID = Depends(get_current_household_id),
    service: ConnectionService = Depends(get_connection_service),
) -> ConnectionListResult:
    connections = await service.list_connections(household_id)
    return ConnectionListResult(
        connections=[ConnectionResponse.model_validate(c) for c in connections],
        total=len(connections),
    )


@router.post(
    "",
    response_model=ConnectionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a connection",
    description="""
    Store encrypted credentials for a provider.

    Providers that require two-factor authentication start inactive with
    status `pending`; complete the two-factor flow to activate them.
    """,
)
async def create_connection(
    payload: ConnectionCreateRequest,
    household_id: UUID = Depends(get_current_household_id),
    service: ConnectionService = Depends(get_connection_service),
) -> ConnectionResponse:
    connection = await service.create_connection(
        household_id, payload.provider, payload.display_name, payload.credentials
    )
    return ConnectionResponse.model_validate(connection)


@router.get("/{connection_id}", response_model=ConnectionResponse, summary="Get a connection")
async def get_connection(
    connection_id: UUID,
    household_id: UUID = Depends(get_current_household_id),
    service: ConnectionService = Depends(get_connection_service),
) -> ConnectionResponse:
    connection = await service.get_connection(household_id, connection_id)
    return ConnectionResponse.model_validate(connection)


@router.delete("/{connection_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete a connection")
async def delete_connection(
    connection_id: UUID,
    household_id: UUID = Depends(get_current_household_id),
    service: ConnectionService = Depends(get_connection_service),
) -> Response:
    """Delete a connection and its sync history. Imported transactions are kept."""
    await service.delete_connection(household_id, connection_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/{connection_id}/two-factor/init",
    response_model=TwoFactorInitResponse,
    summary="Send a one-time code",
)
async def init_two_factor(
    connection_id: UUID,
    household_id: UUID = Depends(get_current_household_id),
    service: ConnectionService = Depends(get_connection_service),
) -> TwoFactorInitResponse:
    session_id = await service.init_two_factor(household_id, connection_id)
    return TwoFactorInitResponse(session_id=session_id)


@router.post(
    "/{connection_id}/two-factor/complete",
    response_model=ConnectionResponse,
    summary="Verify the one-time code",
    description="""
    Exchange the code for a long-term token and activate the connection.

    A session can be completed once; a reused or expired `session_id`
    returns `AUTH_002` (410).
    """,
)
async def complete_two_factor(
    connection_id: UUID,
    payload: TwoFactorCompleteRequest,
    household_id: UUID = Depends(get_current_household_id),
    service: ConnectionService = Depends(get_connection_service),
) -> ConnectionResponse:
    connection = await service.complete_two_factor(
        household_id, connection_id, payload.code, payload.session_id
    )
    return ConnectionResponse.model_validate(connection)


@router.post("/{connection_id}/sync", response_model=ConnectionSyncResponse, summary="Sync one connection now")
async def sync_connection(
    connection_id: UUID,
    household_id: UUID = Depends(get_current_household_id),
    service: SyncService = Depends(get_sync_service),
) -> ConnectionSyncResponse:
    result = await service.sync_connection(household_id, connection_id)
    return ConnectionSyncResponse.model_validate(result)


@router.get("/{connection_id}/history", response_model=SyncHistoryResult, summary="Recent sync jobs")
async def sync_history(
    connection_id: UUID,
    limit: Annotated[int, Query(ge=1, le=100)] = 10,
    household_id: UUID = Depends(get_current_household_id),
    service: ConnectionService = Depends(get_connection_service),
) -> SyncHistoryResult:
    jobs = await service.sync_history(household_id, connection_id, limit)
    return SyncHistoryResult(jobs=[SyncJobResponse.model_validate(j) for j in jobs])


@router.put("/{connection_id}/account-mappings", response_model=ConnectionResponse, summary="Map external accounts")
async def update_account_mappings(
    connection_id: UUID,
    payload: AccountMappingsRequest,
    household_id: UUID = Depends(get_current_household_id),
    service: ConnectionService = Depends(get_connection_service),
) -> ConnectionResponse:
    connection = await service.update_account_mappings(household_id, connection_id, payload.mappings)
    return ConnectionResponse.model_validate(connection)
