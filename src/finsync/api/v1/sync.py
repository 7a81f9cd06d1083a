"""Household and cron sync endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from finsync.api.deps import get_current_household_id, get_sync_service, verify_cron_request
from finsync.schemas.sync import StaleStatusResponse, SyncBatchResponse
from finsync.services.sync import SyncService

router = APIRouter(tags=["sync"])


@router.post("/sync", response_model=SyncBatchResponse, summary="Sync all household connections")
async def sync_household(
    household_id: UUID = Depends(get_current_household_id),
    service: SyncService = Depends(get_sync_service),
) -> SyncBatchResponse:
    """
    Sync every active connection of the household, one after another.

    A failing connection is reported in `details`/`errors` without stopping
    the others; `success` is true when at least one connection synced.
    """
    result = await service.sync_household(household_id)
    return SyncBatchResponse.model_validate(result)


@router.post("/sync/stale", response_model=SyncBatchResponse, summary="Sync stale connections")
async def sync_stale(
    threshold_hours: Annotated[int | None, Query(ge=0, le=168)] = None,
    household_id: UUID = Depends(get_current_household_id),
    service: SyncService = Depends(get_sync_service),
) -> SyncBatchResponse:
    result = await service.sync_stale_for_household(household_id, threshold_hours)
    return SyncBatchResponse.model_validate(result)


@router.get("/sync/stale", response_model=StaleStatusResponse, summary="Check for stale connections")
async def stale_status(
    threshold_hours: Annotated[int | None, Query(ge=0, le=168)] = None,
    household_id: UUID = Depends(get_current_household_id),
    service: SyncService = Depends(get_sync_service),
) -> StaleStatusResponse:
    return StaleStatusResponse(
        has_stale_connections=await service.has_stale_connections(household_id, threshold_hours)
    )


@router.post(
    "/cron/sync",
    response_model=SyncBatchResponse,
    summary="Sync every active connection (scheduler)",
    dependencies=[Depends(verify_cron_request)],
)
async def cron_sync(service: SyncService = Depends(get_sync_service)) -> SyncBatchResponse:
    result = await service.sync_all_active()
    return SyncBatchResponse.model_validate(result)
