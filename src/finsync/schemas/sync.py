"""Pydantic schemas for sync endpoints."""

from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class ConnectionSyncResponse(BaseModel):
    connection_id: UUID
    display_name: str
    success: bool
    transactions_found: int = 0
    transactions_new: int = 0
    status: str | None = None
    auth_required: bool = Field(False, description="True when the user must re-authenticate")
    error_message: str | None = None

    model_config = ConfigDict(from_attributes=True)


class SyncBatchResponse(BaseModel):
    success: bool
    message: str
    synced_connections: int
    total_connections: int
    total_transactions_found: int
    total_transactions_new: int
    errors: list[str]
    details: list[ConnectionSyncResponse]
    duration_ms: int

    model_config = ConfigDict(from_attributes=True)


class StaleStatusResponse(BaseModel):
    has_stale_connections: bool
