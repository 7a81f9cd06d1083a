"""Pydantic schemas for bank connection endpoints."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class ConnectionCreateRequest(BaseModel):
    provider: str = Field(description="Provider tag (e.g., onezero, isracard)")
    display_name: str = Field(min_length=1, max_length=255)
    credentials: dict[str, Any] = Field(description="Provider-specific credential fields")


class ConnectionResponse(BaseModel):
    """Connection data for API responses. Credentials are never returned."""

    id: UUID
    provider: str
    display_name: str
    is_active: bool
    last_sync_at: datetime | None = None
    last_sync_status: str | None = Field(
        None, description="pending, success, error or auth_required"
    )
    account_mappings: dict[str, str] | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ConnectionListResult(BaseModel):
    connections: list[ConnectionResponse]
    total: int


class ProviderInfo(BaseModel):
    provider: str
    display_name: str
    requires_two_factor: bool
    credential_fields: list[str]


class ProviderListResult(BaseModel):
    providers: list[ProviderInfo]


class TwoFactorInitResponse(BaseModel):
    session_id: str = Field(description="Pass back to the completion endpoint")


class TwoFactorCompleteRequest(BaseModel):
    session_id: str = Field(min_length=1)
    code: str = Field(min_length=4, max_length=10, description="One-time code received by SMS")


class AccountMappingsRequest(BaseModel):
    mappings: dict[str, UUID] = Field(description="External account id -> account id")


class SyncJobResponse(BaseModel):
    id: UUID
    status: str
    started_at: datetime
    completed_at: datetime | None = None
    transactions_found: int
    transactions_new: int
    error_message: str | None = None

    model_config = ConfigDict(from_attributes=True)


class SyncHistoryResult(BaseModel):
    jobs: list[SyncJobResponse]
