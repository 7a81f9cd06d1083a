"""Bank connection model holding encrypted provider credentials."""
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from finsync.models.base import BaseModel, HouseholdScoped

# Values of BankConnection.last_sync_status
SYNC_STATUS_PENDING = "pending"
SYNC_STATUS_SUCCESS = "success"
SYNC_STATUS_ERROR = "error"
SYNC_STATUS_AUTH_REQUIRED = "auth_required"


class BankConnection(HouseholdScoped, BaseModel):
    """One external institution credential set for a household."""

    __tablename__ = "bank_connections"

    provider: Mapped[str] = mapped_column(String(50), nullable=False)
    display_name: Mapped[str] = mapped_column(String(255), nullable=False)
    encrypted_credentials: Mapped[str] = mapped_column(Text, nullable=False)
    encrypted_token: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    last_sync_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_sync_status: Mapped[str | None] = mapped_column(String(20), nullable=True)
    # external account identifier -> internal account id (as string)
    account_mappings: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    def __repr__(self) -> str:
        return (
            f"<BankConnection(id={self.id}, provider={self.provider}, "
            f"is_active={self.is_active}, last_sync_status={self.last_sync_status})>"
        )
