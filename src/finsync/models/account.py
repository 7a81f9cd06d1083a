"""Account model: a money container belonging to a household."""

from sqlalchemy import Boolean, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from finsync.models.base import BaseModel, HouseholdScoped

ACCOUNT_TYPES = ("checking", "savings", "credit", "cash")


class Account(HouseholdScoped, BaseModel):
    """Checking/savings/credit/cash account, optionally linked to an external account."""

    __tablename__ = "accounts"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    type: Mapped[str] = mapped_column(String(20), nullable=False, default="checking")
    external_account_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    __table_args__ = (
        Index("ix_accounts_household_external", "household_id", "external_account_id"),
    )

    def __repr__(self) -> str:
        return f"<Account(id={self.id}, name={self.name}, type={self.type})>"
