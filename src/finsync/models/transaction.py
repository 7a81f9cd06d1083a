"""Transaction model: the unit being synchronized and categorized."""
from datetime import date
from uuid import UUID

from sqlalchemy import BigInteger, Boolean, Date, Float, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from finsync.models.base import BaseModel, HouseholdScoped


class Transaction(HouseholdScoped, BaseModel):
    """Household transaction.

    ``amount`` is stored in minor currency units and is always positive;
    ``direction`` ("income" or "expense") carries the sign.
    """

    __tablename__ = "transactions"

    account_id: Mapped[UUID] = mapped_column(
        ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    txn_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    description: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    merchant: Mapped[str | None] = mapped_column(String(255), nullable=True)
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    direction: Mapped[str] = mapped_column(String(10), nullable=False, default="expense")
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    external_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    category_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("categories.id", ondelete="SET NULL"), nullable=True, index=True
    )
    categorization_source: Mapped[str] = mapped_column(String(30), nullable=False, default="manual")
    confidence: Mapped[float] = mapped_column(Float, nullable=False, default=1.0)
    needs_review: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_processing: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_ignored: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    __table_args__ = (
        UniqueConstraint("household_id", "external_id", name="uq_transactions_household_external_id"),
        Index("ix_transactions_household_category", "household_id", "category_id"),
    )

    def __repr__(self) -> str:
        return f"<Transaction(id={self.id}, merchant={self.merchant}, amount={self.amount})>"
