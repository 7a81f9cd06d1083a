"""Household-defined pattern -> category mapping used by the rule engine."""
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from finsync.models.base import BaseModel, HouseholdScoped

RULE_KINDS = ("merchant", "keyword", "regex")
RULE_PROVENANCE = ("manual", "correction", "ai_suggestion")


class CategoryRule(HouseholdScoped, BaseModel):
    """Categorization rule.

    ``priority`` is a precedence weight: a higher number wins over a lower
    one when several rules match the same transaction.
    """

    __tablename__ = "category_rules"

    category_id: Mapped[UUID] = mapped_column(
        ForeignKey("categories.id", ondelete="CASCADE"), nullable=False, index=True
    )
    kind: Mapped[str] = mapped_column(String(20), nullable=False)
    pattern: Mapped[str] = mapped_column(String(255), nullable=False)
    priority: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_from: Mapped[str] = mapped_column(String(20), default="manual", nullable=False)

    def __repr__(self) -> str:
        return (
            f"<CategoryRule(id={self.id}, kind={self.kind}, pattern={self.pattern}, "
            f"priority={self.priority})>"
        )
