"""Household model: the tenancy boundary for all synchronized data."""
from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from finsync.models.base import BaseModel


class Household(BaseModel):
    """A household owning connections, accounts, categories, rules and transactions."""

    __tablename__ = "households"

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    def __repr__(self) -> str:
        return f"<Household(id={self.id}, name={self.name})>"
