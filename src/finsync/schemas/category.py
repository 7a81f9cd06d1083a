"""Pydantic schemas for categories."""

from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class CategoryCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    type: Literal["income", "expected", "varying"]
    parent_id: UUID | None = None
    icon: str | None = Field(None, max_length=20)


class CategoryParentRequest(BaseModel):
    parent_id: UUID | None = Field(None, description="New parent, or null to move to the root")


class CategoryResponse(BaseModel):
    id: UUID
    name: str
    type: str
    parent_id: UUID | None = None
    icon: str | None = None
    sort_order: int
    is_system: bool
    is_active: bool

    model_config = ConfigDict(from_attributes=True)


class CategoryListResult(BaseModel):
    categories: list[CategoryResponse]
    total: int


class CategoryDeleteResult(BaseModel):
    deleted: int
