"""Pydantic schemas for categorization rules."""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

RuleKind = Literal["merchant", "keyword", "regex"]


class RuleCreateRequest(BaseModel):
    kind: RuleKind
    pattern: str = Field(min_length=1, max_length=255)
    category_id: UUID
    priority: int = Field(0, ge=0, le=1000, description="Higher number wins when several rules match")


class RuleUpdateRequest(BaseModel):
    kind: RuleKind | None = None
    pattern: str | None = Field(None, min_length=1, max_length=255)
    category_id: UUID | None = None
    priority: int | None = Field(None, ge=0, le=1000)
    is_active: bool | None = None


class RuleResponse(BaseModel):
    id: UUID
    kind: str
    pattern: str
    category_id: UUID
    priority: int
    is_active: bool
    created_from: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class RuleListResult(BaseModel):
    rules: list[RuleResponse]
    total: int


class RuleTestRequest(BaseModel):
    kind: RuleKind
    pattern: str = Field(min_length=1, max_length=255)
    text: str = Field(max_length=500)


class RuleTestResponse(BaseModel):
    matches: bool
