"""Pydantic schemas for categorization endpoints."""

from datetime import date
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class RecategorizeRequest(BaseModel):
    category_id: UUID
    create_rule: bool = Field(False, description="Also create a merchant rule from this correction")


class BatchRecategorizeRequest(BaseModel):
    transaction_ids: list[UUID] = Field(min_length=1, max_length=500)
    category_id: UUID
    create_rule: bool = False


class BatchIgnoreRequest(BaseModel):
    transaction_ids: list[UUID] = Field(min_length=1, max_length=500)
    is_ignored: bool = True


class CreateTransactionRequest(BaseModel):
    account_id: UUID
    txn_date: date
    amount: int = Field(gt=0, description="Amount in minor currency units")
    direction: Literal["income", "expense"] = "expense"
    description: str = Field("", max_length=500)
    merchant: str | None = Field(None, max_length=255)
    notes: str | None = None
    category_id: UUID | None = Field(None, description="Leave empty to let household rules decide")


class TransactionResponse(BaseModel):
    id: UUID
    account_id: UUID
    txn_date: date
    description: str
    merchant: str | None = None
    amount: int = Field(description="Amount in minor currency units (always positive)")
    direction: str
    category_id: UUID | None = None
    categorization_source: str
    confidence: float
    needs_review: bool
    is_ignored: bool = False

    model_config = ConfigDict(from_attributes=True)


class RecategorizeResponse(BaseModel):
    transaction: TransactionResponse
    rule_id: UUID | None = Field(None, description="Rule created or retargeted by the correction, if any")


class BatchUpdateResponse(BaseModel):
    updated: int


class BulkApplyResponse(BaseModel):
    updated: int
    skipped: int = Field(description="Already being processed by another caller")
    unmatched: int
    failed: int
    remaining: int = Field(description="Uncategorized transactions still waiting")
    message: str

    model_config = ConfigDict(from_attributes=True)
