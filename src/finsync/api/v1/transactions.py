"""Transaction categorization endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, status

from finsync.api.deps import get_categorization_service, get_current_household_id
from finsync.schemas.transaction import (
    BatchIgnoreRequest,
    BatchRecategorizeRequest,
    BatchUpdateResponse,
    BulkApplyResponse,
    CreateTransactionRequest,
    RecategorizeRequest,
    RecategorizeResponse,
    TransactionResponse,
)
from finsync.services.categorization import CategorizationService

router = APIRouter(prefix="/transactions", tags=["transactions"])


@router.post(
    "",
    response_model=TransactionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Record a manual transaction",
)
async def create_transaction(
    payload: CreateTransactionRequest,
    household_id: UUID = Depends(get_current_household_id),
    service: CategorizationService = Depends(get_categorization_service),
) -> TransactionResponse:
    """
    A chosen category is kept as-is; otherwise household rules categorize
    the transaction and a miss leaves it flagged for review.
    """
    txn = await service.create_manual_transaction(household_id, **payload.model_dump())
    return TransactionResponse.model_validate(txn)


@router.post(
    "/apply-categorization",
    response_model=BulkApplyResponse,
    summary="Categorize the next batch of uncategorized transactions",
    description="""
    Runs the household's rules over a bounded batch of uncategorized,
    non-ignored transactions. Call again while `remaining` is above zero.
    """,
)
async def apply_categorization(
    household_id: UUID = Depends(get_current_household_id),
    service: CategorizationService = Depends(get_categorization_service),
) -> BulkApplyResponse:
    result = await service.apply_categorization(household_id)
    return BulkApplyResponse.model_validate(result)


@router.post("/recategorize", response_model=BatchUpdateResponse, summary="Recategorize several transactions")
async def batch_recategorize(
    payload: BatchRecategorizeRequest,
    household_id: UUID = Depends(get_current_household_id),
    service: CategorizationService = Depends(get_categorization_service),
) -> BatchUpdateResponse:
    updated = await service.batch_recategorize(
        household_id, payload.transaction_ids, payload.category_id, payload.create_rule
    )
    return BatchUpdateResponse(updated=updated)


@router.patch(
    "/{transaction_id}/category",
    response_model=RecategorizeResponse,
    summary="Recategorize a transaction",
)
async def recategorize(
    transaction_id: UUID,
    payload: RecategorizeRequest,
    household_id: UUID = Depends(get_current_household_id),
    service: CategorizationService = Depends(get_categorization_service),
) -> RecategorizeResponse:
    """
    Set the category manually (source `manual`, confidence 1).

    With `create_rule`, the transaction's merchant becomes a rule so future
    imports are categorized the same way.
    """
    result = await service.recategorize(
        household_id, transaction_id, payload.category_id, payload.create_rule
    )
    return RecategorizeResponse(
        transaction=TransactionResponse.model_validate(result.transaction),
        rule_id=result.rule.id if result.rule else None,
    )


@router.post("/ignore", response_model=BatchUpdateResponse, summary="Ignore or un-ignore several transactions")
async def batch_ignore(
    payload: BatchIgnoreRequest,
    household_id: UUID = Depends(get_current_household_id),
    service: CategorizationService = Depends(get_categorization_service),
) -> BatchUpdateResponse:
    updated = await service.batch_ignore(household_id, payload.transaction_ids, payload.is_ignored)
    return BatchUpdateResponse(updated=updated)


@router.post(
    "/{transaction_id}/ignore",
    response_model=TransactionResponse,
    summary="Toggle whether a transaction is ignored",
)
async def toggle_ignore(
    transaction_id: UUID,
    household_id: UUID = Depends(get_current_household_id),
    service: CategorizationService = Depends(get_categorization_service),
) -> TransactionResponse:
    """
    Ignored transactions are skipped by apply-categorization and are not
    counted in its `remaining` total.
    """
    txn = await service.toggle_ignore(household_id, transaction_id)
    return TransactionResponse.model_validate(txn)
