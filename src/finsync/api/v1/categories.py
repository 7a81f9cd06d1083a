"""Category endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, status

from finsync.api.deps import get_category_service, get_current_household_id
from finsync.schemas.category import (
    CategoryCreateRequest,
    CategoryDeleteResult,
    CategoryListResult,
    CategoryParentRequest,
    CategoryResponse,
)
from finsync.services.category import CategoryService

router = APIRouter(prefix="/categories", tags=["categories"])


@router.get("", response_model=CategoryListResult, summary="List categories")
async def list_categories(
    household_id: UUID = Depends(get_current_household_id),
    service: CategoryService = Depends(get_category_service),
) -> CategoryListResult:
    categories = await service.list_categories(household_id)
    return CategoryListResult(
        categories=[CategoryResponse.model_validate(c) for c in categories], total=len(categories)
    )


@router.post("", response_model=CategoryResponse, status_code=status.HTTP_201_CREATED, summary="Create a category")
async def create_category(
    payload: CategoryCreateRequest,
    household_id: UUID = Depends(get_current_household_id),
    service: CategoryService = Depends(get_category_service),
) -> CategoryResponse:
    category = await service.create_category(
        household_id, payload.name, payload.type, payload.parent_id, payload.icon
    )
    return CategoryResponse.model_validate(category)


@router.put("/{category_id}/parent", response_model=CategoryResponse, summary="Move a category")
async def set_parent(
    category_id: UUID,
    payload: CategoryParentRequest,
    household_id: UUID = Depends(get_current_household_id),
    service: CategoryService = Depends(get_category_service),
) -> CategoryResponse:
    category = await service.set_parent(household_id, category_id, payload.parent_id)
    return CategoryResponse.model_validate(category)


@router.delete("/{category_id}", response_model=CategoryDeleteResult, summary="Delete a category and its subtree")
async def delete_category(
    category_id: UUID,
    household_id: UUID = Depends(get_current_household_id),
    service: CategoryService = Depends(get_category_service),
) -> CategoryDeleteResult:
    """
    Delete a category and every descendant.

    Their transactions become uncategorized and are flagged for review;
    rules targeting them are removed.
    """
    return CategoryDeleteResult(deleted=await service.delete_category(household_id, category_id))
