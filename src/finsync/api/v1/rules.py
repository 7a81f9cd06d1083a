"""Categorization rule endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, Response, status

from finsync.api.deps import get_current_household_id, get_rule_service
from finsync.schemas.rule import (
    RuleCreateRequest,
    RuleListResult,
    RuleResponse,
    RuleTestRequest,
    RuleTestResponse,
    RuleUpdateRequest,
)
from finsync.services.rule import RuleService

router = APIRouter(prefix="/rules", tags=["rules"])


@router.get("", response_model=RuleListResult, summary="List rules")
async def list_rules(
    household_id: UUID = Depends(get_current_household_id),
    service: RuleService = Depends(get_rule_service),
) -> RuleListResult:
    rules = await service.list_rules(household_id)
    return RuleListResult(rules=[RuleResponse.model_validate(r) for r in rules], total=len(rules))


@router.get("/broken", response_model=RuleListResult, summary="Rules pointing at missing categories")
async def list_broken_rules(
    household_id: UUID = Depends(get_current_household_id),
    service: RuleService = Depends(get_rule_service),
) -> RuleListResult:
    rules = await service.broken_rules(household_id)
    return RuleListResult(rules=[RuleResponse.model_validate(r) for r in rules], total=len(rules))


@router.post("", response_model=RuleResponse, status_code=status.HTTP_201_CREATED, summary="Create a rule")
async def create_rule(
    payload: RuleCreateRequest,
    household_id: UUID = Depends(get_current_household_id),
    service: RuleService = Depends(get_rule_service),
) -> RuleResponse:
    rule = await service.create_rule(
        household_id, payload.kind, payload.pattern, payload.category_id, payload.priority
    )
    return RuleResponse.model_validate(rule)


@router.post("/test", response_model=RuleTestResponse, summary="Test a pattern against text")
async def check_rule_pattern(
    payload: RuleTestRequest,
    household_id: UUID = Depends(get_current_household_id),
    service: RuleService = Depends(get_rule_service),
) -> RuleTestResponse:
    return RuleTestResponse(matches=service.test_pattern(payload.kind, payload.pattern, payload.text))


@router.patch("/{rule_id}", response_model=RuleResponse, summary="Edit a rule")
async def update_rule(
    rule_id: UUID,
    payload: RuleUpdateRequest,
    household_id: UUID = Depends(get_current_household_id),
    service: RuleService = Depends(get_rule_service),
) -> RuleResponse:
    rule = await service.update_rule(household_id, rule_id, **payload.model_dump(exclude_unset=True))
    return RuleResponse.model_validate(rule)


@router.delete("/{rule_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete a rule")
async def delete_rule(
    rule_id: UUID,
    household_id: UUID = Depends(get_current_household_id),
    service: RuleService = Depends(get_rule_service),
) -> Response:
    await service.delete_rule(household_id, rule_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
