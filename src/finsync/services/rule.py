"""Category rule management."""

import logging
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from finsync.categorization import rule_matches_text, validate_pattern
from finsync.categorization.suggestions import PROVENANCE_MANUAL
from finsync.core.exceptions import ValidationError
from finsync.models.category_rule import CategoryRule
from finsync.repositories.category import CategoryRepository
from finsync.repositories.rule import RuleRepository

logger = logging.getLogger(__name__)


class RuleService:
    """Service layer for categorization rules."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.rule_repo = RuleRepository(db)
        self.category_repo = CategoryRepository(db)

    async def list_rules(self, household_id: UUID) -> list[CategoryRule]:
        return await self.rule_repo.get_all_by_household(household_id)

    async def create_rule(
        self,
        household_id: UUID,
        kind: str,
        pattern: str,
        category_id: UUID,
        priority: int = 0,
        created_from: str = PROVENANCE_MANUAL,
    ) -> CategoryRule:
        """Create a rule after validating its pattern and target category.

        Raises:
            ValidationError: VAL_001 if the pattern is empty or does not compile
            NotFoundError / CrossHouseholdError: Unknown or foreign category
        """
        error = validate_pattern(kind, pattern)
        if error:
            raise ValidationError("VAL_001", {"kind": kind, "reason": error})
        await self.category_repo.get_owned(household_id, category_id)

        rule = CategoryRule(
            household_id=household_id,
            category_id=category_id,
            kind=kind,
            pattern=pattern.strip(),
            priority=priority,
            created_from=created_from,
        )
        rule = await self.rule_repo.create(rule)
        logger.info("Rule created", extra={"household_id": str(household_id), "rule_id": str(rule.id)})
        return rule

    async def update_rule(
        self,
        household_id: UUID,
        rule_id: UUID,
        kind: str | None = None,
        pattern: str | None = None,
        category_id: UUID | None = None,
        priority: int | None = None,
        is_active: bool | None = None,
    ) -> CategoryRule:
        """Edit a rule. Only the given fields change.

        The resulting kind and pattern are validated together, so switching
        a rule to ``regex`` re-checks its existing pattern.

        Raises:
            ValidationError: VAL_001 if the resulting pattern is unusable
            NotFoundError / CrossHouseholdError: Unknown or foreign rule or category
        """
        rule = await self.rule_repo.get_owned(household_id, rule_id)

        new_kind = kind if kind is not None else rule.kind
        new_pattern = pattern if pattern is not None else rule.pattern
        error = validate_pattern(new_kind, new_pattern)
        if error:
            raise ValidationError("VAL_001", {"kind": new_kind, "reason": error})
        if category_id is not None:
            await self.category_repo.get_owned(household_id, category_id)
            rule.category_id = category_id

        rule.kind = new_kind
        rule.pattern = new_pattern.strip()
        if priority is not None:
            rule.priority = priority
        if is_active is not None:
            rule.is_active = is_active
        await self.db.commit()
        await self.db.refresh(rule)
        logger.info("Rule updated", extra={"household_id": str(household_id), "rule_id": str(rule_id)})
        return rule

    async def delete_rule(self, household_id: UUID, rule_id: UUID) -> None:
        await self.rule_repo.get_owned(household_id, rule_id)
        await self.rule_repo.delete(rule_id)

    def test_pattern(self, kind: str, pattern: str, text: str) -> bool:
        """Check whether a pattern would match a sample text."""
        return rule_matches_text(kind, pattern, text)

    async def broken_rules(self, household_id: UUID) -> list[CategoryRule]:
        """Rules whose target category no longer exists."""
        return await self.rule_repo.get_broken(household_id)
