import dataclasses
import logging

from app.api.schemas.markup_rules import (
    CreateMarkupRuleRequest,
    MarkupRuleResponse,
    UpdateMarkupRuleRequest,
)
from app.application.dtos.booking_dto import CallerIdentity
from app.application.interfaces.markup_repo import MarkupRepo
from app.application.interfaces.transaction_manager import TransactionManager
from app.domain.entities.markup import MarkupRule
from app.domain.errors import MarkupRuleNotFoundError


def _to_response(rule: MarkupRule) -> MarkupRuleResponse:
    return MarkupRuleResponse(
        id=rule.id,
        b2b_account_id=rule.b2b_account_id,
        product_id=rule.product_id,
        percentage=rule.percentage,
        is_active=rule.is_active,
        created_at=rule.created_at,
    )


class CreateMarkupRuleUseCase:
    def __init__(self, markup_repo: MarkupRepo, transaction_manager: TransactionManager) -> None:
        self._markup_repo = markup_repo
        self._transaction_manager = transaction_manager
        self._logger = logging.getLogger(__name__)

    async def execute(
        self, request: CreateMarkupRuleRequest, caller: CallerIdentity | None = None
    ) -> MarkupRuleResponse:
        # MarkupRule rejects negative percentages and empty scopes
        rule = MarkupRule(
            percentage=request.percentage,
            b2b_account_id=request.b2b_account_id,
            product_id=request.product_id,
            is_active=request.is_active,
        )
        async with self._transaction_manager.start():
            rule = await self._markup_repo.create_rule(rule)
        self._logger.info(
            "Markup rule created",
            extra={
                "rule_id": rule.id,
                "b2b_account_id": rule.b2b_account_id,
                "product_id": rule.product_id,
                "percentage": str(rule.percentage),
                "changed_by": caller.user_id if caller else None,
            },
        )
        return _to_response(rule)


class UpdateMarkupRuleUseCase:
    """
    Changes the percentage or the active flag of an existing rule. Deactivation
    is a soft delete: the row stays for audit and pricing stops matching it.
    """

    def __init__(self, markup_repo: MarkupRepo, transaction_manager: TransactionManager) -> None:
        self._markup_repo = markup_repo
        self._transaction_manager = transaction_manager
        self._logger = logging.getLogger(__name__)

    async def execute(
        self,
        rule_id: int,
        request: UpdateMarkupRuleRequest,
        caller: CallerIdentity | None = None,
    ) -> MarkupRuleResponse:
        changes = request.model_dump(exclude_unset=True, exclude_none=True)
        return await self._apply(rule_id, changes, caller)

    async def deactivate(
        self, rule_id: int, caller: CallerIdentity | None = None
    ) -> MarkupRuleResponse:
        return await self._apply(rule_id, {"is_active": False}, caller)

    async def _apply(
        self, rule_id: int, changes: dict, caller: CallerIdentity | None
    ) -> MarkupRuleResponse:
        async with self._transaction_manager.start():
            current = await self._markup_repo.get_rule(rule_id)
            if not current:
                raise MarkupRuleNotFoundError(rule_id)
            # replace() runs the entity checks again
            rule = await self._markup_repo.update_rule(dataclasses.replace(current, **changes))
            if not rule:
                raise MarkupRuleNotFoundError(rule_id)

        self._logger.info(
            "Markup rule updated",
            extra={
                "rule_id": rule.id,
                "percentage": str(rule.percentage),
                "is_active": rule.is_active,
                "changed_by": caller.user_id if caller else None,
            },
        )
        return _to_response(rule)


class ListMarkupRulesUseCase:
    def __init__(self, markup_repo: MarkupRepo) -> None:
        self._markup_repo = markup_repo

    async def execute(self, b2b_account_id: int | None = None) -> list[MarkupRuleResponse]:
        rules = await self._markup_repo.list_rules(b2b_account_id)
        return [_to_response(rule) for rule in rules]
