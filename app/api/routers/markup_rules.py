from fastapi import APIRouter, Depends, Query, status

from app.api.dependencies import get_caller, get_use_cases, require_staff
from app.api.schemas.markup_rules import (
    CreateMarkupRuleRequest,
    MarkupRuleResponse,
    PriceQuoteRequest,
    PriceQuoteResponse,
    UpdateMarkupRuleRequest,
)
from app.application.dtos.booking_dto import CallerIdentity

router = APIRouter()


@router.post(
    "/markup-rules",
    response_model=MarkupRuleResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_markup_rule(
    payload: CreateMarkupRuleRequest,
    caller: CallerIdentity = Depends(require_staff),
    use_cases=Depends(get_use_cases),
) -> MarkupRuleResponse:
    return await use_cases["create_markup_rule"].execute(payload, caller)


@router.get("/markup-rules", response_model=list[MarkupRuleResponse])
async def list_markup_rules(
    b2b_account_id: int | None = Query(default=None, alias="b2bAccountId"),
    caller: CallerIdentity = Depends(get_caller),
    use_cases=Depends(get_use_cases),
) -> list[MarkupRuleResponse]:
    return await use_cases["list_markup_rules"].execute(b2b_account_id=b2b_account_id)


@router.put("/markup-rules/{rule_id}", response_model=MarkupRuleResponse)
async def update_markup_rule(
    rule_id: int,
    payload: UpdateMarkupRuleRequest,
    caller: CallerIdentity = Depends(require_staff),
    use_cases=Depends(get_use_cases),
) -> MarkupRuleResponse:
    return await use_cases["update_markup_rule"].execute(rule_id, payload, caller)


@router.delete("/markup-rules/{rule_id}", response_model=MarkupRuleResponse)
async def deactivate_markup_rule(
    rule_id: int,
    caller: CallerIdentity = Depends(require_staff),
    use_cases=Depends(get_use_cases),
) -> MarkupRuleResponse:
    return await use_cases["update_markup_rule"].deactivate(rule_id, caller)


@router.post("/pricing/quote", response_model=PriceQuoteResponse)
async def quote_price(
    payload: PriceQuoteRequest,
    caller: CallerIdentity = Depends(get_caller),
    use_cases=Depends(get_use_cases),
) -> PriceQuoteResponse:
    return await use_cases["quote_price"].execute(payload, caller)
