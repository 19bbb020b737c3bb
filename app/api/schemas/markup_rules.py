from datetime import datetime
from decimal import Decimal

from pydantic import Field

from app.api.schemas.common import Money, RequestModel, ResponseModel


class CreateMarkupRuleRequest(RequestModel):
    b2b_account_id: int | None = None
    product_id: int | None = None
    percentage: Decimal = Field(max_digits=7, decimal_places=2)
    is_active: bool = True


class UpdateMarkupRuleRequest(RequestModel):
    """Campos omitidos conservan su valor; el alcance de la regla no cambia."""

    percentage: Decimal | None = Field(default=None, max_digits=7, decimal_places=2)
    is_active: bool | None = None


class MarkupRuleResponse(ResponseModel):
    id: int
    b2b_account_id: int | None = None
    product_id: int | None = None
    percentage: Decimal
    is_active: bool
    created_at: datetime | None = None


class PriceQuoteRequest(RequestModel):
    base_price: Money = Field(ge=0)
    product_id: int | None = None


class PriceQuoteResponse(ResponseModel):
    net: Money
    markup_amount: Money
    gross: Money
    source: str
