from app.api.schemas.markup_rules import PriceQuoteRequest, PriceQuoteResponse
from app.application.dtos.booking_dto import CallerIdentity
from app.application.dtos.pricing_dto import CallerContext
from app.application.services.pricing_engine import PricingEngine


class QuotePriceUseCase:
    def __init__(self, pricing_engine: PricingEngine) -> None:
        self._pricing_engine = pricing_engine

    async def execute(self, request: PriceQuoteRequest, caller: CallerIdentity) -> PriceQuoteResponse:
        breakdown = await self._pricing_engine.compute_price(
            request.base_price,
            CallerContext(
                user_id=caller.user_id,
                b2b_account_id=caller.b2b_account_id,
                product_id=request.product_id,
            ),
        )
        return PriceQuoteResponse(
            net=breakdown.net,
            markup_amount=breakdown.markup_amount,
            gross=breakdown.gross,
            source=breakdown.source,
        )
