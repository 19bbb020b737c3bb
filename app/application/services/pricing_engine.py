"""
Pricing engine: resolves the caller's markup and computes net/markup/gross.

Resolution precedence (first match wins):
1. active rule for (b2b account, product)
2. active rule for product only
3. active rule for b2b account only
4. the b2b account's default markup percentage
5. the caller's personal markup (percentage or fixed)
6. no markup

A fixed personal markup is charged once per priced line, whatever the number
of passengers on it.
"""

import logging
from decimal import Decimal
from typing import Sequence

from app.application.dtos.pricing_dto import BookingPrice, CallerContext, PriceBreakdown
from app.application.interfaces.markup_repo import MarkupRepo
from app.domain.entities.booking import TourLineItem
from app.domain.entities.markup import MarkupType
from app.domain.value_objects.money import round_money

logger = logging.getLogger(__name__)

HUNDRED = Decimal("100")


class PricingEngine:
    def __init__(self, markup_repo: MarkupRepo) -> None:
        self._markup_repo = markup_repo

    async def compute_price(self, base_price: Decimal, caller: CallerContext) -> PriceBreakdown:
        net = round_money(base_price)
        markup_type, value, source = await self._resolve_markup(caller)

        if markup_type == MarkupType.FIXED:
            markup_amount = round_money(value)
        else:
            markup_amount = round_money(net * value / HUNDRED)

        return PriceBreakdown(
            net=net,
            markup_amount=markup_amount,
            gross=net + markup_amount,
            source=source,
        )

    async def price_booking(
        self, lines: Sequence[TourLineItem], caller: CallerContext
    ) -> BookingPrice:
        """Prices each tour line with product_id = tour_id and fills the line totals."""
        price = BookingPrice()
        for line in lines:
            breakdown = await self.compute_price(
                line.base_price(), caller.for_product(line.tour_id)
            )
            line.line_net = breakdown.net
            line.line_markup = breakdown.markup_amount
            line.line_gross = breakdown.gross
            price.lines.append(breakdown)
            price.total_net += breakdown.net
            price.total_markup += breakdown.markup_amount
            price.total_gross += breakdown.gross
        return price

    async def _resolve_markup(self, caller: CallerContext) -> tuple[MarkupType, Decimal, str]:
        account_id = caller.b2b_account_id
        product_id = caller.product_id

        if account_id is not None and product_id is not None:
            rule = await self._markup_repo.find_active_rule(account_id, product_id)
            if rule:
                return MarkupType.PERCENTAGE, rule.percentage, "account_product_rule"

        if product_id is not None:
            rule = await self._markup_repo.find_active_rule(None, product_id)
            if rule:
                return MarkupType.PERCENTAGE, rule.percentage, "product_rule"

        if account_id is not None:
            rule = await self._markup_repo.find_active_rule(account_id, None)
            if rule:
                return MarkupType.PERCENTAGE, rule.percentage, "account_rule"

            account = await self._markup_repo.get_b2b_account(account_id)
            if account and account.default_markup:
                return MarkupType.PERCENTAGE, account.default_markup, "account_default"

        if caller.user_id:
            personal = await self._markup_repo.get_caller_markup(caller.user_id)
            if personal and personal.value:
                return personal.markup_type, personal.value, "caller_markup"

        logger.debug(
            "No markup resolved",
            extra={"user_id": caller.user_id, "b2b_account_id": account_id, "product_id": product_id},
        )
        return MarkupType.PERCENTAGE, Decimal("0"), "none"
