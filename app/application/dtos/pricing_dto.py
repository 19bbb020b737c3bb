"""DTOs para el motor de precios."""

from dataclasses import dataclass, field
from decimal import Decimal


@dataclass(frozen=True)
class CallerContext:
    """Identidad del que llama relevante para resolver el markup."""

    user_id: str | None = None
    b2b_account_id: int | None = None
    product_id: int | None = None

    def for_product(self, product_id: int | None) -> "CallerContext":
        return CallerContext(
            user_id=self.user_id,
            b2b_account_id=self.b2b_account_id,
            product_id=product_id,
        )


@dataclass(frozen=True)
class PriceBreakdown:
    """Resultado del cálculo: gross = net + markup_amount."""

    net: Decimal
    markup_amount: Decimal
    gross: Decimal
    source: str = "none"


@dataclass
class BookingPrice:
    """Totales de una reserva con el desglose por línea."""

    total_net: Decimal = Decimal("0.00")
    total_markup: Decimal = Decimal("0.00")
    total_gross: Decimal = Decimal("0.00")
    lines: list[PriceBreakdown] = field(default_factory=list)
