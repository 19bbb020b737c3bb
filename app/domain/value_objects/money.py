"""Value Object Money - representa un valor monetario con su moneda."""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")
ROUNDING_TOLERANCE = Decimal("0.01")


def round_money(value: Decimal | int | float | str) -> Decimal:
    """Redondea a 2 decimales con half-up (0.005 -> 0.01)."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class Money:
    """
    Value Object inmutable que representa un monto monetario.

    Attributes:
        amount: Monto decimal, siempre redondeado a 2 decimales.
        currency_code: Código ISO 4217 de la moneda (ej: AED, USD).
    """

    amount: Decimal
    currency_code: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "amount", round_money(self.amount))

        if len(self.currency_code) != 3:
            raise ValueError(f"currency_code debe ser de 3 caracteres: {self.currency_code}")

        if self.amount < 0:
            raise ValueError(f"amount no puede ser negativo: {self.amount}")

    def __add__(self, other: "Money") -> "Money":
        if not isinstance(other, Money):
            raise TypeError(f"No se puede sumar Money con {type(other)}")
        if self.currency_code != other.currency_code:
            raise ValueError(
                f"No se pueden sumar montos de diferentes monedas: "
                f"{self.currency_code} vs {other.currency_code}"
            )
        return Money(amount=self.amount + other.amount, currency_code=self.currency_code)

    def to_minor_units(self) -> int:
        """Monto en la unidad mínima (fils, centavos) para gateways."""
        return int((self.amount * 100).to_integral_value(rounding=ROUND_HALF_UP))

    def matches(self, other: Decimal) -> bool:
        return abs(self.amount - round_money(other)) <= ROUNDING_TOLERANCE

    def __str__(self) -> str:
        return f"{self.amount:.2f} {self.currency_code}"

    @classmethod
    def zero(cls, currency_code: str = "AED") -> "Money":
        """Crea un Money con valor cero."""
        return cls(amount=Decimal("0"), currency_code=currency_code)
