"""Entidades de markup: reglas, cuentas B2B y markup personal del usuario."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum

from app.domain.errors import InvalidMarkupRuleError


class MarkupType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


@dataclass
class MarkupRule:
    """
    Regla de markup con alcance (cuenta B2B, producto).

    Alcances válidos:
    - (cuenta, producto): regla específica
    - (None, producto): regla de producto
    - (cuenta, None): regla de cuenta

    Los porcentajes negativos se rechazan al crear la regla.
    """

    percentage: Decimal
    b2b_account_id: int | None = None
    product_id: int | None = None
    is_active: bool = True
    id: int | None = None
    created_at: datetime | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.percentage, Decimal):
            self.percentage = Decimal(str(self.percentage))
        if self.percentage < 0:
            raise InvalidMarkupRuleError(
                f"El porcentaje de markup no puede ser negativo: {self.percentage}"
            )
        if self.b2b_account_id is None and self.product_id is None:
            raise InvalidMarkupRuleError(
                "La regla debe tener alcance de cuenta B2B, de producto o ambos"
            )


@dataclass
class B2BAccount:
    """Cuenta de negocio con su markup por defecto (porcentaje)."""

    id: int
    name: str
    default_markup: Decimal | None = None
    is_active: bool = True


@dataclass(frozen=True)
class CallerMarkup:
    """Markup personal del usuario que llama."""

    user_id: str
    markup_type: MarkupType
    value: Decimal

    def __post_init__(self) -> None:
        if self.value < 0:
            raise InvalidMarkupRuleError(f"El markup personal no puede ser negativo: {self.value}")
