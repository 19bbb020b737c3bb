"""Entidad PaymentTransaction - un intento de pago contra el gateway."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any


class TransactionStatus(str, Enum):
    """Estados posibles de un intento de pago."""

    PENDING = "PENDING"
    PAID = "PAID"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


@dataclass
class PaymentTransaction:
    """
    Una fila por intento de pago (no por reserva).

    Los reintentos de creación generan nuevas transacciones; solo una debe
    terminar en PAID para una reserva completada.
    """

    id: int | None = None
    booking_id: int = 0
    payment_intent_id: str | None = None
    amount: Decimal = Decimal("0")
    currency: str = "AED"
    gateway: str = ""
    status: TransactionStatus = TransactionStatus.PENDING
    raw_response: dict[str, Any] | None = None
    error_code: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
