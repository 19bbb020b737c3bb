from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from app.domain.entities.booking import Booking, PaymentMethod


class PaymentFailureKind(str, Enum):
    TRANSPORT = "TRANSPORT"  # timeout, network error, circuit open
    REJECTED = "REJECTED"  # gateway answered with an error status
    CONTRACT_VIOLATION = "CONTRACT_VIOLATION"  # 2xx without redirect url / id


class PaymentState(str, Enum):
    SUCCEEDED = "SUCCEEDED"
    PENDING = "PENDING"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"
    UNKNOWN = "UNKNOWN"


@dataclass
class PaymentSessionOpened:
    payment_intent_id: str
    redirect_url: str
    gateway: str
    gateway_reference: str | None = None
    bank_details: dict[str, Any] | None = None
    due_date: datetime | None = None
    raw: dict[str, Any] | None = None


@dataclass
class PaymentSessionFailed:
    kind: PaymentFailureKind
    gateway: str
    error_code: str
    message: str
    http_status: int | None = None
    raw: dict[str, Any] | None = None


class PaymentGateway(ABC):
    @abstractmethod
    async def open_session(
        self,
        booking: Booking,
        amount: Decimal,
        currency: str,
        method: PaymentMethod,
    ) -> PaymentSessionOpened | PaymentSessionFailed:
        """
        Opens a payment session for the booking. Failures come back as
        PaymentSessionFailed, never as exceptions.
        """
        pass

    @abstractmethod
    async def verify_status(self, payment_intent_id: str, method: PaymentMethod) -> PaymentState:
        """
        Polls the gateway for out-of-band confirmation.
        """
        pass

    async def aclose(self) -> None:
        return None
