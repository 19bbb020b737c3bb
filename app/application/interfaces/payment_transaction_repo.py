from decimal import Decimal
from typing import Any, Sequence

from app.domain.entities.payment_transaction import PaymentTransaction, TransactionStatus


class PaymentTransactionRepo:
    async def create(
        self,
        booking_id: int,
        payment_intent_id: str | None,
        amount: Decimal,
        currency: str,
        gateway: str,
        status: TransactionStatus = TransactionStatus.PENDING,
        raw_response: dict[str, Any] | None = None,
        error_code: str | None = None,
    ) -> PaymentTransaction:
        raise NotImplementedError

    async def mark_status(
        self,
        payment_intent_id: str,
        status: TransactionStatus,
        raw_response: dict[str, Any] | None = None,
        from_status: TransactionStatus = TransactionStatus.PENDING,
    ) -> bool:
        """Moves the intent's transaction out of from_status; False if none matched."""
        raise NotImplementedError

    async def get_by_id(self, transaction_id: int) -> PaymentTransaction | None:
        raise NotImplementedError

    async def get_by_payment_intent(self, payment_intent_id: str) -> PaymentTransaction | None:
        """Latest transaction recorded for the intent, including superseded ones."""
        raise NotImplementedError

    async def latest_for_booking(self, booking_id: int) -> PaymentTransaction | None:
        raise NotImplementedError

    async def list_for_booking(self, booking_id: int) -> Sequence[PaymentTransaction]:
        raise NotImplementedError

    async def list_for_bookings(self, booking_ids: Sequence[int]) -> Sequence[PaymentTransaction]:
        """Newest first."""
        raise NotImplementedError
