from collections import defaultdict
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Sequence

from app.application.interfaces.payment_transaction_repo import PaymentTransactionRepo
from app.domain.entities.payment_transaction import PaymentTransaction, TransactionStatus


class InMemoryPaymentTransactionRepo(PaymentTransactionRepo):
    def __init__(self) -> None:
        self._by_id: dict[int, PaymentTransaction] = {}
        self._by_booking: dict[int, list[int]] = defaultdict(list)
        self._next_id = 1

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
        now = datetime.now(timezone.utc)
        record = PaymentTransaction(
            id=self._next_id,
            booking_id=booking_id,
            payment_intent_id=payment_intent_id,
            amount=amount,
            currency=currency,
            gateway=gateway,
            status=status,
            raw_response=raw_response,
            error_code=error_code,
            created_at=now,
            updated_at=now,
        )
        self._by_id[record.id] = record
        self._by_booking[booking_id].append(record.id)
        self._next_id += 1
        return record

    async def mark_status(
        self,
        payment_intent_id: str,
        status: TransactionStatus,
        raw_response: dict[str, Any] | None = None,
        from_status: TransactionStatus = TransactionStatus.PENDING,
    ) -> bool:
        for record in self._by_id.values():
            if record.payment_intent_id == payment_intent_id and record.status == from_status:
                record.status = status
                if raw_response is not None:
                    record.raw_response = raw_response
                record.updated_at = datetime.now(timezone.utc)
                return True
        return False

    async def get_by_id(self, transaction_id: int) -> PaymentTransaction | None:
        return self._by_id.get(transaction_id)

    async def get_by_payment_intent(self, payment_intent_id: str) -> PaymentTransaction | None:
        matches = [
            record
            for record in self._by_id.values()
            if record.payment_intent_id == payment_intent_id
        ]
        return max(matches, key=lambda record: record.id) if matches else None

    async def latest_for_booking(self, booking_id: int) -> PaymentTransaction | None:
        ids = self._by_booking.get(booking_id)
        return self._by_id[ids[-1]] if ids else None

    async def list_for_booking(self, booking_id: int) -> Sequence[PaymentTransaction]:
        return [self._by_id[i] for i in self._by_booking.get(booking_id, [])]

    async def list_for_bookings(self, booking_ids: Sequence[int]) -> Sequence[PaymentTransaction]:
        wanted = set(booking_ids)
        records = [record for record in self._by_id.values() if record.booking_id in wanted]
        return sorted(records, key=lambda record: record.id, reverse=True)
