from decimal import Decimal
from typing import Any, Mapping, Sequence

from sqlalchemy import insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.application.interfaces.payment_transaction_repo import PaymentTransactionRepo
from app.domain.entities.payment_transaction import PaymentTransaction, TransactionStatus
from app.infrastructure.db.tables import from_db_datetime, payment_transactions, utcnow


class PaymentTransactionRepoSQL(PaymentTransactionRepo):
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

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
        now = utcnow()
        stmt = insert(payment_transactions).values(
            booking_id=booking_id,
            payment_intent_id=payment_intent_id,
            amount=amount,
            currency=currency,
            gateway=gateway,
            status=status.value,
            raw_response=raw_response,
            error_code=error_code,
            created_at=now,
            updated_at=now,
        )
        result = await self._session.execute(stmt)
        return PaymentTransaction(
            id=result.inserted_primary_key[0],
            booking_id=booking_id,
            payment_intent_id=payment_intent_id,
            amount=amount,
            currency=currency,
            gateway=gateway,
            status=status,
            raw_response=raw_response,
            error_code=error_code,
            created_at=from_db_datetime(now),
            updated_at=from_db_datetime(now),
        )

    async def mark_status(
        self,
        payment_intent_id: str,
        status: TransactionStatus,
        raw_response: dict[str, Any] | None = None,
        from_status: TransactionStatus = TransactionStatus.PENDING,
    ) -> bool:
        values: dict[str, Any] = {"status": status.value, "updated_at": utcnow()}
        if raw_response is not None:
            values["raw_response"] = raw_response
        stmt = (
            update(payment_transactions)
            .where(
                payment_transactions.c.payment_intent_id == payment_intent_id,
                payment_transactions.c.status == from_status.value,
            )
            .values(**values)
        )
        result = await self._session.execute(stmt)
        return result.rowcount > 0

    async def get_by_id(self, transaction_id: int) -> PaymentTransaction | None:
        stmt = select(payment_transactions).where(payment_transactions.c.id == transaction_id)
        row = (await self._session.execute(stmt)).mappings().first()
        return self._to_entity(row) if row else None

    async def get_by_payment_intent(self, payment_intent_id: str) -> PaymentTransaction | None:
        stmt = (
            select(payment_transactions)
            .where(payment_transactions.c.payment_intent_id == payment_intent_id)
            .order_by(payment_transactions.c.id.desc())
            .limit(1)
        )
        row = (await self._session.execute(stmt)).mappings().first()
        return self._to_entity(row) if row else None

    async def latest_for_booking(self, booking_id: int) -> PaymentTransaction | None:
        stmt = (
            select(payment_transactions)
            .where(payment_transactions.c.booking_id == booking_id)
            .order_by(payment_transactions.c.id.desc())
            .limit(1)
        )
        row = (await self._session.execute(stmt)).mappings().first()
        return self._to_entity(row) if row else None

    async def list_for_booking(self, booking_id: int) -> Sequence[PaymentTransaction]:
        stmt = (
            select(payment_transactions)
            .where(payment_transactions.c.booking_id == booking_id)
            .order_by(payment_transactions.c.id)
        )
        rows = (await self._session.execute(stmt)).mappings().all()
        return [self._to_entity(row) for row in rows]

    async def list_for_bookings(self, booking_ids: Sequence[int]) -> Sequence[PaymentTransaction]:
        if not booking_ids:
            return []
        stmt = (
            select(payment_transactions)
            .where(payment_transactions.c.booking_id.in_(list(booking_ids)))
            .order_by(payment_transactions.c.id.desc())
        )
        rows = (await self._session.execute(stmt)).mappings().all()
        return [self._to_entity(row) for row in rows]

    @staticmethod
    def _to_entity(row: Mapping[str, Any]) -> PaymentTransaction:
        return PaymentTransaction(
            id=row["id"],
            booking_id=row["booking_id"],
            payment_intent_id=row["payment_intent_id"],
            amount=row["amount"],
            currency=row["currency"],
            gateway=row["gateway"],
            status=TransactionStatus(row["status"]),
            raw_response=row["raw_response"],
            error_code=row["error_code"],
            created_at=from_db_datetime(row["created_at"]),
            updated_at=from_db_datetime(row["updated_at"]),
        )
