from typing import Any, Mapping, Sequence

from sqlalchemy import insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.application.interfaces.supplier_request_repo import (
    SupplierRequestRecord,
    SupplierRequestRepo,
)
from app.infrastructure.db.tables import supplier_requests, utcnow


class SupplierRequestRepoSQL(SupplierRequestRepo):
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create_in_progress(
        self,
        booking_id: int,
        reference: str,
        request_type: str,
        attempt: int,
        request_payload: dict[str, Any] | None = None,
    ) -> SupplierRequestRecord:
        now = utcnow()
        stmt = insert(supplier_requests).values(
            booking_id=booking_id,
            reference=reference,
            request_type=request_type,
            attempt=attempt,
            status="IN_PROGRESS",
            request_payload=request_payload,
            created_at=now,
            updated_at=now,
        )
        result = await self._session.execute(stmt)
        return SupplierRequestRecord(
            id=result.inserted_primary_key[0],
            booking_id=booking_id,
            reference=reference,
            request_type=request_type,
            attempt=attempt,
            status="IN_PROGRESS",
            request_payload=request_payload,
        )

    async def mark_success(
        self,
        request_id: int,
        response_payload: dict[str, Any] | None,
        http_status: int | None,
    ) -> SupplierRequestRecord:
        stmt = (
            update(supplier_requests)
            .where(supplier_requests.c.id == request_id)
            .values(
                status="SUCCESS",
                response_payload=response_payload,
                http_status=http_status,
                failure_kind=None,
                error_code=None,
                error_message=None,
                updated_at=utcnow(),
            )
        )
        await self._session.execute(stmt)
        return await self._get(request_id)

    async def mark_failed(
        self,
        request_id: int,
        failure_kind: str,
        error_code: str | None,
        error_message: str | None,
        http_status: int | None,
        response_payload: dict[str, Any] | None,
    ) -> SupplierRequestRecord:
        stmt = (
            update(supplier_requests)
            .where(supplier_requests.c.id == request_id)
            .values(
                status="FAILED",
                failure_kind=failure_kind,
                error_code=error_code,
                error_message=(error_message or "")[:255] or None,
                http_status=http_status,
                response_payload=response_payload,
                updated_at=utcnow(),
            )
        )
        await self._session.execute(stmt)
        return await self._get(request_id)

    async def list_for_booking(self, booking_id: int) -> Sequence[SupplierRequestRecord]:
        stmt = (
            select(supplier_requests)
            .where(supplier_requests.c.booking_id == booking_id)
            .order_by(supplier_requests.c.id)
        )
        rows = (await self._session.execute(stmt)).mappings().all()
        return [self._to_record(row) for row in rows]

    async def _get(self, request_id: int) -> SupplierRequestRecord:
        stmt = select(supplier_requests).where(supplier_requests.c.id == request_id)
        row = (await self._session.execute(stmt)).mappings().one()
        return self._to_record(row)

    @staticmethod
    def _to_record(row: Mapping[str, Any]) -> SupplierRequestRecord:
        return SupplierRequestRecord(
            id=row["id"],
            booking_id=row["booking_id"],
            reference=row["reference"],
            request_type=row["request_type"],
            attempt=row["attempt"],
            status=row["status"],
            request_payload=row["request_payload"],
            response_payload=row["response_payload"],
            failure_kind=row["failure_kind"],
            error_code=row["error_code"],
            error_message=row["error_message"],
            http_status=row["http_status"],
        )
