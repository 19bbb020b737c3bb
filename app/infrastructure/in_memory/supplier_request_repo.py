from typing import Any, Sequence

from app.application.interfaces.supplier_request_repo import (
    SupplierRequestRecord,
    SupplierRequestRepo,
)


class InMemorySupplierRequestRepo(SupplierRequestRepo):
    def __init__(self) -> None:
        self._records: dict[int, SupplierRequestRecord] = {}
        self._by_booking: dict[int, list[int]] = {}
        self._next_id = 1

    async def create_in_progress(
        self,
        booking_id: int,
        reference: str,
        request_type: str,
        attempt: int,
        request_payload: dict[str, Any] | None = None,
    ) -> SupplierRequestRecord:
        record = SupplierRequestRecord(
            id=self._next_id,
            booking_id=booking_id,
            reference=reference,
            request_type=request_type,
            attempt=attempt,
            status="IN_PROGRESS",
            request_payload=request_payload,
        )
        self._records[record.id] = record
        self._by_booking.setdefault(booking_id, []).append(record.id)
        self._next_id += 1
        return record

    async def mark_success(
        self,
        request_id: int,
        response_payload: dict[str, Any] | None,
        http_status: int | None,
    ) -> SupplierRequestRecord:
        record = self._records[request_id]
        record.status = "SUCCESS"
        record.response_payload = response_payload
        record.http_status = http_status
        record.failure_kind = None
        record.error_code = None
        record.error_message = None
        return record

    async def mark_failed(
        self,
        request_id: int,
        failure_kind: str,
        error_code: str | None,
        error_message: str | None,
        http_status: int | None,
        response_payload: dict[str, Any] | None,
    ) -> SupplierRequestRecord:
        record = self._records[request_id]
        record.status = "FAILED"
        record.failure_kind = failure_kind
        record.error_code = error_code
        record.error_message = error_message
        record.http_status = http_status
        record.response_payload = response_payload
        return record

    async def list_for_booking(self, booking_id: int) -> Sequence[SupplierRequestRecord]:
        return [self._records[i] for i in self._by_booking.get(booking_id, [])]
