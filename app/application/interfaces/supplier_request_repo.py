from dataclasses import dataclass
from typing import Any, Sequence

REQUEST_SUBMIT = "SUBMIT"
REQUEST_CANCEL = "CANCEL"
REQUEST_TICKETS = "TICKETS"

FAILURE_BUSINESS = "BUSINESS"
FAILURE_INFRA = "INFRA"


@dataclass
class SupplierRequestRecord:
    id: int
    booking_id: int
    reference: str
    request_type: str
    attempt: int
    status: str  # IN_PROGRESS, SUCCESS, FAILED
    request_payload: dict[str, Any] | None = None
    response_payload: dict[str, Any] | None = None
    failure_kind: str | None = None
    error_code: str | None = None
    error_message: str | None = None
    http_status: int | None = None


class SupplierRequestRepo:
    async def create_in_progress(
        self,
        booking_id: int,
        reference: str,
        request_type: str,
        attempt: int,
        request_payload: dict[str, Any] | None = None,
    ) -> SupplierRequestRecord:
        raise NotImplementedError

    async def mark_success(
        self,
        request_id: int,
        response_payload: dict[str, Any] | None,
        http_status: int | None,
    ) -> SupplierRequestRecord:
        raise NotImplementedError

    async def mark_failed(
        self,
        request_id: int,
        failure_kind: str,
        error_code: str | None,
        error_message: str | None,
        http_status: int | None,
        response_payload: dict[str, Any] | None,
    ) -> SupplierRequestRecord:
        raise NotImplementedError

    async def list_for_booking(self, booking_id: int) -> Sequence[SupplierRequestRecord]:
        raise NotImplementedError
