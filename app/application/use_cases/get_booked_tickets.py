import logging
from typing import Any

from app.api.schemas.bookings import BookingSummary, TicketsResponse, TourLineOut
from app.application.dtos.booking_dto import CallerIdentity
from app.application.interfaces.booking_repo import BookingRepo
from app.application.interfaces.supplier_gateway import SupplierGateway
from app.application.interfaces.supplier_request_repo import (
    FAILURE_BUSINESS,
    FAILURE_INFRA,
    REQUEST_TICKETS,
    SupplierRequestRepo,
)
from app.application.interfaces.transaction_manager import TransactionManager
from app.application.use_cases.get_booking import load_owned_booking
from app.domain.entities.booking import SupplierStatus
from app.domain.errors import SupplierNotSubmittedError, SupplierUnavailableError


class GetBookedTicketsUseCase:
    """Reads the tickets from the supplier and merges them with the local booking."""

    def __init__(
        self,
        booking_repo: BookingRepo,
        supplier_gateway: SupplierGateway,
        supplier_request_repo: SupplierRequestRepo,
        transaction_manager: TransactionManager,
    ) -> None:
        self._booking_repo = booking_repo
        self._supplier_gateway = supplier_gateway
        self._supplier_request_repo = supplier_request_repo
        self._transaction_manager = transaction_manager
        self._logger = logging.getLogger(__name__)

    async def execute(self, booking_id: int, caller: CallerIdentity) -> TicketsResponse:
        booking = await load_owned_booking(self._booking_repo, booking_id, caller)
        if (
            not booking.is_submitted_to_supplier
            or booking.supplier_status != SupplierStatus.CONFIRMED
        ):
            raise SupplierNotSubmittedError(booking.id)

        async with self._transaction_manager.start():
            request = await self._supplier_request_repo.create_in_progress(
                booking_id=booking.id,
                reference=booking.reference,
                request_type=REQUEST_TICKETS,
                attempt=1,
            )

        result = await self._supplier_gateway.fetch_tickets(booking)

        async with self._transaction_manager.start():
            if result.is_success:
                await self._supplier_request_repo.mark_success(
                    request_id=request.id,
                    response_payload=result.payload,
                    http_status=result.http_status,
                )
            else:
                await self._supplier_request_repo.mark_failed(
                    request_id=request.id,
                    failure_kind=FAILURE_BUSINESS if result.is_business_error else FAILURE_INFRA,
                    error_code=result.error_code,
                    error_message=result.error_message,
                    http_status=result.http_status,
                    response_payload=result.payload,
                )

        if not result.is_success:
            self._logger.warning(
                "Supplier ticket read failed",
                extra={"reference": booking.reference, "error_code": result.error_code},
            )
            raise SupplierUnavailableError(booking.id, result.error_code, result.error_message)

        ticket_url, tickets = self._extract_tickets(result.payload)
        return TicketsResponse(
            booking=BookingSummary.from_booking(booking),
            supplier_booking_id=booking.supplier_booking_id,
            ticket_url=ticket_url,
            tickets=tickets,
            tour_details=[TourLineOut.from_item(item) for item in booking.tour_items],
        )

    @staticmethod
    def _extract_tickets(payload: dict[str, Any] | None) -> tuple[str | None, list[dict[str, Any]]]:
        body = (payload or {}).get("result")
        if isinstance(body, list):
            return None, [item for item in body if isinstance(item, dict)]
        if not isinstance(body, dict):
            return None, []
        details = body.get("ticketDetails") or []
        return body.get("ticketURL"), [item for item in details if isinstance(item, dict)]
