from collections import deque

from app.application.interfaces.supplier_gateway import SUCCESS, SupplierGateway, SupplierResult
from app.domain.entities.booking import Booking


class StubSupplierGateway(SupplierGateway):
    """
    Supplier for local runs and tests. Succeeds unless results were queued
    with queue_submit(); every call is recorded.
    """

    def __init__(self) -> None:
        self._submit_results: deque[SupplierResult] = deque()
        self._cancel_results: deque[SupplierResult] = deque()
        self.submitted: list[str] = []
        self.cancelled: list[str] = []
        self.ticket_requests: list[str] = []

    def queue_submit(self, *results: SupplierResult) -> None:
        self._submit_results.extend(results)

    def queue_cancel(self, *results: SupplierResult) -> None:
        self._cancel_results.extend(results)

    async def submit(self, booking: Booking) -> SupplierResult:
        self.submitted.append(booking.reference)
        if self._submit_results:
            return self._submit_results.popleft()
        supplier_booking_id = f"SUP-{booking.id:06d}"
        return SupplierResult(
            status=SUCCESS,
            supplier_booking_id=supplier_booking_id,
            payload={"statuscode": 200, "result": [{"bookingId": supplier_booking_id}]},
            http_status=200,
        )

    async def cancel(self, booking: Booking, reason: str) -> SupplierResult:
        self.cancelled.append(booking.reference)
        if self._cancel_results:
            return self._cancel_results.popleft()
        return SupplierResult(
            status=SUCCESS,
            supplier_booking_id=booking.supplier_booking_id,
            payload={"statuscode": 200, "result": {"status": "Cancelled", "reason": reason}},
            http_status=200,
        )

    async def fetch_tickets(self, booking: Booking) -> SupplierResult:
        self.ticket_requests.append(booking.reference)
        return SupplierResult(
            status=SUCCESS,
            supplier_booking_id=booking.supplier_booking_id,
            payload={
                "statuscode": 200,
                "result": {
                    "ticketURL": f"https://tickets.invalid/{booking.supplier_booking_id}",
                    "ticketDetails": [
                        {"serviceUniqueId": item.service_unique_id, "tourId": item.tour_id}
                        for item in booking.tour_items
                    ],
                },
            },
            http_status=200,
        )
