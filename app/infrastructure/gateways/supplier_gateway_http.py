import logging
from typing import Any

import httpx
from pybreaker import CircuitBreaker

from app.application.interfaces.supplier_gateway import (
    BUSINESS_ERROR,
    INFRA_ERROR,
    SUCCESS,
    SupplierGateway,
    SupplierResult,
)
from app.domain.entities.booking import Booking
from app.infrastructure.circuit_breaker import (
    CircuitBreakerError,
    UpstreamServerError,
    build_breaker,
    call_with_breaker,
)

logger = logging.getLogger(__name__)

BOOK_PATH = "/api/Booking/bookings"
CANCEL_PATH = "/api/Booking/cancelbooking"
TICKETS_PATH = "/api/Booking/GetBookedTickets"

# Statuses that mean "try again later" rather than "the supplier said no"
RETRYABLE_STATUSES = {408, 429}


def build_booking_payload(booking: Booking) -> dict[str, Any]:
    """Maps the internal booking onto the supplier's booking request."""
    return {
        "uniqueNo": booking.reference,
        "TourDetails": [
            {
                "serviceUniqueId": item.service_unique_id or f"{booking.reference}-{index}",
                "tourId": item.tour_id,
                "optionId": item.option_id,
                "adult": item.adult,
                "child": item.child,
                "infant": item.infant,
                "tourDate": item.tour_date.isoformat(),
                "timeSlotId": item.time_slot_id,
                "startTime": item.start_time,
                "transferId": item.transfer_id,
                "pickup": item.pickup or "",
                "adultRate": float(item.adult_rate),
                "childRate": float(item.child_rate),
                "serviceTotal": str(item.line_net),
            }
            for index, item in enumerate(booking.tour_items, start=1)
        ],
        "passengers": [
            {
                "serviceType": passenger.service_type,
                "prefix": passenger.prefix,
                "firstName": passenger.first_name,
                "lastName": passenger.last_name,
                "email": passenger.email,
                "mobile": passenger.mobile,
                "nationality": passenger.nationality,
                "message": passenger.message or "",
                "leadPassenger": 1 if passenger.lead_passenger else 0,
                "paxType": passenger.pax_type.value,
                "clientReferenceNo": booking.client_reference_no or booking.reference,
            }
            for passenger in booking.passengers
        ],
    }


class SupplierGatewayHTTP(SupplierGateway):
    def __init__(
        self,
        base_url: str,
        api_token: str | None,
        timeout_seconds: float = 30.0,
        breaker: CircuitBreaker | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """
        HTTP-based tour supplier gateway with configurable timeout.

        Args:
            base_url: Base URL of the supplier API
            api_token: Bearer token
            timeout_seconds: Request timeout in seconds (default: 30.0)
            breaker: Circuit breaker for this supplier (one is built if omitted)
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout_seconds
        self._breaker = breaker or build_breaker("supplier")
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if api_token:
            headers["Authorization"] = f"Bearer {api_token}"
        self._client = httpx.Client(
            base_url=self._base_url,
            headers=headers,
            timeout=timeout_seconds,
            transport=transport,
        )

    async def aclose(self) -> None:
        self._client.close()

    async def submit(self, booking: Booking) -> SupplierResult:
        """
        Book with the supplier API, protected by Circuit Breaker.

        Returns:
            SupplierResult with status SUCCESS, BUSINESS_ERROR or INFRA_ERROR
        """
        result = await self._post(BOOK_PATH, build_booking_payload(booking), booking)
        if result.is_success:
            supplier_booking_id = self._extract_booking_id(result.payload)
            if not supplier_booking_id:
                return SupplierResult(
                    status=INFRA_ERROR,
                    payload=result.payload,
                    error_code="MALFORMED_RESPONSE",
                    error_message="Supplier confirmed without a booking id",
                    http_status=result.http_status,
                )
            result.supplier_booking_id = supplier_booking_id
        return result

    async def cancel(self, booking: Booking, reason: str) -> SupplierResult:
        payload = {
            "bookingId": booking.supplier_booking_id,
            "referenceNo": booking.reference,
            "cancellationReason": reason,
        }
        result = await self._post(CANCEL_PATH, payload, booking)
        result.supplier_booking_id = booking.supplier_booking_id
        return result

    async def fetch_tickets(self, booking: Booking) -> SupplierResult:
        payload = {
            "uniqNO": booking.reference,
            "referenceNo": booking.reference,
            "bookedOption": [
                {
                    "serviceUniqueId": item.service_unique_id,
                    "bookingId": booking.supplier_booking_id,
                }
                for item in booking.tour_items
            ],
        }
        result = await self._post(TICKETS_PATH, payload, booking)
        result.supplier_booking_id = booking.supplier_booking_id
        return result

    async def _post(self, path: str, payload: dict[str, Any], booking: Booking) -> SupplierResult:
        log_extra = {"reference": booking.reference, "path": path}
        try:
            response = await call_with_breaker(self._breaker, self._send, path, payload)
        except CircuitBreakerError:
            logger.error(
                "Supplier circuit breaker is open - service unavailable",
                extra=log_extra,
            )
            return SupplierResult(
                status=INFRA_ERROR,
                error_code="CIRCUIT_OPEN",
                error_message="Supplier service temporarily unavailable (circuit breaker open)",
            )
        except httpx.TimeoutException as exc:
            logger.warning(
                "Supplier request timeout",
                extra={**log_extra, "timeout": self._timeout},
            )
            return SupplierResult(
                status=INFRA_ERROR,
                error_code="TIMEOUT",
                error_message=str(exc) or "timeout",
            )
        except httpx.HTTPError as exc:
            logger.error("Supplier HTTP error", exc_info=exc, extra=log_extra)
            return SupplierResult(
                status=INFRA_ERROR,
                error_code="HTTP_ERROR",
                error_message=str(exc),
            )
        except UpstreamServerError as exc:
            return SupplierResult(
                status=INFRA_ERROR,
                payload=self._json(exc.response),
                error_code="UPSTREAM_5XX",
                error_message=exc.response.text[:255],
                http_status=exc.response.status_code,
            )

        return self._classify(response, log_extra)

    def _send(self, path: str, payload: dict[str, Any]) -> httpx.Response:
        response = self._client.post(path, json=payload)
        if response.status_code >= 500:
            raise UpstreamServerError(response)
        return response

    def _classify(self, response: httpx.Response, log_extra: dict[str, Any]) -> SupplierResult:
        body = self._json(response)

        if response.status_code in RETRYABLE_STATUSES:
            return SupplierResult(
                status=INFRA_ERROR,
                payload=body,
                error_code=f"HTTP_{response.status_code}",
                error_message=response.text[:255],
                http_status=response.status_code,
            )

        if 400 <= response.status_code < 500:
            logger.warning(
                "Supplier rejected request",
                extra={**log_extra, "http_status": response.status_code},
            )
            return SupplierResult(
                status=BUSINESS_ERROR,
                payload=body,
                error_code=f"HTTP_{response.status_code}",
                error_message=self._error_text(body) or response.text[:255],
                http_status=response.status_code,
            )

        if not isinstance(body, dict):
            return SupplierResult(
                status=INFRA_ERROR,
                error_code="MALFORMED_RESPONSE",
                error_message=response.text[:255],
                http_status=response.status_code,
            )

        statuscode = body.get("statuscode")
        if body.get("error") or (statuscode is not None and statuscode != 200):
            logger.warning(
                "Supplier business rejection",
                extra={**log_extra, "statuscode": statuscode},
            )
            return SupplierResult(
                status=BUSINESS_ERROR,
                payload=body,
                error_code=f"SUPPLIER_{statuscode}" if statuscode is not None else "SUPPLIER_ERROR",
                error_message=self._error_text(body) or "Supplier booking failed",
                http_status=response.status_code,
            )

        return SupplierResult(status=SUCCESS, payload=body, http_status=response.status_code)

    @staticmethod
    def _extract_booking_id(body: dict[str, Any] | None) -> str | None:
        if not isinstance(body, dict):
            return None
        result = body.get("result")
        if isinstance(result, list) and result and isinstance(result[0], dict):
            booking_id = result[0].get("bookingId")
        elif isinstance(result, dict):
            booking_id = result.get("bookingId")
        else:
            booking_id = None
        return str(booking_id) if booking_id is not None else None

    @staticmethod
    def _error_text(body: Any) -> str | None:
        if not isinstance(body, dict):
            return None
        error = body.get("error") or body.get("message")
        return str(error) if error else None

    @staticmethod
    def _json(response: httpx.Response) -> dict[str, Any] | None:
        try:
            body = response.json()
        except ValueError:
            return None
        return body if isinstance(body, dict) else None
