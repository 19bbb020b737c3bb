import logging
from datetime import timedelta
from decimal import Decimal
from typing import Any

import httpx
from pybreaker import CircuitBreaker

from app.application.interfaces.clock import Clock, SystemClock
from app.application.interfaces.payment_gateway import (
    PaymentFailureKind,
    PaymentGateway,
    PaymentSessionFailed,
    PaymentSessionOpened,
    PaymentState,
)
from app.application.interfaces.uuid_generator import RealUUIDGenerator, UUIDGenerator
from app.domain.entities.booking import Booking, PaymentMethod
from app.domain.value_objects.money import Money
from app.infrastructure.circuit_breaker import (
    CircuitBreakerError,
    UpstreamServerError,
    build_breaker,
    call_with_breaker,
)

logger = logging.getLogger(__name__)

WALLET_GATEWAY = "ZIINA"
CARD_GATEWAY = "CARD"
BANK_TRANSFER_GATEWAY = "BANK_TRANSFER"

SESSION_EXPIRY = timedelta(minutes=15)
BANK_TRANSFER_DUE = timedelta(hours=24)

DEFAULT_BANK_DETAILS = {
    "bankName": "Example Bank",
    "accountName": "Tour Company LLC",
    "accountNumber": "123456789",
    "iban": "AE070331234567890123456",
    "swiftCode": "EXBLAEAD",
}

REMOTE_STATES = {
    "succeeded": PaymentState.SUCCEEDED,
    "completed": PaymentState.SUCCEEDED,
    "failed": PaymentState.FAILED,
    "canceled": PaymentState.CANCELLED,
    "cancelled": PaymentState.CANCELLED,
    "pending": PaymentState.PENDING,
    "requires_payment_instrument": PaymentState.PENDING,
    "requires_user_action": PaymentState.PENDING,
}


class PaymentGatewayHTTP(PaymentGateway):
    def __init__(
        self,
        base_url: str,
        api_token: str | None,
        frontend_url: str,
        timeout_seconds: float = 10.0,
        test_mode: bool = True,
        bank_details: dict[str, str] | None = None,
        clock: Clock | None = None,
        uuid_generator: UUIDGenerator | None = None,
        breaker: CircuitBreaker | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """
        Payment gateway adapter with one strategy per payment method.

        Args:
            base_url: Gateway API root, e.g. https://api-v2.ziina.com/api
            api_token: Bearer token for the wallet gateway
            frontend_url: Base for success/cancel/failure callback URLs
            timeout_seconds: Bound for every gateway call (default: 10.0)
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self._base_url = base_url.rstrip("/")
        self._frontend_url = frontend_url.rstrip("/")
        self._timeout = timeout_seconds
        self._test_mode = test_mode
        self._bank_details = {**DEFAULT_BANK_DETAILS, **(bank_details or {})}
        self._clock = clock or SystemClock()
        self._uuid = uuid_generator or RealUUIDGenerator()
        self._breaker = breaker or build_breaker("payment_gateway")
        headers = {"Content-Type": "application/json"}
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

    async def open_session(
        self,
        booking: Booking,
        amount: Decimal,
        currency: str,
        method: PaymentMethod,
    ) -> PaymentSessionOpened | PaymentSessionFailed:
        if method == PaymentMethod.CARD:
            return self._card_session(booking)
        if method == PaymentMethod.BANK_TRANSFER:
            return self._bank_transfer_session(booking, amount, currency)
        return await self._wallet_session(booking, amount, currency)

    async def _wallet_session(
        self, booking: Booking, amount: Decimal, currency: str
    ) -> PaymentSessionOpened | PaymentSessionFailed:
        expiry_ms = self._clock.now_ms() + int(SESSION_EXPIRY.total_seconds() * 1000)
        payload: dict[str, Any] = {
            "amount": Money(amount, currency).to_minor_units(),
            "currency_code": currency,
            "message": f"Payment for tour booking - Ref: {booking.reference}",
            "success_url": f"{self._frontend_url}/payment-success?bookingId={booking.id}"
            "&paymentIntentId={payment_intent_id}",
            "cancel_url": f"{self._frontend_url}/payment-cancelled?bookingId={booking.id}",
            "failure_url": f"{self._frontend_url}/payment-failed?bookingId={booking.id}",
            "test": self._test_mode,
            "transaction_source": "directApi",
            "expiry": str(expiry_ms),
            "allow_tips": False,
            "metadata": {
                "bookingId": booking.id,
                "userId": booking.user_id,
                "reference": booking.reference,
            },
        }

        try:
            response = await call_with_breaker(
                self._breaker, self._send, "POST", "/payment_intent", payload
            )
        except CircuitBreakerError:
            logger.error(
                "Payment gateway circuit breaker is open - service unavailable",
                extra={"booking_id": booking.id, "reference": booking.reference},
            )
            return self._failed(
                PaymentFailureKind.TRANSPORT,
                "GATEWAY_UNAVAILABLE",
                "Payment service temporarily unavailable (circuit breaker open)",
            )
        except httpx.TimeoutException as exc:
            logger.warning(
                "Payment gateway timeout",
                extra={"booking_id": booking.id, "timeout": self._timeout},
            )
            return self._failed(PaymentFailureKind.TRANSPORT, "GATEWAY_TIMEOUT", str(exc) or "timeout")
        except httpx.HTTPError as exc:
            logger.error(
                "Payment gateway HTTP error",
                exc_info=exc,
                extra={"booking_id": booking.id},
            )
            return self._failed(PaymentFailureKind.TRANSPORT, "GATEWAY_UNAVAILABLE", str(exc))
        except UpstreamServerError as exc:
            return self._rejected(booking, exc.response)

        if not response.is_success:
            return self._rejected(booking, response)

        body = self._json(response)
        if not isinstance(body, dict) or not body.get("redirect_url") or not body.get("id"):
            logger.error(
                "Payment gateway answered without redirect url",
                extra={"booking_id": booking.id, "http_status": response.status_code},
            )
            return self._failed(
                PaymentFailureKind.CONTRACT_VIOLATION,
                "GATEWAY_CONTRACT_VIOLATION",
                "No redirect URL received from payment gateway",
                http_status=response.status_code,
                raw=body if isinstance(body, dict) else None,
            )

        return PaymentSessionOpened(
            payment_intent_id=str(body["id"]),
            redirect_url=body["redirect_url"],
            gateway=WALLET_GATEWAY,
            raw=body,
        )

    def _card_session(self, booking: Booking) -> PaymentSessionOpened:
        session_id = f"card_{self._clock.now_ms()}_{self._uuid.generate_token(9)}"
        url = f"{self._frontend_url}/card-payment?bookingId={booking.id}"
        return PaymentSessionOpened(
            payment_intent_id=session_id,
            redirect_url=url,
            gateway=CARD_GATEWAY,
            raw={"id": session_id, "url": url},
        )

    def _bank_transfer_session(
        self, booking: Booking, amount: Decimal, currency: str
    ) -> PaymentSessionOpened:
        now = self._clock.now()
        transfer_reference = f"BANK-{booking.reference}-{self._clock.now_ms()}"
        due_date = now + BANK_TRANSFER_DUE
        bank_details = {
            **self._bank_details,
            "reference": transfer_reference,
            "amount": str(amount),
            "currency": currency,
            "dueDate": due_date.isoformat(),
        }
        return PaymentSessionOpened(
            payment_intent_id=transfer_reference,
            redirect_url=f"{self._frontend_url}/bank-transfer?bookingId={booking.id}"
            f"&reference={transfer_reference}",
            gateway=BANK_TRANSFER_GATEWAY,
            gateway_reference=transfer_reference,
            bank_details=bank_details,
            due_date=due_date,
            raw=bank_details,
        )

    async def verify_status(self, payment_intent_id: str, method: PaymentMethod) -> PaymentState:
        # Card and bank transfer are confirmed by an operator (confirm_offline)
        if method != PaymentMethod.WALLET_REDIRECT:
            return PaymentState.PENDING

        try:
            response = await call_with_breaker(
                self._breaker, self._send, "GET", f"/payment_intent/{payment_intent_id}", None
            )
        except (CircuitBreakerError, httpx.HTTPError, UpstreamServerError) as exc:
            logger.warning(
                "Payment status check failed",
                extra={"payment_intent_id": payment_intent_id, "error": str(exc)},
            )
            return PaymentState.UNKNOWN

        body = self._json(response)
        if not response.is_success or not isinstance(body, dict):
            return PaymentState.UNKNOWN
        return REMOTE_STATES.get(str(body.get("status", "")).lower(), PaymentState.UNKNOWN)

    def _send(self, method: str, path: str, payload: dict[str, Any] | None) -> httpx.Response:
        response = self._client.request(method, path, json=payload)
        if response.status_code >= 500:
            raise UpstreamServerError(response)
        return response

    def _rejected(self, booking: Booking, response: httpx.Response) -> PaymentSessionFailed:
        body = self._json(response)
        message = None
        if isinstance(body, dict):
            message = body.get("message") or body.get("error")
        logger.warning(
            "Payment gateway rejected session",
            extra={"booking_id": booking.id, "http_status": response.status_code},
        )
        return self._failed(
            PaymentFailureKind.REJECTED,
            "GATEWAY_REJECTED",
            str(message or f"Payment gateway answered HTTP {response.status_code}"),
            http_status=response.status_code,
            raw=body if isinstance(body, dict) else None,
        )

    @staticmethod
    def _failed(
        kind: PaymentFailureKind,
        code: str,
        message: str,
        http_status: int | None = None,
        raw: dict[str, Any] | None = None,
    ) -> PaymentSessionFailed:
        return PaymentSessionFailed(
            kind=kind,
            gateway=WALLET_GATEWAY,
            error_code=code,
            message=message,
            http_status=http_status,
            raw=raw,
        )

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError:
            return None
