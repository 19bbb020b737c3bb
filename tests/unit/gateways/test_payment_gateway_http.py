import json
import unittest
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import httpx

from app.application.interfaces.clock import FakeClock
from app.application.interfaces.payment_gateway import (
    PaymentFailureKind,
    PaymentSessionFailed,
    PaymentSessionOpened,
    PaymentState,
)
from app.application.interfaces.uuid_generator import FakeUUIDGenerator
from app.domain.entities.booking import Booking, Passenger, PaymentMethod, TourLineItem
from app.infrastructure.circuit_breaker import build_breaker
from app.infrastructure.gateways.payment_gateway_http import PaymentGatewayHTTP

NOW = datetime(2026, 1, 15, 9, 0, tzinfo=timezone.utc)


def make_booking() -> Booking:
    return Booking(
        id=42,
        reference="REF-1",
        user_id="user-1",
        total_gross=Decimal("250.00"),
        passengers=[Passenger(first_name="Amira", last_name="Haddad", lead_passenger=True)],
        tour_items=[
            TourLineItem(tour_id=101, option_id=7, tour_date=date(2026, 2, 1), adult=1,
                         adult_rate=Decimal("250.00"))
        ],
    )


class TestPaymentGatewayHTTP(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.requests: list[httpx.Request] = []
        self.responder = lambda request: httpx.Response(
            200, json={"id": "pi_123", "redirect_url": "https://pay.test/pi_123"}
        )
        self.clock = FakeClock(NOW)
        self.gateway = self._gateway()
        self.booking = make_booking()

    async def asyncTearDown(self):
        await self.gateway.aclose()

    def _handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.responder(request)

    def _gateway(self, fail_max: int = 5) -> PaymentGatewayHTTP:
        return PaymentGatewayHTTP(
            base_url="https://gateway.test/api",
            api_token="secret-token",
            frontend_url="https://shop.test/",
            timeout_seconds=2.0,
            test_mode=True,
            bank_details={"bankName": "Test Bank"},
            clock=self.clock,
            uuid_generator=FakeUUIDGenerator(),
            breaker=build_breaker("payment_test", fail_max=fail_max, reset_timeout=60),
            transport=httpx.MockTransport(self._handler),
        )

    async def _open(self, method=PaymentMethod.WALLET_REDIRECT):
        return await self.gateway.open_session(self.booking, Decimal("250.00"), "AED", method)

    async def test_wallet_session_opened(self):
        result = await self._open()

        self.assertIsInstance(result, PaymentSessionOpened)
        self.assertEqual(result.payment_intent_id, "pi_123")
        self.assertEqual(result.redirect_url, "https://pay.test/pi_123")
        self.assertEqual(result.gateway, "ZIINA")

        request = self.requests[0]
        body = json.loads(request.content)
        self.assertEqual(request.method, "POST")
        self.assertEqual(request.url.path, "/api/payment_intent")
        self.assertEqual(request.headers["Authorization"], "Bearer secret-token")
        self.assertEqual(body["amount"], 25000)
        self.assertEqual(body["currency_code"], "AED")
        self.assertEqual(body["metadata"]["bookingId"], 42)
        self.assertTrue(body["test"])
        self.assertTrue(body["cancel_url"].startswith("https://shop.test/payment-cancelled"))
        expected_expiry = int((NOW + timedelta(minutes=15)).timestamp() * 1000)
        self.assertEqual(body["expiry"], str(expected_expiry))

    async def test_success_without_redirect_url_is_contract_violation(self):
        self.responder = lambda request: httpx.Response(200, json={"id": "pi_123"})

        result = await self._open()

        self.assertIsInstance(result, PaymentSessionFailed)
        self.assertEqual(result.kind, PaymentFailureKind.CONTRACT_VIOLATION)
        self.assertEqual(result.error_code, "GATEWAY_CONTRACT_VIOLATION")
        self.assertEqual(result.http_status, 200)

    async def test_client_error_is_rejected(self):
        self.responder = lambda request: httpx.Response(400, json={"message": "invalid currency"})

        result = await self._open()

        self.assertEqual(result.kind, PaymentFailureKind.REJECTED)
        self.assertEqual(result.error_code, "GATEWAY_REJECTED")
        self.assertEqual(result.message, "invalid currency")
        self.assertEqual(result.http_status, 400)

    async def test_server_error_is_rejected(self):
        self.responder = lambda request: httpx.Response(503, text="maintenance")

        result = await self._open()

        self.assertEqual(result.kind, PaymentFailureKind.REJECTED)
        self.assertEqual(result.http_status, 503)

    async def test_timeout_is_transport_failure(self):
        def raise_timeout(request):
            raise httpx.ReadTimeout("timed out", request=request)

        self.responder = raise_timeout

        result = await self._open()

        self.assertEqual(result.kind, PaymentFailureKind.TRANSPORT)
        self.assertEqual(result.error_code, "GATEWAY_TIMEOUT")

    async def test_connection_error_is_transport_failure(self):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        self.responder = refuse

        result = await self._open()

        self.assertEqual(result.kind, PaymentFailureKind.TRANSPORT)
        self.assertEqual(result.error_code, "GATEWAY_UNAVAILABLE")

    async def test_open_circuit_skips_the_gateway(self):
        await self.gateway.aclose()
        self.gateway = self._gateway(fail_max=2)
        self.responder = lambda request: httpx.Response(503)

        await self._open()
        await self._open()
        result = await self._open()

        self.assertEqual(len(self.requests), 2)
        self.assertEqual(result.kind, PaymentFailureKind.TRANSPORT)
        self.assertEqual(result.error_code, "GATEWAY_UNAVAILABLE")

    async def test_card_session_is_synthesized_locally(self):
        result = await self._open(PaymentMethod.CARD)

        self.assertEqual(result.gateway, "CARD")
        self.assertEqual(
            result.payment_intent_id, f"card_{self.clock.now_ms()}_000000001"
        )
        self.assertEqual(result.redirect_url, "https://shop.test/card-payment?bookingId=42")
        self.assertEqual(self.requests, [])

    async def test_bank_transfer_returns_instructions(self):
        result = await self._open(PaymentMethod.BANK_TRANSFER)

        reference = f"BANK-REF-1-{self.clock.now_ms()}"
        self.assertEqual(result.gateway, "BANK_TRANSFER")
        self.assertEqual(result.payment_intent_id, reference)
        self.assertEqual(result.gateway_reference, reference)
        self.assertEqual(result.due_date, NOW + timedelta(hours=24))
        self.assertEqual(result.bank_details["bankName"], "Test Bank")
        self.assertEqual(result.bank_details["reference"], reference)
        self.assertIn("iban", result.bank_details)
        self.assertEqual(self.requests, [])

    async def test_verify_status_completed(self):
        self.responder = lambda request: httpx.Response(200, json={"id": "pi_123", "status": "completed"})

        state = await self.gateway.verify_status("pi_123", PaymentMethod.WALLET_REDIRECT)

        self.assertEqual(state, PaymentState.SUCCEEDED)
        self.assertEqual(self.requests[0].method, "GET")
        self.assertEqual(self.requests[0].url.path, "/api/payment_intent/pi_123")

    async def test_verify_status_failed(self):
        self.responder = lambda request: httpx.Response(200, json={"status": "failed"})

        state = await self.gateway.verify_status("pi_123", PaymentMethod.WALLET_REDIRECT)

        self.assertEqual(state, PaymentState.FAILED)

    async def test_verify_status_unknown_on_error(self):
        self.responder = lambda request: httpx.Response(404, json={"message": "not found"})

        state = await self.gateway.verify_status("pi_404", PaymentMethod.WALLET_REDIRECT)

        self.assertEqual(state, PaymentState.UNKNOWN)

    async def test_manual_methods_are_never_polled(self):
        state = await self.gateway.verify_status("BANK-REF-1-1", PaymentMethod.BANK_TRANSFER)

        self.assertEqual(state, PaymentState.PENDING)
        self.assertEqual(self.requests, [])
