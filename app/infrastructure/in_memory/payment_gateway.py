from collections import deque
from datetime import timedelta
from decimal import Decimal

from app.application.interfaces.clock import Clock, SystemClock
from app.application.interfaces.payment_gateway import (
    PaymentGateway,
    PaymentSessionFailed,
    PaymentSessionOpened,
    PaymentState,
)
from app.domain.entities.booking import Booking, PaymentMethod

GATEWAY_BY_METHOD = {
    PaymentMethod.WALLET_REDIRECT: "ZIINA",
    PaymentMethod.CARD: "CARD",
    PaymentMethod.BANK_TRANSFER: "BANK_TRANSFER",
}


class StubPaymentGateway(PaymentGateway):
    """
    Gateway for local runs and tests.

    Sessions always open unless a failure was queued with fail_next(); the
    polled state of an intent is PENDING until set_state() changes it.
    """

    def __init__(self, frontend_url: str = "http://localhost:3000", clock: Clock | None = None):
        self._frontend_url = frontend_url.rstrip("/")
        self._clock = clock or SystemClock()
        self._failures: deque[PaymentSessionFailed] = deque()
        self.states: dict[str, PaymentState] = {}
        self.opened: list[PaymentSessionOpened] = []
        self.verify_calls: list[str] = []
        self._counter = 0

    def fail_next(self, failure: PaymentSessionFailed) -> None:
        self._failures.append(failure)

    def set_state(self, payment_intent_id: str, state: PaymentState) -> None:
        self.states[payment_intent_id] = state

    async def open_session(
        self,
        booking: Booking,
        amount: Decimal,
        currency: str,
        method: PaymentMethod,
    ) -> PaymentSessionOpened | PaymentSessionFailed:
        if self._failures:
            return self._failures.popleft()

        self._counter += 1
        gateway = GATEWAY_BY_METHOD[method]
        intent_id = f"pi_stub_{booking.id}_{self._counter}"
        session = PaymentSessionOpened(
            payment_intent_id=intent_id,
            redirect_url=f"{self._frontend_url}/stub-pay?bookingId={booking.id}",
            gateway=gateway,
            raw={"id": intent_id, "amount": str(amount), "currency": currency},
        )
        if method == PaymentMethod.BANK_TRANSFER:
            session.gateway_reference = intent_id
            session.due_date = self._clock.now() + timedelta(hours=24)
        self.states[intent_id] = PaymentState.PENDING
        self.opened.append(session)
        return session

    async def verify_status(self, payment_intent_id: str, method: PaymentMethod) -> PaymentState:
        self.verify_calls.append(payment_intent_id)
        return self.states.get(payment_intent_id, PaymentState.UNKNOWN)
