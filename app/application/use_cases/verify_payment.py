import logging

from app.api.schemas.bookings import BookingSummary, PaymentTransactionOut, VerifyPaymentResponse
from app.application.dtos.booking_dto import CallerIdentity
from app.application.interfaces.booking_repo import BookingRepo
from app.application.interfaces.clock import Clock
from app.application.interfaces.payment_gateway import PaymentGateway, PaymentState
from app.application.interfaces.payment_transaction_repo import PaymentTransactionRepo
from app.application.interfaces.transaction_manager import TransactionManager
from app.application.use_cases.confirm_payment import ConfirmPaymentUseCase
from app.application.use_cases.get_booking import load_owned_booking
from app.domain.entities.booking import PaymentStatus
from app.domain.entities.payment_transaction import TransactionStatus

CLOSING_STATES = {
    PaymentState.FAILED: (PaymentStatus.FAILED, TransactionStatus.FAILED),
    PaymentState.CANCELLED: (PaymentStatus.CANCELLED, TransactionStatus.CANCELLED),
}


class VerifyPaymentUseCase:
    """
    Returns the booking with its latest payment transaction. While payment is
    still PENDING the gateway is polled, so a lost webhook converges through
    the same confirmation path.
    """

    def __init__(
        self,
        booking_repo: BookingRepo,
        payment_transaction_repo: PaymentTransactionRepo,
        payment_gateway: PaymentGateway,
        confirm_payment: ConfirmPaymentUseCase,
        transaction_manager: TransactionManager,
        clock: Clock,
    ) -> None:
        self._booking_repo = booking_repo
        self._payment_transaction_repo = payment_transaction_repo
        self._payment_gateway = payment_gateway
        self._confirm_payment = confirm_payment
        self._transaction_manager = transaction_manager
        self._clock = clock
        self._logger = logging.getLogger(__name__)

    async def execute(self, booking_id: int, caller: CallerIdentity) -> VerifyPaymentResponse:
        booking = await load_owned_booking(self._booking_repo, booking_id, caller)
        gateway_state: PaymentState | None = None

        if booking.payment_status == PaymentStatus.PENDING and booking.payment_intent_id:
            gateway_state = await self._payment_gateway.verify_status(
                booking.payment_intent_id, booking.payment_method
            )
            if gateway_state == PaymentState.SUCCEEDED:
                result = await self._confirm_payment.execute(
                    payment_intent_id=booking.payment_intent_id,
                    booking_id=booking.id,
                )
                booking = result.booking
            elif gateway_state in CLOSING_STATES:
                payment_status, transaction_status = CLOSING_STATES[gateway_state]
                async with self._transaction_manager.start():
                    transition = await self._booking_repo.transition_payment(
                        booking_id=booking.id,
                        new_status=payment_status,
                        now=self._clock.now(),
                    )
                    if transition.applied:
                        await self._payment_transaction_repo.mark_status(
                            booking.payment_intent_id, transaction_status
                        )
                booking = transition.booking
            self._logger.info(
                "Payment status polled",
                extra={
                    "reference": booking.reference,
                    "gateway_state": gateway_state.value,
                    "payment_status": booking.payment_status.value,
                },
            )

        transaction = await self._payment_transaction_repo.latest_for_booking(booking.id)
        return VerifyPaymentResponse(
            booking=BookingSummary.from_booking(booking),
            transaction=PaymentTransactionOut.from_transaction(transaction) if transaction else None,
            gateway_state=gateway_state.value if gateway_state else None,
        )
