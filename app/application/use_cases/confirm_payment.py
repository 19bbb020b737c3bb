import logging
from typing import Any

from app.application.dtos.booking_dto import CallerIdentity, ConfirmationResult
from app.application.interfaces.booking_repo import BookingRepo
from app.application.interfaces.clock import Clock
from app.application.interfaces.payment_gateway import PaymentGateway, PaymentState
from app.application.interfaces.payment_transaction_repo import PaymentTransactionRepo
from app.application.interfaces.transaction_manager import TransactionManager
from app.application.use_cases.submit_booking_to_supplier import SubmitBookingToSupplierUseCase
from app.domain.entities.booking import Booking, PaymentMethod, PaymentStatus
from app.domain.entities.payment_transaction import TransactionStatus
from app.domain.errors import (
    BookingNotFoundError,
    InvalidBookingStatusError,
    ManualConfirmationNotAllowedError,
    PaymentNotFoundError,
    PaymentNotVerifiedError,
    PaymentSupersededError,
)
from app.domain.pipeline import PipelineState, ensure_transition, pipeline_state

# Methods the gateway cannot report on; an operator confirms them
OFFLINE_METHODS = {PaymentMethod.CARD, PaymentMethod.BANK_TRANSFER}


class ConfirmPaymentUseCase:
    """
    Single entry point for "the gateway says this intent is paid", shared by
    the webhook, the client confirmation call, status polling and operator
    confirmation of offline payments.

    The PAID transition is a conditional update; only the caller that wins it
    submits the booking to the supplier. Everyone else gets an acknowledged
    duplicate.
    """

    def __init__(
        self,
        booking_repo: BookingRepo,
        payment_transaction_repo: PaymentTransactionRepo,
        payment_gateway: PaymentGateway,
        submit_to_supplier: SubmitBookingToSupplierUseCase,
        transaction_manager: TransactionManager,
        clock: Clock,
    ) -> None:
        self._booking_repo = booking_repo
        self._payment_transaction_repo = payment_transaction_repo
        self._payment_gateway = payment_gateway
        self._submit_to_supplier = submit_to_supplier
        self._transaction_manager = transaction_manager
        self._clock = clock
        self._logger = logging.getLogger(__name__)

    async def execute(
        self,
        payment_intent_id: str,
        booking_id: int | None = None,
        verify_with_gateway: bool = False,
        gateway_reference: str | None = None,
        raw_event: dict[str, Any] | None = None,
        caller: CallerIdentity | None = None,
    ) -> ConfirmationResult:
        booking = await self._booking_repo.get_by_payment_intent(payment_intent_id)
        if not booking:
            superseded = await self.find_superseded(payment_intent_id, booking_id, caller)
            if superseded:
                raise PaymentSupersededError(payment_intent_id, superseded.id)
        if (
            not booking
            or (booking_id is not None and booking.id != booking_id)
            or (caller is not None and booking.user_id != caller.user_id)
        ):
            raise PaymentNotFoundError(payment_intent_id=payment_intent_id, booking_id=booking_id)

        if booking.payment_status == PaymentStatus.PAID:
            self._logger.info(
                "Payment already confirmed",
                extra={"reference": booking.reference, "payment_intent_id": payment_intent_id},
            )
            return ConfirmationResult(booking=booking, applied=False, duplicate=True)

        ensure_transition(booking, PipelineState.PAID, "confirm_payment")

        if verify_with_gateway:
            state = await self._payment_gateway.verify_status(
                payment_intent_id, booking.payment_method
            )
            if state != PaymentState.SUCCEEDED:
                raise PaymentNotVerifiedError(payment_intent_id, state.value)

        async with self._transaction_manager.start():
            transition = await self._booking_repo.transition_payment(
                booking_id=booking.id,
                new_status=PaymentStatus.PAID,
                gateway_reference=gateway_reference,
                now=self._clock.now(),
            )
            if transition.applied:
                await self._payment_transaction_repo.mark_status(
                    payment_intent_id, TransactionStatus.PAID, raw_event
                )

        if not transition.applied:
            current = transition.booking
            if current.payment_status == PaymentStatus.PAID:
                # Lost the race to a concurrent confirmation
                return ConfirmationResult(booking=current, applied=False, duplicate=True)
            raise InvalidBookingStatusError(
                current_state=pipeline_state(current).value,
                operation="confirm_payment",
            )

        self._logger.info(
            "Payment confirmed",
            extra={
                "reference": booking.reference,
                "booking_id": booking.id,
                "payment_intent_id": payment_intent_id,
            },
        )
        submission = await self._submit_to_supplier.execute(transition.booking)
        return ConfirmationResult(
            booking=submission.booking,
            applied=True,
            supplier_outcome=submission.result.status,
        )

    async def confirm_offline(
        self,
        booking_id: int,
        operator: CallerIdentity,
        gateway_reference: str | None = None,
        note: str | None = None,
    ) -> ConfirmationResult:
        """
        Operator confirmation for card and bank-transfer payments, whose
        settlement is checked outside the gateway API.
        """
        booking = await self._booking_repo.get_by_id(booking_id)
        if not booking:
            raise BookingNotFoundError(booking_id=booking_id)
        if booking.payment_method not in OFFLINE_METHODS:
            raise ManualConfirmationNotAllowedError(booking_id, booking.payment_method.value)
        if not booking.payment_intent_id:
            raise PaymentNotFoundError(booking_id=booking_id)

        self._logger.info(
            "Offline payment confirmed by operator",
            extra={
                "reference": booking.reference,
                "operator": operator.user_id,
                "payment_method": booking.payment_method.value,
            },
        )
        return await self.execute(
            payment_intent_id=booking.payment_intent_id,
            booking_id=booking.id,
            gateway_reference=gateway_reference,
            raw_event={
                "source": "operator",
                "confirmedBy": operator.user_id,
                "gatewayReference": gateway_reference,
                "note": note,
            },
        )

    async def find_superseded(
        self,
        payment_intent_id: str,
        booking_id: int | None = None,
        caller: CallerIdentity | None = None,
    ) -> Booking | None:
        """Booking whose earlier session this intent was, once resubmission replaced it."""
        transaction = await self._payment_transaction_repo.get_by_payment_intent(
            payment_intent_id
        )
        if not transaction:
            return None
        booking = await self._booking_repo.get_by_id(transaction.booking_id)
        if (
            not booking
            or booking.payment_intent_id == payment_intent_id
            or (booking_id is not None and booking.id != booking_id)
            or (caller is not None and booking.user_id != caller.user_id)
        ):
            return None
        return booking
