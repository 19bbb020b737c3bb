import logging

from app.api.schemas.bookings import PaymentWebhookEnvelope, WebhookAck
from app.application.interfaces.booking_repo import BookingRepo
from app.application.interfaces.clock import Clock
from app.application.interfaces.payment_transaction_repo import PaymentTransactionRepo
from app.application.interfaces.transaction_manager import TransactionManager
from app.application.use_cases.confirm_payment import ConfirmPaymentUseCase
from app.domain.entities.booking import PaymentStatus
from app.domain.entities.payment_transaction import TransactionStatus
from app.domain.errors import (
    InvalidBookingStatusError,
    PaymentNotFoundError,
    PaymentSupersededError,
)

EVENT_SUCCEEDED = "payment_intent.succeeded"
EVENT_FAILED = "payment_intent.payment_failed"
EVENT_CANCELED = "payment_intent.canceled"

CLOSING_EVENTS = {
    EVENT_FAILED: (PaymentStatus.FAILED, TransactionStatus.FAILED),
    EVENT_CANCELED: (PaymentStatus.CANCELLED, TransactionStatus.CANCELLED),
}


class HandlePaymentWebhookUseCase:
    """
    Gateway webhook: at-least-once delivery, possibly out of order.

    An intent we do not know yet answers 404 so the gateway redelivers once
    the session has been attached. Repeated events are acknowledged, and so
    are events for a session that a resubmission replaced.
    """

    def __init__(
        self,
        booking_repo: BookingRepo,
        payment_transaction_repo: PaymentTransactionRepo,
        confirm_payment: ConfirmPaymentUseCase,
        transaction_manager: TransactionManager,
        clock: Clock,
    ) -> None:
        self._booking_repo = booking_repo
        self._payment_transaction_repo = payment_transaction_repo
        self._confirm_payment = confirm_payment
        self._transaction_manager = transaction_manager
        self._clock = clock
        self._logger = logging.getLogger(__name__)

    async def execute(self, envelope: PaymentWebhookEnvelope) -> WebhookAck:
        payment_object = envelope.data.payment_object
        intent_id = payment_object.id
        metadata_booking_id = self._metadata_booking_id(payment_object.metadata)

        self._logger.info(
            "Received payment webhook",
            extra={"event_type": envelope.type, "payment_intent_id": intent_id},
        )

        if envelope.type == EVENT_SUCCEEDED:
            try:
                result = await self._confirm_payment.execute(
                    payment_intent_id=intent_id,
                    booking_id=metadata_booking_id,
                    raw_event=envelope.model_dump(mode="json", by_alias=True),
                )
            except InvalidBookingStatusError as exc:
                # Paid after cancel/failure: the money needs a manual refund
                self._logger.error(
                    "Payment succeeded for a booking that can no longer be paid",
                    extra={"payment_intent_id": intent_id, "error": exc.message},
                )
                return WebhookAck(handled=False, event_type=envelope.type)
            except PaymentSupersededError as exc:
                return await self._capture_on_superseded(envelope, exc)
            return WebhookAck(
                handled=True,
                event_type=envelope.type,
                booking_id=result.booking.id,
                payment_status=result.booking.payment_status.value,
                duplicate=result.duplicate,
            )

        if envelope.type in CLOSING_EVENTS:
            payment_status, transaction_status = CLOSING_EVENTS[envelope.type]
            booking = await self._booking_repo.get_by_payment_intent(intent_id)
            if not booking or (
                metadata_booking_id is not None and booking.id != metadata_booking_id
            ):
                superseded = await self._confirm_payment.find_superseded(
                    intent_id, metadata_booking_id
                )
                if not superseded:
                    raise PaymentNotFoundError(payment_intent_id=intent_id)
                self._logger.info(
                    "Payment webhook for a superseded session acknowledged",
                    extra={"event_type": envelope.type, "payment_intent_id": intent_id},
                )
                return WebhookAck(
                    handled=False,
                    event_type=envelope.type,
                    booking_id=superseded.id,
                    payment_status=superseded.payment_status.value,
                    duplicate=True,
                )

            async with self._transaction_manager.start():
                transition = await self._booking_repo.transition_payment(
                    booking_id=booking.id,
                    new_status=payment_status,
                    now=self._clock.now(),
                )
                if transition.applied:
                    await self._payment_transaction_repo.mark_status(
                        intent_id,
                        transaction_status,
                        envelope.model_dump(mode="json", by_alias=True),
                    )
            if not transition.applied:
                self._logger.info(
                    "Payment webhook ignored, booking no longer pending",
                    extra={
                        "event_type": envelope.type,
                        "reference": booking.reference,
                        "payment_status": transition.booking.payment_status.value,
                    },
                )
            return WebhookAck(
                handled=transition.applied,
                event_type=envelope.type,
                booking_id=booking.id,
                payment_status=transition.booking.payment_status.value,
                duplicate=not transition.applied,
            )

        self._logger.info("Ignoring payment webhook type", extra={"event_type": envelope.type})
        return WebhookAck(handled=False, event_type=envelope.type)

    async def _capture_on_superseded(
        self, envelope: PaymentWebhookEnvelope, exc: PaymentSupersededError
    ) -> WebhookAck:
        intent_id = exc.payment_intent_id
        async with self._transaction_manager.start():
            marked = await self._payment_transaction_repo.mark_status(
                intent_id,
                TransactionStatus.PAID,
                envelope.model_dump(mode="json", by_alias=True),
                from_status=TransactionStatus.CANCELLED,
            )
        # The booking moved on to a newer session; this capture needs a refund
        self._logger.error(
            "Payment captured on a superseded session, needs refund",
            extra={
                "payment_intent_id": intent_id,
                "booking_id": exc.booking_id,
                "first_delivery": marked,
            },
        )
        return WebhookAck(
            handled=False,
            event_type=envelope.type,
            booking_id=exc.booking_id,
            payment_status=TransactionStatus.PAID.value,
            duplicate=not marked,
        )

    @staticmethod
    def _metadata_booking_id(metadata: dict) -> int | None:
        value = metadata.get("bookingId") or metadata.get("booking_id")
        if value is None:
            return None
        try:
            return int(value)
        except (TypeError, ValueError):
            return None
