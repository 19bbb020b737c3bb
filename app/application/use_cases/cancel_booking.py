import logging

from app.api.schemas.bookings import BookingSummary, CancelBookingResponse
from app.application.dtos.booking_dto import CallerIdentity
from app.application.interfaces.booking_repo import BookingRepo
from app.application.interfaces.clock import Clock
from app.application.interfaces.payment_transaction_repo import PaymentTransactionRepo
from app.application.interfaces.supplier_gateway import SupplierGateway
from app.application.interfaces.supplier_request_repo import (
    FAILURE_BUSINESS,
    FAILURE_INFRA,
    REQUEST_CANCEL,
    SupplierRequestRepo,
)
from app.application.interfaces.transaction_manager import TransactionManager
from app.application.use_cases.get_booking import load_owned_booking
from app.domain.entities.payment_transaction import TransactionStatus
from app.domain.pipeline import PipelineState, ensure_transition


class CancelBookingUseCase:
    """
    Cancels upstream when the supplier already holds the booking, then always
    records CANCELLED locally. An upstream failure is logged for follow-up.
    """

    def __init__(
        self,
        booking_repo: BookingRepo,
        payment_transaction_repo: PaymentTransactionRepo,
        supplier_gateway: SupplierGateway,
        supplier_request_repo: SupplierRequestRepo,
        transaction_manager: TransactionManager,
        clock: Clock,
    ) -> None:
        self._booking_repo = booking_repo
        self._payment_transaction_repo = payment_transaction_repo
        self._supplier_gateway = supplier_gateway
        self._supplier_request_repo = supplier_request_repo
        self._transaction_manager = transaction_manager
        self._clock = clock
        self._logger = logging.getLogger(__name__)

    async def execute(
        self,
        booking_id: int,
        caller: CallerIdentity,
        reason: str = "Cancelled by customer",
    ) -> CancelBookingResponse:
        booking = await load_owned_booking(self._booking_repo, booking_id, caller)
        ensure_transition(booking, PipelineState.CANCELLED, "cancel")

        supplier_cancel_status = None
        supplier_cancel_error = None
        if booking.is_submitted_to_supplier:
            async with self._transaction_manager.start():
                request = await self._supplier_request_repo.create_in_progress(
                    booking_id=booking.id,
                    reference=booking.reference,
                    request_type=REQUEST_CANCEL,
                    attempt=1,
                    request_payload={
                        "supplier_booking_id": booking.supplier_booking_id,
                        "reason": reason,
                    },
                )

            result = await self._supplier_gateway.cancel(booking, reason)
            supplier_cancel_status = result.status

            async with self._transaction_manager.start():
                if result.is_success:
                    await self._supplier_request_repo.mark_success(
                        request_id=request.id,
                        response_payload=result.payload,
                        http_status=result.http_status,
                    )
                else:
                    supplier_cancel_error = result.error_code
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
                    "Supplier cancellation failed - cancelled locally, needs follow-up",
                    extra={
                        "reference": booking.reference,
                        "supplier_booking_id": booking.supplier_booking_id,
                        "error_code": result.error_code,
                    },
                )

        async with self._transaction_manager.start():
            if booking.payment_intent_id:
                await self._payment_transaction_repo.mark_status(
                    booking.payment_intent_id, TransactionStatus.CANCELLED
                )
            booking = await self._booking_repo.mark_cancelled(booking.id, now=self._clock.now())

        self._logger.info(
            "Booking cancelled",
            extra={"reference": booking.reference, "supplier_cancel_status": supplier_cancel_status},
        )
        return CancelBookingResponse(
            booking=BookingSummary.from_booking(booking),
            supplier_cancel_status=supplier_cancel_status,
            supplier_cancel_error=supplier_cancel_error,
        )
