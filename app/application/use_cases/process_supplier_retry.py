import logging
from datetime import timedelta

from app.api.schemas.bookings import SupplierRetryResponse
from app.application.interfaces.booking_repo import BookingRepo
from app.application.interfaces.clock import Clock
from app.application.interfaces.outbox_repo import EVENT_SUBMIT_SUPPLIER, OutboxRepo
from app.application.interfaces.transaction_manager import TransactionManager
from app.application.use_cases.submit_booking_to_supplier import SubmitBookingToSupplierUseCase
from app.domain.entities.booking import BookingStatus, PaymentStatus, SupplierStatus
from app.domain.errors import BookingNotFoundError, OutboxEventNotReadyError

MAX_ATTEMPTS = 5
BASE_BACKOFF_SECONDS = 15
MAX_BACKOFF_SECONDS = 300


class ProcessSupplierRetryUseCase:
    """
    Works the SUBMIT_SUPPLIER outbox: claims the event, resubmits the booking
    and reschedules with exponential backoff. After the last attempt the event
    is FAILED and the booking stays PENDING for manual action.
    """

    def __init__(
        self,
        booking_repo: BookingRepo,
        outbox_repo: OutboxRepo,
        submit_to_supplier: SubmitBookingToSupplierUseCase,
        transaction_manager: TransactionManager,
        clock: Clock,
        max_attempts: int = MAX_ATTEMPTS,
        base_backoff_seconds: int = BASE_BACKOFF_SECONDS,
    ) -> None:
        self._booking_repo = booking_repo
        self._outbox_repo = outbox_repo
        self._submit_to_supplier = submit_to_supplier
        self._transaction_manager = transaction_manager
        self._clock = clock
        self._max_attempts = max_attempts
        self._base_backoff_seconds = base_backoff_seconds
        self._logger = logging.getLogger(__name__)

    async def execute(self, booking_id: int, worker_id: str = "worker-1") -> SupplierRetryResponse:
        booking = await self._booking_repo.get_by_id(booking_id)
        if not booking:
            raise BookingNotFoundError(booking_id=booking_id)

        now = self._clock.now()
        async with self._transaction_manager.start():
            event = await self._outbox_repo.claim(
                aggregate_code=booking.reference,
                event_type=EVENT_SUBMIT_SUPPLIER,
                locked_by=worker_id,
                now=now,
            )
        if not event:
            raise OutboxEventNotReadyError(booking_id, EVENT_SUBMIT_SUPPLIER)

        if (
            booking.payment_status != PaymentStatus.PAID
            or booking.status in (BookingStatus.CONFIRMED, BookingStatus.CANCELLED)
            or booking.supplier_status != SupplierStatus.PENDING
        ):
            async with self._transaction_manager.start():
                await self._outbox_repo.mark_done(event.id)
            self._logger.info(
                "Supplier retry no longer needed",
                extra={
                    "reference": booking.reference,
                    "outbox_event_id": event.id,
                    "supplier_status": booking.supplier_status.value,
                },
            )
            return self._response(booking, event.attempts, None, "DONE")

        attempts = (event.attempts or 0) + 1
        submission = await self._submit_to_supplier.execute(
            booking, attempt=attempts + 1, schedule_retry=False
        )
        result = submission.result

        if not result.is_infra_error or submission.booking.status == BookingStatus.CANCELLED:
            async with self._transaction_manager.start():
                await self._outbox_repo.mark_done(event.id)
            return self._response(submission.booking, attempts, None, "DONE")

        if attempts >= self._max_attempts:
            async with self._transaction_manager.start():
                await self._outbox_repo.mark_failed(
                    event_id=event.id,
                    attempts=attempts,
                    error_code=result.error_code,
                    error_message=result.error_message,
                )
            self._logger.error(
                "Supplier booking failed permanently",
                extra={
                    "reference": booking.reference,
                    "outbox_event_id": event.id,
                    "attempt": attempts,
                    "error_code": result.error_code,
                },
            )
            return self._response(submission.booking, attempts, None, "FAILED")

        backoff_seconds = min(
            self._base_backoff_seconds * (2 ** (attempts - 1)), MAX_BACKOFF_SECONDS
        )
        next_attempt_at = now + timedelta(seconds=backoff_seconds)
        async with self._transaction_manager.start():
            await self._outbox_repo.mark_retry(
                event_id=event.id,
                attempts=attempts,
                next_attempt_at=next_attempt_at,
                error_code=result.error_code,
                error_message=result.error_message,
            )
        self._logger.warning(
            "Supplier booking retry scheduled",
            extra={
                "reference": booking.reference,
                "outbox_event_id": event.id,
                "attempt": attempts,
                "next_attempt_at": next_attempt_at.isoformat(),
                "error_code": result.error_code,
            },
        )
        return self._response(submission.booking, attempts, next_attempt_at, "RETRY")

    async def process_due(
        self, worker_id: str = "worker-1", limit: int = 10
    ) -> list[SupplierRetryResponse]:
        """Runs every event whose next attempt is due."""
        events = await self._outbox_repo.list_due(EVENT_SUBMIT_SUPPLIER, self._clock.now(), limit)
        processed: list[SupplierRetryResponse] = []
        for event in events:
            booking_id = event.payload.get("booking_id")
            if booking_id is None:
                self._logger.error(
                    "Outbox event without booking id",
                    extra={"outbox_event_id": event.id, "aggregate_code": event.aggregate_code},
                )
                continue
            try:
                processed.append(await self.execute(int(booking_id), worker_id=worker_id))
            except OutboxEventNotReadyError:
                self._logger.info(
                    "Outbox event taken by another worker",
                    extra={"outbox_event_id": event.id},
                )
        return processed

    @staticmethod
    def _response(booking, attempts, next_attempt_at, event_status) -> SupplierRetryResponse:
        return SupplierRetryResponse(
            booking_id=booking.id,
            reference=booking.reference,
            supplier_status=booking.supplier_status.value,
            status=booking.status.value,
            attempts=attempts,
            next_attempt_at=next_attempt_at,
            event_status=event_status,
        )
