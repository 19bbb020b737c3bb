import dataclasses
import logging
from datetime import timedelta

from app.application.dtos.booking_dto import SupplierSubmission
from app.application.interfaces.booking_repo import BookingRepo
from app.application.interfaces.clock import Clock
from app.application.interfaces.outbox_repo import EVENT_SUBMIT_SUPPLIER, OutboxRepo
from app.application.interfaces.supplier_gateway import SupplierGateway, SupplierResult
from app.application.interfaces.supplier_request_repo import (
    FAILURE_BUSINESS,
    FAILURE_INFRA,
    REQUEST_CANCEL,
    REQUEST_SUBMIT,
    SupplierRequestRepo,
)
from app.application.interfaces.transaction_manager import TransactionManager
from app.domain.entities.booking import Booking, PaymentStatus, SupplierStatus
from app.domain.errors import InvalidBookingStatusError
from app.domain.pipeline import PipelineState, ensure_transition, pipeline_state

ACTIVE_EVENT_STATUSES = {"NEW", "RETRY", "IN_PROGRESS"}
ORPHAN_CANCEL_REASON = "Booking cancelled while supplier submission was in flight"


class SubmitBookingToSupplierUseCase:
    """
    Sends a paid booking to the tour supplier and records the outcome.

    success         -> supplier CONFIRMED, booking CONFIRMED
    business error  -> supplier FAILED, payment stays PAID, status stays PENDING
    infra error     -> supplier PENDING with the raw error, SUBMIT_SUPPLIER queued

    The supplier call runs outside any database transaction. If the booking
    was cancelled meanwhile, the outcome is dropped and a supplier booking
    created by this call is cancelled upstream.
    """

    def __init__(
        self,
        booking_repo: BookingRepo,
        supplier_gateway: SupplierGateway,
        supplier_request_repo: SupplierRequestRepo,
        outbox_repo: OutboxRepo,
        transaction_manager: TransactionManager,
        clock: Clock,
        retry_base_backoff_seconds: int = 15,
    ) -> None:
        self._booking_repo = booking_repo
        self._supplier_gateway = supplier_gateway
        self._supplier_request_repo = supplier_request_repo
        self._outbox_repo = outbox_repo
        self._transaction_manager = transaction_manager
        self._clock = clock
        self._retry_base_backoff_seconds = retry_base_backoff_seconds
        self._logger = logging.getLogger(__name__)

    async def execute(
        self,
        booking: Booking,
        attempt: int = 1,
        schedule_retry: bool = True,
    ) -> SupplierSubmission:
        if booking.payment_status != PaymentStatus.PAID:
            raise InvalidBookingStatusError(
                current_state=pipeline_state(booking).value,
                operation="submit_to_supplier",
            )
        ensure_transition(booking, PipelineState.SUPPLIER_SUBMITTED, "submit_to_supplier")

        async with self._transaction_manager.start():
            request = await self._supplier_request_repo.create_in_progress(
                booking_id=booking.id,
                reference=booking.reference,
                request_type=REQUEST_SUBMIT,
                attempt=attempt,
                request_payload={
                    "reference": booking.reference,
                    "tour_ids": [item.tour_id for item in booking.tour_items],
                    "passengers": len(booking.passengers),
                },
            )

        result = await self._supplier_gateway.submit(booking)
        now = self._clock.now()

        if result.is_success:
            async with self._transaction_manager.start():
                await self._supplier_request_repo.mark_success(
                    request_id=request.id,
                    response_payload=result.payload,
                    http_status=result.http_status,
                )
                outcome = await self._booking_repo.record_supplier_outcome(
                    booking_id=booking.id,
                    supplier_status=SupplierStatus.CONFIRMED,
                    supplier_booking_id=result.supplier_booking_id,
                    response=result.to_response(),
                    synced_at=now,
                )
            if not outcome.applied:
                await self._cancel_orphaned(outcome.booking, result)
                return SupplierSubmission(booking=outcome.booking, result=result)
            self._logger.info(
                "Supplier booking success",
                extra={
                    "reference": booking.reference,
                    "attempt": attempt,
                    "supplier_booking_id": result.supplier_booking_id,
                },
            )
            return SupplierSubmission(booking=outcome.booking, result=result)

        if result.is_business_error:
            async with self._transaction_manager.start():
                await self._record_failure(request.id, FAILURE_BUSINESS, result)
                outcome = await self._booking_repo.record_supplier_outcome(
                    booking_id=booking.id,
                    supplier_status=SupplierStatus.FAILED,
                    supplier_booking_id=None,
                    response=result.to_response(),
                    synced_at=now,
                )
            self._logger.warning(
                "Supplier rejected paid booking - needs refund or manual action",
                extra={
                    "reference": booking.reference,
                    "attempt": attempt,
                    "error_code": result.error_code,
                    "error_message": result.error_message,
                    "booking_cancelled": not outcome.applied,
                },
            )
            return SupplierSubmission(booking=outcome.booking, result=result)

        retry_scheduled = False
        async with self._transaction_manager.start():
            await self._record_failure(request.id, FAILURE_INFRA, result)
            outcome = await self._booking_repo.record_supplier_outcome(
                booking_id=booking.id,
                supplier_status=SupplierStatus.PENDING,
                supplier_booking_id=None,
                response=result.to_response(),
                synced_at=now,
            )
            if schedule_retry and outcome.applied:
                retry_scheduled = await self._schedule_retry(booking, now)

        self._logger.warning(
            "Supplier unavailable",
            extra={
                "reference": booking.reference,
                "attempt": attempt,
                "error_code": result.error_code,
                "retry_scheduled": retry_scheduled,
            },
        )
        return SupplierSubmission(
            booking=outcome.booking, result=result, retry_scheduled=retry_scheduled
        )

    async def _cancel_orphaned(self, booking: Booking, result: SupplierResult) -> None:
        """Cancels upstream a supplier booking confirmed after the local cancel."""
        orphan = dataclasses.replace(booking, supplier_booking_id=result.supplier_booking_id)
        async with self._transaction_manager.start():
            request = await self._supplier_request_repo.create_in_progress(
                booking_id=booking.id,
                reference=booking.reference,
                request_type=REQUEST_CANCEL,
                attempt=1,
                request_payload={
                    "supplier_booking_id": result.supplier_booking_id,
                    "reason": ORPHAN_CANCEL_REASON,
                },
            )

        cancel_result = await self._supplier_gateway.cancel(orphan, ORPHAN_CANCEL_REASON)

        async with self._transaction_manager.start():
            if cancel_result.is_success:
                await self._supplier_request_repo.mark_success(
                    request_id=request.id,
                    response_payload=cancel_result.payload,
                    http_status=cancel_result.http_status,
                )
            else:
                await self._record_failure(
                    request.id,
                    FAILURE_BUSINESS if cancel_result.is_business_error else FAILURE_INFRA,
                    cancel_result,
                )

        log = self._logger.warning if cancel_result.is_success else self._logger.error
        log(
            "Supplier confirmed a cancelled booking, upstream cancel sent",
            extra={
                "reference": booking.reference,
                "supplier_booking_id": result.supplier_booking_id,
                "cancel_status": cancel_result.status,
                "cancel_error_code": cancel_result.error_code,
            },
        )

    async def _record_failure(self, request_id: int, kind: str, result: SupplierResult) -> None:
        await self._supplier_request_repo.mark_failed(
            request_id=request_id,
            failure_kind=kind,
            error_code=result.error_code,
            error_message=result.error_message,
            http_status=result.http_status,
            response_payload=result.payload,
        )

    async def _schedule_retry(self, booking: Booking, now) -> bool:
        latest = await self._outbox_repo.get_latest(booking.reference, EVENT_SUBMIT_SUPPLIER)
        if latest and latest.status in ACTIVE_EVENT_STATUSES:
            return False
        await self._outbox_repo.enqueue(
            event_type=EVENT_SUBMIT_SUPPLIER,
            aggregate_type="BOOKING",
            aggregate_code=booking.reference,
            payload={"booking_id": booking.id, "reference": booking.reference},
            next_attempt_at=now + timedelta(seconds=self._retry_base_backoff_seconds),
        )
        return True
