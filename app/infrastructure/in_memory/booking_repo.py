import asyncio
import copy
from datetime import datetime, timezone
from typing import Sequence

from app.application.interfaces.booking_repo import (
    BookingDraft,
    BookingRepo,
    PaymentSessionInfo,
    TransitionResult,
)
from app.domain.entities.booking import (
    Booking,
    BookingStatus,
    PaymentStatus,
    SupplierStatus,
)
from app.domain.errors import AlreadyCompletedError, BookingNotFoundError, ReferenceInUseError
from app.domain.value_objects.supplier_response import SupplierResponse

STATUS_FOR_PAYMENT = {
    PaymentStatus.PAID: BookingStatus.PENDING,
    PaymentStatus.FAILED: BookingStatus.FAILED,
    PaymentStatus.CANCELLED: BookingStatus.CANCELLED,
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryBookingRepo(BookingRepo):
    """
    Dict-backed repository. Each booking has its own asyncio.Lock so the
    check-then-set of every transition behaves like a conditional update.
    Callers get copies; nothing outside the repo mutates stored bookings.
    """

    def __init__(self) -> None:
        self.bookings: dict[int, Booking] = {}
        self._by_reference: dict[str, int] = {}
        self._locks: dict[int, asyncio.Lock] = {}
        self._create_lock = asyncio.Lock()
        self._next_id = 1

    def _lock_for(self, booking_id: int) -> asyncio.Lock:
        return self._locks.setdefault(booking_id, asyncio.Lock())

    def _require(self, booking_id: int) -> Booking:
        booking = self.bookings.get(booking_id)
        if not booking:
            raise BookingNotFoundError(booking_id=booking_id)
        return booking

    @staticmethod
    def _touch(booking: Booking, now: datetime | None = None) -> None:
        booking.lock_version += 1
        booking.updated_at = now or _utcnow()

    async def get_by_id(self, booking_id: int) -> Booking | None:
        booking = self.bookings.get(booking_id)
        return copy.deepcopy(booking) if booking else None

    async def get_by_reference(self, reference: str) -> Booking | None:
        booking_id = self._by_reference.get(reference)
        return await self.get_by_id(booking_id) if booking_id else None

    async def get_by_payment_intent(self, payment_intent_id: str) -> Booking | None:
        for booking in self.bookings.values():
            if booking.payment_intent_id == payment_intent_id:
                return copy.deepcopy(booking)
        return None

    async def list_for_user(self, user_id: str) -> Sequence[Booking]:
        owned = [booking for booking in self.bookings.values() if booking.user_id == user_id]
        owned.sort(key=lambda booking: booking.id, reverse=True)
        return [copy.deepcopy(booking) for booking in owned]

    async def create_or_reuse(self, reference: str, draft: BookingDraft) -> Booking:
        async with self._create_lock:
            booking_id = self._by_reference.get(reference)
            if booking_id is None:
                now = _utcnow()
                booking = Booking(
                    id=self._next_id,
                    reference=reference,
                    created_at=now,
                    updated_at=now,
                )
                self._apply_draft(booking, draft)
                self.bookings[booking.id] = booking
                self._by_reference[reference] = booking.id
                self._next_id += 1
                return copy.deepcopy(booking)

        async with self._lock_for(booking_id):
            booking = self.bookings[booking_id]
            if booking.user_id != draft.user_id:
                raise ReferenceInUseError(reference)
            if booking.is_completed:
                raise AlreadyCompletedError(
                    reference, booking.status.value, booking.payment_status.value
                )
            self._apply_draft(booking, draft)
            self._touch(booking)
            return copy.deepcopy(booking)

    @staticmethod
    def _apply_draft(booking: Booking, draft: BookingDraft) -> None:
        booking.user_id = draft.user_id
        booking.b2b_account_id = draft.b2b_account_id
        booking.client_reference_no = draft.client_reference_no
        booking.currency = draft.currency
        booking.payment_method = draft.payment_method
        booking.total_net = draft.total_net
        booking.total_markup = draft.total_markup
        booking.total_gross = draft.total_gross
        booking.passengers = copy.deepcopy(draft.passengers)
        booking.tour_items = copy.deepcopy(draft.tour_items)
        booking.payment_status = PaymentStatus.PENDING
        booking.status = BookingStatus.AWAITING_PAYMENT
        booking.payment_intent_id = None
        booking.payment_gateway = None
        booking.gateway_reference = None
        booking.supplier_booking_id = None
        booking.supplier_status = SupplierStatus.NOT_SUBMITTED
        booking.supplier_response = None
        booking.synced_at = None

    async def attach_payment_session(
        self, booking_id: int, session: PaymentSessionInfo
    ) -> Booking:
        async with self._lock_for(booking_id):
            booking = self._require(booking_id)
            booking.payment_intent_id = session.payment_intent_id
            booking.payment_gateway = session.gateway
            booking.payment_method = session.payment_method
            if session.gateway_reference:
                booking.gateway_reference = session.gateway_reference
            self._touch(booking)
            return copy.deepcopy(booking)

    async def transition_payment(
        self,
        booking_id: int,
        new_status: PaymentStatus,
        gateway_reference: str | None = None,
        now: datetime | None = None,
    ) -> TransitionResult:
        async with self._lock_for(booking_id):
            booking = self._require(booking_id)
            if booking.payment_status != PaymentStatus.PENDING:
                return TransitionResult(applied=False, booking=copy.deepcopy(booking))

            booking.payment_status = new_status
            if new_status in STATUS_FOR_PAYMENT:
                booking.status = STATUS_FOR_PAYMENT[new_status]
            if new_status == PaymentStatus.PAID:
                booking.paid_at = now or _utcnow()
            if gateway_reference:
                booking.gateway_reference = gateway_reference
            self._touch(booking, now)
            return TransitionResult(applied=True, booking=copy.deepcopy(booking))

    async def record_supplier_outcome(
        self,
        booking_id: int,
        supplier_status: SupplierStatus,
        supplier_booking_id: str | None,
        response: SupplierResponse | None,
        synced_at: datetime | None = None,
    ) -> TransitionResult:
        async with self._lock_for(booking_id):
            booking = self._require(booking_id)
            if booking.status == BookingStatus.CANCELLED:
                return TransitionResult(applied=False, booking=copy.deepcopy(booking))

            booking.supplier_status = supplier_status
            if supplier_booking_id:
                booking.supplier_booking_id = supplier_booking_id
            booking.supplier_response = response
            booking.synced_at = synced_at or _utcnow()
            if (
                supplier_status == SupplierStatus.CONFIRMED
                and booking.payment_status == PaymentStatus.PAID
            ):
                booking.status = BookingStatus.CONFIRMED
            self._touch(booking, synced_at)
            return TransitionResult(applied=True, booking=copy.deepcopy(booking))

    async def mark_cancelled(self, booking_id: int, now: datetime | None = None) -> Booking:
        async with self._lock_for(booking_id):
            booking = self._require(booking_id)
            booking.status = BookingStatus.CANCELLED
            booking.payment_status = PaymentStatus.CANCELLED
            booking.supplier_status = SupplierStatus.CANCELLED
            self._touch(booking, now)
            return copy.deepcopy(booking)
