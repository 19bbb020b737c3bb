from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Sequence

from app.domain.entities.booking import (
    Booking,
    Passenger,
    PaymentMethod,
    PaymentStatus,
    SupplierStatus,
    TourLineItem,
)
from app.domain.value_objects.supplier_response import SupplierResponse


@dataclass
class BookingDraft:
    """Mutable fields written by create_or_reuse."""

    user_id: str
    payment_method: PaymentMethod
    currency: str
    total_net: Decimal
    total_markup: Decimal
    total_gross: Decimal
    passengers: list[Passenger] = field(default_factory=list)
    tour_items: list[TourLineItem] = field(default_factory=list)
    b2b_account_id: int | None = None
    client_reference_no: str | None = None


@dataclass
class PaymentSessionInfo:
    payment_intent_id: str
    gateway: str
    payment_method: PaymentMethod
    gateway_reference: str | None = None


@dataclass
class TransitionResult:
    applied: bool
    booking: Booking


class BookingRepo:
    async def get_by_id(self, booking_id: int) -> Booking | None:
        raise NotImplementedError

    async def get_by_reference(self, reference: str) -> Booking | None:
        raise NotImplementedError

    async def get_by_payment_intent(self, payment_intent_id: str) -> Booking | None:
        raise NotImplementedError

    async def list_for_user(self, user_id: str) -> Sequence[Booking]:
        """Newest first."""
        raise NotImplementedError

    async def create_or_reuse(self, reference: str, draft: BookingDraft) -> Booking:
        """
        Creates the booking or overwrites a not-yet-completed one in place.

        Raises AlreadyCompletedError when the reference was already paid or
        confirmed, ReferenceInUseError when another user owns it.
        """
        raise NotImplementedError

    async def attach_payment_session(
        self, booking_id: int, session: PaymentSessionInfo
    ) -> Booking:
        raise NotImplementedError

    async def transition_payment(
        self,
        booking_id: int,
        new_status: PaymentStatus,
        gateway_reference: str | None = None,
        now: datetime | None = None,
    ) -> TransitionResult:
        """
        Conditional update applied only while payment_status is PENDING.

        A repeated PAID is not an error: applied is False and the current
        booking is returned.
        """
        raise NotImplementedError

    async def record_supplier_outcome(
        self,
        booking_id: int,
        supplier_status: SupplierStatus,
        supplier_booking_id: str | None,
        response: SupplierResponse | None,
        synced_at: datetime | None = None,
    ) -> TransitionResult:
        """
        Writes supplier fields. status becomes CONFIRMED only when the supplier
        confirmed and payment_status is PAID; payment is never rolled back.

        Not applied once the booking is CANCELLED: applied is False and the
        current booking is returned unchanged.
        """
        raise NotImplementedError

    async def mark_cancelled(self, booking_id: int, now: datetime | None = None) -> Booking:
        raise NotImplementedError
