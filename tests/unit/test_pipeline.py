"""Tests de la máquina de estados derivada de la reserva."""

from datetime import datetime, timezone

import pytest

from app.domain.entities.booking import Booking, BookingStatus, PaymentStatus, SupplierStatus
from app.domain.errors import InvalidBookingStatusError
from app.domain.pipeline import (
    PipelineState,
    can_transition,
    ensure_transition,
    pipeline_state,
)


def _paid(**kwargs) -> Booking:
    return Booking(
        id=1,
        reference="REF-1",
        payment_intent_id="pi_1",
        payment_status=PaymentStatus.PAID,
        status=BookingStatus.PENDING,
        paid_at=datetime(2026, 1, 15, tzinfo=timezone.utc),
        **kwargs,
    )


class TestPipelineState:
    def test_new_booking_awaits_payment(self):
        assert pipeline_state(Booking(reference="REF-1")) == PipelineState.AWAITING_PAYMENT

    def test_open_session(self):
        booking = Booking(reference="REF-1", payment_intent_id="pi_1")
        assert pipeline_state(booking) == PipelineState.PAYMENT_OPENED

    def test_paid_not_yet_submitted(self):
        assert pipeline_state(_paid()) == PipelineState.PAID

    @pytest.mark.parametrize("supplier_status", [SupplierStatus.PENDING, SupplierStatus.FAILED])
    def test_paid_and_submitted(self, supplier_status):
        booking = _paid(supplier_status=supplier_status)
        assert pipeline_state(booking) == PipelineState.SUPPLIER_SUBMITTED

    def test_confirmed(self):
        booking = _paid(supplier_status=SupplierStatus.CONFIRMED)
        booking.status = BookingStatus.CONFIRMED
        assert pipeline_state(booking) == PipelineState.CONFIRMED

    def test_failed_and_cancelled(self):
        failed = Booking(reference="A", status=BookingStatus.FAILED, payment_status=PaymentStatus.FAILED)
        cancelled = Booking(reference="B", status=BookingStatus.CANCELLED)
        assert pipeline_state(failed) == PipelineState.FAILED
        assert pipeline_state(cancelled) == PipelineState.CANCELLED


class TestTransitions:
    def test_paid_cannot_go_back_to_awaiting_payment(self):
        assert not can_transition(PipelineState.PAID, PipelineState.AWAITING_PAYMENT)

    def test_confirmed_can_only_be_cancelled(self):
        assert can_transition(PipelineState.CONFIRMED, PipelineState.CANCELLED)
        assert not can_transition(PipelineState.CONFIRMED, PipelineState.PAID)

    def test_failed_booking_can_be_retried(self):
        assert can_transition(PipelineState.FAILED, PipelineState.AWAITING_PAYMENT)

    def test_ensure_transition_returns_current_state(self):
        booking = Booking(reference="REF-1", payment_intent_id="pi_1")
        assert ensure_transition(booking, PipelineState.PAID, "confirm") == PipelineState.PAYMENT_OPENED

    def test_ensure_transition_rejects_cancelled_to_paid(self):
        booking = Booking(reference="REF-1", status=BookingStatus.CANCELLED)

        with pytest.raises(InvalidBookingStatusError) as exc_info:
            ensure_transition(booking, PipelineState.PAID, "confirm_payment")

        assert exc_info.value.current_state == "CANCELLED"
        assert exc_info.value.code == "INVALID_BOOKING_STATUS"

    def test_double_cancel_rejected(self):
        booking = Booking(reference="REF-1", status=BookingStatus.CANCELLED)
        with pytest.raises(InvalidBookingStatusError):
            ensure_transition(booking, PipelineState.CANCELLED, "cancel")
