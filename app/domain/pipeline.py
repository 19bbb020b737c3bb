"""Máquina de estados del pipeline reserva -> pago -> proveedor.

El estado del pipeline no se almacena: se deriva de los campos de la reserva
(status, payment_status, supplier_status, payment_intent_id). Toda transición
se valida contra una única tabla.
"""

from enum import Enum

from app.domain.entities.booking import Booking, BookingStatus, PaymentStatus, SupplierStatus
from app.domain.errors import InvalidBookingStatusError


class PipelineState(str, Enum):
    AWAITING_PAYMENT = "AWAITING_PAYMENT"
    PAYMENT_OPENED = "PAYMENT_OPENED"
    PAID = "PAID"
    SUPPLIER_SUBMITTED = "SUPPLIER_SUBMITTED"
    CONFIRMED = "CONFIRMED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


TERMINAL_STATES = frozenset({PipelineState.FAILED, PipelineState.CANCELLED})

TRANSITIONS: dict[PipelineState, frozenset[PipelineState]] = {
    PipelineState.AWAITING_PAYMENT: frozenset(
        {
            PipelineState.AWAITING_PAYMENT,
            PipelineState.PAYMENT_OPENED,
            PipelineState.FAILED,
            PipelineState.CANCELLED,
        }
    ),
    PipelineState.PAYMENT_OPENED: frozenset(
        {
            PipelineState.AWAITING_PAYMENT,
            PipelineState.PAID,
            PipelineState.FAILED,
            PipelineState.CANCELLED,
        }
    ),
    PipelineState.PAID: frozenset(
        {PipelineState.SUPPLIER_SUBMITTED, PipelineState.CONFIRMED, PipelineState.CANCELLED}
    ),
    PipelineState.SUPPLIER_SUBMITTED: frozenset(
        {PipelineState.SUPPLIER_SUBMITTED, PipelineState.CONFIRMED, PipelineState.CANCELLED}
    ),
    # Cancelación explícita de una reserva ya cumplida por el proveedor
    PipelineState.CONFIRMED: frozenset({PipelineState.CANCELLED}),
    # Reintento por reenvío de la misma referencia
    PipelineState.FAILED: frozenset({PipelineState.AWAITING_PAYMENT}),
    PipelineState.CANCELLED: frozenset({PipelineState.AWAITING_PAYMENT}),
}


def pipeline_state(booking: Booking) -> PipelineState:
    """Deriva el estado del pipeline a partir de la reserva almacenada."""
    if booking.status == BookingStatus.CANCELLED:
        return PipelineState.CANCELLED
    if booking.status == BookingStatus.FAILED:
        return PipelineState.FAILED
    if booking.status == BookingStatus.CONFIRMED:
        return PipelineState.CONFIRMED
    if booking.payment_status == PaymentStatus.PAID:
        if booking.supplier_status == SupplierStatus.NOT_SUBMITTED:
            return PipelineState.PAID
        return PipelineState.SUPPLIER_SUBMITTED
    if booking.payment_intent_id:
        return PipelineState.PAYMENT_OPENED
    return PipelineState.AWAITING_PAYMENT


def can_transition(current: PipelineState, target: PipelineState) -> bool:
    return target in TRANSITIONS.get(current, frozenset())


def ensure_transition(booking: Booking, target: PipelineState, operation: str) -> PipelineState:
    """Lanza InvalidBookingStatusError si la transición no está en la tabla."""
    current = pipeline_state(booking)
    if not can_transition(current, target):
        raise InvalidBookingStatusError(current_state=current.value, operation=operation)
    return current
