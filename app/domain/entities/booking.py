"""Entidad Booking - Agregado raíz del dominio."""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum

from app.domain.value_objects.money import round_money
from app.domain.value_objects.supplier_response import SupplierResponse


class BookingStatus(str, Enum):
    """
    Estado global de la reserva.

    PENDING significa "pagada, esperando al proveedor".
    """

    AWAITING_PAYMENT = "AWAITING_PAYMENT"
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    FAILED = "FAILED"


class PaymentStatus(str, Enum):
    """Estados de pago de una reserva."""

    PENDING = "PENDING"
    PAID = "PAID"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"


class SupplierStatus(str, Enum):
    """Estado de la reserva del lado del proveedor."""

    NOT_SUBMITTED = "NOT_SUBMITTED"
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


class PaymentMethod(str, Enum):
    """Métodos de pago soportados."""

    WALLET_REDIRECT = "wallet-redirect"
    CARD = "card"
    BANK_TRANSFER = "bank-transfer"


class PaxType(str, Enum):
    ADULT = "Adult"
    CHILD = "Child"
    INFANT = "Infant"


@dataclass
class Passenger:
    """Pasajero de la reserva. Exactamente uno es el pasajero líder."""

    first_name: str
    last_name: str
    prefix: str = "Mr."
    email: str | None = None
    mobile: str | None = None
    nationality: str | None = None
    pax_type: PaxType = PaxType.ADULT
    lead_passenger: bool = False
    message: str | None = None
    service_type: str = "Tour"

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


@dataclass
class TourLineItem:
    """Línea de tour: un producto del proveedor en una fecha con sus tarifas."""

    tour_id: int
    option_id: int
    tour_date: date
    adult: int = 0
    child: int = 0
    infant: int = 0
    adult_rate: Decimal = Decimal("0")
    child_rate: Decimal = Decimal("0")
    infant_rate: Decimal = Decimal("0")
    service_unique_id: str | None = None
    time_slot_id: str | None = None
    start_time: str | None = None
    transfer_id: int = 0
    pickup: str | None = None

    # Calculados por el motor de precios
    line_net: Decimal = Decimal("0")
    line_markup: Decimal = Decimal("0")
    line_gross: Decimal = Decimal("0")

    @property
    def pax_count(self) -> int:
        return self.adult + self.child + self.infant

    def base_price(self) -> Decimal:
        """Costo neto de la línea: pasajeros por tarifa de cada tipo."""
        return round_money(
            self.adult * self.adult_rate
            + self.child * self.child_rate
            + self.infant * self.infant_rate
        )


@dataclass
class Booking:
    """
    Entidad principal del dominio - Agregado Raíz.

    Representa una reserva de tours con su pago y su estado en el proveedor.
    """

    # Identificadores
    id: int | None = None
    reference: str = ""
    client_reference_no: str | None = None

    # Propiedad
    user_id: str = ""
    b2b_account_id: int | None = None

    # Comerciales
    total_net: Decimal = Decimal("0")
    total_markup: Decimal = Decimal("0")
    total_gross: Decimal = Decimal("0")
    currency: str = "AED"

    # Pago
    payment_method: PaymentMethod = PaymentMethod.WALLET_REDIRECT
    payment_intent_id: str | None = None
    payment_gateway: str | None = None
    payment_status: PaymentStatus = PaymentStatus.PENDING
    gateway_reference: str | None = None
    paid_at: datetime | None = None

    # Estado
    status: BookingStatus = BookingStatus.AWAITING_PAYMENT

    # Proveedor
    supplier_booking_id: str | None = None
    supplier_status: SupplierStatus = SupplierStatus.NOT_SUBMITTED
    supplier_response: SupplierResponse | None = None
    synced_at: datetime | None = None

    passengers: list[Passenger] = field(default_factory=list)
    tour_items: list[TourLineItem] = field(default_factory=list)

    # Control de concurrencia
    lock_version: int = 0

    # Timestamps
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def lead_passenger(self) -> Passenger | None:
        for passenger in self.passengers:
            if passenger.lead_passenger:
                return passenger
        return None

    @property
    def is_completed(self) -> bool:
        """Una reserva pagada alguna vez (o confirmada) no puede reutilizarse."""
        return (
            self.payment_status == PaymentStatus.PAID
            or self.status == BookingStatus.CONFIRMED
            or self.paid_at is not None
        )

    @property
    def is_submitted_to_supplier(self) -> bool:
        return self.supplier_booking_id is not None
