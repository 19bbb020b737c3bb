from datetime import date, datetime
from decimal import Decimal
from typing import Any

from pydantic import ConfigDict, EmailStr, Field, constr, field_validator
from pydantic.alias_generators import to_camel

from app.api.schemas.common import Money, RequestModel, ResponseModel
from app.domain.entities.booking import Booking, PaxType, PaymentMethod, TourLineItem
from app.domain.entities.payment_transaction import PaymentTransaction
from app.domain.pipeline import pipeline_state
from app.domain.value_objects.supplier_response import SupplierResponse


class PassengerIn(RequestModel):
    prefix: constr(strip_whitespace=True, max_length=8) = "Mr."
    first_name: constr(strip_whitespace=True, min_length=1, max_length=150)
    last_name: constr(strip_whitespace=True, min_length=1, max_length=150)
    email: EmailStr | None = None
    mobile: str | None = None
    nationality: str | None = None
    pax_type: PaxType = PaxType.ADULT
    lead_passenger: bool = False
    message: str | None = None
    service_type: str = "Tour"


class TourLineIn(RequestModel):
    service_unique_id: str | None = None
    tour_id: int
    option_id: int
    tour_date: date
    time_slot_id: str | None = None
    start_time: str | None = None
    transfer_id: int = 0
    pickup: str | None = None
    adult: int = Field(default=0, ge=0)
    child: int = Field(default=0, ge=0)
    infant: int = Field(default=0, ge=0)
    adult_rate: Money = Field(default=Decimal("0"), ge=0)
    child_rate: Money = Field(default=Decimal("0"), ge=0)
    infant_rate: Money = Field(default=Decimal("0"), ge=0)


class CreateBookingWithPaymentRequest(RequestModel):
    reference: constr(strip_whitespace=True, min_length=1, max_length=64) | None = None
    client_reference_no: constr(strip_whitespace=True, max_length=100) | None = None
    payment_method: PaymentMethod = PaymentMethod.WALLET_REDIRECT
    currency: constr(strip_whitespace=True, min_length=3, max_length=3) | None = None
    total_gross: Money
    passenger_count: int | None = Field(default=None, ge=1)
    passengers: list[PassengerIn]
    tour_details: list[TourLineIn]

    @field_validator("passengers")
    @classmethod
    def validate_passengers(cls, value: list[PassengerIn]) -> list[PassengerIn]:
        if not value:
            raise ValueError("At least one passenger is required")
        leads = [passenger for passenger in value if passenger.lead_passenger]
        if not leads:
            raise ValueError("A lead passenger is required")
        if len(leads) > 1:
            raise ValueError("Only one lead passenger is allowed")
        return value

    @field_validator("tour_details")
    @classmethod
    def validate_tour_details(cls, value: list[TourLineIn]) -> list[TourLineIn]:
        if not value:
            raise ValueError("At least one tour line is required")
        return value


class PassengerOut(ResponseModel):
    prefix: str
    first_name: str
    last_name: str
    email: str | None = None
    mobile: str | None = None
    nationality: str | None = None
    pax_type: str
    lead_passenger: bool


class TourLineOut(ResponseModel):
    service_unique_id: str | None = None
    tour_id: int
    option_id: int
    tour_date: date
    time_slot_id: str | None = None
    start_time: str | None = None
    adult: int
    child: int
    infant: int
    line_net: Money
    line_markup: Money
    line_gross: Money

    @classmethod
    def from_item(cls, item: TourLineItem) -> "TourLineOut":
        return cls(
            service_unique_id=item.service_unique_id,
            tour_id=item.tour_id,
            option_id=item.option_id,
            tour_date=item.tour_date,
            time_slot_id=item.time_slot_id,
            start_time=item.start_time,
            adult=item.adult,
            child=item.child,
            infant=item.infant,
            line_net=item.line_net,
            line_markup=item.line_markup,
            line_gross=item.line_gross,
        )


class BookingSummary(ResponseModel):
    id: int
    reference: str
    client_reference_no: str | None = None
    status: str
    payment_status: str
    supplier_status: str
    pipeline_state: str
    payment_method: str
    payment_intent_id: str | None = None
    payment_gateway: str | None = None
    supplier_booking_id: str | None = None
    total_net: Money
    total_markup: Money
    total_gross: Money
    currency: str
    paid_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_booking(cls, booking: Booking) -> "BookingSummary":
        return cls(
            id=booking.id,
            reference=booking.reference,
            client_reference_no=booking.client_reference_no,
            status=booking.status.value,
            payment_status=booking.payment_status.value,
            supplier_status=booking.supplier_status.value,
            pipeline_state=pipeline_state(booking).value,
            payment_method=booking.payment_method.value,
            payment_intent_id=booking.payment_intent_id,
            payment_gateway=booking.payment_gateway,
            supplier_booking_id=booking.supplier_booking_id,
            total_net=booking.total_net,
            total_markup=booking.total_markup,
            total_gross=booking.total_gross,
            currency=booking.currency,
            paid_at=booking.paid_at,
            created_at=booking.created_at,
            updated_at=booking.updated_at,
        )


class SupplierOutcomeOut(ResponseModel):
    kind: str
    error_code: str | None = None
    message: str | None = None

    @classmethod
    def from_response(cls, response: SupplierResponse | None) -> "SupplierOutcomeOut | None":
        # Raw supplier payloads stay in storage
        if response is None:
            return None
        return cls(
            kind=response.kind,
            error_code=getattr(response, "error_code", None),
            message=getattr(response, "message", None),
        )


class BookingDetailResponse(ResponseModel):
    booking: BookingSummary
    passengers: list[PassengerOut]
    tour_details: list[TourLineOut]
    supplier_outcome: SupplierOutcomeOut | None = None
    synced_at: datetime | None = None

    @classmethod
    def from_booking(cls, booking: Booking) -> "BookingDetailResponse":
        return cls(
            booking=BookingSummary.from_booking(booking),
            passengers=[
                PassengerOut(
                    prefix=passenger.prefix,
                    first_name=passenger.first_name,
                    last_name=passenger.last_name,
                    email=passenger.email,
                    mobile=passenger.mobile,
                    nationality=passenger.nationality,
                    pax_type=passenger.pax_type.value,
                    lead_passenger=passenger.lead_passenger,
                )
                for passenger in booking.passengers
            ],
            tour_details=[TourLineOut.from_item(item) for item in booking.tour_items],
            supplier_outcome=SupplierOutcomeOut.from_response(booking.supplier_response),
            synced_at=booking.synced_at,
        )


class CreateBookingWithPaymentResponse(ResponseModel):
    booking: BookingSummary
    payment_intent_id: str
    payment_redirect_url: str
    gateway: str
    bank_details: dict[str, Any] | None = None
    due_date: datetime | None = None


class PaymentTransactionOut(ResponseModel):
    id: int
    booking_id: int
    payment_intent_id: str | None = None
    amount: Money
    currency: str
    gateway: str
    status: str
    error_code: str | None = None
    created_at: datetime | None = None

    @classmethod
    def from_transaction(cls, transaction: PaymentTransaction) -> "PaymentTransactionOut":
        return cls(
            id=transaction.id,
            booking_id=transaction.booking_id,
            payment_intent_id=transaction.payment_intent_id,
            amount=transaction.amount,
            currency=transaction.currency,
            gateway=transaction.gateway,
            status=transaction.status.value,
            error_code=transaction.error_code,
            created_at=transaction.created_at,
        )


class VerifyPaymentResponse(ResponseModel):
    booking: BookingSummary
    transaction: PaymentTransactionOut | None = None
    gateway_state: str | None = None


class ConfirmPaymentRequest(RequestModel):
    booking_id: int
    payment_intent_id: constr(strip_whitespace=True, min_length=1)


class ConfirmPaymentResponse(ResponseModel):
    booking: BookingSummary
    applied: bool
    duplicate: bool = False
    supplier_outcome: str | None = None


class WebhookObject(ResponseModel):
    model_config = ConfigDict(extra="allow", alias_generator=to_camel, populate_by_name=True)

    id: str
    status: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class WebhookData(ResponseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    payment_object: WebhookObject = Field(alias="object")


class PaymentWebhookEnvelope(ResponseModel):
    """Gateway event envelope: {type, data: {object: {id, metadata: {bookingId}}}}."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str | None = None
    type: str
    data: WebhookData


class WebhookAck(ResponseModel):
    received: bool = True
    handled: bool
    event_type: str
    booking_id: int | None = None
    payment_status: str | None = None
    duplicate: bool = False


class OfflinePaymentConfirmationRequest(RequestModel):
    """Pago con tarjeta o transferencia verificado fuera del gateway."""

    gateway_reference: constr(strip_whitespace=True, max_length=100) | None = None
    note: constr(strip_whitespace=True, max_length=255) | None = None


class CancelBookingRequest(RequestModel):
    reason: constr(strip_whitespace=True, max_length=255) = "Cancelled by customer"


class CancelBookingResponse(ResponseModel):
    booking: BookingSummary
    supplier_cancel_status: str | None = None
    supplier_cancel_error: str | None = None


class TicketsResponse(ResponseModel):
    booking: BookingSummary
    supplier_booking_id: str
    ticket_url: str | None = None
    tickets: list[dict[str, Any]] = Field(default_factory=list)
    tour_details: list[TourLineOut] = Field(default_factory=list)


class SupplierRetryResponse(ResponseModel):
    booking_id: int
    reference: str
    supplier_status: str
    status: str
    attempts: int
    next_attempt_at: datetime | None = None
    event_status: str
