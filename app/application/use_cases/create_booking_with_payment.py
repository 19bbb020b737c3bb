import logging

from app.api.schemas.bookings import (
    BookingSummary,
    CreateBookingWithPaymentRequest,
    CreateBookingWithPaymentResponse,
)
from app.application.dtos.booking_dto import CallerIdentity
from app.application.dtos.pricing_dto import CallerContext
from app.application.interfaces.booking_repo import BookingDraft, BookingRepo, PaymentSessionInfo
from app.application.interfaces.payment_gateway import PaymentGateway, PaymentSessionFailed
from app.application.interfaces.payment_transaction_repo import PaymentTransactionRepo
from app.application.interfaces.transaction_manager import TransactionManager
from app.application.interfaces.uuid_generator import UUIDGenerator
from app.application.services.pricing_engine import PricingEngine
from app.domain.entities.booking import Passenger, PaymentStatus, TourLineItem
from app.domain.entities.payment_transaction import TransactionStatus
from app.domain.errors import BookingValidationError, PaymentSessionError, PriceMismatchError
from app.domain.value_objects.money import Money


class CreateBookingWithPaymentUseCase:
    def __init__(
        self,
        booking_repo: BookingRepo,
        payment_transaction_repo: PaymentTransactionRepo,
        pricing_engine: PricingEngine,
        payment_gateway: PaymentGateway,
        transaction_manager: TransactionManager,
        uuid_generator: UUIDGenerator,
        default_currency: str = "AED",
    ) -> None:
        self._booking_repo = booking_repo
        self._payment_transaction_repo = payment_transaction_repo
        self._pricing_engine = pricing_engine
        self._payment_gateway = payment_gateway
        self._transaction_manager = transaction_manager
        self._uuid_generator = uuid_generator
        self._default_currency = default_currency
        self._logger = logging.getLogger(__name__)

    async def execute(
        self,
        request: CreateBookingWithPaymentRequest,
        caller: CallerIdentity,
    ) -> CreateBookingWithPaymentResponse:
        self._validate(request)

        passengers = [
            Passenger(
                prefix=passenger.prefix,
                first_name=passenger.first_name,
                last_name=passenger.last_name,
                email=passenger.email,
                mobile=passenger.mobile,
                nationality=passenger.nationality,
                pax_type=passenger.pax_type,
                lead_passenger=passenger.lead_passenger,
                message=passenger.message,
                service_type=passenger.service_type,
            )
            for passenger in request.passengers
        ]
        tour_items = [
            TourLineItem(
                tour_id=line.tour_id,
                option_id=line.option_id,
                tour_date=line.tour_date,
                adult=line.adult,
                child=line.child,
                infant=line.infant,
                adult_rate=line.adult_rate,
                child_rate=line.child_rate,
                infant_rate=line.infant_rate,
                service_unique_id=line.service_unique_id,
                time_slot_id=line.time_slot_id,
                start_time=line.start_time,
                transfer_id=line.transfer_id,
                pickup=line.pickup,
            )
            for line in request.tour_details
        ]

        price = await self._pricing_engine.price_booking(
            tour_items,
            CallerContext(user_id=caller.user_id, b2b_account_id=caller.b2b_account_id),
        )
        currency = (request.currency or self._default_currency).upper()
        if not Money(price.total_gross, currency).matches(request.total_gross):
            raise PriceMismatchError(submitted=request.total_gross, computed=price.total_gross)

        reference = request.reference or self._uuid_generator.generate_booking_reference()
        draft = BookingDraft(
            user_id=caller.user_id,
            b2b_account_id=caller.b2b_account_id,
            client_reference_no=request.client_reference_no,
            payment_method=request.payment_method,
            currency=currency,
            total_net=price.total_net,
            total_markup=price.total_markup,
            total_gross=price.total_gross,
            passengers=passengers,
            tour_items=tour_items,
        )

        async with self._transaction_manager.start():
            previous = await self._booking_repo.get_by_reference(reference)
            booking = await self._booking_repo.create_or_reuse(reference, draft)
            if previous and previous.payment_intent_id:
                # The earlier session is replaced; its intent stays traceable
                closed = await self._payment_transaction_repo.mark_status(
                    previous.payment_intent_id, TransactionStatus.CANCELLED
                )
                if closed:
                    self._logger.info(
                        "Superseded payment session closed",
                        extra={
                            "reference": reference,
                            "payment_intent_id": previous.payment_intent_id,
                        },
                    )

        self._logger.info(
            "Booking stored, opening payment session",
            extra={
                "reference": reference,
                "booking_id": booking.id,
                "payment_method": request.payment_method.value,
                "total_gross": str(booking.total_gross),
            },
        )

        session = await self._payment_gateway.open_session(
            booking, booking.total_gross, currency, request.payment_method
        )

        if isinstance(session, PaymentSessionFailed):
            async with self._transaction_manager.start():
                await self._payment_transaction_repo.create(
                    booking_id=booking.id,
                    payment_intent_id=None,
                    amount=booking.total_gross,
                    currency=currency,
                    gateway=session.gateway,
                    status=TransactionStatus.FAILED,
                    raw_response=session.raw,
                    error_code=session.error_code,
                )
                await self._booking_repo.transition_payment(
                    booking_id=booking.id,
                    new_status=PaymentStatus.FAILED,
                )
            self._logger.warning(
                "Payment session failed",
                extra={
                    "reference": reference,
                    "booking_id": booking.id,
                    "failure_kind": session.kind.value,
                    "error_code": session.error_code,
                    "http_status": session.http_status,
                },
            )
            raise PaymentSessionError(booking.id, session.error_code, session.message)

        async with self._transaction_manager.start():
            booking = await self._booking_repo.attach_payment_session(
                booking.id,
                PaymentSessionInfo(
                    payment_intent_id=session.payment_intent_id,
                    gateway=session.gateway,
                    payment_method=request.payment_method,
                    gateway_reference=session.gateway_reference,
                ),
            )
            await self._payment_transaction_repo.create(
                booking_id=booking.id,
                payment_intent_id=session.payment_intent_id,
                amount=booking.total_gross,
                currency=currency,
                gateway=session.gateway,
                status=TransactionStatus.PENDING,
                raw_response=session.raw,
            )

        return CreateBookingWithPaymentResponse(
            booking=BookingSummary.from_booking(booking),
            payment_intent_id=session.payment_intent_id,
            payment_redirect_url=session.redirect_url,
            gateway=session.gateway,
            bank_details=session.bank_details,
            due_date=session.due_date,
        )

    @staticmethod
    def _validate(request: CreateBookingWithPaymentRequest) -> None:
        if request.passenger_count is not None and request.passenger_count != len(
            request.passengers
        ):
            raise BookingValidationError(
                "passengerCount",
                f"se esperaban {request.passenger_count} pasajeros, "
                f"se recibieron {len(request.passengers)}",
            )
        for index, line in enumerate(request.tour_details):
            if line.adult + line.child + line.infant < 1:
                raise BookingValidationError(
                    f"tourDetails[{index}]", "cada tour necesita al menos un pasajero"
                )
