from fastapi import APIRouter, Depends, status

from app.api.dependencies import get_caller, get_use_cases, require_staff
from app.api.schemas.bookings import (
    BookingDetailResponse,
    BookingSummary,
    CancelBookingRequest,
    CancelBookingResponse,
    ConfirmPaymentRequest,
    ConfirmPaymentResponse,
    CreateBookingWithPaymentRequest,
    CreateBookingWithPaymentResponse,
    OfflinePaymentConfirmationRequest,
    PaymentWebhookEnvelope,
    TicketsResponse,
    VerifyPaymentResponse,
    WebhookAck,
)
from app.application.dtos.booking_dto import CallerIdentity

router = APIRouter(prefix="/bookings")


@router.post(
    "/create-with-payment",
    response_model=CreateBookingWithPaymentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_booking_with_payment(
    payload: CreateBookingWithPaymentRequest,
    caller: CallerIdentity = Depends(get_caller),
    use_cases=Depends(get_use_cases),
) -> CreateBookingWithPaymentResponse:
    return await use_cases["create_booking"].execute(request=payload, caller=caller)


@router.post("/confirm-payment", response_model=ConfirmPaymentResponse)
async def confirm_payment(
    payload: ConfirmPaymentRequest,
    caller: CallerIdentity = Depends(get_caller),
    use_cases=Depends(get_use_cases),
) -> ConfirmPaymentResponse:
    result = await use_cases["confirm_payment"].execute(
        payment_intent_id=payload.payment_intent_id,
        booking_id=payload.booking_id,
        verify_with_gateway=True,
        caller=caller,
    )
    return ConfirmPaymentResponse(
        booking=BookingSummary.from_booking(result.booking),
        applied=result.applied,
        duplicate=result.duplicate,
        supplier_outcome=result.supplier_outcome,
    )


@router.post("/confirm-offline-payment/{booking_id}", response_model=ConfirmPaymentResponse)
async def confirm_offline_payment(
    booking_id: int,
    payload: OfflinePaymentConfirmationRequest,
    operator: CallerIdentity = Depends(require_staff),
    use_cases=Depends(get_use_cases),
) -> ConfirmPaymentResponse:
    result = await use_cases["confirm_payment"].confirm_offline(
        booking_id=booking_id,
        operator=operator,
        gateway_reference=payload.gateway_reference,
        note=payload.note,
    )
    return ConfirmPaymentResponse(
        booking=BookingSummary.from_booking(result.booking),
        applied=result.applied,
        duplicate=result.duplicate,
        supplier_outcome=result.supplier_outcome,
    )


@router.get("/verify-payment/{booking_id}", response_model=VerifyPaymentResponse)
async def verify_payment(
    booking_id: int,
    caller: CallerIdentity = Depends(get_caller),
    use_cases=Depends(get_use_cases),
) -> VerifyPaymentResponse:
    return await use_cases["verify_payment"].execute(booking_id=booking_id, caller=caller)


@router.post("/payment-webhook", response_model=WebhookAck)
async def payment_webhook(
    envelope: PaymentWebhookEnvelope,
    use_cases=Depends(get_use_cases),
) -> WebhookAck:
    return await use_cases["handle_webhook"].execute(envelope)


@router.post("/cancel/{booking_id}", response_model=CancelBookingResponse)
async def cancel_booking(
    booking_id: int,
    payload: CancelBookingRequest | None = None,
    caller: CallerIdentity = Depends(get_caller),
    use_cases=Depends(get_use_cases),
) -> CancelBookingResponse:
    reason = payload.reason if payload else CancelBookingRequest().reason
    return await use_cases["cancel_booking"].execute(
        booking_id=booking_id, caller=caller, reason=reason
    )


@router.get("/tickets/{booking_id}", response_model=TicketsResponse)
async def get_booked_tickets(
    booking_id: int,
    caller: CallerIdentity = Depends(get_caller),
    use_cases=Depends(get_use_cases),
) -> TicketsResponse:
    return await use_cases["get_tickets"].execute(booking_id=booking_id, caller=caller)


@router.get("", response_model=list[BookingSummary])
async def list_bookings(
    caller: CallerIdentity = Depends(get_caller),
    use_cases=Depends(get_use_cases),
) -> list[BookingSummary]:
    return await use_cases["list_bookings"].execute(caller)


@router.get("/{booking_id}", response_model=BookingDetailResponse)
async def get_booking(
    booking_id: int,
    caller: CallerIdentity = Depends(get_caller),
    use_cases=Depends(get_use_cases),
) -> BookingDetailResponse:
    return await use_cases["get_booking"].execute(booking_id=booking_id, caller=caller)
