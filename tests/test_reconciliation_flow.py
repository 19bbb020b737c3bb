"""
Flujo completo reserva -> pago -> proveedor con repos in-memory.

Cubre:
- Camino feliz (webhook y confirmación del cliente)
- Webhooks duplicados, concurrentes y fuera de orden
- Rechazo de negocio e indisponibilidad del proveedor (outbox con backoff)
- Reintento de creación tras fallo del gateway
- Cancelación y tickets
"""

import asyncio
from datetime import timedelta
from decimal import Decimal

import pytest

from app.application.dtos.booking_dto import CallerIdentity
from app.application.interfaces.outbox_repo import EVENT_SUBMIT_SUPPLIER
from app.application.interfaces.payment_gateway import (
    PaymentFailureKind,
    PaymentSessionFailed,
    PaymentState,
)
from app.application.interfaces.supplier_gateway import (
    BUSINESS_ERROR,
    INFRA_ERROR,
    SupplierResult,
)
from app.domain.entities.booking import BookingStatus, PaymentMethod, PaymentStatus, SupplierStatus
from app.domain.entities.markup import CallerMarkup, MarkupType
from app.domain.entities.payment_transaction import TransactionStatus
from app.domain.errors import (
    AlreadyCompletedError,
    BookingNotFoundError,
    InvalidBookingStatusError,
    ManualConfirmationNotAllowedError,
    OutboxEventNotReadyError,
    PaymentNotFoundError,
    PaymentNotVerifiedError,
    PaymentSessionError,
    PaymentSupersededError,
    PriceMismatchError,
    ReferenceInUseError,
    SupplierNotSubmittedError,
)
from app.domain.value_objects.supplier_response import SupplierInfraFailure, SupplierRejection
from tests.factories import webhook_envelope

SUCCEEDED = "payment_intent.succeeded"
PAYMENT_FAILED = "payment_intent.payment_failed"


def infra_failure(code: str = "TIMEOUT") -> SupplierResult:
    return SupplierResult(status=INFRA_ERROR, error_code=code, error_message="supplier unreachable")


async def create(env, request, caller):
    return await env.use_cases["create_booking"].execute(request=request, caller=caller)


async def create_and_pay(env, request, caller):
    created = await create(env, request, caller)
    ack = await env.use_cases["handle_webhook"].execute(
        webhook_envelope(SUCCEEDED, created.payment_intent_id, created.booking.id)
    )
    return created, ack


class TestCreateBookingWithPayment:
    async def test_opens_payment_session(self, env, booking_request, caller):
        created = await create(env, booking_request, caller)

        assert created.payment_intent_id == "pi_stub_1_1"
        assert created.gateway == "ZIINA"
        assert created.booking.reference == "REF-1"
        assert created.booking.status == "AWAITING_PAYMENT"
        assert created.booking.pipeline_state == "PAYMENT_OPENED"
        assert created.booking.total_gross == Decimal("250.00")

        transactions = await env.transactions.list_for_booking(created.booking.id)
        assert [t.status for t in transactions] == [TransactionStatus.PENDING]

    async def test_generates_reference_when_missing(self, env, booking_request, caller):
        booking_request.reference = None

        created = await create(env, booking_request, caller)

        assert created.booking.reference == "TB-0001"

    async def test_markup_is_part_of_the_gross(self, env, booking_request, caller):
        await env.markups.save_caller_markup(
            CallerMarkup(user_id="user-1", markup_type=MarkupType.FIXED, value=Decimal("15"))
        )
        booking_request.total_gross = Decimal("265.00")

        created = await create(env, booking_request, caller)

        assert created.booking.total_net == Decimal("250.00")
        assert created.booking.total_markup == Decimal("15.00")
        assert created.booking.total_gross == Decimal("265.00")

    async def test_price_mismatch_stores_nothing(self, env, booking_request, caller):
        booking_request.total_gross = Decimal("240.00")

        with pytest.raises(PriceMismatchError) as exc_info:
            await create(env, booking_request, caller)

        assert exc_info.value.code == "PRICE_MISMATCH"
        assert env.bookings.bookings == {}

    async def test_one_cent_rounding_tolerance(self, env, booking_request, caller):
        booking_request.total_gross = Decimal("250.01")

        created = await create(env, booking_request, caller)

        assert created.booking.total_gross == Decimal("250.00")

    async def test_gateway_timeout_then_retry_reuses_booking(self, env, booking_request, caller):
        env.payment.fail_next(
            PaymentSessionFailed(
                kind=PaymentFailureKind.TRANSPORT,
                gateway="ZIINA",
                error_code="GATEWAY_TIMEOUT",
                message="timed out",
            )
        )

        with pytest.raises(PaymentSessionError) as exc_info:
            await create(env, booking_request, caller)
        assert exc_info.value.code == "GATEWAY_TIMEOUT"

        failed = await env.bookings.get_by_reference("REF-1")
        assert failed.payment_status == PaymentStatus.FAILED
        assert failed.status == BookingStatus.FAILED

        created = await create(env, booking_request, caller)

        assert created.booking.id == failed.id
        assert created.booking.payment_status == "PENDING"
        assert created.booking.status == "AWAITING_PAYMENT"
        transactions = await env.transactions.list_for_booking(failed.id)
        assert [t.status for t in transactions] == [TransactionStatus.FAILED, TransactionStatus.PENDING]
        assert transactions[0].payment_intent_id is None
        assert transactions[0].error_code == "GATEWAY_TIMEOUT"

    async def test_resubmit_before_payment_replaces_session(self, env, booking_request, caller):
        first = await create(env, booking_request, caller)
        second = await create(env, booking_request, caller)

        assert second.booking.id == first.booking.id
        assert second.payment_intent_id != first.payment_intent_id
        assert len(env.bookings.bookings) == 1

        transactions = await env.transactions.list_for_booking(first.booking.id)
        assert [(t.payment_intent_id, t.status) for t in transactions] == [
            (first.payment_intent_id, TransactionStatus.CANCELLED),
            (second.payment_intent_id, TransactionStatus.PENDING),
        ]

    async def test_paid_reference_cannot_be_reused(self, env, booking_request, caller):
        await create_and_pay(env, booking_request, caller)

        with pytest.raises(AlreadyCompletedError):
            await create(env, booking_request, caller)

    async def test_reference_of_another_user(self, env, booking_request, caller):
        await create(env, booking_request, caller)

        with pytest.raises(ReferenceInUseError):
            await create(env, booking_request, CallerIdentity(user_id="someone-else"))


class TestPaymentWebhook:
    async def test_happy_path(self, env, booking_request, caller):
        created, ack = await create_and_pay(env, booking_request, caller)

        assert ack.handled is True
        assert ack.duplicate is False
        assert ack.payment_status == "PAID"

        booking = await env.bookings.get_by_id(created.booking.id)
        assert booking.status == BookingStatus.CONFIRMED
        assert booking.payment_status == PaymentStatus.PAID
        assert booking.supplier_status == SupplierStatus.CONFIRMED
        assert booking.supplier_booking_id == "SUP-000001"
        assert booking.paid_at == env.clock.now()
        assert env.supplier.submitted == ["REF-1"]

        transactions = await env.transactions.list_for_booking(booking.id)
        assert [t.status for t in transactions] == [TransactionStatus.PAID]
        requests = await env.supplier_requests.list_for_booking(booking.id)
        assert [(r.request_type, r.attempt, r.status) for r in requests] == [("SUBMIT", 1, "SUCCESS")]

    async def test_duplicate_webhook_is_acknowledged(self, env, booking_request, caller):
        created, _ = await create_and_pay(env, booking_request, caller)

        ack = await env.use_cases["handle_webhook"].execute(
            webhook_envelope(SUCCEEDED, created.payment_intent_id, created.booking.id)
        )

        assert ack.handled is True
        assert ack.duplicate is True
        assert env.supplier.submitted == ["REF-1"]

    async def test_concurrent_webhooks_submit_once(self, env, booking_request, caller):
        created = await create(env, booking_request, caller)
        envelope = webhook_envelope(SUCCEEDED, created.payment_intent_id, created.booking.id)

        acks = await asyncio.gather(
            *[env.use_cases["handle_webhook"].execute(envelope) for _ in range(3)]
        )

        assert sum(not ack.duplicate for ack in acks) == 1
        assert env.supplier.submitted == ["REF-1"]
        transactions = await env.transactions.list_for_booking(created.booking.id)
        assert [t.status for t in transactions] == [TransactionStatus.PAID]

    async def test_late_failure_never_downgrades_paid(self, env, booking_request, caller):
        created, _ = await create_and_pay(env, booking_request, caller)

        ack = await env.use_cases["handle_webhook"].execute(
            webhook_envelope(PAYMENT_FAILED, created.payment_intent_id, created.booking.id)
        )

        assert ack.handled is False
        assert ack.payment_status == "PAID"
        booking = await env.bookings.get_by_id(created.booking.id)
        assert booking.status == BookingStatus.CONFIRMED

    async def test_payment_failed_closes_booking(self, env, booking_request, caller):
        created = await create(env, booking_request, caller)

        ack = await env.use_cases["handle_webhook"].execute(
            webhook_envelope(PAYMENT_FAILED, created.payment_intent_id)
        )

        assert ack.handled is True
        booking = await env.bookings.get_by_id(created.booking.id)
        assert booking.payment_status == PaymentStatus.FAILED
        assert booking.status == BookingStatus.FAILED
        assert env.supplier.submitted == []

    async def test_unknown_intent(self, env):
        with pytest.raises(PaymentNotFoundError):
            await env.use_cases["handle_webhook"].execute(webhook_envelope(SUCCEEDED, "pi_missing"))

    async def test_metadata_must_match_booking(self, env, booking_request, caller):
        created = await create(env, booking_request, caller)

        with pytest.raises(PaymentNotFoundError):
            await env.use_cases["handle_webhook"].execute(
                webhook_envelope(SUCCEEDED, created.payment_intent_id, booking_id=999)
            )

    async def test_unhandled_event_type(self, env, booking_request, caller):
        created = await create(env, booking_request, caller)

        ack = await env.use_cases["handle_webhook"].execute(
            webhook_envelope("payment_intent.created", created.payment_intent_id)
        )

        assert ack.handled is False
        assert ack.received is True

    async def test_success_after_cancel_needs_refund(self, env, booking_request, caller):
        created = await create(env, booking_request, caller)
        await env.use_cases["cancel_booking"].execute(created.booking.id, caller)

        ack = await env.use_cases["handle_webhook"].execute(
            webhook_envelope(SUCCEEDED, created.payment_intent_id)
        )

        assert ack.handled is False
        booking = await env.bookings.get_by_id(created.booking.id)
        assert booking.status == BookingStatus.CANCELLED
        assert env.supplier.submitted == []

    async def test_success_on_superseded_session_is_acknowledged(self, env, booking_request, caller):
        first = await create(env, booking_request, caller)
        second = await create(env, booking_request, caller)
        handle = env.use_cases["handle_webhook"]

        ack = await handle.execute(
            webhook_envelope(SUCCEEDED, first.payment_intent_id, first.booking.id)
        )

        assert ack.handled is False
        assert ack.duplicate is False
        assert ack.booking_id == first.booking.id
        booking = await env.bookings.get_by_id(first.booking.id)
        assert booking.payment_status == PaymentStatus.PENDING
        assert booking.payment_intent_id == second.payment_intent_id
        transactions = await env.transactions.list_for_booking(booking.id)
        assert [(t.payment_intent_id, t.status) for t in transactions] == [
            (first.payment_intent_id, TransactionStatus.PAID),
            (second.payment_intent_id, TransactionStatus.PENDING),
        ]
        assert env.supplier.submitted == []

        redelivered = await handle.execute(
            webhook_envelope(SUCCEEDED, first.payment_intent_id, first.booking.id)
        )
        assert redelivered.handled is False
        assert redelivered.duplicate is True

    async def test_failure_on_superseded_session_is_acknowledged(self, env, booking_request, caller):
        first = await create(env, booking_request, caller)
        second = await create(env, booking_request, caller)

        ack = await env.use_cases["handle_webhook"].execute(
            webhook_envelope(PAYMENT_FAILED, first.payment_intent_id)
        )

        assert ack.handled is False
        assert ack.duplicate is True
        booking = await env.bookings.get_by_id(second.booking.id)
        assert booking.payment_status == PaymentStatus.PENDING
        assert booking.payment_intent_id == second.payment_intent_id


class TestClientConfirmation:
    async def test_not_verified_until_gateway_agrees(self, env, booking_request, caller):
        created = await create(env, booking_request, caller)
        confirm = env.use_cases["confirm_payment"]

        with pytest.raises(PaymentNotVerifiedError) as exc_info:
            await confirm.execute(
                created.payment_intent_id, created.booking.id, verify_with_gateway=True, caller=caller
            )
        assert exc_info.value.gateway_state == "PENDING"

        env.payment.set_state(created.payment_intent_id, PaymentState.SUCCEEDED)
        result = await confirm.execute(
            created.payment_intent_id, created.booking.id, verify_with_gateway=True, caller=caller
        )

        assert result.applied is True
        assert result.supplier_outcome == "SUCCESS"
        assert result.booking.status == BookingStatus.CONFIRMED

    async def test_other_users_booking_is_not_found(self, env, booking_request, caller):
        created = await create(env, booking_request, caller)

        with pytest.raises(PaymentNotFoundError):
            await env.use_cases["confirm_payment"].execute(
                created.payment_intent_id,
                created.booking.id,
                verify_with_gateway=True,
                caller=CallerIdentity(user_id="someone-else"),
            )

    async def test_superseded_session_is_rejected(self, env, booking_request, caller):
        first = await create(env, booking_request, caller)
        await create(env, booking_request, caller)

        with pytest.raises(PaymentSupersededError):
            await env.use_cases["confirm_payment"].execute(
                first.payment_intent_id, first.booking.id, caller=caller
            )


class TestOfflineConfirmation:
    async def test_operator_confirms_bank_transfer(self, env, booking_request, caller):
        request = booking_request.model_copy(update={"payment_method": PaymentMethod.BANK_TRANSFER})
        created = await create(env, request, caller)
        operator = CallerIdentity(user_id="ops-1", role="ADMIN")

        result = await env.use_cases["confirm_payment"].confirm_offline(
            created.booking.id, operator, gateway_reference="BT-778"
        )

        assert result.applied is True
        assert result.booking.status == BookingStatus.CONFIRMED
        assert result.booking.gateway_reference == "BT-778"
        assert env.payment.verify_calls == []
        transactions = await env.transactions.list_for_booking(created.booking.id)
        assert transactions[-1].status == TransactionStatus.PAID
        assert transactions[-1].raw_response["confirmedBy"] == "ops-1"

    async def test_second_offline_confirmation_is_duplicate(self, env, booking_request, caller):
        request = booking_request.model_copy(update={"payment_method": PaymentMethod.CARD})
        created = await create(env, request, caller)
        operator = CallerIdentity(user_id="ops-1", role="ADMIN")
        confirm = env.use_cases["confirm_payment"]

        await confirm.confirm_offline(created.booking.id, operator)
        again = await confirm.confirm_offline(created.booking.id, operator)

        assert again.duplicate is True
        assert env.supplier.submitted == ["REF-1"]

    async def test_wallet_payments_need_the_gateway(self, env, booking_request, caller):
        created = await create(env, booking_request, caller)

        with pytest.raises(ManualConfirmationNotAllowedError):
            await env.use_cases["confirm_payment"].confirm_offline(
                created.booking.id, CallerIdentity(user_id="ops-1", role="ADMIN")
            )

    async def test_unknown_booking(self, env):
        with pytest.raises(BookingNotFoundError):
            await env.use_cases["confirm_payment"].confirm_offline(
                404, CallerIdentity(user_id="ops-1", role="ADMIN")
            )


class TestVerifyPayment:
    async def test_polling_confirms_lost_webhook(self, env, booking_request, caller):
        created = await create(env, booking_request, caller)
        env.payment.set_state(created.payment_intent_id, PaymentState.SUCCEEDED)

        response = await env.use_cases["verify_payment"].execute(created.booking.id, caller)

        assert response.gateway_state == "SUCCEEDED"
        assert response.booking.status == "CONFIRMED"
        assert response.transaction.status == "PAID"

    async def test_polling_records_failure(self, env, booking_request, caller):
        created = await create(env, booking_request, caller)
        env.payment.set_state(created.payment_intent_id, PaymentState.FAILED)

        response = await env.use_cases["verify_payment"].execute(created.booking.id, caller)

        assert response.booking.payment_status == "FAILED"
        assert response.booking.status == "FAILED"
        assert response.transaction.status == "FAILED"

    async def test_paid_booking_is_not_polled_again(self, env, booking_request, caller):
        created, _ = await create_and_pay(env, booking_request, caller)

        response = await env.use_cases["verify_payment"].execute(created.booking.id, caller)

        assert response.gateway_state is None
        assert env.payment.verify_calls == []


class TestSupplierOutcomes:
    async def test_business_rejection_keeps_payment(self, env, booking_request, caller):
        env.supplier.queue_submit(
            SupplierResult(
                status=BUSINESS_ERROR,
                error_code="SUPPLIER_400",
                error_message="children not allowed",
                http_status=200,
            )
        )

        created, ack = await create_and_pay(env, booking_request, caller)

        assert ack.handled is True
        booking = await env.bookings.get_by_id(created.booking.id)
        assert booking.payment_status == PaymentStatus.PAID
        assert booking.supplier_status == SupplierStatus.FAILED
        assert booking.status == BookingStatus.PENDING
        assert isinstance(booking.supplier_response, SupplierRejection)
        assert booking.supplier_response.message == "children not allowed"
        assert env.outbox.events == {}

    async def test_infra_failure_is_queued_for_retry(self, env, booking_request, caller):
        env.supplier.queue_submit(infra_failure())

        created, _ = await create_and_pay(env, booking_request, caller)

        booking = await env.bookings.get_by_id(created.booking.id)
        assert booking.status == BookingStatus.PENDING
        assert booking.supplier_status == SupplierStatus.PENDING
        assert isinstance(booking.supplier_response, SupplierInfraFailure)

        event = await env.outbox.get_latest("REF-1", EVENT_SUBMIT_SUPPLIER)
        assert event.status == "NEW"
        assert event.attempts == 0
        assert event.next_attempt_at == env.clock.now() + timedelta(seconds=15)

    async def test_retry_not_ready_before_backoff(self, env, booking_request, caller):
        env.supplier.queue_submit(infra_failure())
        created, _ = await create_and_pay(env, booking_request, caller)

        with pytest.raises(OutboxEventNotReadyError):
            await env.use_cases["process_supplier_retry"].execute(created.booking.id)

    async def test_retry_succeeds_after_backoff(self, env, booking_request, caller):
        env.supplier.queue_submit(infra_failure())
        created, _ = await create_and_pay(env, booking_request, caller)
        env.clock.advance(seconds=15)

        response = await env.use_cases["process_supplier_retry"].execute(
            created.booking.id, worker_id="worker-7"
        )

        assert response.event_status == "DONE"
        assert response.status == "CONFIRMED"
        assert response.supplier_status == "CONFIRMED"
        assert env.supplier.submitted == ["REF-1", "REF-1"]
        requests = await env.supplier_requests.list_for_booking(created.booking.id)
        assert [r.attempt for r in requests] == [1, 2]

    async def test_retry_exhaustion_leaves_booking_pending(self, env, booking_request, caller):
        env.supplier.queue_submit(*[infra_failure() for _ in range(6)])
        created, _ = await create_and_pay(env, booking_request, caller)
        retry = env.use_cases["process_supplier_retry"]
        env.clock.advance(seconds=15)

        backoffs = []
        for _ in range(4):
            response = await retry.execute(created.booking.id)
            assert response.event_status == "RETRY"
            delay = response.next_attempt_at - env.clock.now()
            backoffs.append(int(delay.total_seconds()))
            env.clock.advance(seconds=backoffs[-1])

        final = await retry.execute(created.booking.id)

        assert backoffs == [15, 30, 60, 120]
        assert final.event_status == "FAILED"
        assert final.attempts == 5
        assert final.status == "PENDING"
        booking = await env.bookings.get_by_id(created.booking.id)
        assert booking.payment_status == PaymentStatus.PAID
        assert booking.supplier_status == SupplierStatus.PENDING
        assert len(env.supplier.submitted) == 6

        env.clock.advance(minutes=10)
        with pytest.raises(OutboxEventNotReadyError):
            await retry.execute(created.booking.id)

    async def test_process_due_runs_ready_events(self, env, booking_request, caller):
        env.supplier.queue_submit(infra_failure())
        await create_and_pay(env, booking_request, caller)
        retry = env.use_cases["process_supplier_retry"]

        assert await retry.process_due() == []

        env.clock.advance(seconds=15)
        processed = await retry.process_due(worker_id="worker-2", limit=5)

        assert [p.reference for p in processed] == ["REF-1"]
        assert processed[0].event_status == "DONE"

    async def test_retry_of_cancelled_booking_is_dropped(self, env, booking_request, caller):
        env.supplier.queue_submit(infra_failure())
        created, _ = await create_and_pay(env, booking_request, caller)
        await env.use_cases["cancel_booking"].execute(created.booking.id, caller)
        env.clock.advance(seconds=15)

        response = await env.use_cases["process_supplier_retry"].execute(created.booking.id)

        assert response.event_status == "DONE"
        assert env.supplier.submitted == ["REF-1"]


class TestCancelBooking:
    async def test_cancel_before_payment(self, env, booking_request, caller):
        created = await create(env, booking_request, caller)

        response = await env.use_cases["cancel_booking"].execute(created.booking.id, caller)

        assert response.booking.status == "CANCELLED"
        assert response.supplier_cancel_status is None
        assert env.supplier.cancelled == []
        transactions = await env.transactions.list_for_booking(created.booking.id)
        assert transactions[-1].status == TransactionStatus.CANCELLED

    async def test_cancel_confirmed_booking_upstream(self, env, booking_request, caller):
        created, _ = await create_and_pay(env, booking_request, caller)

        response = await env.use_cases["cancel_booking"].execute(
            created.booking.id, caller, reason="Change of plans"
        )

        assert response.booking.status == "CANCELLED"
        assert response.booking.supplier_status == "CANCELLED"
        assert response.supplier_cancel_status == "SUCCESS"
        assert env.supplier.cancelled == ["REF-1"]

    async def test_supplier_cancel_failure_still_cancels_locally(self, env, booking_request, caller):
        created, _ = await create_and_pay(env, booking_request, caller)
        env.supplier.queue_cancel(infra_failure())

        response = await env.use_cases["cancel_booking"].execute(created.booking.id, caller)

        assert response.booking.status == "CANCELLED"
        assert response.supplier_cancel_status == INFRA_ERROR
        assert response.supplier_cancel_error == "TIMEOUT"
        requests = await env.supplier_requests.list_for_booking(created.booking.id)
        assert (requests[-1].request_type, requests[-1].status) == ("CANCEL", "FAILED")

    async def test_cancel_while_supplier_submission_in_flight(self, env, booking_request, caller):
        created = await create(env, booking_request, caller)
        submitting = asyncio.Event()
        release = asyncio.Event()
        original_submit = env.supplier.submit

        async def slow_submit(booking):
            submitting.set()
            await release.wait()
            return await original_submit(booking)

        env.supplier.submit = slow_submit
        webhook = asyncio.create_task(
            env.use_cases["handle_webhook"].execute(
                webhook_envelope(SUCCEEDED, created.payment_intent_id, created.booking.id)
            )
        )
        await submitting.wait()
        response = await env.use_cases["cancel_booking"].execute(created.booking.id, caller)
        release.set()
        await webhook

        assert response.supplier_cancel_status is None
        booking = await env.bookings.get_by_id(created.booking.id)
        assert booking.status == BookingStatus.CANCELLED
        assert booking.supplier_status == SupplierStatus.CANCELLED
        assert booking.supplier_booking_id is None
        assert env.supplier.cancelled == ["REF-1"]
        requests = await env.supplier_requests.list_for_booking(created.booking.id)
        assert [(r.request_type, r.status) for r in requests] == [
            ("SUBMIT", "SUCCESS"),
            ("CANCEL", "SUCCESS"),
        ]
        assert requests[-1].request_payload["supplier_booking_id"] == "SUP-000001"

    async def test_double_cancel(self, env, booking_request, caller):
        created = await create(env, booking_request, caller)
        await env.use_cases["cancel_booking"].execute(created.booking.id, caller)

        with pytest.raises(InvalidBookingStatusError):
            await env.use_cases["cancel_booking"].execute(created.booking.id, caller)

    async def test_cancel_other_users_booking(self, env, booking_request, caller):
        created = await create(env, booking_request, caller)

        with pytest.raises(BookingNotFoundError):
            await env.use_cases["cancel_booking"].execute(
                created.booking.id, CallerIdentity(user_id="someone-else")
            )


class TestTicketsAndDetail:
    async def test_tickets_need_supplier_confirmation(self, env, booking_request, caller):
        created = await create(env, booking_request, caller)

        with pytest.raises(SupplierNotSubmittedError):
            await env.use_cases["get_tickets"].execute(created.booking.id, caller)

    async def test_tickets(self, env, booking_request, caller):
        created, _ = await create_and_pay(env, booking_request, caller)

        tickets = await env.use_cases["get_tickets"].execute(created.booking.id, caller)

        assert tickets.supplier_booking_id == "SUP-000001"
        assert tickets.ticket_url == "https://tickets.invalid/SUP-000001"
        assert tickets.tickets == [{"serviceUniqueId": "SVC-1", "tourId": 101}]
        assert env.supplier.ticket_requests == ["REF-1"]

    async def test_booking_detail(self, env, booking_request, caller):
        env.supplier.queue_submit(
            SupplierResult(status=BUSINESS_ERROR, error_code="SUPPLIER_400",
                           error_message="children not allowed", payload={"secret": "raw"})
        )
        created, _ = await create_and_pay(env, booking_request, caller)

        detail = await env.use_cases["get_booking"].execute(created.booking.id, caller)
        body = detail.model_dump(by_alias=True)

        assert body["passengers"][0]["leadPassenger"] is True
        assert body["tourDetails"][0]["lineGross"] == Decimal("250.00")
        assert body["supplierOutcome"] == {
            "kind": "rejection",
            "errorCode": "SUPPLIER_400",
            "message": "children not allowed",
        }
        assert "secret" not in str(body)

    async def test_booking_detail_of_other_user(self, env, booking_request, caller):
        created = await create(env, booking_request, caller)

        with pytest.raises(BookingNotFoundError):
            await env.use_cases["get_booking"].execute(
                created.booking.id, CallerIdentity(user_id="someone-else")
            )
