import logging
from dataclasses import dataclass
from functools import lru_cache

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_sessionmaker
from app.application.dtos.booking_dto import CallerIdentity
from app.application.interfaces.clock import Clock, SystemClock
from app.application.interfaces.payment_gateway import PaymentGateway
from app.application.interfaces.supplier_gateway import SupplierGateway
from app.application.interfaces.uuid_generator import RealUUIDGenerator, UUIDGenerator
from app.application.services.pricing_engine import PricingEngine
from app.application.use_cases.cancel_booking import CancelBookingUseCase
from app.application.use_cases.confirm_payment import ConfirmPaymentUseCase
from app.application.use_cases.create_booking_with_payment import CreateBookingWithPaymentUseCase
from app.application.use_cases.get_booked_tickets import GetBookedTicketsUseCase
from app.application.use_cases.get_booking import GetBookingUseCase, ListUserBookingsUseCase
from app.application.use_cases.handle_payment_webhook import HandlePaymentWebhookUseCase
from app.application.use_cases.list_payment_transactions import ListPaymentTransactionsUseCase
from app.application.use_cases.manage_markup_rules import (
    CreateMarkupRuleUseCase,
    ListMarkupRulesUseCase,
    UpdateMarkupRuleUseCase,
)
from app.application.use_cases.process_supplier_retry import ProcessSupplierRetryUseCase
from app.application.use_cases.quote_price import QuotePriceUseCase
from app.application.use_cases.submit_booking_to_supplier import SubmitBookingToSupplierUseCase
from app.application.use_cases.verify_payment import VerifyPaymentUseCase
from app.config import Settings, get_settings
from app.infrastructure.db.repositories.booking_repo_sql import BookingRepoSQL
from app.infrastructure.db.repositories.markup_repo_sql import MarkupRepoSQL
from app.infrastructure.db.repositories.outbox_repo_sql import OutboxRepoSQL
from app.infrastructure.db.repositories.payment_transaction_repo_sql import (
    PaymentTransactionRepoSQL,
)
from app.infrastructure.db.repositories.supplier_request_repo_sql import SupplierRequestRepoSQL
from app.infrastructure.db.retry import with_deadlock_retry
from app.infrastructure.db.transaction_manager import SQLAlchemyTransactionManager
from app.infrastructure.gateways.payment_gateway_http import PaymentGatewayHTTP
from app.infrastructure.gateways.supplier_gateway_http import SupplierGatewayHTTP
from app.infrastructure.in_memory.booking_repo import InMemoryBookingRepo
from app.infrastructure.in_memory.markup_repo import InMemoryMarkupRepo
from app.infrastructure.in_memory.outbox_repo import InMemoryOutboxRepo
from app.infrastructure.in_memory.payment_gateway import StubPaymentGateway
from app.infrastructure.in_memory.payment_transaction_repo import InMemoryPaymentTransactionRepo
from app.infrastructure.in_memory.supplier_gateway import StubSupplierGateway
from app.infrastructure.in_memory.supplier_request_repo import InMemorySupplierRequestRepo
from app.infrastructure.in_memory.transaction_manager import NoopTransactionManager

logger = logging.getLogger(__name__)


@dataclass
class Gateways:
    payment: PaymentGateway
    supplier: SupplierGateway
    clock: Clock
    uuid_generator: UUIDGenerator

    async def aclose(self) -> None:
        await self.payment.aclose()
        await self.supplier.aclose()


@lru_cache(maxsize=1)
def get_gateways() -> Gateways:
    """Outbound clients live for the whole process and are closed in the lifespan hook."""
    settings = get_settings()
    clock = SystemClock()
    uuid_generator = RealUUIDGenerator()

    if settings.payment_gateway_token:
        payment: PaymentGateway = PaymentGatewayHTTP(
            base_url=settings.payment_gateway_base_url,
            api_token=settings.payment_gateway_token,
            frontend_url=settings.frontend_url,
            timeout_seconds=settings.payment_gateway_timeout_seconds,
            test_mode=settings.payment_gateway_test_mode,
            bank_details=settings.bank_details,
            clock=clock,
            uuid_generator=uuid_generator,
        )
    elif settings.environment != "local":
        raise RuntimeError(
            f"PAYMENT_GATEWAY_TOKEN is required in the {settings.environment} environment"
        )
    else:
        logger.warning("PAYMENT_GATEWAY_TOKEN not set, using stub payment gateway")
        payment = StubPaymentGateway(frontend_url=settings.frontend_url, clock=clock)

    if settings.supplier_base_url:
        supplier: SupplierGateway = SupplierGatewayHTTP(
            base_url=settings.supplier_base_url,
            api_token=settings.supplier_token,
            timeout_seconds=settings.supplier_timeout_seconds,
        )
    else:
        logger.warning("SUPPLIER_BASE_URL not set, using stub supplier gateway")
        supplier = StubSupplierGateway()

    return Gateways(payment=payment, supplier=supplier, clock=clock, uuid_generator=uuid_generator)


async def close_gateways() -> None:
    if get_gateways.cache_info().currsize:
        await get_gateways().aclose()
    get_gateways.cache_clear()


async def get_session(settings: Settings = Depends(get_settings)) -> AsyncSession | None:
    if settings.use_in_memory:
        yield None
        return
    async with get_sessionmaker()() as session:
        yield session


@lru_cache(maxsize=1)
def _in_memory_bundle() -> dict:
    return {
        "booking_repo": InMemoryBookingRepo(),
        "payment_transaction_repo": InMemoryPaymentTransactionRepo(),
        "markup_repo": InMemoryMarkupRepo(),
        "outbox_repo": InMemoryOutboxRepo(),
        "supplier_request_repo": InMemorySupplierRequestRepo(),
        "tx_manager": NoopTransactionManager(),
    }


def _sql_bundle(session: AsyncSession) -> dict:
    return {
        "booking_repo": BookingRepoSQL(session),
        "payment_transaction_repo": PaymentTransactionRepoSQL(session),
        "markup_repo": MarkupRepoSQL(session),
        "outbox_repo": OutboxRepoSQL(session),
        "supplier_request_repo": SupplierRequestRepoSQL(session),
        "tx_manager": SQLAlchemyTransactionManager(session),
    }


def build_use_cases(bundle: dict, gateways: Gateways, settings: Settings) -> dict:
    booking_repo = bundle["booking_repo"]
    payment_transaction_repo = bundle["payment_transaction_repo"]
    supplier_request_repo = bundle["supplier_request_repo"]
    outbox_repo = bundle["outbox_repo"]
    tx_manager = bundle["tx_manager"]
    clock = gateways.clock

    pricing_engine = PricingEngine(markup_repo=bundle["markup_repo"])
    submit_to_supplier = SubmitBookingToSupplierUseCase(
        booking_repo=booking_repo,
        supplier_gateway=gateways.supplier,
        supplier_request_repo=supplier_request_repo,
        outbox_repo=outbox_repo,
        transaction_manager=tx_manager,
        clock=clock,
        retry_base_backoff_seconds=settings.supplier_retry_base_backoff_seconds,
    )
    confirm_payment = ConfirmPaymentUseCase(
        booking_repo=booking_repo,
        payment_transaction_repo=payment_transaction_repo,
        payment_gateway=gateways.payment,
        submit_to_supplier=submit_to_supplier,
        transaction_manager=tx_manager,
        clock=clock,
    )
    return {
        "create_booking": CreateBookingWithPaymentUseCase(
            booking_repo=booking_repo,
            payment_transaction_repo=payment_transaction_repo,
            pricing_engine=pricing_engine,
            payment_gateway=gateways.payment,
            transaction_manager=tx_manager,
            uuid_generator=gateways.uuid_generator,
            default_currency=settings.default_currency,
        ),
        "confirm_payment": confirm_payment,
        "verify_payment": VerifyPaymentUseCase(
            booking_repo=booking_repo,
            payment_transaction_repo=payment_transaction_repo,
            payment_gateway=gateways.payment,
            confirm_payment=confirm_payment,
            transaction_manager=tx_manager,
            clock=clock,
        ),
        "handle_webhook": HandlePaymentWebhookUseCase(
            booking_repo=booking_repo,
            payment_transaction_repo=payment_transaction_repo,
            confirm_payment=confirm_payment,
            transaction_manager=tx_manager,
            clock=clock,
        ),
        "cancel_booking": CancelBookingUseCase(
            booking_repo=booking_repo,
            payment_transaction_repo=payment_transaction_repo,
            supplier_gateway=gateways.supplier,
            supplier_request_repo=supplier_request_repo,
            transaction_manager=tx_manager,
            clock=clock,
        ),
        "get_tickets": GetBookedTicketsUseCase(
            booking_repo=booking_repo,
            supplier_gateway=gateways.supplier,
            supplier_request_repo=supplier_request_repo,
            transaction_manager=tx_manager,
        ),
        "get_booking": GetBookingUseCase(booking_repo=booking_repo),
        "list_bookings": ListUserBookingsUseCase(booking_repo=booking_repo),
        "list_transactions": ListPaymentTransactionsUseCase(
            booking_repo=booking_repo, payment_transaction_repo=payment_transaction_repo
        ),
        "process_supplier_retry": ProcessSupplierRetryUseCase(
            booking_repo=booking_repo,
            outbox_repo=outbox_repo,
            submit_to_supplier=submit_to_supplier,
            transaction_manager=tx_manager,
            clock=clock,
            max_attempts=settings.supplier_retry_max_attempts,
            base_backoff_seconds=settings.supplier_retry_base_backoff_seconds,
        ),
        "create_markup_rule": CreateMarkupRuleUseCase(
            markup_repo=bundle["markup_repo"], transaction_manager=tx_manager
        ),
        "update_markup_rule": UpdateMarkupRuleUseCase(
            markup_repo=bundle["markup_repo"], transaction_manager=tx_manager
        ),
        "list_markup_rules": ListMarkupRulesUseCase(markup_repo=bundle["markup_repo"]),
        "quote_price": QuotePriceUseCase(pricing_engine=pricing_engine),
    }


def get_use_cases(
    settings: Settings = Depends(get_settings),
    session: AsyncSession | None = Depends(get_session),
) -> dict:
    gateways = get_gateways()
    if settings.use_in_memory:
        return build_use_cases(_in_memory_bundle(), gateways, settings)

    if not session:
        raise RuntimeError("DB session not available")
    return build_use_cases(_sql_bundle(session), gateways, settings)


@with_deadlock_retry(max_attempts=3, base_delay=0.1)
async def run_supplier_retries(worker_id: str, limit: int) -> list:
    """One outbox worker cycle with its own session."""
    settings = get_settings()
    gateways = get_gateways()
    if settings.use_in_memory:
        use_cases = build_use_cases(_in_memory_bundle(), gateways, settings)
        return await use_cases["process_supplier_retry"].process_due(worker_id, limit)

    async with get_sessionmaker()() as session:
        use_cases = build_use_cases(_sql_bundle(session), gateways, settings)
        return await use_cases["process_supplier_retry"].process_due(worker_id, limit)


def get_caller(
    user_id: str | None = Header(default=None, alias="X-User-Id"),
    b2b_account_id: int | None = Header(default=None, alias="X-B2B-Account-Id"),
    role: str | None = Header(default=None, alias="X-User-Role"),
) -> CallerIdentity:
    """Identity forwarded by the authentication layer in front of the API."""
    if not user_id or not user_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-User-Id header is required",
        )
    return CallerIdentity(
        user_id=user_id.strip(),
        b2b_account_id=b2b_account_id,
        role=role.strip().upper() if role and role.strip() else None,
    )


def require_staff(caller: CallerIdentity = Depends(get_caller)) -> CallerIdentity:
    """Markup administration and offline payment confirmation."""
    if not caller.is_staff:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="ADMIN or ACCOUNT_MANAGER role required",
        )
    return caller
