"""
Pytest configuration and shared fixtures.

Este módulo provee fixtures reutilizables para:
- Un entorno in-memory con reloj e ids deterministas (casos de uso)
- Base de datos SQLite in-memory (repositorios SQL)
- Cliente HTTP de prueba (FastAPI TestClient)
- Payloads de reserva
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import AsyncGenerator, Generator

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.api import dependencies
from app.api.dependencies import Gateways, build_use_cases
from app.api.schemas.bookings import CreateBookingWithPaymentRequest
from app.application.dtos.booking_dto import CallerIdentity
from app.application.interfaces.clock import FakeClock
from app.application.interfaces.uuid_generator import FakeUUIDGenerator
from app.config import Settings
from app.infrastructure.db.tables import metadata
from app.infrastructure.in_memory.booking_repo import InMemoryBookingRepo
from app.infrastructure.in_memory.markup_repo import InMemoryMarkupRepo
from app.infrastructure.in_memory.outbox_repo import InMemoryOutboxRepo
from app.infrastructure.in_memory.payment_gateway import StubPaymentGateway
from app.infrastructure.in_memory.payment_transaction_repo import InMemoryPaymentTransactionRepo
from app.infrastructure.in_memory.supplier_gateway import StubSupplierGateway
from app.infrastructure.in_memory.supplier_request_repo import InMemorySupplierRequestRepo
from app.infrastructure.in_memory.transaction_manager import NoopTransactionManager
from app.main import app

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


# ============================================================================
# ENTORNO IN-MEMORY PARA CASOS DE USO
# ============================================================================

@dataclass
class BookingEnv:
    """Repos, gateways stub y casos de uso cableados como en producción."""

    clock: FakeClock
    payment: StubPaymentGateway
    supplier: StubSupplierGateway
    bundle: dict
    use_cases: dict

    @property
    def bookings(self) -> InMemoryBookingRepo:
        return self.bundle["booking_repo"]

    @property
    def transactions(self) -> InMemoryPaymentTransactionRepo:
        return self.bundle["payment_transaction_repo"]

    @property
    def markups(self) -> InMemoryMarkupRepo:
        return self.bundle["markup_repo"]

    @property
    def outbox(self) -> InMemoryOutboxRepo:
        return self.bundle["outbox_repo"]

    @property
    def supplier_requests(self) -> InMemorySupplierRequestRepo:
        return self.bundle["supplier_request_repo"]


@pytest.fixture
def env() -> BookingEnv:
    clock = FakeClock(datetime(2026, 1, 15, 9, 0, tzinfo=timezone.utc))
    gateways = Gateways(
        payment=StubPaymentGateway(clock=clock),
        supplier=StubSupplierGateway(),
        clock=clock,
        uuid_generator=FakeUUIDGenerator(prefix="TB"),
    )
    bundle = {
        "booking_repo": InMemoryBookingRepo(),
        "payment_transaction_repo": InMemoryPaymentTransactionRepo(),
        "markup_repo": InMemoryMarkupRepo(),
        "outbox_repo": InMemoryOutboxRepo(),
        "supplier_request_repo": InMemorySupplierRequestRepo(),
        "tx_manager": NoopTransactionManager(),
    }
    settings = Settings(use_in_memory=True, default_currency="AED")
    return BookingEnv(
        clock=clock,
        payment=gateways.payment,
        supplier=gateways.supplier,
        bundle=bundle,
        use_cases=build_use_cases(bundle, gateways, settings),
    )


@pytest.fixture
def caller() -> CallerIdentity:
    return CallerIdentity(user_id="user-1")


# ============================================================================
# FIXTURES DE DATOS DE PRUEBA
# ============================================================================

@pytest.fixture
def booking_payload() -> dict:
    """
    Payload camelCase de create-with-payment.
    Un adulto en el tour 101 a 250.00, sin markup: total 250.00.
    """
    return {
        "reference": "REF-1",
        "clientReferenceNo": "CLIENT-42",
        "paymentMethod": "wallet-redirect",
        "totalGross": "250.00",
        "passengers": [
            {
                "prefix": "Ms.",
                "firstName": "Amira",
                "lastName": "Haddad",
                "email": "amira@example.com",
                "mobile": "+971501234567",
                "nationality": "AE",
                "paxType": "Adult",
                "leadPassenger": True,
            }
        ],
        "tourDetails": [
            {
                "serviceUniqueId": "SVC-1",
                "tourId": 101,
                "optionId": 7,
                "tourDate": "2026-02-01",
                "timeSlotId": "TS-1",
                "startTime": "09:00",
                "adult": 1,
                "adultRate": "250.00",
            }
        ],
    }


@pytest.fixture
def booking_request(booking_payload) -> CreateBookingWithPaymentRequest:
    return CreateBookingWithPaymentRequest.model_validate(booking_payload)


# ============================================================================
# FIXTURES DE BASE DE DATOS
# ============================================================================

@pytest_asyncio.fixture
async def test_engine():
    """Engine SQLite in-memory con el esquema completo."""
    engine = create_async_engine(TEST_DATABASE_URL, echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Sesión sin transacción abierta; el TransactionManager hace commit/rollback."""
    session_maker = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)
    async with session_maker() as session:
        yield session


# ============================================================================
# FIXTURES DE CLIENTE HTTP
# ============================================================================

@pytest.fixture(autouse=True)
def reset_app_state():
    """Repos in-memory y gateways nuevos para cada test."""
    dependencies._in_memory_bundle.cache_clear()
    dependencies.get_gateways.cache_clear()
    yield
    dependencies._in_memory_bundle.cache_clear()
    dependencies.get_gateways.cache_clear()


@pytest.fixture
def client() -> Generator[TestClient, None, None]:
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def auth_headers() -> dict:
    return {"X-User-Id": "user-1"}


@pytest.fixture
def staff_headers() -> dict:
    return {"X-User-Id": "ops-1", "X-User-Role": "ADMIN"}


# ============================================================================
# MARKERS DE PYTEST
# ============================================================================

def pytest_configure(config):
    config.addinivalue_line(
        "markers",
        "integration: Tests contra SQLite real vía aiosqlite"
    )
    config.addinivalue_line(
        "markers",
        "deadlock: Tests de reintento ante conflictos de lock"
    )
