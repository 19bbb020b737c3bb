"""Interfaces (Puertos) de la capa de aplicación."""

from app.application.interfaces.booking_repo import (
    BookingDraft,
    BookingRepo,
    PaymentSessionInfo,
    TransitionResult,
)
from app.application.interfaces.clock import Clock, FakeClock, SystemClock
from app.application.interfaces.markup_repo import MarkupRepo
from app.application.interfaces.outbox_repo import OutboxEvent, OutboxRepo
from app.application.interfaces.payment_gateway import (
    PaymentFailureKind,
    PaymentGateway,
    PaymentSessionFailed,
    PaymentSessionOpened,
    PaymentState,
)
from app.application.interfaces.payment_transaction_repo import PaymentTransactionRepo
from app.application.interfaces.supplier_gateway import SupplierGateway, SupplierResult
from app.application.interfaces.supplier_request_repo import (
    SupplierRequestRecord,
    SupplierRequestRepo,
)
from app.application.interfaces.transaction_manager import TransactionManager
from app.application.interfaces.uuid_generator import (
    FakeUUIDGenerator,
    RealUUIDGenerator,
    UUIDGenerator,
)

__all__ = [
    # Repositories
    "BookingRepo",
    "BookingDraft",
    "PaymentSessionInfo",
    "TransitionResult",
    "PaymentTransactionRepo",
    "MarkupRepo",
    "OutboxRepo",
    "OutboxEvent",
    "SupplierRequestRepo",
    "SupplierRequestRecord",
    # Gateways
    "PaymentGateway",
    "PaymentSessionOpened",
    "PaymentSessionFailed",
    "PaymentFailureKind",
    "PaymentState",
    "SupplierGateway",
    "SupplierResult",
    # Services
    "TransactionManager",
    "Clock",
    "SystemClock",
    "FakeClock",
    "UUIDGenerator",
    "RealUUIDGenerator",
    "FakeUUIDGenerator",
]
