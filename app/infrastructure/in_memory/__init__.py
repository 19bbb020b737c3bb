"""Implementaciones in-memory para desarrollo local y testing."""

from app.infrastructure.in_memory.booking_repo import InMemoryBookingRepo
from app.infrastructure.in_memory.markup_repo import InMemoryMarkupRepo
from app.infrastructure.in_memory.outbox_repo import InMemoryOutboxRepo
from app.infrastructure.in_memory.payment_gateway import StubPaymentGateway
from app.infrastructure.in_memory.payment_transaction_repo import InMemoryPaymentTransactionRepo
from app.infrastructure.in_memory.supplier_gateway import StubSupplierGateway
from app.infrastructure.in_memory.supplier_request_repo import InMemorySupplierRequestRepo
from app.infrastructure.in_memory.transaction_manager import NoopTransactionManager

__all__ = [
    # Repositories
    "InMemoryBookingRepo",
    "InMemoryMarkupRepo",
    "InMemoryOutboxRepo",
    "InMemoryPaymentTransactionRepo",
    "InMemorySupplierRequestRepo",
    # Gateways
    "StubPaymentGateway",
    "StubSupplierGateway",
    # Infrastructure
    "NoopTransactionManager",
]
