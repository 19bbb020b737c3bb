"""
Capa de Infraestructura - Reservas de tours.

Esta capa contiene las implementaciones concretas de los puertos (interfaces).
Incluye adaptadores para bases de datos, gateways externos y workers.

Estructura:
- db/: Tablas, repositorios SQL y engine async
- gateways/: Adaptadores HTTP (gateway de pago, proveedor de tours)
- in_memory/: Implementaciones in-memory para desarrollo y testing
- messaging/: Worker del outbox de reintentos al proveedor
"""

# Database
from app.infrastructure.db.repositories.booking_repo_sql import BookingRepoSQL
from app.infrastructure.db.repositories.markup_repo_sql import MarkupRepoSQL
from app.infrastructure.db.repositories.outbox_repo_sql import OutboxRepoSQL
from app.infrastructure.db.repositories.payment_transaction_repo_sql import (
    PaymentTransactionRepoSQL,
)
from app.infrastructure.db.repositories.supplier_request_repo_sql import SupplierRequestRepoSQL
from app.infrastructure.db.transaction_manager import SQLAlchemyTransactionManager

# Gateways
from app.infrastructure.gateways.payment_gateway_http import PaymentGatewayHTTP
from app.infrastructure.gateways.supplier_gateway_http import SupplierGatewayHTTP

# Messaging
from app.infrastructure.messaging.outbox_worker import OutboxWorker

__all__ = [
    # Database - Repositories SQL
    "BookingRepoSQL",
    "MarkupRepoSQL",
    "OutboxRepoSQL",
    "PaymentTransactionRepoSQL",
    "SupplierRequestRepoSQL",
    "SQLAlchemyTransactionManager",
    # Gateways
    "PaymentGatewayHTTP",
    "SupplierGatewayHTTP",
    # Messaging
    "OutboxWorker",
]
