"""Value Objects del dominio de reservas."""

from app.domain.value_objects.money import Money, round_money
from app.domain.value_objects.supplier_response import (
    OpaqueSupplierPayload,
    SupplierBookingAccepted,
    SupplierInfraFailure,
    SupplierRejection,
    SupplierResponse,
    supplier_response_from_dict,
)

__all__ = [
    "Money",
    "round_money",
    "OpaqueSupplierPayload",
    "SupplierBookingAccepted",
    "SupplierInfraFailure",
    "SupplierRejection",
    "SupplierResponse",
    "supplier_response_from_dict",
]
