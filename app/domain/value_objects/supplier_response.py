"""Value Object SupplierResponse - respuesta del proveedor almacenada en la reserva.

La respuesta cruda del proveedor se guarda como una unión etiquetada: cada
variante conoce su forma y el resto del payload viaja en ``raw`` (opaco).
"""

from dataclasses import dataclass, field
from typing import Any, ClassVar


@dataclass(frozen=True)
class SupplierBookingAccepted:
    """El proveedor aceptó la reserva y devolvió su identificador."""

    kind: ClassVar[str] = "booking"

    supplier_booking_id: str
    raw: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "supplier_booking_id": self.supplier_booking_id, "raw": self.raw}


@dataclass(frozen=True)
class SupplierRejection:
    """Rechazo de negocio (ej: 'children not allowed'); no se reintenta."""

    kind: ClassVar[str] = "rejection"

    error_code: str | None
    message: str | None
    http_status: int | None = None
    raw: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "error_code": self.error_code,
            "message": self.message,
            "http_status": self.http_status,
            "raw": self.raw,
        }


@dataclass(frozen=True)
class SupplierInfraFailure:
    """Falla de transporte/infraestructura; elegible para reintento."""

    kind: ClassVar[str] = "infra_error"

    error_code: str
    message: str | None
    http_status: int | None = None
    raw: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "error_code": self.error_code,
            "message": self.message,
            "http_status": self.http_status,
            "raw": self.raw,
        }


@dataclass(frozen=True)
class OpaqueSupplierPayload:
    """Cualquier otra forma que no se reconoce."""

    kind: ClassVar[str] = "opaque"

    raw: Any = field(default=None)

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "raw": self.raw}


SupplierResponse = (
    SupplierBookingAccepted | SupplierRejection | SupplierInfraFailure | OpaqueSupplierPayload
)


def supplier_response_from_dict(data: dict[str, Any] | None) -> SupplierResponse | None:
    """Reconstruye la variante a partir de lo guardado en base de datos."""
    if data is None:
        return None
    if not isinstance(data, dict):
        return OpaqueSupplierPayload(raw=data)

    kind = data.get("kind")
    if kind == SupplierBookingAccepted.kind and data.get("supplier_booking_id"):
        return SupplierBookingAccepted(
            supplier_booking_id=str(data["supplier_booking_id"]),
            raw=data.get("raw"),
        )
    if kind == SupplierRejection.kind:
        return SupplierRejection(
            error_code=data.get("error_code"),
            message=data.get("message"),
            http_status=data.get("http_status"),
            raw=data.get("raw"),
        )
    if kind == SupplierInfraFailure.kind:
        return SupplierInfraFailure(
            error_code=data.get("error_code") or "UNKNOWN",
            message=data.get("message"),
            http_status=data.get("http_status"),
            raw=data.get("raw"),
        )
    if kind == OpaqueSupplierPayload.kind:
        return OpaqueSupplierPayload(raw=data.get("raw"))
    return OpaqueSupplierPayload(raw=data)
