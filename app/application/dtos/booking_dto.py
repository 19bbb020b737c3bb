"""DTOs para el pipeline de reservas."""

from dataclasses import dataclass

from app.application.interfaces.supplier_gateway import SupplierResult
from app.domain.entities.booking import Booking

# Roles que administran markups y confirman pagos offline
STAFF_ROLES = frozenset({"ADMIN", "ACCOUNT_MANAGER"})


@dataclass(frozen=True)
class CallerIdentity:
    """Usuario autenticado por la capa externa (headers X-User-Id, X-User-Role, X-B2B-Account-Id)."""

    user_id: str
    b2b_account_id: int | None = None
    role: str | None = None

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES


@dataclass
class ConfirmationResult:
    """
    Resultado de confirmar un pago.

    applied indica si esta llamada ganó la transición a PAID; duplicate si la
    reserva ya estaba pagada y la llamada fue solo reconocida.
    """

    booking: Booking
    applied: bool
    duplicate: bool = False
    supplier_outcome: str | None = None


@dataclass
class SupplierSubmission:
    """Reserva tras registrar el resultado del envío al proveedor."""

    booking: Booking
    result: SupplierResult
    retry_scheduled: bool = False
