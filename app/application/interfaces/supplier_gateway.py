from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from app.domain.entities.booking import Booking
from app.domain.value_objects.supplier_response import (
    SupplierBookingAccepted,
    SupplierInfraFailure,
    SupplierRejection,
    SupplierResponse,
)

SUCCESS = "SUCCESS"
BUSINESS_ERROR = "BUSINESS_ERROR"
INFRA_ERROR = "INFRA_ERROR"


@dataclass
class SupplierResult:
    status: str  # SUCCESS, BUSINESS_ERROR, INFRA_ERROR
    supplier_booking_id: str | None = None
    payload: dict[str, Any] | None = None
    error_code: str | None = None
    error_message: str | None = None
    http_status: int | None = None

    @property
    def is_success(self) -> bool:
        return self.status == SUCCESS

    @property
    def is_business_error(self) -> bool:
        return self.status == BUSINESS_ERROR

    @property
    def is_infra_error(self) -> bool:
        return self.status == INFRA_ERROR

    def to_response(self) -> SupplierResponse:
        if self.is_success and self.supplier_booking_id:
            return SupplierBookingAccepted(
                supplier_booking_id=self.supplier_booking_id, raw=self.payload
            )
        if self.is_business_error:
            return SupplierRejection(
                error_code=self.error_code,
                message=self.error_message,
                http_status=self.http_status,
                raw=self.payload,
            )
        return SupplierInfraFailure(
            error_code=self.error_code or "UNKNOWN",
            message=self.error_message,
            http_status=self.http_status,
            raw=self.payload,
        )


class SupplierGateway(ABC):
    @abstractmethod
    async def submit(self, booking: Booking) -> SupplierResult:
        """
        Submits a paid booking to the tour supplier.
        """
        pass

    @abstractmethod
    async def cancel(self, booking: Booking, reason: str) -> SupplierResult:
        pass

    @abstractmethod
    async def fetch_tickets(self, booking: Booking) -> SupplierResult:
        pass

    async def aclose(self) -> None:
        return None
