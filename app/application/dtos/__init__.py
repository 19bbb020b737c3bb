"""DTOs (Data Transfer Objects) de la capa de aplicación."""

from app.application.dtos.booking_dto import (
    CallerIdentity,
    ConfirmationResult,
    SupplierSubmission,
)
from app.application.dtos.pricing_dto import BookingPrice, CallerContext, PriceBreakdown

__all__ = [
    "CallerIdentity",
    "ConfirmationResult",
    "SupplierSubmission",
    "BookingPrice",
    "CallerContext",
    "PriceBreakdown",
]
