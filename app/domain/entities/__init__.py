"""Entidades del dominio de reservas."""

from app.domain.entities.booking import (
    Booking,
    BookingStatus,
    Passenger,
    PaxType,
    PaymentMethod,
    PaymentStatus,
    SupplierStatus,
    TourLineItem,
)
from app.domain.entities.markup import B2BAccount, CallerMarkup, MarkupRule, MarkupType
from app.domain.entities.payment_transaction import PaymentTransaction, TransactionStatus

__all__ = [
    # Booking
    "Booking",
    "BookingStatus",
    "Passenger",
    "PaxType",
    "PaymentMethod",
    "PaymentStatus",
    "SupplierStatus",
    "TourLineItem",
    # Markup
    "B2BAccount",
    "CallerMarkup",
    "MarkupRule",
    "MarkupType",
    # PaymentTransaction
    "PaymentTransaction",
    "TransactionStatus",
]
