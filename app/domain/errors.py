"""Excepciones de dominio para el sistema de reservas de tours."""


class DomainError(Exception):
    """Clase base para todos los errores de dominio."""

    def __init__(self, message: str, code: str | None = None):
        self.message = message
        self.code = code or self.__class__.__name__
        super().__init__(self.message)


# === Errores de Validación ===


class BookingValidationError(DomainError):
    """Payload de reserva inválido (pasajeros, líneas, totales)."""

    def __init__(self, field: str, message: str, code: str = "BOOKING_VALIDATION_ERROR"):
        super().__init__(
            message=f"Validación fallida en '{field}': {message}",
            code=code,
        )
        self.field = field


class PriceMismatchError(BookingValidationError):
    """El total enviado por el cliente no coincide con el calculado."""

    def __init__(self, submitted, computed):
        super().__init__(
            field="total_gross",
            message=f"total enviado {submitted} no coincide con el calculado {computed}",
            code="PRICE_MISMATCH",
        )
        self.submitted = submitted
        self.computed = computed


class InvalidMarkupRuleError(DomainError):
    """Regla de markup inválida (porcentaje negativo, alcance vacío)."""

    def __init__(self, message: str):
        super().__init__(message=message, code="INVALID_MARKUP_RULE")


class MarkupRuleNotFoundError(DomainError):
    """La regla de markup no existe."""

    def __init__(self, rule_id: int):
        super().__init__(
            message=f"Regla de markup no encontrada: ID {rule_id}",
            code="MARKUP_RULE_NOT_FOUND",
        )
        self.rule_id = rule_id


# === Errores de Reserva ===


class BookingNotFoundError(DomainError):
    """La reserva no existe."""

    def __init__(self, booking_id: int | None = None, reference: str | None = None):
        identifier = f"ID {booking_id}" if booking_id is not None else f"referencia {reference}"
        super().__init__(
            message=f"Reserva no encontrada: {identifier}",
            code="BOOKING_NOT_FOUND",
        )
        self.booking_id = booking_id
        self.reference = reference


class AlreadyCompletedError(DomainError):
    """La referencia ya fue pagada o confirmada y no puede reutilizarse."""

    def __init__(self, reference: str, status: str, payment_status: str):
        super().__init__(
            message=f"La reserva {reference} ya está completada "
            f"(estado '{status}', pago '{payment_status}')",
            code="ALREADY_COMPLETED",
        )
        self.reference = reference
        self.status = status
        self.payment_status = payment_status


class ReferenceInUseError(DomainError):
    """La referencia pertenece a otro usuario."""

    def __init__(self, reference: str):
        super().__init__(
            message=f"La referencia {reference} pertenece a otra cuenta",
            code="REFERENCE_IN_USE",
        )
        self.reference = reference


class InvalidBookingStatusError(DomainError):
    """El estado actual de la reserva no permite la operación."""

    def __init__(self, current_state: str, operation: str):
        super().__init__(
            message=f"No se puede {operation}: estado actual '{current_state}'",
            code="INVALID_BOOKING_STATUS",
        )
        self.current_state = current_state
        self.operation = operation


# === Errores de Pago ===


class PaymentNotFoundError(DomainError):
    """No existe una reserva asociada al payment intent."""

    def __init__(self, payment_intent_id: str | None = None, booking_id: int | None = None):
        identifier = (
            f"intent {payment_intent_id}" if payment_intent_id else f"reserva {booking_id}"
        )
        super().__init__(
            message=f"Pago no encontrado para {identifier}",
            code="PAYMENT_NOT_FOUND",
        )
        self.payment_intent_id = payment_intent_id
        self.booking_id = booking_id


class PaymentNotVerifiedError(DomainError):
    """El gateway todavía no reporta el pago como completado."""

    def __init__(self, payment_intent_id: str, gateway_state: str):
        super().__init__(
            message=(
                f"Pago {payment_intent_id} no verificado o aún en proceso "
                f"(estado del gateway: {gateway_state})"
            ),
            code="PAYMENT_NOT_VERIFIED",
        )
        self.payment_intent_id = payment_intent_id
        self.gateway_state = gateway_state


class PaymentSupersededError(DomainError):
    """El pago llegó por una sesión reemplazada al reenviar la misma referencia."""

    def __init__(self, payment_intent_id: str, booking_id: int):
        super().__init__(
            message=(
                f"El intent {payment_intent_id} fue reemplazado por una nueva sesión "
                f"de la reserva {booking_id}"
            ),
            code="PAYMENT_SUPERSEDED",
        )
        self.payment_intent_id = payment_intent_id
        self.booking_id = booking_id


class ManualConfirmationNotAllowedError(DomainError):
    """Solo tarjeta y transferencia bancaria se confirman manualmente."""

    def __init__(self, booking_id: int, payment_method: str):
        super().__init__(
            message=(
                f"La reserva {booking_id} usa {payment_method}; "
                "ese método se confirma con el gateway"
            ),
            code="MANUAL_CONFIRMATION_NOT_ALLOWED",
        )
        self.booking_id = booking_id
        self.payment_method = payment_method


class PaymentTransactionNotFoundError(DomainError):
    """La transacción de pago no existe o pertenece a otro usuario."""

    def __init__(self, transaction_id: int):
        super().__init__(
            message=f"Transacción de pago no encontrada: ID {transaction_id}",
            code="PAYMENT_TRANSACTION_NOT_FOUND",
        )
        self.transaction_id = transaction_id


class PaymentSessionError(DomainError):
    """No se pudo abrir la sesión de pago con el gateway."""

    def __init__(self, booking_id: int, code: str, message: str):
        super().__init__(
            message=f"No se pudo abrir la sesión de pago para la reserva {booking_id}: {message}",
            code=code,
        )
        self.booking_id = booking_id


# === Errores de Supplier ===


class SupplierUnavailableError(DomainError):
    """El proveedor no respondió o rechazó una lectura (tickets)."""

    def __init__(self, booking_id: int, error_code: str | None, message: str | None):
        super().__init__(
            message=f"Proveedor no disponible para la reserva {booking_id}: {message}",
            code=error_code or "SUPPLIER_UNAVAILABLE",
        )
        self.booking_id = booking_id


class SupplierNotSubmittedError(DomainError):
    """La reserva aún no tiene identificador del proveedor."""

    def __init__(self, booking_id: int):
        super().__init__(
            message=f"La reserva {booking_id} no ha sido enviada al proveedor",
            code="SUPPLIER_NOT_SUBMITTED",
        )
        self.booking_id = booking_id


# === Errores de Outbox ===


class OutboxEventNotReadyError(DomainError):
    """No hay evento de outbox listo o ya está bloqueado por otro worker."""

    def __init__(self, booking_id: int, event_type: str):
        super().__init__(
            message=f"No hay evento {event_type} listo para la reserva {booking_id}",
            code="OUTBOX_EVENT_NOT_READY",
        )
        self.booking_id = booking_id
        self.event_type = event_type
