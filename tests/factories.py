"""Builders de payloads compartidos por los tests."""

from app.api.schemas.bookings import PaymentWebhookEnvelope


def webhook_envelope(event_type: str, intent_id: str, booking_id: int | None = None):
    metadata = {"bookingId": str(booking_id)} if booking_id is not None else {}
    return PaymentWebhookEnvelope.model_validate(
        {
            "id": f"evt_{intent_id}",
            "type": event_type,
            "data": {"object": {"id": intent_id, "status": "completed", "metadata": metadata}},
        }
    )
