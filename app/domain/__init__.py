"""
Capa de Dominio - Reservas de tours.

Esta capa contiene la lógica de negocio pura, sin dependencias de frameworks.

Estructura:
- entities/: Entidades del dominio (Booking, PaymentTransaction, MarkupRule)
- value_objects/: Objetos de valor inmutables (Money, SupplierResponse)
- pipeline.py: Máquina de estados reserva -> pago -> proveedor
- errors.py: Excepciones específicas del dominio
"""
