"""
Capa de Aplicación - Reservas de tours.

Esta capa contiene los casos de uso, DTOs, servicios e interfaces (puertos).
Orquesta el pipeline reserva -> pago -> proveedor y define los contratos con
la infraestructura.

Estructura:
- use_cases/: Casos de uso del sistema
- services/: Motor de precios
- dtos/: Data Transfer Objects
- interfaces/: Puertos (contratos para adaptadores)
"""
