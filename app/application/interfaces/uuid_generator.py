"""Interface UUIDGenerator - Puerto para generación de identificadores únicos."""

import secrets
import string
import uuid
from abc import ABC, abstractmethod


class UUIDGenerator(ABC):
    """
    Puerto para generación de identificadores únicos.

    Permite inyectar implementaciones fake para testing determinista.
    """

    @abstractmethod
    def generate_uuid(self) -> str:
        """
        Genera un UUID v4 único.

        Returns:
            String con UUID en formato estándar.
        """
        raise NotImplementedError

    @abstractmethod
    def generate_booking_reference(self) -> str:
        """
        Genera una referencia de reserva cuando el cliente no envía una.

        Returns:
            String con formato TB-XXXXXXXX.
        """
        raise NotImplementedError

    @abstractmethod
    def generate_token(self, length: int = 6) -> str:
        """Sufijo aleatorio corto para ids de sesión sintetizados."""
        raise NotImplementedError


class RealUUIDGenerator(UUIDGenerator):
    """Implementación real que genera valores aleatorios."""

    REFERENCE_LENGTH = 8
    ALLOWED_CHARS = string.ascii_uppercase + string.digits

    def generate_uuid(self) -> str:
        return str(uuid.uuid4())

    def generate_booking_reference(self) -> str:
        suffix = "".join(
            secrets.choice(self.ALLOWED_CHARS) for _ in range(self.REFERENCE_LENGTH)
        )
        return f"TB-{suffix}"

    def generate_token(self, length: int = 6) -> str:
        return "".join(
            secrets.choice(string.ascii_lowercase + string.digits) for _ in range(length)
        )


class FakeUUIDGenerator(UUIDGenerator):
    """
    Implementación fake para testing.

    Genera valores predecibles basados en contadores.
    """

    def __init__(self, prefix: str = "TEST"):
        self._prefix = prefix
        self._uuid_counter = 0
        self._reference_counter = 0
        self._token_counter = 0

    def generate_uuid(self) -> str:
        self._uuid_counter += 1
        hex_value = f"{self._uuid_counter:032x}"
        return f"{hex_value[:8]}-{hex_value[8:12]}-{hex_value[12:16]}-{hex_value[16:20]}-{hex_value[20:]}"

    def generate_booking_reference(self) -> str:
        self._reference_counter += 1
        return f"{self._prefix}-{self._reference_counter:04d}"

    def generate_token(self, length: int = 6) -> str:
        self._token_counter += 1
        return f"{self._token_counter:0{length}d}"[-length:]
