from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "tour-bookings-api"
    environment: str = "local"
    log_level: str = "INFO"

    database_url: str = "sqlite+aiosqlite:///./tour_bookings.db"
    use_in_memory: bool = True
    db_echo: bool = False

    default_currency: str = "AED"
    frontend_url: str = "http://localhost:3000"

    payment_gateway_base_url: str = "https://api-v2.ziina.com/api"
    payment_gateway_token: str | None = None
    payment_gateway_timeout_seconds: float = 10.0
    payment_gateway_test_mode: bool = True

    supplier_base_url: str | None = None
    supplier_token: str | None = None
    supplier_timeout_seconds: float = 30.0

    bank_name: str = "Emirates NBD"
    bank_account_name: str = "Tour Bookings LLC"
    bank_account_number: str = "1234567890"
    bank_iban: str = "AE070331234567890123456"
    bank_swift: str = "EBILAEAD"

    supplier_retry_max_attempts: int = 5
    supplier_retry_base_backoff_seconds: int = 15

    outbox_worker_enabled: bool = False
    outbox_worker_poll_seconds: float = 5.0
    outbox_worker_batch_size: int = 10

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @property
    def bank_details(self) -> dict[str, str]:
        return {
            "bankName": self.bank_name,
            "accountName": self.bank_account_name,
            "accountNumber": self.bank_account_number,
            "iban": self.bank_iban,
            "swiftCode": self.bank_swift,
        }


@lru_cache
def get_settings() -> Settings:
    return Settings()
