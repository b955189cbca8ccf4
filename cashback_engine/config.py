import os
from dataclasses import dataclass, field
from decimal import Decimal
from functools import lru_cache

from dotenv import load_dotenv

# Load .env file with explicit UTF-8 encoding
load_dotenv(encoding="utf-8")


DEFAULT_CORS_ORIGINS = (
    "http://localhost:3000",
    "https://localhost:3000",
    "http://127.0.0.1:3000",
    "https://127.0.0.1:3000",
)


def _split_csv(value: str | None) -> tuple[str, ...]:
    if not value:
        return ()
    return tuple(item.strip() for item in value.split(",") if item.strip())


@dataclass(frozen=True)
class Settings:
    database_url: str = "sqlite:///./cashback.db"

    cashback_rate: Decimal = Decimal("0.05")
    min_redemption_amount: Decimal = Decimal("1.00")
    cashback_expiry_months: int = 2
    cashback_timezone: str = "America/Fortaleza"
    duplicate_window_seconds: int = 120

    credit_validity_days: int = 90

    geolocation_timeout_seconds: float = 15.0

    notification_url: str | None = None
    notification_token: str | None = None
    notification_timeout_seconds: float = 5.0
    notification_title: str = "Elite Açaí"

    db_connect_retries: int = 3
    db_connect_retry_delay_seconds: float = 1.0

    cors_origins: tuple[str, ...] = field(default=DEFAULT_CORS_ORIGINS)
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            database_url=os.getenv("DATABASE_URL") or cls.database_url,
            cashback_rate=Decimal(os.getenv("CASHBACK_RATE", "0.05")),
            min_redemption_amount=Decimal(os.getenv("MIN_REDEMPTION_AMOUNT", "1.00")),
            cashback_expiry_months=int(os.getenv("CASHBACK_EXPIRY_MONTHS", "2")),
            cashback_timezone=os.getenv("CASHBACK_TIMEZONE", "America/Fortaleza"),
            duplicate_window_seconds=int(os.getenv("DUPLICATE_WINDOW_SECONDS", "120")),
            credit_validity_days=int(os.getenv("CREDIT_VALIDITY_DAYS", "90")),
            geolocation_timeout_seconds=float(os.getenv("GEOLOCATION_TIMEOUT_SECONDS", "15")),
            notification_url=os.getenv("NOTIFICATION_URL") or None,
            notification_token=os.getenv("NOTIFICATION_TOKEN") or None,
            notification_timeout_seconds=float(os.getenv("NOTIFICATION_TIMEOUT_SECONDS", "5")),
            notification_title=os.getenv("NOTIFICATION_TITLE", "Elite Açaí"),
            db_connect_retries=int(os.getenv("DB_CONNECT_RETRIES", "3")),
            db_connect_retry_delay_seconds=float(os.getenv("DB_CONNECT_RETRY_DELAY_SECONDS", "1")),
            cors_origins=_split_csv(os.getenv("CORS_ORIGINS")) or DEFAULT_CORS_ORIGINS,
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )


@lru_cache
def get_settings() -> Settings:
    return Settings.from_env()
