"""Application configuration read from HOTEL_* environment variables"""
from datetime import datetime
from decimal import Decimal
from functools import lru_cache
from typing import Callable

import pytz
from pydantic import validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Application
    app_name: str = "Hotel Booking Engine"
    app_version: str = "1.0.0"
    log_level: str = "INFO"
    currency: str = "VND"
    # IANA zone of the hotels; stay timestamps are naive wall-clock times in it
    timezone: str = "UTC"

    # Booking rules
    min_deposit_percentage: Decimal = Decimal("20")
    max_stay_nights: int = 30
    max_rooms_per_line: int = 10

    # Cancellation policy
    cancellation_policy_name: str = "Standard"
    cancellation_refund_percentage: Decimal = Decimal("80")
    cancellation_deadline_hours: int = 24

    # Transactions
    transaction_timeout_seconds: float = 5.0
    transaction_retries: int = 1
    transaction_retry_backoff_seconds: float = 0.05

    model_config = {"env_prefix": "HOTEL_", "env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    @validator("timezone")
    def known_timezone(cls, v):
        try:
            pytz.timezone(v)
        except pytz.UnknownTimeZoneError:
            raise ValueError(f"Unknown timezone {v}")
        return v


@lru_cache
def get_settings() -> Settings:
    return Settings()


def local_clock(timezone: str) -> Callable[[], datetime]:
    """Clock reading naive wall-clock time in the given zone, whatever the server's zone"""
    zone = pytz.timezone(timezone)

    def now() -> datetime:
        return datetime.now(zone).replace(tzinfo=None)

    return now
