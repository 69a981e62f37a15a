"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from decimal import Decimal
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LedgerConfig(BaseSettings):
    """Account ledger configuration"""

    model_config = SettingsConfigDict(
        env_prefix="BANK_LEDGER_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )

    # Database configuration: memory://, sqlite:///path.db or postgresql://...
    database_url: str = "memory://"

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text

    # Business rules configuration
    min_account_balance: Decimal = Decimal("0.00")
    max_transaction_amount: Optional[Decimal] = None  # None = unlimited
    empty_holder_is_error: bool = True

    # Concurrency configuration
    max_update_retries: int = 5
    retry_backoff_seconds: float = 0.01
    account_number_attempts: int = 5

    # Feature flags
    enable_audit_logging: bool = True

    @field_validator("min_account_balance")
    @classmethod
    def _non_negative_floor(cls, value: Decimal) -> Decimal:
        if value < 0:
            raise ValueError("min_account_balance cannot be negative")
        return value

    @field_validator("max_transaction_amount")
    @classmethod
    def _positive_ceiling(cls, value: Optional[Decimal]) -> Optional[Decimal]:
        if value is not None and value <= 0:
            raise ValueError("max_transaction_amount must be positive")
        return value

    @field_validator("max_update_retries", "account_number_attempts")
    @classmethod
    def _at_least_one(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be at least 1")
        return value


# Global configuration instance
config = LedgerConfig()


def get_config() -> LedgerConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> LedgerConfig:
    """Reload configuration from environment"""
    global config
    config = LedgerConfig()
    return config
