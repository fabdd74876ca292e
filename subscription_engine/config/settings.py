"""
Environment configuration for the subscription engine.
Uses Pydantic's settings management to handle environment variables
with proper type validation and default values.
"""

from decimal import Decimal
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load environment variables from .env file if it exists
env_path = Path('.') / '.env'
load_dotenv(dotenv_path=env_path)

VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class Settings(BaseSettings):
    """Application settings with environment variable support"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Application configuration
    APP_NAME: str = Field(default="Subscription Engine", alias="PROJECT_NAME")
    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    TIMEZONE: str = "UTC"

    # Monitoring and logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "text"
    LOG_FILE: Optional[str] = None
    ENABLE_STRUCTURED_LOGGING: bool = False

    # Tier catalog
    DEFAULT_CURRENCY: str = Field(default="USD", alias="CURRENCY")
    TIER_CATALOG_PATH: Optional[str] = None

    # Business rules
    PROMOTIONAL_DISCOUNT_PERCENT: Decimal = Decimal("0.20")
    DEFAULT_RESET_FREQUENCY_DAYS: int = 30
    GRACE_PERIOD_DAYS: int = 3
    MAX_FAILED_BILLING_ATTEMPTS: int = 3
    TRIAL_DAYS: int = 14

    # Caller-side resilience policy
    RETRY_MAX_ATTEMPTS: int = 3
    RETRY_BACKOFF_SECONDS: float = 0.5
    RETRY_BACKOFF_MULTIPLIER: float = 2.0
    BREAKER_FAILURE_THRESHOLD: int = 5
    BREAKER_RECOVERY_SECONDS: float = 30.0

    # Validators
    @field_validator('LOG_LEVEL', mode='before')
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        """Normalize LOG_LEVEL and reject unknown levels"""
        level = str(v).strip().upper()
        if level not in VALID_LOG_LEVELS:
            raise ValueError(f"LOG_LEVEL must be one of {sorted(VALID_LOG_LEVELS)}")
        return level

    @field_validator('LOG_FORMAT', mode='before')
    @classmethod
    def normalize_log_format(cls, v: str) -> str:
        fmt = str(v).strip().lower()
        if fmt not in ("text", "json"):
            raise ValueError("LOG_FORMAT must be 'text' or 'json'")
        return fmt

    @field_validator('PROMOTIONAL_DISCOUNT_PERCENT')
    @classmethod
    def validate_promotional_discount(cls, v: Decimal) -> Decimal:
        """Promotional discount is a fraction in [0, 1)"""
        if v < Decimal("0") or v >= Decimal("1"):
            raise ValueError("PROMOTIONAL_DISCOUNT_PERCENT must be in [0, 1)")
        return v

    @field_validator('DEFAULT_RESET_FREQUENCY_DAYS', 'MAX_FAILED_BILLING_ATTEMPTS', 'RETRY_MAX_ATTEMPTS')
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("value must be at least 1")
        return v

    def is_production(self) -> bool:
        """Check if running in production environment"""
        return self.ENVIRONMENT == "production"

    def is_development(self) -> bool:
        """Check if running in development environment"""
        return self.ENVIRONMENT == "development"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


settings = get_settings()
