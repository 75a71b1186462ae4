"""Runtime settings for the cart engine, loaded from ``STOREFRONT_*`` environment variables."""

from decimal import Decimal
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from storefront.shared.money import VALID_CURRENCIES


class CartSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="STOREFRONT_", env_file=".env", extra="ignore")

    # Pricing
    tax_rate: Decimal = Field(default=Decimal("0.18"), ge=0)  # 18% GST
    currency: str = "INR"

    # Undo buffer
    undo_retention_seconds: int = Field(default=300, gt=0)
    undo_capacity: int = Field(default=20, gt=0)

    # Client-local persistence
    storage_key: str = "guestCart"
    storage_dir: str = ".storefront"
    persist_debounce_ms: int = Field(default=300, ge=0)

    # Remote cart service
    cart_service_url: str = "http://localhost:8000/api"
    cart_service_timeout: float = Field(default=10.0, gt=0)
    sync_interval_seconds: float = Field(default=30.0, gt=0)

    # Logging; derived from the environment when unset
    log_level: str | None = None

    @field_validator("currency")
    @classmethod
    def currency_must_be_supported(cls, value: str) -> str:
        code = value.strip().upper()
        if code not in VALID_CURRENCIES:
            raise ValueError(f"Unsupported currency: {value}")
        return code


@lru_cache
def get_settings() -> CartSettings:
    """Return the process-wide settings (cached)."""
    return CartSettings()
