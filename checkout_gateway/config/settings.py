"""Application settings using Pydantic for environment-based configuration."""
from decimal import Decimal
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

PAYPAL_BASE_URLS = {
    "sandbox": "https://api-m.sandbox.paypal.com",
    "production": "https://api-m.paypal.com",
}

DEFAULT_PRICING_DATA = Path(__file__).resolve().parent.parent / "data" / "pricing.yaml"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # PayPal Configuration
    paypal_client_id: Optional[str] = Field(default=None, description="PayPal REST client id")
    paypal_client_secret: Optional[str] = Field(
        default=None, description="PayPal REST client secret"
    )
    paypal_environment: str = Field(
        default="sandbox", description="PayPal environment (sandbox/production)"
    )
    paypal_base_url_override: Optional[str] = Field(
        default=None,
        alias="PAYPAL_BASE_URL",
        description="Explicit PayPal API base URL (takes precedence over environment)",
    )
    token_buffer_seconds: int = Field(
        default=300, ge=0, description="Treat cached tokens as stale this long before expiry"
    )
    http_timeout_seconds: float = Field(
        default=30.0, gt=0, description="Timeout for upstream PayPal calls (seconds)"
    )

    # Checkout presentation
    brand_name: str = Field(default="Dritchwear", description="Brand shown on the approval page")
    default_description: str = Field(
        default="Dritchwear Purchase", description="Purchase unit description fallback"
    )
    return_url: str = Field(
        default="https://dritchwear.com/payment/success", description="Approval return URL"
    )
    cancel_url: str = Field(
        default="https://dritchwear.com/payment/cancel", description="Approval cancel URL"
    )
    request_id_prefix: str = Field(
        default="dw", description="Prefix for generated idempotency keys"
    )

    # Pricing
    pricing_data_path: Path = Field(
        default=DEFAULT_PRICING_DATA,
        description="YAML file with currencies, rates, fee schedules and region lists",
    )
    service_fee_rate: Decimal = Field(
        default=Decimal("0.02"), ge=0, lt=1, description="Service fee as a fraction of subtotal"
    )

    # Application Configuration
    app_name: str = Field(default="checkout-gateway", description="Application name")
    app_env: str = Field(default="development", description="Environment (development/production)")
    log_level: str = Field(default="INFO", description="Logging level")
    debug: bool = Field(default=False, description="Debug mode")

    # API Configuration
    api_host: str = Field(default="0.0.0.0", description="API host")
    api_port: int = Field(default=8000, description="API port")
    allowed_origins: str = Field(
        default="*", description="CORS allowed origins (comma-separated)"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("paypal_environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Only sandbox and production are known PayPal environments."""
        value = v.strip().lower()
        if value not in PAYPAL_BASE_URLS:
            raise ValueError(
                f"Invalid PayPal environment. Must be one of: {sorted(PAYPAL_BASE_URLS)}"
            )
        return value

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level. Must be one of: {valid_levels}")
        return v.upper()

    def get_allowed_origins_list(self) -> List[str]:
        """Parse allowed origins from comma-separated string."""
        return [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]

    @property
    def paypal_base_url(self) -> str:
        """Base URL for the configured PayPal environment."""
        if self.paypal_base_url_override:
            return self.paypal_base_url_override.rstrip("/")
        return PAYPAL_BASE_URLS[self.paypal_environment]

    @property
    def has_paypal_credentials(self) -> bool:
        return bool(self.paypal_client_id and self.paypal_client_secret)

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.app_env.lower() == "production"

    @property
    def is_sandbox(self) -> bool:
        return self.paypal_environment == "sandbox"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return Settings()
