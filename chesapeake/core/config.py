"""
Centralized configuration management with Pydantic Settings.
All environment variables are validated and typed.
"""
from functools import lru_cache
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "The Chesapeake Shell API"
    app_version: str = "1.0.0"
    debug: bool = False
    environment: str = Field(default="development", pattern="^(development|staging|production|test)$")

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    # Database (sqlite:// and postgresql:// are normalized to async drivers)
    database_url: str = "sqlite+aiosqlite:///./chesapeake.db"
    database_pool_size: int = 5
    database_max_overflow: int = 5
    database_echo: bool = False

    # CORS - stored as comma-separated string to avoid JSON parsing issues
    allowed_origins_str: str = Field(default="http://localhost:5173", alias="ALLOWED_ORIGINS")

    @property
    def allowed_origins(self) -> List[str]:
        """Parse allowed origins from comma-separated string."""
        return [origin.strip() for origin in self.allowed_origins_str.split(",") if origin.strip()]

    # Stripe (the webhook refuses to run without both secrets)
    stripe_secret_key: Optional[str] = None
    stripe_webhook_secret: Optional[str] = None
    stripe_api_base: str = "https://api.stripe.com"
    stripe_webhook_tolerance: int = 300  # seconds
    checkout_shipping_countries_str: str = Field(default="US,CA", alias="CHECKOUT_SHIPPING_COUNTRIES")

    @property
    def checkout_shipping_countries(self) -> List[str]:
        return [
            country.strip().upper()
            for country in self.checkout_shipping_countries_str.split(",")
            if country.strip()
        ]

    # Email via Resend
    resend_api_key: Optional[str] = None
    resend_from: str = "The Chesapeake Shell <hello@thechesapeakeshell.com>"
    resend_reply_to: Optional[str] = None
    owner_email: Optional[str] = None

    # Links used in notification emails
    public_site_url: str = "https://thechesapeakeshell.com"

    # Observability
    sentry_dsn: Optional[str] = None
    log_level: str = "INFO"

    @property
    def stripe_configured(self) -> bool:
        return bool(self.stripe_secret_key and self.stripe_webhook_secret)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
