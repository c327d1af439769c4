"""Storefront engine configuration"""

from typing import Optional
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment"""

    model_config = SettingsConfigDict(
        env_prefix="STOREFRONT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "Storefront Cart Engine"
    debug: bool = False
    host: str = "0.0.0.0"
    port: int = 8000

    # Remote commerce API (catalog, bundles, shipping, coupons, orders, payments)
    api_base_url: str = "http://localhost:5000/api"
    api_token: Optional[str] = None  # Opaque shopper credential, passed through as-is
    request_timeout: float = 30.0

    # Public URL of the storefront, used to build payment return URLs
    storefront_base_url: str = "http://localhost:3000"

    # Pricing
    currency: str = "AED"
    shipping_region: str = "US"
    fallback_shipping_cost: float = 25.0
    fallback_free_shipping_at: float = 200.0
    debounce_seconds: float = 0.3

    # Cart policy applied at the API boundary
    max_item_quantity: int = 10

    # Free-shipping suggestions
    suggestion_limit: int = 3
    suggestion_flexibility_ratio: float = 0.3
    suggestion_flexibility_cap: float = 30.0

    # Durable storage; in-memory when no directory is configured
    storage_dir: Optional[str] = None
    session_max_age_hours: int = 24

    @property
    def payment_return_url(self) -> str:
        """Base URL the payment gateway redirects back to"""
        return f"{self.storefront_base_url.rstrip('/')}/payment-success"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


settings = get_settings()
