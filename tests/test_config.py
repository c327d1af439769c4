"""Tests for environment-driven settings."""

from storefront.core.config import Settings


class TestSettings:
    def test_defaults(self):
        settings = Settings(_env_file=None)
        assert settings.currency == "AED"
        assert settings.fallback_free_shipping_at == 200.0
        assert settings.fallback_shipping_cost == 25.0
        assert settings.max_item_quantity == 10

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("STOREFRONT_API_BASE_URL", "https://backend.example/api")
        monkeypatch.setenv("STOREFRONT_DEBOUNCE_SECONDS", "0.5")
        settings = Settings(_env_file=None)
        assert settings.api_base_url == "https://backend.example/api"
        assert settings.debounce_seconds == 0.5

    def test_payment_return_url(self):
        settings = Settings(storefront_base_url="https://shop.example/", _env_file=None)
        assert settings.payment_return_url == "https://shop.example/payment-success"
