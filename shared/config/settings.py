"""
Application settings loaded from environment variables.
Uses pydantic-settings for type-safe configuration.
"""

from decimal import Decimal
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with defaults for development."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Server
    ws_gateway_port: int = 3000

    # Comma-separated list of allowed origins (empty uses default localhost list)
    allowed_origins: str = ""

    # Environment
    environment: str = "development"
    debug: bool = True

    # Table defaults
    restaurant_name: str = "UPTOWN"
    max_guests_per_table: int = 4
    default_tax_rate: Decimal = Decimal("0.00")
    default_service_fee_rate: Decimal = Decimal("0.00")

    # Deferred side effects (seconds)
    vote_tie_reset_delay: float = 3.0  # Time the tie message stays visible before votes clear
    payment_confirmation_delay: float = 0.5  # Simulated payment gateway callback
    empty_table_grace_period: float = 60.0  # Empty tables are evicted after this window

    # WebSocket
    ws_receive_timeout: float = 90.0
    ws_max_message_size: int = 64 * 1024  # 64 KB

    def validate_production(self) -> list[str]:
        """
        Validate that the configuration is safe for production.
        Returns a list of validation errors. Empty list means all checks pass.
        """
        errors = []

        if self.environment == "production":
            if self.debug:
                errors.append("DEBUG must be False in production")

            if not self.allowed_origins:
                errors.append(
                    "ALLOWED_ORIGINS must be set in production (comma-separated list of allowed domains)"
                )

        if self.max_guests_per_table < 1:
            errors.append("MAX_GUESTS_PER_TABLE must be at least 1")

        if self.default_tax_rate < 0 or self.default_service_fee_rate < 0:
            errors.append("DEFAULT_TAX_RATE and DEFAULT_SERVICE_FEE_RATE must be non-negative")

        return errors


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Convenience exports
settings = get_settings()
