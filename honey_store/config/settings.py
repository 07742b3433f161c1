"""Application settings using Pydantic for environment-based configuration."""
from functools import lru_cache
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .enums import ConnectionMethod, ServiceLocation, WebhookPolicy


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application Configuration
    app_name: str = Field(default="honey-store", description="Application name")
    app_env: str = Field(default="development", description="Environment (development/production)")
    log_level: str = Field(default="INFO", description="Logging level")
    debug: bool = Field(default=False, description="Debug mode")

    # Database Configuration
    database_url: str = Field(
        default="sqlite+aiosqlite:///./honey_store.db",
        description="Async SQLAlchemy connection URL for the order store",
    )
    database_pool_size: int = Field(default=20, description="Database connection pool size")
    database_max_overflow: int = Field(default=50, description="Max database connection overflow")
    database_echo: bool = Field(default=False, description="Echo SQL queries (debug)")

    # API Configuration
    api_host: str = Field(default="0.0.0.0", description="API host")
    backend_port: int = Field(default=3000, description="Order backend port")
    gateway_port: int = Field(default=3002, description="Payment gateway simulator port")
    api_prefix: str = Field(default="/api", description="Prefix for JSON routes")
    allowed_origins: str = Field(
        default="*",
        description="CORS allowed origins (comma-separated)",
    )

    # Service Topology
    payment_service_url: str = Field(
        default="http://payment-service:3002", description="Base URL of the payment gateway"
    )
    backend_url: str = Field(
        default="http://backend:3000", description="Base URL the gateway calls back"
    )
    alternative_backend_url: str = Field(
        default="http://localhost:3000",
        description="Secondary callback base URL used when fallback delivery is in effect",
    )
    public_backend_url: Optional[str] = Field(
        default=None, description="Publicly reachable backend URL (ngrok tunnels)"
    )
    webhook_path: str = Field(
        default="/api/webhook/payment", description="Path of the payment webhook endpoint"
    )
    service_location: ServiceLocation = Field(
        default=ServiceLocation.LOCAL, description="Where this service runs"
    )
    connection_method: ConnectionMethod = Field(
        default=ConnectionMethod.DIRECT, description="How the services reach each other"
    )

    # Payment Processing
    payment_currency: str = Field(default="USD", description="Currency sent with payments")
    payment_dispatch_timeout_seconds: float = Field(
        default=10.0, description="Timeout for backend -> gateway payment submission"
    )
    fallback_webhook_timeout_seconds: float = Field(
        default=5.0, description="Timeout for the fallback webhook delivery"
    )
    default_payment_delay_ms: int = Field(
        default=2000, ge=0, description="Initial admin paymentDelayMs"
    )
    default_simulate_payment_error: bool = Field(
        default=False, description="Initial admin simulatePaymentError"
    )
    webhook_policy: WebhookPolicy = Field(
        default=WebhookPolicy.OVERWRITE,
        description="Whether webhooks may overwrite already settled orders",
    )

    # Observability
    request_log_capacity: int = Field(
        default=100, gt=0, description="Size of the in-memory request log ring buffer"
    )

    # Reconciliation
    stale_pending_timeout_seconds: int = Field(
        default=600,
        ge=0,
        description="Pending orders older than this are marked error (0 disables)",
    )
    reconciliation_interval_seconds: int = Field(
        default=60, gt=0, description="Seconds between stale pending sweeps"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level. Must be one of: {valid_levels}")
        return v.upper()

    @field_validator("payment_currency")
    @classmethod
    def validate_currency(cls, v: str) -> str:
        """Validate currency format."""
        if len(v) != 3:
            raise ValueError("Currency must be 3-letter code")
        return v.upper()

    def get_allowed_origins_list(self) -> List[str]:
        """Parse allowed origins from comma-separated string."""
        return [origin.strip() for origin in self.allowed_origins.split(",")]

    @property
    def is_sqlite(self) -> bool:
        """Check if the order store is backed by SQLite."""
        return self.database_url.startswith("sqlite")


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return Settings()
