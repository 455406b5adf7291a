"""
Shared configuration management for the Exchange Access Layer.
"""

from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings.

    Every field can be overridden through an ``ACCESS_``-prefixed environment
    variable (``ACCESS_REDIS_URL``, ``ACCESS_POOL_MAX_HANDLES`` ...) or a
    ``.env`` file in the working directory.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="ACCESS_",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # HTTP surface
    api_prefix: str = Field(default="/api/v1")
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])

    # Shared cache tier; unset means in-process cache only
    redis_url: Optional[str] = Field(default=None)
    redis_socket_timeout: float = Field(default=2.0)

    # Exchange gateway
    exchange_timeout_ms: int = Field(default=30000)
    exchange_rate_limit: bool = Field(default=True)
    pool_max_handles: Optional[int] = Field(default=None, ge=1)

    # Cache TTLs (seconds)
    exchange_catalog_ttl: int = Field(default=60)
    top_rates_ttl: int = Field(default=30)
    order_book_ttl: int = Field(default=5)
    trades_ttl: int = Field(default=10)


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str
    port: int
    host: str = "0.0.0.0"


def get_config(service_name: str, port: int) -> ServiceConfig:
    """Get configuration for a specific service."""
    return ServiceConfig(service_name=service_name, port=port)
