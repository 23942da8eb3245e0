"""Configuration for the webhook delivery worker.

All configuration is loaded from environment variables with sensible defaults.
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

__all__ = [
    "DEFAULT_INBOUND_QUEUE",
    "DEFAULT_OUTBOUND_QUEUE",
    "DelivererConfig",
]

DEFAULT_INBOUND_QUEUE = "webhook-deliverer:webhooks"
DEFAULT_OUTBOUND_QUEUE = "webhook-deliverer:logs"


class DelivererConfig(BaseSettings):
    """Webhook delivery worker configuration.

    Environment Variables:
        WEBHOOK_DELIVERER_REDIS_URL: Redis URL for both queues
        WEBHOOK_DELIVERER_INBOUND_QUEUE: List key holding queued webhook jobs
        WEBHOOK_DELIVERER_OUTBOUND_QUEUE: List key receiving delivery log items
        WEBHOOK_DELIVERER_DELIVERY_TIMEOUT: HTTP timeout in seconds (default: 10)
        WEBHOOK_DELIVERER_MAX_IN_FLIGHT: Max concurrent deliveries (default: 10)
        WEBHOOK_DELIVERER_POLL_TIMEOUT: Blocking pop timeout in seconds (default: 1)
        WEBHOOK_DELIVERER_REJECT_ERROR_STATUS: Log 4xx/5xx responses as failures (default: false)
        WEBHOOK_DELIVERER_ALLOW_HTTP: Allow plain HTTP endpoints (default: true)
        WEBHOOK_DELIVERER_ALLOW_LOCALHOST: Allow localhost endpoints (default: false)
        WEBHOOK_DELIVERER_ALLOW_PRIVATE_NETWORKS: Allow private IP ranges (default: false)
        WEBHOOK_DELIVERER_RESOLVE_DNS: Resolve hostnames before delivery (default: true)
        WEBHOOK_DELIVERER_MAX_RESPONSE_SIZE: Max response chars kept, 0 = all (default: 0)
        WEBHOOK_DELIVERER_LOG_LEVEL: Logging level (default: INFO)

    Example:
        >>> config = DelivererConfig()
        >>> config.max_in_flight
        10
        >>> config = DelivererConfig(redis_url="redis://queue:6379/2", max_in_flight=50)
    """

    model_config = SettingsConfigDict(
        env_prefix="WEBHOOK_DELIVERER_",
        env_file=".env",
        extra="ignore",
    )

    # Queues
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Redis URL hosting the inbound and outbound queues",
    )
    inbound_queue: str = Field(
        default=DEFAULT_INBOUND_QUEUE,
        description="Redis list consumed for webhook jobs",
    )
    outbound_queue: str = Field(
        default=DEFAULT_OUTBOUND_QUEUE,
        description="Redis list receiving delivery log items",
    )
    max_in_flight: int = Field(
        default=10,
        description="Maximum concurrent deliveries",
        ge=1,
        le=1000,
    )
    poll_timeout: int = Field(
        default=1,
        description="Seconds a blocking pop waits before re-checking for shutdown",
        ge=1,
        le=30,
    )

    # Delivery settings
    delivery_timeout: float = Field(
        default=10.0,
        description="HTTP timeout for webhook delivery in seconds",
        ge=0.1,
        le=120,
    )
    reject_error_status: bool = Field(
        default=False,
        description="Treat 4xx/5xx responses as delivery failures",
    )
    max_response_size: int = Field(
        default=0,
        description="Maximum response body characters kept in logs (0 = unlimited)",
        ge=0,
    )

    # Security settings
    allow_http: bool = Field(
        default=True,
        description="Allow plain HTTP endpoints",
    )
    allow_localhost: bool = Field(
        default=False,
        description="Allow localhost URLs (development only)",
    )
    allow_private_networks: bool = Field(
        default=False,
        description="Allow endpoints resolving to private IP ranges",
    )
    resolve_dns: bool = Field(
        default=True,
        description="Resolve hostnames and check the resolved addresses",
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Root logging level",
    )
