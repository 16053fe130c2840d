"""
Credentials service for the storage access layer.

Wires configuration, logging, metrics, the admin API client and the TTL cache
into a ``CredentialBroker`` that the object-access layer calls per request.
"""

from typing import Optional

import httpx
from prometheus_client import CollectorRegistry

from shared.config import BrokerConfig, get_config
from shared.logging import configure_logging, get_logger
from shared.metrics import MetricsCollector
from shared.retry import RetryConfig, RetryPolicy
from .admin.client import AdminAPIClient
from .broker.resolver import CredentialBroker
from .cache.ttl_cache import TTLCache


SERVICE_NAME = "credentials"


def build_retry_config(config: BrokerConfig) -> RetryConfig:
    return RetryConfig(
        max_attempts=config.retry_max_attempts,
        base_delay=config.retry_base_delay,
        max_delay=config.retry_max_delay,
        exponential_base=config.retry_exponential_base,
        jitter=config.retry_jitter,
    )


class CredentialsService:
    """Owns the broker and the resources behind it."""

    def __init__(
        self,
        config: Optional[BrokerConfig] = None,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
        registry: Optional[CollectorRegistry] = None,
    ):
        self.config = config or get_config()
        self.logger = get_logger(f"{SERVICE_NAME}.service")
        self.metrics = MetricsCollector(SERVICE_NAME, registry if registry is not None else CollectorRegistry())

        retry_policy = RetryPolicy(
            build_retry_config(self.config),
            name="admin_api",
            metrics=self.metrics,
        )
        self.admin_client = AdminAPIClient(
            self.config.admin_endpoint,
            self.config.admin_token.get_secret_value(),
            retry_policy=retry_policy,
            timeout=self.config.admin_request_timeout,
            client=http_client,
            metrics=self.metrics,
        )
        self.cache: TTLCache = TTLCache(stripes=self.config.cache_stripes)
        self.broker = CredentialBroker(
            self.admin_client,
            self.cache,
            ttl=self.config.credential_ttl_seconds,
            metrics=self.metrics,
        )

    async def start(self) -> None:
        """Start the service and report whether the control plane is reachable."""
        if self.config.enable_metrics_server:
            self.metrics.start_metrics_server(self.config.metrics_port)

        healthy = await self.admin_client.health_check()
        if healthy:
            self.logger.info("Credentials service started", admin_endpoint=self.config.admin_endpoint)
        else:
            self.logger.warning(
                "Credentials service started but admin API is unreachable",
                admin_endpoint=self.config.admin_endpoint
            )

    async def stop(self) -> None:
        """Release HTTP connections and drop cached credentials."""
        await self.admin_client.close()
        self.cache.clear()
        self.logger.info("Credentials service stopped")

    async def __aenter__(self) -> "CredentialsService":
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.stop()


def create_service(config: Optional[BrokerConfig] = None, **kwargs) -> CredentialsService:
    """Configure logging and build the credentials service."""
    config = config or get_config()
    configure_logging(SERVICE_NAME, config.log_level)
    return CredentialsService(config, **kwargs)
