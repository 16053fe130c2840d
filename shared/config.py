"""
Shared configuration management for the storage access layer.
"""

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="ACCESS_",
        case_sensitive=False,
        extra="ignore"
    )

    # Environment
    env: str = "local"
    log_level: str = "info"

    # Observability
    metrics_port: int = 9090
    enable_metrics_server: bool = False


class BrokerConfig(BaseConfig):
    """Settings for the bucket credential broker."""

    # Control plane (Garage admin API)
    admin_endpoint: str = "http://localhost:3903"
    admin_token: SecretStr = SecretStr("")
    admin_request_timeout: float = Field(default=10.0, gt=0)

    # Retry policy for transport failures
    retry_max_attempts: int = Field(default=3, ge=1)
    retry_base_delay: float = Field(default=0.1, ge=0)
    retry_max_delay: float = Field(default=5.0, ge=0)
    retry_exponential_base: float = Field(default=2.0, ge=1)
    retry_jitter: bool = True

    # Credential cache
    credential_ttl_seconds: float = Field(default=3600.0, gt=0)
    cache_stripes: int = Field(default=16, ge=1)


def get_config(**overrides) -> BrokerConfig:
    """Get broker configuration from the environment, with explicit overrides."""
    return BrokerConfig(**overrides)
