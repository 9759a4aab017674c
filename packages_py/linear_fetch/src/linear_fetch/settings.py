"""Client configuration using Pydantic Settings."""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from .connection.config import DEFAULT_CONNECTION_CONFIG, ConnectionConfig
from .retry.config import DEFAULT_RETRY_POLICY
from .retry.types import RetryPolicy


class LinearSettings(BaseSettings):
    """Settings loaded from LINEAR_* environment variables (and an optional .env)."""

    # Endpoints
    api_url: str = "https://api.linear.app/graphql"
    token_url: str = "https://api.linear.app/oauth/token"

    # Credentials
    api_key: Optional[str] = None
    api_token: Optional[str] = None
    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    token_path: Optional[str] = None
    refresh_buffer_seconds: float = 300.0

    # Retry
    max_retries: int = DEFAULT_RETRY_POLICY.max_retries
    base_delay_seconds: float = DEFAULT_RETRY_POLICY.base_delay_seconds

    # Transport
    request_timeout_seconds: float = DEFAULT_CONNECTION_CONFIG.request_timeout_seconds
    http2: bool = False
    idempotency_keys: bool = True

    model_config = SettingsConfigDict(
        env_prefix="LINEAR_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def env_token(self) -> Optional[str]:
        """Token from LINEAR_API_KEY, falling back to LINEAR_API_TOKEN."""
        return self.api_key or self.api_token or None

    @property
    def has_oauth_client(self) -> bool:
        return bool(self.client_id and self.client_secret)

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_retries=self.max_retries,
            base_delay_seconds=self.base_delay_seconds,
            backoff_multiplier=DEFAULT_RETRY_POLICY.backoff_multiplier,
            rate_limit_multiplier=DEFAULT_RETRY_POLICY.rate_limit_multiplier,
        )

    def connection_config(self) -> ConnectionConfig:
        """
        Connection config with the configured overall timeout.

        Per-phase timeouts are capped at the overall timeout so a short
        request timeout still yields a valid config.
        """
        cap = self.request_timeout_seconds
        defaults = DEFAULT_CONNECTION_CONFIG
        return ConnectionConfig(
            max_connections=defaults.max_connections,
            max_idle_connections_per_host=defaults.max_idle_connections_per_host,
            max_connections_per_host=defaults.max_connections_per_host,
            idle_timeout_seconds=defaults.idle_timeout_seconds,
            dial_timeout_seconds=min(defaults.dial_timeout_seconds, cap),
            tls_handshake_timeout_seconds=min(defaults.tls_handshake_timeout_seconds, cap),
            response_header_timeout_seconds=min(defaults.response_header_timeout_seconds, cap),
            request_timeout_seconds=cap,
            keep_alive=defaults.keep_alive,
            http2=self.http2,
        )


@lru_cache()
def get_settings() -> LinearSettings:
    """Get cached settings instance."""
    return LinearSettings()
