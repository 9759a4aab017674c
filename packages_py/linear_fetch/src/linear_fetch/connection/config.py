"""
Configuration utilities for linear_fetch.connection
"""
from dataclasses import dataclass
from typing import List

import httpx


@dataclass(frozen=True)
class ConnectionConfig:
    """Connection pool and timeout configuration"""

    max_connections: int = 100
    """Pool-wide cap on open connections"""

    max_idle_connections_per_host: int = 10
    """Idle (keep-alive) connections kept per host"""

    max_connections_per_host: int = 10
    """In-flight requests allowed per host"""

    idle_timeout_seconds: float = 90.0
    """Idle connections older than this are closed"""

    dial_timeout_seconds: float = 10.0
    """TCP connect timeout"""

    tls_handshake_timeout_seconds: float = 10.0
    """TLS handshake timeout"""

    response_header_timeout_seconds: float = 10.0
    """Wait for the response to start, and for each later read"""

    request_timeout_seconds: float = 30.0
    """Upper bound for one physical attempt, body included"""

    keep_alive: bool = True
    """Enable TCP keep-alive probes on pooled sockets"""

    http2: bool = False
    """Negotiate HTTP/2 when the server offers it (needs the h2 extra)"""


# Default connection configuration
DEFAULT_CONNECTION_CONFIG = ConnectionConfig()


def validate_config(config: ConnectionConfig) -> List[str]:
    """Validate configuration values"""
    errors = []

    if config.max_connections < 1:
        errors.append("max_connections must be at least 1")

    if config.max_connections_per_host < 1:
        errors.append("max_connections_per_host must be at least 1")

    if config.max_idle_connections_per_host < 0:
        errors.append("max_idle_connections_per_host must be non-negative")

    if config.idle_timeout_seconds < 0:
        errors.append("idle_timeout_seconds must be non-negative")

    for name in (
        "dial_timeout_seconds",
        "tls_handshake_timeout_seconds",
        "response_header_timeout_seconds",
        "request_timeout_seconds",
    ):
        if getattr(config, name) <= 0:
            errors.append(f"{name} must be positive")

    # Cross-field validations
    if config.max_connections_per_host > config.max_connections:
        errors.append("max_connections_per_host cannot exceed max_connections")

    if config.max_idle_connections_per_host > config.max_connections:
        errors.append("max_idle_connections_per_host cannot exceed max_connections")

    for name in (
        "dial_timeout_seconds",
        "tls_handshake_timeout_seconds",
        "response_header_timeout_seconds",
    ):
        if getattr(config, name) > config.request_timeout_seconds:
            errors.append(f"{name} cannot exceed request_timeout_seconds")

    return errors


def build_timeout(config: ConnectionConfig) -> httpx.Timeout:
    """
    Translate the config into an httpx.Timeout.

    httpcore bounds the TCP dial and the TLS handshake as two separate
    operations, each with the ``connect`` budget, so the larger of the two
    settings is used for it.
    """
    connect = max(config.dial_timeout_seconds, config.tls_handshake_timeout_seconds)
    return httpx.Timeout(
        connect=connect,
        read=config.response_header_timeout_seconds,
        write=config.response_header_timeout_seconds,
        pool=config.dial_timeout_seconds,
    )


def build_limits(config: ConnectionConfig) -> httpx.Limits:
    """
    Translate the config into httpx.Limits.

    httpx keeps one idle list for the whole pool; the engine talks to a single
    GraphQL host, so the per-host idle cap is the pool's keep-alive cap.
    """
    return httpx.Limits(
        max_connections=config.max_connections,
        max_keepalive_connections=config.max_idle_connections_per_host,
        keepalive_expiry=config.idle_timeout_seconds,
    )
