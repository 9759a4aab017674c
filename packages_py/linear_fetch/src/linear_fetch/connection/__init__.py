"""
Connection manager - one shared, bounded httpx pool with per-attempt deadlines
"""

from .config import (
    ConnectionConfig,
    DEFAULT_CONNECTION_CONFIG,
    validate_config,
    build_timeout,
    build_limits,
)
from .manager import ConnectionManager, ResponseBodyError

__all__ = [
    # Config
    "ConnectionConfig",
    "DEFAULT_CONNECTION_CONFIG",
    "validate_config",
    "build_timeout",
    "build_limits",
    # Manager
    "ConnectionManager",
    "ResponseBodyError",
]
