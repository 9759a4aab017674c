"""
Retry orchestration: backoff, Retry-After and single-refresh-on-401.
"""
from .types import RetryPolicy
from .config import (
    DEFAULT_RETRY_POLICY,
    TEMPORARY_ERROR_PATTERNS,
    calculate_backoff_delay,
    calculate_rate_limit_delay,
    parse_retry_after,
    is_temporary_network_error,
    is_server_error,
    is_success_status,
    sync_sleep,
)
from .executor import RetryExecutor


__all__ = [
    # Types
    "RetryPolicy",
    # Config
    "DEFAULT_RETRY_POLICY",
    "TEMPORARY_ERROR_PATTERNS",
    "calculate_backoff_delay",
    "calculate_rate_limit_delay",
    "parse_retry_after",
    "is_temporary_network_error",
    "is_server_error",
    "is_success_status",
    "sync_sleep",
    # Executor
    "RetryExecutor",
]
