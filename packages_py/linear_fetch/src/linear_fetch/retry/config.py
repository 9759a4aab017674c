"""
Configuration utilities for linear_fetch.retry
"""
import time
from typing import List, Optional

import httpx

from ..connection.manager import ResponseBodyError
from .types import RetryPolicy


# Default retry policy
DEFAULT_RETRY_POLICY = RetryPolicy(
    max_retries=5,
    base_delay_seconds=0.1,
    backoff_multiplier=2.0,
    rate_limit_multiplier=10.0,
)

# Message fragments of transport errors that are worth another attempt
TEMPORARY_ERROR_PATTERNS = [
    "eof",
    "connection reset",
    "broken pipe",
    "timed out",
    "timeout",
    "server disconnected",
]

# httpx exceptions that always indicate a transient condition
TEMPORARY_ERROR_TYPES = (
    httpx.TimeoutException,
    httpx.ReadError,
    httpx.WriteError,
    httpx.RemoteProtocolError,
)

# Failures after the status line arrived; the server may already have acted
NON_TEMPORARY_ERROR_TYPES = (
    ResponseBodyError,
)


def calculate_backoff_delay(attempt: int, policy: RetryPolicy) -> float:
    """
    Calculate the exponential backoff delay for an attempt.

    delay = base * multiplier^attempt

    Args:
        attempt: The attempt that just failed (0-indexed)
        policy: Retry policy

    Returns:
        Delay in seconds
    """
    return policy.base_delay_seconds * (policy.backoff_multiplier ** attempt)


def calculate_rate_limit_delay(attempt: int, policy: RetryPolicy) -> float:
    """
    Calculate the delay after a 429 that carried no Retry-After header.

    Uses the exponential step scaled by ``rate_limit_multiplier``.

    Args:
        attempt: The attempt that just failed (0-indexed)
        policy: Retry policy

    Returns:
        Delay in seconds
    """
    return calculate_backoff_delay(attempt, policy) * policy.rate_limit_multiplier


def parse_retry_after(value: Optional[str]) -> Optional[int]:
    """
    Parse a Retry-After header value.

    Only an integer count of seconds is honoured; HTTP-dates and fractional
    values are ignored so that the caller falls back to backoff.

    Args:
        value: Retry-After header value

    Returns:
        Seconds to wait, or None if absent or unparseable
    """
    if value is None:
        return None
    value = value.strip()
    if not value:
        return None
    try:
        seconds = int(value)
    except ValueError:
        return None
    if seconds < 0:
        return None
    return seconds


def is_temporary_network_error(
    error: BaseException,
    patterns: Optional[List[str]] = None,
) -> bool:
    """
    Check if a transport error is transient (timeout, reset, broken pipe, EOF).

    Args:
        error: The error raised by the transport
        patterns: Message fragments to match, defaults to TEMPORARY_ERROR_PATTERNS

    Returns:
        Whether the error is worth retrying
    """
    if isinstance(error, NON_TEMPORARY_ERROR_TYPES):
        return False
    if isinstance(error, TEMPORARY_ERROR_TYPES):
        return True
    if isinstance(error, (TimeoutError, ConnectionResetError, BrokenPipeError, EOFError)):
        return True

    message = str(error).lower()
    if any(pattern in message for pattern in (patterns or TEMPORARY_ERROR_PATTERNS)):
        return True

    # Check cause chain
    if error.__cause__ is not None:
        return is_temporary_network_error(error.__cause__, patterns)

    return False


def is_server_error(status: int) -> bool:
    """Check if an HTTP status is a 5xx."""
    return 500 <= status < 600


def is_success_status(status: int) -> bool:
    """Check if an HTTP status is a 2xx."""
    return 200 <= status < 300


def sync_sleep(seconds: float) -> None:
    """
    Sleep for a specified duration.

    Args:
        seconds: Duration in seconds
    """
    time.sleep(seconds)
