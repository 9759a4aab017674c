"""
Type definitions for linear_fetch.retry
"""
from dataclasses import dataclass


@dataclass(frozen=True)
class RetryPolicy:
    """Retry policy"""

    max_retries: int = 5
    """Maximum number of retries after the first attempt. Default: 5"""

    base_delay_seconds: float = 0.1
    """Base delay for exponential backoff (seconds). Default: 0.1"""

    backoff_multiplier: float = 2.0
    """Growth factor between consecutive delays. Default: 2.0"""

    rate_limit_multiplier: float = 10.0
    """Scale applied to backoff after a 429 without Retry-After. Default: 10.0"""

    @property
    def max_attempts(self) -> int:
        """Total physical attempts allowed for one operation."""
        return self.max_retries + 1
