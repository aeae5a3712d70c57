"""
Resilience patterns for the data-access client.

This package provides the Retry/Backoff Controller and the per-attempt
Timeout Guard used on the primary backend path.
"""

from resilient_data_client.resilience.retry import (
    RetryConfig,
    RetryController,
    RetryExhaustedException,
    calculate_delay,
    is_retryable_failure,
    retry_async,
)
from resilient_data_client.resilience.timeout import TimeoutGuard

__all__ = [
    # Retry
    "RetryConfig",
    "RetryController",
    "RetryExhaustedException",
    "calculate_delay",
    "is_retryable_failure",
    "retry_async",
    # Timeout
    "TimeoutGuard",
]
