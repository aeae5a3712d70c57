"""
Per-attempt deadline enforcement for the data-access client.

Each network attempt runs under its own fresh deadline; the deadline is not
a shared budget across retries. When the deadline passes, the in-flight
attempt is cancelled (which aborts the underlying HTTP request) and a
TIMEOUT DataAccessException is raised, which the retry policy treats as a
retryable transport failure.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional, TypeVar

from resilient_data_client.errors.exceptions import request_timeout

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TIMEOUT_SECONDS = 10.0


class TimeoutGuard:
    """
    Enforces a hard deadline on a single attempt.

    Attributes:
        timeout_seconds: Deadline applied to every attempt
    """

    def __init__(self, timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS):
        self.timeout_seconds = timeout_seconds

    async def run(
        self,
        attempt_fn: Callable[[], Awaitable[T]],
        operation_name: Optional[str] = None
    ) -> T:
        """
        Run one attempt under the deadline.

        Args:
            attempt_fn: Zero-argument coroutine function performing the attempt
            operation_name: Optional name for logging purposes

        Returns:
            The attempt's result if it completes in time

        Raises:
            DataAccessException: With error code TIMEOUT when the deadline passes
        """
        start_time = time.perf_counter()
        try:
            # wait_for cancels the attempt on expiry, so no work outlives the deadline
            return await asyncio.wait_for(attempt_fn(), timeout=self.timeout_seconds)
        except asyncio.TimeoutError as e:
            elapsed_ms = (time.perf_counter() - start_time) * 1000
            logger.warning(
                "Attempt for operation '%s' timed out after %.2f seconds",
                operation_name or "request",
                self.timeout_seconds,
                extra={
                    "extra_data": {
                        "operation": operation_name,
                        "timeout_seconds": self.timeout_seconds,
                        "elapsed_ms": round(elapsed_ms, 2),
                    }
                }
            )
            raise request_timeout(
                self.timeout_seconds,
                details={"timeout_seconds": self.timeout_seconds}
            ) from e
