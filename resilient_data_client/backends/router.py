"""
Fallback Router: normalizes secondary backend results into envelopes.

The secondary path applies the per-attempt deadline but neither the cache
nor the retry policy. Any failure becomes a terminal failed envelope with a
fixed, operation-specific message; the native error detail is logged and
never returned to the caller.
"""

import logging
import time
from typing import Any, Awaitable, Callable, Optional

from resilient_data_client.backends.secondary import SecondaryBackend
from resilient_data_client.backends.target import Operation
from resilient_data_client.errors.codes import ErrorCode
from resilient_data_client.errors.exceptions import DataAccessException
from resilient_data_client.models.envelope import Envelope
from resilient_data_client.resilience.timeout import TimeoutGuard

logger = logging.getLogger(__name__)

DEFAULT_SECONDARY_FAILURE_MESSAGE = "Failed to fetch data"

SECONDARY_FAILURE_MESSAGES: dict[Operation, str] = {
    Operation.HEALTH_CHECK: "Secondary data service is unavailable",
    Operation.GET_ARTICLES: "Failed to fetch articles",
    Operation.GET_ARTICLE_BY_SLUG: "Failed to fetch article",
    Operation.GET_FEATURED_ARTICLE: "Failed to fetch featured article",
    Operation.GET_AUTHORS: "Failed to fetch authors",
    Operation.GET_CATEGORIES: "Failed to fetch categories",
    Operation.GET_GALLERY_ITEMS: "Failed to fetch gallery items",
    Operation.GET_GALLERY_CATEGORIES: "Failed to fetch gallery categories",
}


class FallbackRouter:
    """
    Runs secondary backend calls and wraps their raw results.

    Example:
        router = FallbackRouter(secondary, TimeoutGuard(10.0))
        envelope = await router.call(
            Operation.GET_AUTHORS, lambda backend: backend.get_authors()
        )
    """

    def __init__(self, secondary: SecondaryBackend, timeout_guard: Optional[TimeoutGuard] = None):
        self.secondary = secondary
        self.timeout_guard = timeout_guard or TimeoutGuard()

    async def call(
        self,
        operation: Operation,
        fn: Callable[[SecondaryBackend], Awaitable[Any]],
    ) -> Envelope:
        """
        Perform one secondary call and normalize the outcome.

        Args:
            operation: The logical operation, used for the failure message
            fn: Receives the secondary backend and returns the raw result

        Returns:
            A successful envelope wrapping the raw result, or a failed
            envelope with the operation's generic message
        """
        start_time = time.perf_counter()
        try:
            data = await self.timeout_guard.run(
                lambda: fn(self.secondary),
                operation_name=operation.value,
            )
        except Exception as e:
            return self._failure(operation, e, start_time)
        return Envelope.ok(data)

    def _failure(self, operation: Operation, exc: Exception, start_time: float) -> Envelope:
        status = exc.status_code if isinstance(exc, DataAccessException) else None
        logger.error(
            "Secondary backend call failed",
            extra={
                "extra_data": {
                    "operation": operation.value,
                    "error_type": type(exc).__name__,
                    "error_message": str(exc),
                    "status_code": status,
                    "duration_ms": round((time.perf_counter() - start_time) * 1000, 2),
                }
            }
        )
        return Envelope.fail(
            SECONDARY_FAILURE_MESSAGES.get(operation, DEFAULT_SECONDARY_FAILURE_MESSAGE),
            kind=ErrorCode.SECONDARY_BACKEND_ERROR.value,
            retryable=False,
        )
