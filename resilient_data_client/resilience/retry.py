"""
Retry/Backoff Controller for primary backend calls.

A call makes at most `max_retries + 1` attempts. Transient failures
(transport errors, timeouts, and HTTP 408/429/500/502/503/504) are
re-attempted after an exponentially growing delay; any other failure ends
the call immediately. The RetryController turns the final outcome into an
Envelope so nothing raised by an attempt reaches the caller.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, TypeVar

from resilient_data_client.errors.exceptions import DataAccessException
from resilient_data_client.errors.handlers import envelope_from_exception, envelope_from_unexpected
from resilient_data_client.models.envelope import Envelope

logger = logging.getLogger(__name__)

T = TypeVar("T")


def is_retryable_failure(exc: BaseException) -> bool:
    """Whether a failure is transient and worth another attempt."""
    return isinstance(exc, DataAccessException) and exc.retryable


def calculate_delay(
    attempt: int,
    initial_delay: float,
    exponential_base: float,
    max_delay: Optional[float] = None
) -> float:
    """
    Backoff delay before the re-attempt that follows attempt index `attempt`.

    `initial_delay * exponential_base ** attempt`, capped at `max_delay`
    when one is given. With the defaults the waits are 1s, 2s, 4s.
    """
    delay = initial_delay * (exponential_base ** attempt)
    return delay if max_delay is None else min(delay, max_delay)


@dataclass
class RetryConfig:
    """
    Retry budget and backoff curve.

    Attributes:
        max_retries: Re-attempts after the first attempt
        initial_delay: Seconds to wait before the first re-attempt
        exponential_base: Growth factor of the delay
        max_delay: Optional cap on any single delay, in seconds
    """
    max_retries: int = 3
    initial_delay: float = 1.0
    exponential_base: float = 2.0
    max_delay: Optional[float] = None

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    @classmethod
    def from_settings(cls, settings: Any) -> "RetryConfig":
        """Build the policy from ClientSettings."""
        return cls(
            max_retries=settings.max_retries,
            initial_delay=settings.retry_initial_delay_seconds,
            max_delay=settings.retry_max_delay_seconds,
        )

    def delay_for(self, attempt: int) -> float:
        return calculate_delay(attempt, self.initial_delay, self.exponential_base, self.max_delay)


class RetryExhaustedException(Exception):
    """
    Every attempt allowed by the budget failed with a transient error.

    Attributes:
        attempts: Attempts made
        last_exception: Failure of the final attempt
        operation_name: Operation that was being retried
    """

    def __init__(
        self,
        message: str,
        attempts: int,
        last_exception: Exception,
        operation_name: Optional[str] = None
    ):
        super().__init__(message)
        self.attempts = attempts
        self.last_exception = last_exception
        self.operation_name = operation_name


async def retry_async(
    func: Callable[..., Awaitable[T]],
    *args: Any,
    config: Optional[RetryConfig] = None,
    operation_name: Optional[str] = None,
    is_retryable: Callable[[BaseException], bool] = is_retryable_failure,
    **kwargs: Any
) -> T:
    """
    Await `func(*args, **kwargs)` until it succeeds or the budget runs out.

    Example:
        envelope = await retry_async(
            backend.send,
            descriptor,
            config=RetryConfig(max_retries=5),
            operation_name="get_articles",
        )

    Args:
        func: Coroutine function performing one attempt
        *args: Positional arguments for every attempt
        config: Retry budget and backoff; defaults to RetryConfig()
        operation_name: Name used in log entries
        is_retryable: Classifies a failure as transient
        **kwargs: Keyword arguments for every attempt

    Returns:
        The result of the first successful attempt

    Raises:
        RetryExhaustedException: The final allowed attempt failed transiently
        Exception: A terminal failure, re-raised as-is on the attempt it happened
    """
    policy = config or RetryConfig()
    name = operation_name or getattr(func, "__name__", "operation")

    attempt = 0
    while True:
        try:
            return await func(*args, **kwargs)
        except Exception as e:
            if not is_retryable(e):
                raise

            attempt += 1
            if attempt >= policy.max_attempts:
                logger.error(
                    "Giving up on '%s' after %d attempts: %s",
                    name,
                    attempt,
                    e,
                    extra={
                        "extra_data": {
                            "operation": name,
                            "attempts": attempt,
                            "error_type": type(e).__name__,
                            "last_error": str(e),
                        }
                    }
                )
                raise RetryExhaustedException(
                    f"Operation '{name}' failed after {attempt} attempts",
                    attempts=attempt,
                    last_exception=e,
                    operation_name=name,
                ) from e

            delay = policy.delay_for(attempt - 1)
            logger.warning(
                "Attempt %d/%d of '%s' failed with %s, retrying in %.2fs",
                attempt,
                policy.max_attempts,
                name,
                type(e).__name__,
                delay,
                extra={
                    "extra_data": {
                        "operation": name,
                        "attempt": attempt,
                        "max_attempts": policy.max_attempts,
                        "delay_seconds": delay,
                        "error_type": type(e).__name__,
                        "error_message": str(e),
                    }
                }
            )
            await asyncio.sleep(delay)


class RetryController:
    """
    Runs an attempt function under the retry policy and always returns an Envelope.

    Successful envelopes are returned as produced. Terminal failures and
    exhausted budgets become failed envelopes carrying the classified
    error and, for exhausted budgets, the number of attempts made.
    """

    def __init__(self, config: Optional[RetryConfig] = None):
        self.config = config or RetryConfig()

    async def execute(
        self,
        attempt_fn: Callable[[], Awaitable[Envelope]],
        operation_name: Optional[str] = None
    ) -> Envelope:
        """
        Execute the attempt function with retry.

        Args:
            attempt_fn: Zero-argument coroutine function producing an Envelope
                or raising DataAccessException
            operation_name: Name used in log entries

        Returns:
            The successful Envelope, or a failed Envelope carrying the last error
        """
        try:
            return await retry_async(attempt_fn, config=self.config, operation_name=operation_name)
        except RetryExhaustedException as e:
            last = e.last_exception
            if isinstance(last, DataAccessException):
                return envelope_from_exception(last, attempts=e.attempts, operation=operation_name)
            return envelope_from_unexpected(last, operation=operation_name)
        except DataAccessException as e:
            return envelope_from_exception(e, attempts=1, operation=operation_name)
        except Exception as e:
            return envelope_from_unexpected(e, operation=operation_name)
