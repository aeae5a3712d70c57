"""
Error code catalog for the data-access client.

This module defines every failure classification the client can produce
and which of them are transient. Transport failures and a fixed set of
HTTP statuses are retryable; everything else is terminal.
"""

from enum import Enum
from typing import Optional


class ErrorCode(str, Enum):
    """
    Enumeration of all error codes used by the client.

    The value of each code is what callers see in `envelope.error.kind`.
    """

    # No response received
    TRANSPORT_ERROR = "TRANSPORT_ERROR"
    """Connection refused, DNS failure or similar (retryable)"""

    TIMEOUT = "TIMEOUT"
    """Attempt exceeded its deadline and was aborted (retryable)"""

    # HTTP responses
    SERVER_ERROR = "SERVER_ERROR"
    """HTTP 5xx, 429 or 408 (retryable for statuses in RETRYABLE_STATUS_CODES)"""

    CLIENT_ERROR = "CLIENT_ERROR"
    """Any other HTTP 4xx (terminal)"""

    MALFORMED_RESPONSE = "MALFORMED_RESPONSE"
    """Body could not be parsed into the expected shape (terminal)"""

    SERVER_REPORTED = "SERVER_REPORTED"
    """2xx envelope whose body reports failure (terminal)"""

    # Secondary backend
    SECONDARY_BACKEND_ERROR = "SECONDARY_BACKEND_ERROR"
    """Any failure on the secondary path (terminal, generic message)"""

    # Internal errors
    INTERNAL_ERROR = "INTERNAL_ERROR"
    """Unexpected client-side error (terminal)"""


# HTTP statuses that indicate a transient server-side condition
RETRYABLE_STATUS_CODES: frozenset[int] = frozenset({408, 429, 500, 502, 503, 504})

# Codes that are retryable regardless of status
ALWAYS_RETRYABLE_CODES: frozenset[ErrorCode] = frozenset({
    ErrorCode.TRANSPORT_ERROR,
    ErrorCode.TIMEOUT,
})


def is_retryable_status(status_code: Optional[int]) -> bool:
    """
    Check whether an HTTP status is a transient failure.

    Args:
        status_code: The HTTP status, or None if no response was received

    Returns:
        True if the status is in RETRYABLE_STATUS_CODES
    """
    return status_code in RETRYABLE_STATUS_CODES


def classify_status(status_code: int) -> ErrorCode:
    """
    Map a failed HTTP status to an error code.

    Args:
        status_code: The HTTP status of a non-2xx response

    Returns:
        SERVER_ERROR for 5xx, 408 and 429, CLIENT_ERROR otherwise
    """
    if status_code >= 500 or status_code in RETRYABLE_STATUS_CODES:
        return ErrorCode.SERVER_ERROR
    return ErrorCode.CLIENT_ERROR
