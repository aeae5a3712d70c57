"""
Exception classes for the data-access client.

This module provides the DataAccessException class and factory functions
for each failure classification. These exceptions never cross the Facade
boundary: the Retry/Backoff Controller and the Fallback Router convert them
into failed envelopes.
"""

from typing import Any, Optional

from resilient_data_client.errors.codes import ALWAYS_RETRYABLE_CODES, ErrorCode, classify_status, is_retryable_status


class DataAccessException(Exception):
    """
    Base exception class for all data-access failures.

    This exception provides structured error information including:
    - error_code: A classification from the ErrorCode enum
    - message: A human-readable error message
    - status_code: The HTTP status, if a response was received
    - details: Optional additional context

    Example:
        raise DataAccessException(
            error_code=ErrorCode.CLIENT_ERROR,
            message="Not found",
            status_code=404,
        )
    """

    def __init__(
        self,
        error_code: ErrorCode,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[dict[str, Any]] = None
    ):
        """
        Initialize a DataAccessException.

        Args:
            error_code: The error code from the ErrorCode enum
            message: A human-readable error message
            status_code: The HTTP status code, if any
            details: Optional dictionary with additional error context
        """
        self.error_code = error_code
        self.message = message
        self.status_code = status_code
        self.details = details
        super().__init__(message)

    @property
    def retryable(self) -> bool:
        """Whether the failure is transient and may be re-attempted."""
        if self.error_code in ALWAYS_RETRYABLE_CODES:
            return True
        if self.error_code == ErrorCode.SERVER_ERROR:
            return is_retryable_status(self.status_code)
        return False

    def to_dict(self) -> dict[str, Any]:
        """
        Convert the exception to a dictionary for logging.

        Returns:
            Dictionary containing error_code, message, status_code and details
        """
        result: dict[str, Any] = {
            "error_code": self.error_code.value,
            "message": self.message,
            "retryable": self.retryable,
        }
        if self.status_code is not None:
            result["status_code"] = self.status_code
        if self.details is not None:
            result["details"] = self.details
        return result

    def __repr__(self) -> str:
        return (
            f"DataAccessException(error_code={self.error_code.value!r}, "
            f"message={self.message!r}, status_code={self.status_code}, "
            f"details={self.details!r})"
        )


# Convenience factory functions for each failure classification

def transport_error(
    message: str = "Network request failed",
    details: Optional[dict[str, Any]] = None
) -> DataAccessException:
    """Create a transport error (no response received)."""
    return DataAccessException(
        error_code=ErrorCode.TRANSPORT_ERROR,
        message=message,
        details=details
    )


def request_timeout(
    timeout_seconds: float,
    details: Optional[dict[str, Any]] = None
) -> DataAccessException:
    """Create a timeout error for an attempt that exceeded its deadline."""
    return DataAccessException(
        error_code=ErrorCode.TIMEOUT,
        message=f"Request failed: timed out after {timeout_seconds:g} seconds",
        details=details
    )


def http_error(
    status_code: int,
    message: Optional[str] = None,
    details: Optional[dict[str, Any]] = None
) -> DataAccessException:
    """
    Create an error for a non-2xx HTTP response.

    The server-provided message is kept as-is when present.
    """
    return DataAccessException(
        error_code=classify_status(status_code),
        message=message or f"HTTP {status_code}",
        status_code=status_code,
        details=details
    )


def malformed_response(
    message: str = "Request failed: malformed response",
    details: Optional[dict[str, Any]] = None
) -> DataAccessException:
    """Create an error for a body that cannot be parsed."""
    return DataAccessException(
        error_code=ErrorCode.MALFORMED_RESPONSE,
        message=message,
        details=details
    )


def secondary_backend_error(
    message: str = "Secondary data service request failed",
    status_code: Optional[int] = None,
    details: Optional[dict[str, Any]] = None
) -> DataAccessException:
    """Create an error for a failed secondary backend call."""
    return DataAccessException(
        error_code=ErrorCode.SECONDARY_BACKEND_ERROR,
        message=message,
        status_code=status_code,
        details=details
    )


def internal_error(
    message: str = "An unexpected error occurred",
    details: Optional[dict[str, Any]] = None
) -> DataAccessException:
    """Create an internal error exception."""
    return DataAccessException(
        error_code=ErrorCode.INTERNAL_ERROR,
        message=message,
        details=details
    )
