"""
Exception-to-envelope handlers for the data-access client.

This module converts exceptions into failed envelopes with a consistent
shape so that no exception ever crosses the Facade boundary.

Known DataAccessException failures keep their message (client errors carry
the server-provided message as-is). Unexpected exceptions are logged with
their full stack trace and surfaced with a generic message that does not
expose internal details.
"""

import logging
import traceback
from typing import Optional

from resilient_data_client.errors.codes import ErrorCode
from resilient_data_client.errors.exceptions import DataAccessException, internal_error
from resilient_data_client.models.envelope import Envelope

logger = logging.getLogger(__name__)

GENERIC_FAILURE_MESSAGE = "Request failed due to an unexpected error"


def envelope_from_exception(
    exc: DataAccessException,
    attempts: Optional[int] = None,
    operation: Optional[str] = None,
) -> Envelope:
    """
    Convert a known data-access failure into a failed envelope.

    Args:
        exc: The DataAccessException that ended the call
        attempts: Number of attempts made, when retries were involved
        operation: Optional logical operation name for the log entry

    Returns:
        A failed Envelope carrying the classified error
    """
    logger.warning(
        "Data access failed",
        extra={
            "extra_data": {
                "operation": operation,
                "error_code": exc.error_code.value,
                "error_message": exc.message,
                "status_code": exc.status_code,
                "attempts": attempts,
            }
        }
    )

    details = dict(exc.details) if exc.details else None
    if attempts is not None:
        details = {**(details or {}), "attempts": attempts}

    return Envelope.fail(
        exc.message,
        details=details,
        kind=exc.error_code.value,
        retryable=exc.retryable,
        status=exc.status_code,
    )


def envelope_from_unexpected(exc: Exception, operation: Optional[str] = None) -> Envelope:
    """
    Convert an unexpected exception into a generic failed envelope.

    The full stack trace is logged for debugging; the caller only sees a
    generic message.

    Args:
        exc: The unexpected exception
        operation: Optional logical operation name for the log entry

    Returns:
        A failed Envelope with a generic message
    """
    logger.error(
        "Unexpected error during data access",
        extra={
            "extra_data": {
                "operation": operation,
                "error_code": ErrorCode.INTERNAL_ERROR.value,
                "exception_type": type(exc).__name__,
                "exception_message": str(exc),
                "stack_trace": traceback.format_exc(),
            }
        },
        exc_info=exc,
    )

    error = internal_error(GENERIC_FAILURE_MESSAGE)
    return Envelope.fail(
        error.message,
        kind=error.error_code.value,
        retryable=error.retryable,
    )
