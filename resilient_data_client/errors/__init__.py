"""
Error handling module for the data-access client.

This module provides structured error handling with:
- ErrorCode enum for failure classification
- DataAccessException class and factories for each failure kind
- Handlers converting exceptions into failed envelopes
"""

from resilient_data_client.errors.codes import ErrorCode, RETRYABLE_STATUS_CODES, classify_status, is_retryable_status
from resilient_data_client.errors.exceptions import (
    DataAccessException,
    http_error,
    internal_error,
    malformed_response,
    request_timeout,
    secondary_backend_error,
    transport_error,
)
from resilient_data_client.errors.handlers import envelope_from_exception, envelope_from_unexpected

__all__ = [
    "ErrorCode",
    "RETRYABLE_STATUS_CODES",
    "classify_status",
    "is_retryable_status",
    "DataAccessException",
    "http_error",
    "internal_error",
    "malformed_response",
    "request_timeout",
    "secondary_backend_error",
    "transport_error",
    "envelope_from_exception",
    "envelope_from_unexpected",
]
