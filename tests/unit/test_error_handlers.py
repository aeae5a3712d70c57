"""
Unit tests for the error classification and exception-to-envelope handlers.

Tests cover:
- ErrorCode classification of HTTP statuses
- retryable flag of each failure classification
- factory function messages
- envelope conversion for known and unexpected exceptions
"""

from unittest.mock import patch

import pytest

from resilient_data_client.errors.codes import RETRYABLE_STATUS_CODES, ErrorCode, classify_status, is_retryable_status
from resilient_data_client.errors.exceptions import (
    DataAccessException,
    http_error,
    internal_error,
    malformed_response,
    request_timeout,
    secondary_backend_error,
    transport_error,
)
from resilient_data_client.errors.handlers import (
    GENERIC_FAILURE_MESSAGE,
    envelope_from_exception,
    envelope_from_unexpected,
)


class TestStatusClassification:
    """Tests for HTTP status classification."""

    def test_retryable_status_set(self):
        assert RETRYABLE_STATUS_CODES == {408, 429, 500, 502, 503, 504}

    @pytest.mark.parametrize("status", [408, 429, 500, 502, 503, 504])
    def test_retryable_statuses(self, status):
        assert is_retryable_status(status) is True
        assert classify_status(status) == ErrorCode.SERVER_ERROR

    @pytest.mark.parametrize("status", [400, 401, 403, 404, 409, 422])
    def test_client_statuses_are_terminal(self, status):
        assert is_retryable_status(status) is False
        assert classify_status(status) == ErrorCode.CLIENT_ERROR

    def test_other_5xx_is_server_error_but_not_retryable(self):
        assert classify_status(501) == ErrorCode.SERVER_ERROR
        assert is_retryable_status(501) is False

    def test_none_status_is_not_retryable(self):
        assert is_retryable_status(None) is False


class TestDataAccessException:
    """Tests for the exception class and factories."""

    def test_transport_error_is_retryable(self):
        exc = transport_error()

        assert exc.error_code == ErrorCode.TRANSPORT_ERROR
        assert exc.status_code is None
        assert exc.retryable is True
        assert "failed" in exc.message.lower()

    def test_timeout_is_retryable(self):
        exc = request_timeout(10.0)

        assert exc.error_code == ErrorCode.TIMEOUT
        assert exc.retryable is True
        assert exc.message == "Request failed: timed out after 10 seconds"

    def test_http_error_keeps_server_message(self):
        exc = http_error(404, "Not found")

        assert exc.error_code == ErrorCode.CLIENT_ERROR
        assert exc.message == "Not found"
        assert exc.status_code == 404
        assert exc.retryable is False

    def test_http_error_default_message(self):
        exc = http_error(503)

        assert exc.message == "HTTP 503"
        assert exc.retryable is True

    def test_malformed_response_is_terminal(self):
        exc = malformed_response()

        assert exc.error_code == ErrorCode.MALFORMED_RESPONSE
        assert exc.retryable is False

    def test_secondary_error_is_terminal_even_with_retryable_status(self):
        exc = secondary_backend_error("upstream down", status_code=503)

        assert exc.error_code == ErrorCode.SECONDARY_BACKEND_ERROR
        assert exc.retryable is False

    def test_internal_error_is_terminal(self):
        assert internal_error().retryable is False

    def test_to_dict(self):
        exc = http_error(500, "boom", details={"url": "http://x"})

        assert exc.to_dict() == {
            "error_code": "SERVER_ERROR",
            "message": "boom",
            "retryable": True,
            "status_code": 500,
            "details": {"url": "http://x"},
        }

    def test_repr_contains_code_and_message(self):
        exc = DataAccessException(ErrorCode.CLIENT_ERROR, "Bad request", status_code=400)

        assert "CLIENT_ERROR" in repr(exc)
        assert "Bad request" in repr(exc)


class TestEnvelopeFromException:
    """Tests for envelope_from_exception."""

    def test_client_error_envelope(self):
        envelope = envelope_from_exception(http_error(404, "Not found"))

        assert envelope.success is False
        assert envelope.error.message == "Not found"
        assert envelope.error.kind == "CLIENT_ERROR"
        assert envelope.error.retryable is False
        assert envelope.error.status == 404

    def test_attempts_are_recorded_in_details(self):
        envelope = envelope_from_exception(
            transport_error(details={"url": "http://x"}),
            attempts=4,
        )

        assert envelope.error.details == {"url": "http://x", "attempts": 4}
        assert envelope.error.retryable is True

    def test_details_are_copied(self):
        details = {"url": "http://x"}
        envelope_from_exception(transport_error(details=details), attempts=2)

        assert details == {"url": "http://x"}


class TestEnvelopeFromUnexpected:
    """Tests for envelope_from_unexpected."""

    def test_hides_internal_details(self):
        envelope = envelope_from_unexpected(RuntimeError("database password is hunter2"))

        assert envelope.success is False
        assert envelope.error.message == GENERIC_FAILURE_MESSAGE
        assert "hunter2" not in envelope.error.message
        assert envelope.error.kind == "INTERNAL_ERROR"
        assert envelope.error.retryable is False

    def test_logs_the_exception(self, caplog):
        with caplog.at_level("ERROR", logger="resilient_data_client.errors.handlers"):
            envelope_from_unexpected(ValueError("boom"), operation="get_articles")

        assert any("Unexpected error" in record.message for record in caplog.records)

    def test_classification_comes_from_internal_error_factory(self):
        with patch("resilient_data_client.errors.handlers.internal_error", wraps=internal_error) as factory:
            envelope = envelope_from_unexpected(KeyError("token"))

        factory.assert_called_once_with(GENERIC_FAILURE_MESSAGE)
        assert envelope.error.kind == ErrorCode.INTERNAL_ERROR.value
