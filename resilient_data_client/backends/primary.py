"""
Primary backend: the application's own REST service.

Requests and responses are JSON; response bodies already have the
envelope shape. This module performs exactly one network attempt per
`send` call and classifies every failure into a DataAccessException so the
retry policy can decide what to do with it.
"""

import logging
from typing import Any, Optional

import httpx

from resilient_data_client.backends.http import build_async_client, describe_transport_failure
from resilient_data_client.errors.codes import ErrorCode
from resilient_data_client.errors.exceptions import http_error, malformed_response, request_timeout, transport_error
from resilient_data_client.models.envelope import Envelope
from resilient_data_client.models.request import RequestDescriptor
from resilient_data_client.telemetry.service import REQUEST_ID_HEADER, get_request_id

logger = logging.getLogger(__name__)


class PrimaryBackend:
    """
    Single-attempt transport to the primary backend.

    Attributes:
        base_url: Base URL all endpoints are appended to
        timeout_seconds: Transport-level timeout
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout_seconds: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self._client = build_async_client(timeout_seconds, transport=transport)

    def build_url(self, endpoint: str) -> str:
        return f"{self.base_url}{endpoint}"

    async def send(
        self,
        descriptor: RequestDescriptor,
        headers: Optional[dict[str, str]] = None,
    ) -> Envelope:
        """
        Perform one attempt and normalize the response.

        Args:
            descriptor: The request to send
            headers: Extra headers (e.g. Authorization)

        Returns:
            The response body as an Envelope

        Raises:
            DataAccessException: TRANSPORT_ERROR or TIMEOUT when no response
                arrived, SERVER_ERROR/CLIENT_ERROR for non-2xx statuses,
                MALFORMED_RESPONSE when a 2xx body is not an envelope
        """
        url = self.build_url(descriptor.endpoint)
        request_headers = dict(headers or {})
        request_id = get_request_id()
        if request_id:
            request_headers[REQUEST_ID_HEADER] = request_id

        try:
            response = await self._client.request(
                descriptor.method,
                url,
                params=descriptor.params or None,
                json=descriptor.body,
                headers=request_headers,
            )
        except httpx.TimeoutException as e:
            raise request_timeout(self.timeout_seconds, details={"url": url}) from e
        except httpx.HTTPError as e:
            raise transport_error(describe_transport_failure(e), details={"url": url}) from e

        if not response.is_success:
            raise http_error(
                response.status_code,
                self._error_message(response),
                details={"url": url},
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise malformed_response(details={"url": url, "status_code": response.status_code}) from e

        try:
            envelope = Envelope.from_wire(payload)
        except ValueError as e:
            logger.warning(
                "Primary backend returned a non-envelope body",
                extra={"extra_data": {"url": url, "error": str(e)}}
            )
            raise malformed_response(details={"url": url, "status_code": response.status_code}) from e

        if not envelope.success:
            envelope = self._classify_reported_failure(envelope, response.status_code)
        return envelope

    @staticmethod
    def _classify_reported_failure(envelope: Envelope, status_code: int) -> Envelope:
        """Fill in kind, retryable and status for a failure reported in a 2xx body."""
        error = envelope.error
        update = {}
        if error.kind is None:
            update["kind"] = ErrorCode.SERVER_REPORTED.value
        if error.retryable is None:
            update["retryable"] = False
        if error.status is None:
            update["status"] = status_code
        if not update:
            return envelope
        return envelope.model_copy(update={"error": error.model_copy(update=update)})

    @staticmethod
    def _error_message(response: httpx.Response) -> Optional[str]:
        """Extract the server-provided error message from a failed response, if any."""
        try:
            body: Any = response.json()
        except ValueError:
            return None
        if not isinstance(body, dict):
            return None
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str) and error:
            return error
        if body.get("message"):
            return str(body["message"])
        return None

    async def ping(self) -> bool:
        """Check the primary `/health` endpoint; used by the health service."""
        response = await self._client.get(self.build_url("/health"))
        return response.is_success

    async def aclose(self) -> None:
        await self._client.aclose()
