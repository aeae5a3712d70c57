"""
httpx client construction shared by both backends.

Centralizes timeouts and default headers so that the primary and secondary
backends behave the same way on the wire, and lets tests substitute a
mock transport.
"""

from typing import Optional

import httpx


def build_async_client(
    timeout_seconds: float,
    *,
    headers: Optional[dict[str, str]] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    """
    Create an `httpx.AsyncClient` with the client's defaults.

    Args:
        timeout_seconds: Transport-level timeout, matching the per-attempt deadline
        headers: Default headers sent with every request
        transport: Optional transport override (e.g. `httpx.MockTransport`)

    Returns:
        The configured client
    """
    default_headers: dict[str, str] = {
        "Accept": "application/json",
        "Content-Type": "application/json",
    }
    if headers:
        default_headers.update(headers)
    return httpx.AsyncClient(
        timeout=httpx.Timeout(timeout_seconds),
        follow_redirects=True,
        headers=default_headers,
        transport=transport,
    )


def describe_transport_failure(exc: Exception) -> str:
    """Human-readable description of an httpx failure without a response."""
    detail = str(exc) or type(exc).__name__
    return f"Network request failed: {detail}"
