"""
Telemetry module for structured logging and observability.

This module provides:
- JSONFormatter for structured JSON log output
- TelemetryService for centralized logging, metrics and tracing
- A request ID context variable for correlating outbound calls
"""

from resilient_data_client.telemetry.service import (
    REQUEST_ID_HEADER,
    JSONFormatter,
    TelemetryService,
    get_request_id,
    get_telemetry_service,
    initialize_telemetry,
    set_request_id,
)

__all__ = [
    "REQUEST_ID_HEADER",
    "JSONFormatter",
    "TelemetryService",
    "get_request_id",
    "get_telemetry_service",
    "initialize_telemetry",
    "set_request_id",
]
