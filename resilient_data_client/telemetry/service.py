"""
Telemetry for the data-access client.

Log lines are JSON objects correlated by a request ID that the host sets
for the logical operation in progress; the same ID is forwarded to the
primary backend. Backend calls can be traced with OpenTelemetry when a
collector endpoint is configured, and every Facade call updates a set of
in-process counters (requests, cache hits, failures by kind).
"""

import json
import logging
import sys
from collections import Counter
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, Optional

# Correlation ID for the logical operation currently in progress
request_id_var: ContextVar[str] = ContextVar("request_id", default="")

# Header name used to forward the request ID
REQUEST_ID_HEADER = "X-Request-ID"

# LogRecord attribute -> JSON key, copied when set
_LOCATION_FIELDS = (("module", "module"), ("funcName", "function"), ("lineno", "line"))


class JSONFormatter(logging.Formatter):
    """
    Render each log record as a single JSON object.

    Every entry has timestamp (UTC, ISO 8601 with a Z suffix), level,
    message, logger and request_id, followed by the source location and
    any keys of the record's `extra_data` dict. Exception and stack text
    are appended when present.
    """

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, timezone.utc)
        entry: Dict[str, Any] = {
            "timestamp": created.isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
            "request_id": request_id_var.get(""),
        }

        for attribute, key in _LOCATION_FIELDS:
            value = getattr(record, attribute, None)
            if value and value != "<module>":
                entry[key] = value

        extra_data = getattr(record, "extra_data", None)
        if extra_data:
            entry.update(extra_data)

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        if record.stack_info:
            entry["stack_trace"] = record.stack_info

        return json.dumps(entry, default=str)


class _NoOpSpan:
    """Stand-in span used when tracing is disabled."""

    def set_attribute(self, key: str, value: Any) -> None:
        pass

    def record_exception(self, exception: BaseException) -> None:
        pass


_NO_OP_SPAN = _NoOpSpan()


class TelemetryService:
    """
    Logging, tracing and call metrics for the client.

    Attributes:
        settings: Client settings (log_level, otel_endpoint, otel_service_name)
        tracer: OpenTelemetry tracer, or None when tracing is disabled
        counters: Running call totals keyed by metric name
    """

    def __init__(self, settings: Optional[Any] = None, configure_logging: bool = True):
        """
        Initialize the telemetry service.

        Args:
            settings: Client settings; defaults apply when omitted
            configure_logging: Install the JSON handler on the root logger.
                Hosts that manage logging themselves pass False.
        """
        self.settings = settings
        self.tracer = None
        self.counters: Counter = Counter()
        self._logger = logging.getLogger("resilient_data_client.telemetry")
        if configure_logging:
            self._setup_logging()
        self._setup_tracing()

    def _setup_logging(self) -> None:
        """Route root logging through one stdout JSON handler at the configured level."""
        level_name = getattr(self.settings, "log_level", None) or "INFO"
        level = getattr(logging, level_name.upper(), logging.INFO)

        root_logger = logging.getLogger()
        root_logger.setLevel(level)

        # Replace a handler installed by an earlier service; leave the host's own handlers
        for handler in root_logger.handlers[:]:
            if isinstance(handler.formatter, JSONFormatter):
                root_logger.removeHandler(handler)

        handler = logging.StreamHandler(sys.stdout)
        handler.setLevel(level)
        handler.setFormatter(JSONFormatter())
        root_logger.addHandler(handler)

        self._logger.info(
            "Telemetry service initialized",
            extra={"extra_data": {"log_level": level_name}}
        )

    def _setup_tracing(self) -> None:
        """Export spans over OTLP when an endpoint is configured."""
        otel_endpoint = getattr(self.settings, "otel_endpoint", None)
        if not otel_endpoint:
            self._logger.debug("OpenTelemetry endpoint not configured, tracing disabled")
            return

        try:
            from opentelemetry import trace
            from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
            from opentelemetry.sdk.resources import SERVICE_NAME, Resource
            from opentelemetry.sdk.trace import TracerProvider
            from opentelemetry.sdk.trace.export import BatchSpanProcessor
        except ImportError as e:
            self._logger.warning(
                "OpenTelemetry packages not installed, tracing disabled",
                extra={"extra_data": {"error": str(e)}}
            )
            return

        service_name = getattr(self.settings, "otel_service_name", None) or "resilient-data-client"
        try:
            provider = TracerProvider(resource=Resource(attributes={SERVICE_NAME: service_name}))
            provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=otel_endpoint)))
            trace.set_tracer_provider(provider)
            self.tracer = trace.get_tracer(service_name)
        except Exception as e:
            self._logger.error(
                "Failed to configure OpenTelemetry tracing",
                extra={"extra_data": {"otel_endpoint": otel_endpoint, "error": str(e)}}
            )
            return

        self._logger.info(
            "OpenTelemetry tracing configured",
            extra={"extra_data": {"otel_endpoint": otel_endpoint, "service_name": service_name}}
        )

    @contextmanager
    def backend_span(self, backend: str, operation: str, **attributes: Any) -> Iterator[Any]:
        """
        Trace one call to a data backend.

        Args:
            backend: "primary" or "secondary"
            operation: Logical operation name (e.g. "get_articles")
            **attributes: Extra span attributes

        Yields:
            The active span, or a no-op span when tracing is disabled
        """
        if self.tracer is None:
            yield _NO_OP_SPAN
            return

        span_attributes = {
            "peer.service": backend,
            "data_client.operation": operation,
            "span.kind": "client",
            **attributes,
        }
        with self.tracer.start_as_current_span(
            f"{backend}.{operation}", attributes=span_attributes
        ) as span:
            yield span

    def log_request(
        self,
        operation: str,
        backend: str,
        duration_ms: float,
        success: bool,
        cached: bool = False,
        error_kind: Optional[str] = None
    ) -> None:
        """
        Record the outcome of one Facade call.

        Updates the counters, logs the outcome (WARNING for failures) and
        records the call latency.

        Args:
            operation: Logical operation name
            backend: Backend that served the call
            duration_ms: Wall-clock duration in milliseconds
            success: Whether the returned envelope is a success
            cached: Whether the envelope came from the request cache
            error_kind: Error classification for failed calls
        """
        self.increment("requests")
        self.increment(f"requests.{backend}")
        if cached:
            self.increment("cache_hits")
        if not success:
            self.increment(f"failures.{error_kind or 'unknown'}")

        outcome = {
            "operation": operation,
            "backend": backend,
            "duration_ms": round(duration_ms, 2),
            "success": success,
            "cached": cached,
        }
        if error_kind:
            outcome["error_kind"] = error_kind

        self._logger.log(
            logging.INFO if success else logging.WARNING,
            f"Data access: {operation} via {backend}",
            extra={"extra_data": outcome}
        )
        self.record_metric(
            "data_client.request.duration_ms",
            duration_ms,
            tags={"operation": operation, "backend": backend, "success": str(success).lower()}
        )

    def increment(self, name: str, amount: int = 1) -> None:
        self.counters[name] += amount

    def record_metric(self, name: str, value: float, tags: Optional[Dict[str, str]] = None) -> None:
        """Log a metric sample at DEBUG."""
        sample: Dict[str, Any] = {"metric_name": name, "metric_value": value}
        if tags:
            sample["tags"] = tags
        self._logger.debug(f"Metric: {name}={value}", extra={"extra_data": sample})

    def metrics_snapshot(self) -> Dict[str, int]:
        """Return a copy of the running counters."""
        return dict(self.counters)


# Global telemetry service instance
_telemetry_service: Optional[TelemetryService] = None


def get_telemetry_service() -> Optional[TelemetryService]:
    """Return the global telemetry service, or None if not initialized."""
    return _telemetry_service


def initialize_telemetry(
    settings: Optional[Any] = None,
    configure_logging: bool = True
) -> TelemetryService:
    """
    Initialize the global telemetry service.

    Clients built afterwards without an explicit telemetry service use it.

    Args:
        settings: Client settings for configuration
        configure_logging: Install the JSON handler on the root logger

    Returns:
        The initialized telemetry service
    """
    global _telemetry_service
    _telemetry_service = TelemetryService(settings, configure_logging=configure_logging)
    return _telemetry_service


def set_request_id(request_id: str) -> None:
    request_id_var.set(request_id)


def get_request_id() -> str:
    return request_id_var.get("")
