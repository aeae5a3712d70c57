"""
Backend health checks for the data-access client.

This module provides the BackendHealthService class that probes the primary
backend, the secondary data service and the token storage concurrently,
each under its own timeout, and reports per-dependency response times.

The primary backend is critical: when it is down the client is unhealthy.
A failing secondary service or token storage only degrades it.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional

from resilient_data_client.backends.primary import PrimaryBackend
from resilient_data_client.backends.secondary import SecondaryBackend
from resilient_data_client.tokens.storage import KeyValueStorage

logger = logging.getLogger(__name__)

PRIMARY_DEPENDENCY = "primary"
SECONDARY_DEPENDENCY = "secondary"
TOKEN_STORAGE_DEPENDENCY = "token_storage"

CRITICAL_DEPENDENCIES = frozenset({PRIMARY_DEPENDENCY})


@dataclass
class DependencyHealth:
    """
    Health status of a single dependency.

    Attributes:
        name: The name of the dependency (e.g., "primary", "secondary")
        healthy: Whether the dependency is healthy and responding
        response_time_ms: The time taken to check the dependency in milliseconds
        error: Optional error message if the dependency check failed
    """
    name: str
    healthy: bool
    response_time_ms: float
    error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result = {
            "name": self.name,
            "healthy": self.healthy,
            "response_time_ms": round(self.response_time_ms, 2),
        }
        if self.error is not None:
            result["error"] = self.error
        return result


@dataclass
class HealthStatus:
    """
    Overall health status of the client's dependencies.

    Attributes:
        status: Overall status - "healthy", "degraded", or "unhealthy"
        timestamp: When the health check was performed (UTC)
        dependencies: List of individual dependency health statuses
    """
    status: str
    timestamp: datetime
    dependencies: list[DependencyHealth] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "status": self.status,
            "timestamp": self.timestamp.isoformat().replace("+00:00", "Z"),
            "dependencies": [dep.to_dict() for dep in self.dependencies],
        }


class BackendHealthService:
    """
    Checks the reachability of everything the client depends on.

    Attributes:
        primary: The primary backend
        secondary: Optional secondary backend
        token_storage: Optional durable token storage
        check_timeout: Timeout in seconds for each dependency check
    """

    def __init__(
        self,
        primary: PrimaryBackend,
        secondary: Optional[SecondaryBackend] = None,
        token_storage: Optional[KeyValueStorage] = None,
        check_timeout: float = 5.0
    ):
        self.primary = primary
        self.secondary = secondary
        self.token_storage = token_storage
        self.check_timeout = check_timeout

    async def check_readiness(self) -> HealthStatus:
        """
        Check all configured dependencies concurrently.

        Returns:
            HealthStatus: The aggregate health status with individual dependency statuses
        """
        checks = [self._check(PRIMARY_DEPENDENCY, self.primary.ping)]
        if self.secondary is not None:
            checks.append(self._check(SECONDARY_DEPENDENCY, self.secondary.ping))
        if self.token_storage is not None:
            checks.append(self._check(TOKEN_STORAGE_DEPENDENCY, self.token_storage.health_check))

        dependencies = list(await asyncio.gather(*checks))

        return HealthStatus(
            status=self._determine_overall_status(dependencies),
            timestamp=datetime.now(timezone.utc),
            dependencies=dependencies
        )

    async def _check(self, name: str, probe: Callable[[], Awaitable[bool]]) -> DependencyHealth:
        """
        Run one probe under the check timeout.

        Never raises; failures are reported in the returned DependencyHealth.
        """
        start_time = time.perf_counter()

        try:
            result = await asyncio.wait_for(probe(), timeout=self.check_timeout)
        except asyncio.TimeoutError:
            elapsed_ms = (time.perf_counter() - start_time) * 1000
            error_msg = f"{name} health check timed out after {self.check_timeout} seconds"
            logger.warning(error_msg)
            return DependencyHealth(name=name, healthy=False, response_time_ms=elapsed_ms, error=error_msg)
        except Exception as e:
            elapsed_ms = (time.perf_counter() - start_time) * 1000
            error_msg = f"{name} health check failed: {str(e) or type(e).__name__}"
            logger.error(error_msg)
            return DependencyHealth(name=name, healthy=False, response_time_ms=elapsed_ms, error=error_msg)

        elapsed_ms = (time.perf_counter() - start_time) * 1000
        if result:
            logger.debug(f"{name} health check passed in {elapsed_ms:.2f}ms")
            return DependencyHealth(name=name, healthy=True, response_time_ms=elapsed_ms)

        logger.warning(f"{name} health check returned False after {elapsed_ms:.2f}ms")
        return DependencyHealth(
            name=name,
            healthy=False,
            response_time_ms=elapsed_ms,
            error=f"{name} health check returned False"
        )

    def _determine_overall_status(self, dependencies: list[DependencyHealth]) -> str:
        """
        Determine the overall health status based on dependency health.

        - "healthy": All dependencies are healthy
        - "degraded": Only non-critical dependencies are unhealthy
        - "unhealthy": The primary backend is unhealthy
        """
        unhealthy = {dep.name for dep in dependencies if not dep.healthy}
        if not unhealthy:
            return "healthy"
        if unhealthy & CRITICAL_DEPENDENCIES:
            return "unhealthy"
        return "degraded"
