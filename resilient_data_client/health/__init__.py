"""
Health check module for the data-access client.

This module provides the health service that probes the primary backend,
the secondary data service and the token storage, with response time
metrics for each dependency.
"""

from resilient_data_client.health.service import (
    BackendHealthService,
    HealthStatus,
    DependencyHealth,
)

__all__ = [
    "BackendHealthService",
    "HealthStatus",
    "DependencyHealth",
]
