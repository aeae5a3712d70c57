"""
Backends for the data-access client.

This module provides the backend routing enums and selector, the primary
REST backend, the secondary query-dialect backend, and the Fallback Router
that wraps secondary results into envelopes.
"""

from resilient_data_client.backends.target import SECONDARY_OPERATIONS, BackendSelector, BackendTarget, Operation
from resilient_data_client.backends.http import build_async_client
from resilient_data_client.backends.primary import PrimaryBackend
from resilient_data_client.backends.secondary import SecondaryBackend, article_query
from resilient_data_client.backends.router import SECONDARY_FAILURE_MESSAGES, FallbackRouter

__all__ = [
    "BackendTarget",
    "Operation",
    "SECONDARY_OPERATIONS",
    "BackendSelector",
    "build_async_client",
    "PrimaryBackend",
    "SecondaryBackend",
    "article_query",
    "FallbackRouter",
    "SECONDARY_FAILURE_MESSAGES",
]
