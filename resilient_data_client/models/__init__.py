"""
Data models shared by every layer of the data-access client.

This package provides:
- Envelope, the uniform response shape returned to every call site
- ErrorPayload and PaginationMeta, the envelope's nested parts
- RequestDescriptor, the per-call description of a primary request
- ArticleFilters, the article listing filters
"""

from resilient_data_client.models.envelope import Envelope, ErrorPayload, PaginationMeta, utc_timestamp
from resilient_data_client.models.request import (
    ArticleFilters,
    ArticleStatus,
    RequestDescriptor,
)

__all__ = [
    # Envelope
    "Envelope",
    "ErrorPayload",
    "PaginationMeta",
    "utc_timestamp",
    # Requests
    "ArticleFilters",
    "ArticleStatus",
    "RequestDescriptor",
]
