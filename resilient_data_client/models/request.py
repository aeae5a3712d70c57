"""
Request-side models for the data-access client.

RequestDescriptor is built per call and never retained. ArticleFilters
describes an article listing and knows how to express itself in both the
primary backend's query parameters and the secondary backend's dialect.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

READ_METHODS = frozenset({"GET"})


@dataclass(frozen=True)
class RequestDescriptor:
    """
    A single logical request against the primary backend.

    Attributes:
        endpoint: Path relative to the primary base URL (e.g. "/articles")
        method: HTTP method
        body: Optional JSON body
        params: Optional query parameters
        requires_auth: Whether the bearer token should be attached
    """
    endpoint: str
    method: str = "GET"
    body: Optional[Any] = None
    params: dict[str, str] = field(default_factory=dict)
    requires_auth: bool = False

    @property
    def is_read(self) -> bool:
        """Whether this request is a cacheable read."""
        return self.method.upper() in READ_METHODS


class ArticleStatus(str, Enum):
    """Publication status of an article."""
    DRAFT = "DRAFT"
    PUBLISHED = "PUBLISHED"
    ARCHIVED = "ARCHIVED"


# Python attribute name -> primary backend query parameter name
_PRIMARY_PARAM_NAMES = {
    "page": "page",
    "limit": "limit",
    "status": "status",
    "search": "search",
    "author_id": "authorId",
    "category_id": "categoryId",
    "tags": "tags",
    "sort_by": "sortBy",
    "sort_order": "sortOrder",
}

DEFAULT_PAGE_SIZE = 10


@dataclass
class ArticleFilters:
    """Filters accepted by article listings."""
    page: Optional[int] = None
    limit: Optional[int] = None
    status: Optional[ArticleStatus] = None
    search: Optional[str] = None
    author_id: Optional[str] = None
    category_id: Optional[str] = None
    tags: Optional[list[str]] = None
    sort_by: Optional[str] = None
    sort_order: Optional[str] = None

    def to_query_params(self) -> dict[str, str]:
        """
        Encode the filters as primary backend query parameters.

        None values are omitted and list values are comma-joined.
        """
        params: dict[str, str] = {}
        for attr, name in _PRIMARY_PARAM_NAMES.items():
            value = getattr(self, attr)
            if value is None:
                continue
            if isinstance(value, (list, tuple)):
                params[name] = ",".join(str(v) for v in value)
            elif isinstance(value, Enum):
                params[name] = str(value.value)
            else:
                params[name] = str(value)
        return params

    @property
    def effective_limit(self) -> int:
        return self.limit or DEFAULT_PAGE_SIZE

    @property
    def offset(self) -> int:
        """Row offset derived from the 1-based page number."""
        return ((self.page or 1) - 1) * self.effective_limit
