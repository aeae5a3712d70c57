"""
Secondary backend: a standby REST data service addressed by query-string filters.

Collections live under `<url>/rest/v1/<table>` and are filtered with
column operators (`status=eq.PUBLISHED`, `order=publishedAt.desc`,
`limit`/`offset` for pagination). Responses are raw JSON arrays; wrapping
them into envelopes is the Fallback Router's job.

Every failure raised here is a SECONDARY_BACKEND_ERROR carrying the native
detail for logging. The router replaces that detail with a generic message
before anything reaches the caller.
"""

import asyncio
import logging
from typing import Any, Optional

import httpx

from resilient_data_client.backends.http import build_async_client, describe_transport_failure
from resilient_data_client.errors.exceptions import secondary_backend_error
from resilient_data_client.models.request import ArticleFilters, ArticleStatus

logger = logging.getLogger(__name__)

REST_PATH = "/rest/v1"

ARTICLE_SELECT = "*,author:authors(*),category:categories(*)"
GALLERY_ITEM_SELECT = "*,category:gallery_categories(*)"

# Primary sort field names -> secondary column names
_SORT_COLUMNS = {
    "publishedAt": "publishedAt",
    "createdAt": "createdAt",
    "updatedAt": "updatedAt",
    "title": "title",
    "viewCount": "viewCount",
}


def eq(value: Any) -> str:
    """Equality filter operator."""
    if isinstance(value, bool):
        value = "true" if value else "false"
    return f"eq.{value}"


def order(column: str, direction: str = "desc") -> str:
    """Ordering operator; direction is "asc" or "desc"."""
    direction = "asc" if direction.lower() == "asc" else "desc"
    return f"{column}.{direction}"


def article_query(filters: Optional[ArticleFilters] = None) -> dict[str, str]:
    """
    Translate article filters into the secondary query dialect.

    Listings default to published articles, newest first. Tag filters have
    no column equivalent and are not translated.

    Args:
        filters: The article filters, or None for defaults

    Returns:
        Query parameters for the `articles` collection
    """
    filters = filters or ArticleFilters()
    status = filters.status or ArticleStatus.PUBLISHED
    status_value = status.value if isinstance(status, ArticleStatus) else str(status)

    params: dict[str, str] = {
        "select": ARTICLE_SELECT,
        "status": eq(status_value),
        "limit": str(filters.effective_limit),
        "offset": str(filters.offset),
    }
    if filters.author_id:
        params["authorId"] = eq(filters.author_id)
    if filters.category_id:
        params["categoryId"] = eq(filters.category_id)
    if filters.search:
        params["title"] = f"ilike.*{filters.search}*"

    column = _SORT_COLUMNS.get(filters.sort_by or "", "publishedAt")
    params["order"] = order(column, filters.sort_order or "desc")
    return params


class SecondaryBackend:
    """
    Client for the secondary data service.

    Attributes:
        base_url: Service base URL (the REST root is `base_url + /rest/v1`)
        timeout_seconds: Transport-level timeout
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        timeout_seconds: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self._client = build_async_client(
            timeout_seconds,
            headers={
                "apikey": api_key,
                "Authorization": f"Bearer {api_key}",
                "Prefer": "return=representation",
            },
            transport=transport,
        )

    @property
    def rest_url(self) -> str:
        return f"{self.base_url}{REST_PATH}"

    async def _request(self, table: str, params: Optional[dict[str, str]] = None) -> Any:
        """
        GET a collection and decode its JSON body.

        Raises:
            DataAccessException: SECONDARY_BACKEND_ERROR on any failure
        """
        url = f"{self.rest_url}/{table}"
        try:
            response = await self._client.get(url, params=params)
        except httpx.HTTPError as e:
            raise secondary_backend_error(
                describe_transport_failure(e),
                details={"table": table},
            ) from e

        if not response.is_success:
            raise secondary_backend_error(
                f"Secondary service error: {response.status_code} {response.text[:200]}",
                status_code=response.status_code,
                details={"table": table},
            )

        try:
            return response.json()
        except ValueError as e:
            raise secondary_backend_error(
                "Secondary service returned invalid JSON",
                status_code=response.status_code,
                details={"table": table},
            ) from e

    async def _request_list(self, table: str, params: Optional[dict[str, str]] = None) -> list[Any]:
        rows = await self._request(table, params)
        if not isinstance(rows, list):
            raise secondary_backend_error(
                "Secondary service returned a non-array body",
                details={"table": table, "type": type(rows).__name__},
            )
        return rows

    async def health_check(self) -> dict[str, Any]:
        """Probe the REST root; raises when the service is unreachable or failing."""
        try:
            response = await self._client.get(f"{self.rest_url}/")
        except httpx.HTTPError as e:
            raise secondary_backend_error(describe_transport_failure(e)) from e
        if not response.is_success:
            raise secondary_backend_error(
                f"Secondary service health check returned {response.status_code}",
                status_code=response.status_code,
            )
        return {"status": "ok", "backend": "secondary", "statusCode": response.status_code}

    async def ping(self) -> bool:
        """Boolean health probe used by the health service."""
        response = await self._client.get(f"{self.rest_url}/")
        return response.is_success

    async def get_articles(self, filters: Optional[ArticleFilters] = None) -> list[Any]:
        return await self._request_list("articles", article_query(filters))

    async def get_featured_article(self) -> Optional[dict[str, Any]]:
        """The most recently published article, or None."""
        rows = await self._request_list("articles", {
            "select": ARTICLE_SELECT,
            "status": eq(ArticleStatus.PUBLISHED.value),
            "order": order("publishedAt", "desc"),
            "limit": "1",
        })
        return rows[0] if rows else None

    async def get_article_by_slug(self, slug: str) -> Optional[dict[str, Any]]:
        rows = await self._request_list("articles", {
            "select": ARTICLE_SELECT,
            "slug": eq(slug),
            "limit": "1",
        })
        return rows[0] if rows else None

    async def get_authors(self) -> list[dict[str, Any]]:
        """
        Active authors ordered by name, each with its published `articleCount`.

        Counts are fetched concurrently; a failed count is reported as 0
        rather than failing the whole listing.
        """
        authors = await self._request_list("authors", {
            "isActive": eq(True),
            "order": order("name", "asc"),
        })

        async def count_articles(author: dict[str, Any]) -> int:
            rows = await self._request_list("articles", {
                "authorId": eq(author.get("id")),
                "status": eq(ArticleStatus.PUBLISHED.value),
                "select": "id",
            })
            return len(rows)

        counts = await asyncio.gather(
            *(count_articles(author) for author in authors),
            return_exceptions=True,
        )

        enriched = []
        for author, count in zip(authors, counts):
            if isinstance(count, BaseException):
                logger.warning(
                    "Failed to count articles for author",
                    extra={"extra_data": {"author_id": author.get("id"), "error": str(count)}}
                )
                count = 0
            enriched.append({**author, "articleCount": count})
        return enriched

    async def get_categories(self) -> list[Any]:
        return await self._request_list("categories", {
            "isActive": eq(True),
            "order": order("name", "asc"),
        })

    async def get_gallery_items(self, category_id: Optional[str] = None) -> list[Any]:
        params = {
            "select": GALLERY_ITEM_SELECT,
            "isActive": eq(True),
            "order": order("createdAt", "desc"),
        }
        if category_id:
            params["categoryId"] = eq(category_id)
        return await self._request_list("gallery_items", params)

    async def get_gallery_categories(self) -> list[Any]:
        return await self._request_list("gallery_categories", {
            "isActive": eq(True),
            "order": order("name", "asc"),
        })

    async def aclose(self) -> None:
        await self._client.aclose()
