"""
Unit tests for the secondary backend and the Fallback Router.

Tests cover:
- translation of article filters into the query-string dialect
- API key headers on every request
- per-author article counts, with failed counts reported as 0
- router wrapping of raw results into envelopes
- router failures carry a fixed generic message, never the native detail
"""

import asyncio

import httpx
import pytest

from resilient_data_client.backends.router import SECONDARY_FAILURE_MESSAGES, FallbackRouter
from resilient_data_client.backends.secondary import SecondaryBackend, article_query
from resilient_data_client.backends.target import Operation
from resilient_data_client.errors.codes import ErrorCode
from resilient_data_client.errors.exceptions import DataAccessException
from resilient_data_client.models.request import ArticleFilters, ArticleStatus
from resilient_data_client.resilience.timeout import TimeoutGuard

SECONDARY_URL = "http://secondary.test"
API_KEY = "anon-key"


@pytest.fixture
def make_secondary(make_recorder):
    """Build a SecondaryBackend answering from a handler; returns (backend, recorder)."""
    def build(handler):
        recorder = make_recorder(handler)
        backend = SecondaryBackend(SECONDARY_URL, API_KEY, timeout_seconds=1.0, transport=recorder.transport)
        return backend, recorder
    return build


class TestArticleQuery:
    """Tests for the filter translation."""

    def test_defaults(self):
        params = article_query()

        assert params["status"] == "eq.PUBLISHED"
        assert params["limit"] == "10"
        assert params["offset"] == "0"
        assert params["order"] == "publishedAt.desc"
        assert params["select"] == "*,author:authors(*),category:categories(*)"

    def test_pagination_becomes_limit_and_offset(self):
        params = article_query(ArticleFilters(page=3, limit=20))

        assert params["limit"] == "20"
        assert params["offset"] == "40"

    def test_filters_become_column_operators(self):
        params = article_query(ArticleFilters(
            status=ArticleStatus.DRAFT,
            author_id="u1",
            category_id="c1",
            search="harbour",
            sort_by="title",
            sort_order="asc",
        ))

        assert params["status"] == "eq.DRAFT"
        assert params["authorId"] == "eq.u1"
        assert params["categoryId"] == "eq.c1"
        assert params["title"] == "ilike.*harbour*"
        assert params["order"] == "title.asc"

    def test_unknown_sort_field_falls_back_to_published_at(self):
        assert article_query(ArticleFilters(sort_by="nonsense"))["order"] == "publishedAt.desc"


class TestSecondaryBackend:
    """Tests for SecondaryBackend requests."""

    @pytest.mark.asyncio
    async def test_articles_request_uses_dialect_and_api_key(self, make_secondary, raw_json):
        backend, recorder = make_secondary(lambda request: raw_json([{"id": "a1"}]))

        rows = await backend.get_articles(ArticleFilters(limit=5))

        request = recorder.requests[0]
        assert rows == [{"id": "a1"}]
        assert request.url.path == "/rest/v1/articles"
        assert request.url.params["status"] == "eq.PUBLISHED"
        assert request.url.params["limit"] == "5"
        assert request.headers["apikey"] == API_KEY
        assert request.headers["Authorization"] == f"Bearer {API_KEY}"
        assert request.headers["Prefer"] == "return=representation"

    @pytest.mark.asyncio
    async def test_featured_article_is_first_row_or_none(self, make_secondary, raw_json):
        backend, _ = make_secondary(lambda request: raw_json([{"id": "a9"}]))
        assert await backend.get_featured_article() == {"id": "a9"}

        empty, _ = make_secondary(lambda request: raw_json([]))
        assert await empty.get_featured_article() is None

    @pytest.mark.asyncio
    async def test_article_by_slug(self, make_secondary, raw_json):
        backend, recorder = make_secondary(lambda request: raw_json([{"id": "a1", "slug": "hello"}]))

        article = await backend.get_article_by_slug("hello")

        assert article == {"id": "a1", "slug": "hello"}
        assert recorder.requests[0].url.params["slug"] == "eq.hello"

    @pytest.mark.asyncio
    async def test_authors_are_enriched_with_article_counts(self, make_secondary, raw_json):
        def handler(request):
            if request.url.path.endswith("/authors"):
                return raw_json([{"id": "u1", "name": "Ama"}, {"id": "u2", "name": "Kofi"}])
            if request.url.params["authorId"] == "eq.u1":
                return raw_json([{"id": "a1"}, {"id": "a2"}])
            return httpx.Response(500, text="count failed")

        backend, recorder = make_secondary(handler)

        authors = await backend.get_authors()

        assert authors == [
            {"id": "u1", "name": "Ama", "articleCount": 2},
            {"id": "u2", "name": "Kofi", "articleCount": 0},
        ]
        assert recorder.requests[0].url.params["isActive"] == "eq.true"
        assert recorder.requests[0].url.params["order"] == "name.asc"

    @pytest.mark.asyncio
    async def test_gallery_items_optional_category(self, make_secondary, raw_json):
        backend, recorder = make_secondary(lambda request: raw_json([]))

        await backend.get_gallery_items()
        await backend.get_gallery_items("g1")

        assert "categoryId" not in recorder.requests[0].url.params
        assert recorder.requests[1].url.params["categoryId"] == "eq.g1"
        assert recorder.requests[1].url.params["order"] == "createdAt.desc"

    @pytest.mark.asyncio
    async def test_http_failure_raises_secondary_error(self, make_secondary):
        backend, _ = make_secondary(lambda request: httpx.Response(401, json={"message": "JWT expired"}))

        with pytest.raises(DataAccessException) as exc_info:
            await backend.get_categories()

        assert exc_info.value.error_code == ErrorCode.SECONDARY_BACKEND_ERROR
        assert exc_info.value.status_code == 401
        assert exc_info.value.retryable is False

    @pytest.mark.asyncio
    async def test_non_array_body_raises_secondary_error(self, make_secondary, raw_json):
        backend, _ = make_secondary(lambda request: raw_json({"not": "a list"}))

        with pytest.raises(DataAccessException):
            await backend.get_gallery_categories()

    @pytest.mark.asyncio
    async def test_health_check_probes_rest_root(self, make_secondary, raw_json):
        backend, recorder = make_secondary(lambda request: raw_json({}))

        result = await backend.health_check()

        assert result["status"] == "ok"
        assert recorder.requests[0].url.path == "/rest/v1/"


class TestFallbackRouter:
    """Tests for FallbackRouter.call."""

    @pytest.mark.asyncio
    async def test_raw_result_is_wrapped(self, make_secondary, raw_json):
        backend, _ = make_secondary(lambda request: raw_json([{"id": "c1"}]))
        router = FallbackRouter(backend, TimeoutGuard(1.0))

        envelope = await router.call(Operation.GET_CATEGORIES, lambda b: b.get_categories())

        assert envelope.success is True
        assert envelope.data == [{"id": "c1"}]
        assert envelope.timestamp

    @pytest.mark.asyncio
    async def test_failure_uses_generic_message(self, make_secondary):
        backend, _ = make_secondary(
            lambda request: httpx.Response(500, json={"code": "PGRST301", "message": "relation does not exist"})
        )
        router = FallbackRouter(backend, TimeoutGuard(1.0))

        envelope = await router.call(Operation.GET_ARTICLES, lambda b: b.get_articles())

        assert envelope.success is False
        assert envelope.data is None
        assert envelope.error.message == "Failed to fetch articles"
        assert envelope.error.kind == "SECONDARY_BACKEND_ERROR"
        assert envelope.error.retryable is False
        assert envelope.error.details is None
        assert "PGRST301" not in envelope.model_dump_json()

    @pytest.mark.asyncio
    async def test_transport_failure_uses_generic_message(self, make_secondary):
        def refuse(request):
            raise httpx.ConnectError("Connection refused", request=request)

        backend, recorder = make_secondary(refuse)
        router = FallbackRouter(backend, TimeoutGuard(1.0))

        envelope = await router.call(Operation.GET_AUTHORS, lambda b: b.get_authors())

        assert envelope.error.message == "Failed to fetch authors"
        # No retry on the secondary path
        assert recorder.calls == 1

    @pytest.mark.asyncio
    async def test_deadline_applies(self, make_secondary, raw_json):
        async def slow(request):
            await asyncio.sleep(1)
            return raw_json([])

        backend, _ = make_secondary(slow)
        router = FallbackRouter(backend, TimeoutGuard(0.01))

        envelope = await router.call(Operation.GET_GALLERY_ITEMS, lambda b: b.get_gallery_items())

        assert envelope.success is False
        assert envelope.error.message == SECONDARY_FAILURE_MESSAGES[Operation.GET_GALLERY_ITEMS]

    @pytest.mark.asyncio
    async def test_unexpected_exception_is_contained(self, make_secondary):
        backend, _ = make_secondary(lambda request: httpx.Response(200))
        router = FallbackRouter(backend, TimeoutGuard(1.0))

        async def broken(_backend):
            raise KeyError("id")

        envelope = await router.call(Operation.GET_FEATURED_ARTICLE, broken)

        assert envelope.error.message == "Failed to fetch featured article"
