"""
Unit tests for request descriptors and article filters.
"""

import pytest

from resilient_data_client.models.request import ArticleFilters, ArticleStatus, RequestDescriptor


class TestRequestDescriptor:
    """Tests for RequestDescriptor."""

    def test_defaults(self):
        descriptor = RequestDescriptor("/articles")

        assert descriptor.method == "GET"
        assert descriptor.body is None
        assert descriptor.params == {}
        assert descriptor.requires_auth is False
        assert descriptor.is_read is True

    @pytest.mark.parametrize("method", ["POST", "PUT", "DELETE", "PATCH"])
    def test_writes_are_not_reads(self, method):
        assert RequestDescriptor("/articles", method).is_read is False


class TestArticleFilters:
    """Tests for ArticleFilters query parameter encoding."""

    def test_empty_filters_produce_no_params(self):
        assert ArticleFilters().to_query_params() == {}

    def test_camel_case_names_and_joined_lists(self):
        params = ArticleFilters(
            page=2,
            limit=12,
            status=ArticleStatus.PUBLISHED,
            author_id="u1",
            category_id="c1",
            tags=["infrastructure", "harbour"],
            sort_by="publishedAt",
            sort_order="desc",
        ).to_query_params()

        assert params == {
            "page": "2",
            "limit": "12",
            "status": "PUBLISHED",
            "authorId": "u1",
            "categoryId": "c1",
            "tags": "infrastructure,harbour",
            "sortBy": "publishedAt",
            "sortOrder": "desc",
        }

    def test_offset_from_page(self):
        assert ArticleFilters().offset == 0
        assert ArticleFilters(page=3).offset == 20
        assert ArticleFilters(page=2, limit=5).offset == 5
