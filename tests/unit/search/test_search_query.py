"""Tests for search query translation and pagination."""

from datetime import date

import pytest

from reelindex.content.model import ContentLanguage, ContentType
from reelindex.search.query import SearchPage, SearchQuery, SortOrder, page_count, quote


class TestSearchQuery:
    """Tests for SearchQuery validation and filters."""

    def test_always_excludes_deleted(self) -> None:
        assert SearchQuery().filters() == ["deletedAt IS NULL"]

    def test_filters(self) -> None:
        query = SearchQuery(
            category="science",
            type=ContentType.DOCUMENTARY,
            language=ContentLanguage.ENGLISH,
            tags=["space", "mars"],
            start_date=date(2024, 1, 1),
            end_date=date(2024, 1, 2),
        )

        assert query.filters() == [
            "deletedAt IS NULL",
            'category = "science"',
            'type = "documentary"',
            'language = "en"',
            'tags = "space"',
            'tags = "mars"',
            "publicationTimestamp >= 1704067200",
            "publicationTimestamp <= 1704153600",
        ]

    def test_tags_from_comma_string(self) -> None:
        assert SearchQuery(tags="space, mars,,space").tags == ["space", "mars"]

    def test_blank_text_is_none(self) -> None:
        assert SearchQuery(q="   ").q is None

    def test_limit_is_capped(self) -> None:
        assert SearchQuery(limit=1000).limit == 100

    def test_inverted_date_range_rejected(self) -> None:
        with pytest.raises(ValueError):
            SearchQuery(start_date=date(2024, 2, 1), end_date=date(2024, 1, 1))

    def test_page_must_be_positive(self) -> None:
        with pytest.raises(ValueError):
            SearchQuery(page=0)

    def test_sort_rules(self) -> None:
        assert SearchQuery().sort_rules() == []
        assert SearchQuery(sort=SortOrder.RECENCY).sort_rules() == ["publicationTimestamp:desc"]
        assert SearchQuery(sort=SortOrder.POPULARITY).sort_rules() == ["popularityScore:desc"]

    def test_quote_escapes(self) -> None:
        assert quote('say "hi"') == '"say \\"hi\\""'

    def test_offset(self) -> None:
        assert SearchQuery(page=3, limit=10).offset == 20


class TestPagination:
    """Page arithmetic."""

    def test_middle_page(self) -> None:
        """25 hits, 10 per page, page 2: three pages with both neighbours."""
        page = SearchPage.build([], 25, SearchQuery(page=2, limit=10))

        assert page.total_pages == 3
        assert page.has_next is True
        assert page.has_prev is True

    def test_last_page(self) -> None:
        page = SearchPage.build([], 25, SearchQuery(page=3, limit=10))

        assert page.has_next is False
        assert page.has_prev is True

    def test_empty_result_has_one_page(self) -> None:
        assert page_count(0, 10) == 1

    def test_response_uses_camel_case_and_hides_degraded(self) -> None:
        body = SearchPage.empty(SearchQuery(), degraded=True).to_response()

        assert body["totalPages"] == 1
        assert body["hasNext"] is False
        assert "degraded" not in body
