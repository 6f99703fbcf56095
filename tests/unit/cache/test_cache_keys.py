"""Tests for cache key generation."""

from datetime import date

import orjson

from reelindex.cache.keys import CacheKeys, canonical_query
from reelindex.search.query import SearchQuery


class TestCanonicalQuery:
    """Equivalent queries must produce the same key."""

    def test_tag_order_is_irrelevant(self) -> None:
        """Tags are sorted before rendering."""
        first = SearchQuery(q="space", tags=["science", "astronomy"])
        second = SearchQuery(q="space", tags=["astronomy", "science"])

        assert canonical_query(first) == canonical_query(second)

    def test_whitespace_is_trimmed(self) -> None:
        """Leading and trailing whitespace does not change the key."""
        assert canonical_query(SearchQuery(q="  space ")) == canonical_query(SearchQuery(q="space"))

    def test_defaults_are_spelled_out(self) -> None:
        """Page, limit and sort always appear, even when left at defaults."""
        rendered = orjson.loads(canonical_query(SearchQuery()))

        assert rendered["sort"] == "relevance"
        assert rendered["page"] == 1
        assert rendered["limit"] == 20
        assert rendered["tags"] == []

    def test_keys_are_sorted(self) -> None:
        rendered = canonical_query(SearchQuery(q="x", start_date=date(2024, 1, 1)))

        assert list(orjson.loads(rendered)) == sorted(orjson.loads(rendered))

    def test_different_pages_differ(self) -> None:
        """Each page has its own key."""
        assert canonical_query(SearchQuery(q="x", page=1)) != canonical_query(
            SearchQuery(q="x", page=2)
        )


class TestCacheKeys:
    """Test cache key generation."""

    def test_entity_key(self) -> None:
        """Entity key has correct format."""
        assert CacheKeys.entity("abc123") == "discovery:entity:abc123"

    def test_search_key_shares_prefix(self) -> None:
        """Search keys start with the search prefix and end in a digest."""
        key = CacheKeys.search(SearchQuery(q="space"))

        assert key.startswith(f"{CacheKeys.search_prefix()}:")
        digest = key.rsplit(":", 1)[1]
        assert len(digest) == 64
        int(digest, 16)

    def test_equivalent_queries_share_key(self) -> None:
        first = SearchQuery(q=" space", tags=["b", "a"])
        second = SearchQuery(q="space ", tags=["a", "b"])

        assert CacheKeys.search(first) == CacheKeys.search(second)

    def test_separator_characters_do_not_collide(self) -> None:
        """Values containing punctuation cannot shift into a neighbouring field."""
        pairs = [
            (SearchQuery(q="x|", category="y"), SearchQuery(q="x", category="|y")),
            (SearchQuery(tags=["a,b"]), SearchQuery(tags=["a", "b"])),
            (SearchQuery(q="x:y"), SearchQuery(q="x", category="y")),
        ]

        for first, second in pairs:
            assert CacheKeys.search(first) != CacheKeys.search(second)

    def test_parse_entity_key(self) -> None:
        """Valid key is parsed correctly."""
        parsed = CacheKeys.parse_key("discovery:entity:abc123")

        assert parsed == {"namespace": "discovery", "kind": "entity", "identifier": "abc123"}

    def test_parse_search_key(self) -> None:
        key = CacheKeys.search(SearchQuery(q="space"))

        parsed = CacheKeys.parse_key(key)

        assert parsed is not None
        assert parsed["kind"] == "search"
        assert key.endswith(parsed["identifier"])

    def test_parse_keeps_separators_in_identifier(self) -> None:
        """Colons inside the identifier are preserved."""
        parsed = CacheKeys.parse_key("discovery:search:a:b|||")

        assert parsed is not None
        assert parsed["identifier"] == "a:b|||"

    def test_parse_foreign_key(self) -> None:
        """Keys from another namespace are rejected."""
        assert CacheKeys.parse_key("other:entity:abc") is None
        assert CacheKeys.parse_key("discovery:unknown:abc") is None
