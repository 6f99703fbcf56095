"""Cache key schema.

Key format: {namespace}:{kind}:{identifier}

Where:
- namespace: configurable prefix, "discovery" by default
- kind: "entity" for point lookups, "search" for result pages
- identifier: the entity id, or the SHA-256 of the canonical query

Search keys share the "{namespace}:search" prefix so every cached page can
be dropped with a single prefix invalidation when any entity changes.
"""

from __future__ import annotations

import hashlib
from typing import TYPE_CHECKING, Any, Literal
from uuid import UUID

import orjson

from reelindex.config import settings

if TYPE_CHECKING:
    from reelindex.search.query import SearchQuery

KeyKind = Literal["entity", "search"]


def canonical_query(query: SearchQuery) -> str:
    """Render a query so that equivalent requests map to the same key.

    Strings are trimmed, tags are sorted and page/limit are always spelled
    out. The result is JSON with sorted keys, so field values can hold any
    character without running into a neighbouring field.
    """
    normalized: dict[str, Any] = {
        "q": (query.q or "").strip(),
        "category": (query.category or "").strip(),
        "type": query.type.value if query.type else None,
        "language": query.language.value if query.language else None,
        "tags": sorted(query.tags),
        "sort": query.sort.value,
        "startDate": query.start_date.isoformat() if query.start_date else None,
        "endDate": query.end_date.isoformat() if query.end_date else None,
        "page": query.page,
        "limit": query.limit,
    }
    return orjson.dumps(normalized, option=orjson.OPT_SORT_KEYS).decode()


def query_digest(query: SearchQuery) -> str:
    return hashlib.sha256(canonical_query(query).encode()).hexdigest()


class CacheKeys:
    """Cache key generator following a consistent naming convention."""

    PREFIX = settings.cache_namespace

    @classmethod
    def entity(cls, entity_id: UUID | str) -> str:
        """Key for a single active content item."""
        return f"{cls.PREFIX}:entity:{entity_id}"

    @classmethod
    def search(cls, query: SearchQuery) -> str:
        """Key for one page of search results."""
        return f"{cls.PREFIX}:search:{query_digest(query)}"

    @classmethod
    def search_prefix(cls) -> str:
        """Prefix shared by every cached search page."""
        return f"{cls.PREFIX}:search"

    @classmethod
    def parse_key(cls, key: str) -> dict[str, str] | None:
        """Split a key into namespace, kind and identifier.

        Returns None if the key doesn't belong to this namespace.
        """
        parts = key.split(":", 2)
        if len(parts) < 3 or parts[0] != cls.PREFIX or parts[1] not in ("entity", "search"):
            return None
        return {"namespace": parts[0], "kind": parts[1], "identifier": parts[2]}
