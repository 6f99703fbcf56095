"""Search index projection and query engine."""

from reelindex.search.documents import SearchDocument
from reelindex.search.index import SearchIndex, close_search, get_search_index
from reelindex.search.query import SearchPage, SearchQuery, SortOrder

__all__ = [
    "SearchDocument",
    "SearchIndex",
    "SearchPage",
    "SearchQuery",
    "SortOrder",
    "close_search",
    "get_search_index",
]
