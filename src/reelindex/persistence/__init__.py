"""Content store persistence (SQLAlchemy 2.0 async)."""

from reelindex.persistence.db import close_db, get_session_factory, init_db, session_context
from reelindex.persistence.repositories import ContentRepository
from reelindex.persistence.tables import Base, ContentItemTable

__all__ = [
    "Base",
    "ContentItemTable",
    "ContentRepository",
    "close_db",
    "get_session_factory",
    "init_db",
    "session_context",
]
