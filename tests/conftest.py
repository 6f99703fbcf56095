"""Global pytest configuration and fixtures."""

from __future__ import annotations

from collections.abc import AsyncIterator
from datetime import date
from pathlib import Path
from typing import Any

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from reelindex.cache.redis import RedisCache
from reelindex.content.model import ContentDraft, ContentType
from reelindex.persistence.db import create_engine, init_db, make_session_factory
from tests.fakes import FakeRedis, FakeSearchIndex


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def cache(fake_redis: FakeRedis) -> RedisCache:
    return RedisCache(fake_redis, ttl=300, namespace="discovery")  # type: ignore[arg-type]


@pytest.fixture
def search_index() -> FakeSearchIndex:
    return FakeSearchIndex()


@pytest.fixture
async def session_factory(tmp_path: Path) -> AsyncIterator[async_sessionmaker[AsyncSession]]:
    """Session factory over a fresh SQLite database."""
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'content.db'}")
    await init_db(engine)
    yield make_session_factory(engine)
    await engine.dispose()


def make_draft(**overrides: Any) -> ContentDraft:
    """Valid draft with sensible defaults."""
    fields: dict[str, Any] = {
        "title": "Space Documentary",
        "description": "A journey through the solar system",
        "category": "science",
        "type": ContentType.DOCUMENTARY,
        "tags": ["space", "science"],
        "duration": 3600,
        "publication_date": date(2024, 5, 1),
    }
    fields.update(overrides)
    return ContentDraft(**fields)


@pytest.fixture
def draft() -> ContentDraft:
    return make_draft()
