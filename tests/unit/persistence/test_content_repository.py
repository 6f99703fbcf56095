"""Tests for the content repository on SQLite."""

from datetime import date
from uuid import uuid4

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from reelindex.content.model import ContentLanguage, ContentPatch, ContentType
from reelindex.persistence.db import session_context
from reelindex.persistence.repositories import ContentRepository
from tests.conftest import make_draft


class TestContentRepository:
    """Tests for ContentRepository."""

    async def test_create_applies_defaults(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        """Language defaults to ar, popularity to 0, timestamps are set."""
        async with session_context(session_factory) as session:
            item = await ContentRepository(session).create(make_draft(tags=[" space ", "space", ""]))

        assert item.language == ContentLanguage.ARABIC
        assert item.popularity_score == 0
        assert item.tags == ["space"]
        assert item.created_at is not None
        assert item.deleted_at is None

    async def test_get_excludes_soft_deleted(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        async with session_context(session_factory) as session:
            repo = ContentRepository(session)
            item = await repo.create(make_draft())
            await repo.soft_delete(item.id)

        async with session_context(session_factory) as session:
            repo = ContentRepository(session)
            assert await repo.get(item.id) is None
            deleted = await repo.get(item.id, include_deleted=True)

        assert deleted is not None
        assert deleted.is_deleted

    async def test_soft_delete_twice(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        """Deleting an already deleted item reports nothing to do."""
        async with session_context(session_factory) as session:
            repo = ContentRepository(session)
            item = await repo.create(make_draft())
            assert await repo.soft_delete(item.id) is not None
            assert await repo.soft_delete(item.id) is None

    async def test_update_applies_only_set_fields(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        async with session_context(session_factory) as session:
            repo = ContentRepository(session)
            item = await repo.create(make_draft())
            updated = await repo.update(
                item.id, ContentPatch(title="New title", type=ContentType.VIDEO_PODCAST)
            )

        assert updated is not None
        assert updated.title == "New title"
        assert updated.type == ContentType.VIDEO_PODCAST
        assert updated.description == item.description

    async def test_update_missing(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        async with session_context(session_factory) as session:
            assert await ContentRepository(session).update(uuid4(), ContentPatch(title="x")) is None

    async def test_iter_active_orders_by_publication_date(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        """Keyset pagination walks every active item oldest first."""
        async with session_context(session_factory) as session:
            repo = ContentRepository(session)
            for day in (5, 1, 3, 2, 4):
                await repo.create(make_draft(title=f"Day {day}", publication_date=date(2024, 1, day)))

        async with session_context(session_factory) as session:
            titles = [item.title async for item in ContentRepository(session).iter_active(batch_size=2)]

        assert titles == ["Day 1", "Day 2", "Day 3", "Day 4", "Day 5"]

    async def test_hard_delete_ignores_active_rows(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        async with session_context(session_factory) as session:
            repo = ContentRepository(session)
            active = await repo.create(make_draft())
            gone = await repo.create(make_draft())
            await repo.soft_delete(gone.id)

            assert await repo.hard_delete([active.id, gone.id]) == 1
            assert await repo.count_active() == 1

    async def test_rejects_invalid_draft(self) -> None:
        """Drafts enforce the field constraints."""
        with pytest.raises(ValueError):
            make_draft(duration=0)
        with pytest.raises(ValueError):
            make_draft(title="")
