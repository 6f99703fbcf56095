"""Repository for content items.

All reads exclude soft-deleted rows unless the caller opts in with
``include_deleted=True``. The indexing pipeline always opts in so it can
tell "deleted" apart from "never existed".
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import AsyncIterator, Sequence
from uuid import UUID

from sqlalchemy import and_, delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from reelindex.content.model import (
    NON_NULLABLE_PATCH_FIELDS,
    ContentDraft,
    ContentItem,
    ContentPatch,
)
from reelindex.persistence.tables import ContentItemTable

DEFAULT_BATCH_SIZE = 200


def _to_model(row: ContentItemTable) -> ContentItem:
    return ContentItem.model_validate(row.to_dict())


class BaseRepository:
    """Base repository holding the unit-of-work session."""

    def __init__(self, session: AsyncSession):
        self.session = session


class ContentRepository(BaseRepository):
    """Store operations for content items."""

    async def _get_row(self, item_id: UUID, include_deleted: bool) -> ContentItemTable | None:
        stmt = select(ContentItemTable).where(ContentItemTable.id == item_id)
        if not include_deleted:
            stmt = stmt.where(ContentItemTable.deleted_at.is_(None))
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get(self, item_id: UUID, include_deleted: bool = False) -> ContentItem | None:
        row = await self._get_row(item_id, include_deleted)
        return _to_model(row) if row is not None else None

    async def create(self, draft: ContentDraft) -> ContentItem:
        row = ContentItemTable(
            title=draft.title,
            description=draft.description,
            category=draft.category,
            type=draft.type.value,
            language=draft.language.value,
            tags=list(draft.tags),
            duration=draft.duration,
            publication_date=draft.publication_date,
            popularity_score=draft.popularity_score,
            video_url=draft.video_url,
            thumbnail_url=draft.thumbnail_url,
            platform=draft.platform.value,
            platform_video_id=draft.platform_video_id,
            embed_url=draft.embed_url,
        )
        self.session.add(row)
        await self.session.flush()
        return _to_model(row)

    async def update(self, item_id: UUID, patch: ContentPatch) -> ContentItem | None:
        """Apply the explicitly set fields of ``patch`` to an active item."""
        row = await self._get_row(item_id, include_deleted=False)
        if row is None:
            return None

        for name, value in patch.model_dump(exclude_unset=True).items():
            if value is None and name in NON_NULLABLE_PATCH_FIELDS:
                continue
            setattr(row, name, value.value if isinstance(value, Enum) else value)

        await self.session.flush()
        return _to_model(row)

    async def soft_delete(self, item_id: UUID) -> ContentItem | None:
        """Mark an active item deleted. Returns None if it was not active."""
        row = await self._get_row(item_id, include_deleted=False)
        if row is None:
            return None
        row.deleted_at = datetime.now(timezone.utc)
        await self.session.flush()
        return _to_model(row)

    async def iter_active(
        self, batch_size: int = DEFAULT_BATCH_SIZE
    ) -> AsyncIterator[ContentItem]:
        """Yield every active item ordered by publication date, oldest first.

        Uses keyset pagination on (publication_date, id) so the walk stays
        stable while rows are inserted concurrently.
        """
        last: tuple[object, UUID] | None = None
        while True:
            stmt = (
                select(ContentItemTable)
                .where(ContentItemTable.deleted_at.is_(None))
                .order_by(ContentItemTable.publication_date.asc(), ContentItemTable.id.asc())
                .limit(batch_size)
            )
            if last is not None:
                last_date, last_id = last
                stmt = stmt.where(
                    or_(
                        ContentItemTable.publication_date > last_date,
                        and_(
                            ContentItemTable.publication_date == last_date,
                            ContentItemTable.id > last_id,
                        ),
                    )
                )
            rows = (await self.session.execute(stmt)).scalars().all()
            if not rows:
                return
            for row in rows:
                yield _to_model(row)
            last = (rows[-1].publication_date, rows[-1].id)
            if len(rows) < batch_size:
                return

    async def find_soft_deleted_before(self, cutoff: datetime) -> list[ContentItem]:
        stmt = (
            select(ContentItemTable)
            .where(ContentItemTable.deleted_at.is_not(None))
            .where(ContentItemTable.deleted_at < cutoff)
            .order_by(ContentItemTable.deleted_at.asc())
        )
        rows = (await self.session.execute(stmt)).scalars().all()
        return [_to_model(row) for row in rows]

    async def hard_delete(self, item_ids: Sequence[UUID]) -> int:
        """Permanently remove soft-deleted rows. Active rows are never touched."""
        if not item_ids:
            return 0
        stmt = (
            delete(ContentItemTable)
            .where(ContentItemTable.id.in_(list(item_ids)))
            .where(ContentItemTable.deleted_at.is_not(None))
        )
        result = await self.session.execute(stmt)
        await self.session.flush()
        return result.rowcount or 0

    async def count_active(self) -> int:
        stmt = select(func.count()).select_from(ContentItemTable).where(
            ContentItemTable.deleted_at.is_(None)
        )
        return int((await self.session.execute(stmt)).scalar_one())
