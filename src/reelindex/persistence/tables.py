"""SQLAlchemy ORM models for the content store.

Columns use portable types so the same metadata runs on PostgreSQL in
production and SQLite in tests.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import JSON, Date, DateTime, Index, Integer, String, Text, Uuid, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class ContentItemTable(Base):
    """Content items (podcast episodes and documentaries).

    ``deleted_at`` is the soft-delete marker; rows are only removed by the
    reconciliation sweep once the retention window has passed.
    """

    __tablename__ = "content_items"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    type: Mapped[str] = mapped_column(String(32), nullable=False)
    language: Mapped[str] = mapped_column(String(8), nullable=False, default="ar")
    tags: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    duration: Mapped[int] = mapped_column(Integer, nullable=False)
    publication_date: Mapped[date] = mapped_column(Date, nullable=False)
    popularity_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Media location
    video_url: Mapped[str | None] = mapped_column(String(2048), nullable=True)
    thumbnail_url: Mapped[str | None] = mapped_column(String(2048), nullable=True)
    platform: Mapped[str] = mapped_column(String(32), nullable=False, default="native")
    platform_video_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    embed_url: Mapped[str | None] = mapped_column(String(2048), nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=func.now(),
        onupdate=_utcnow,
    )
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("idx_content_items_category", "category"),
        Index("idx_content_items_type", "type"),
        Index("idx_content_items_publication_date", "publication_date"),
        Index("idx_content_items_deleted_at", "deleted_at"),
    )

    def to_dict(self) -> dict[str, Any]:
        """Column values keyed by attribute name."""
        return {column.key: getattr(self, column.key) for column in self.__mapper__.column_attrs}
