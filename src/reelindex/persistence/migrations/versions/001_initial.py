"""Initial schema for reelindex.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19

Creates the content_items table. Rows are soft-deleted through
deleted_at and only removed by the cleanup sweep.
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers
revision: str = "001_initial"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "content_items",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("category", sa.String(100), nullable=False),
        sa.Column("type", sa.String(32), nullable=False),
        sa.Column("language", sa.String(8), nullable=False),
        sa.Column("tags", sa.JSON(), nullable=False),
        sa.Column("duration", sa.Integer(), nullable=False),
        sa.Column("publication_date", sa.Date(), nullable=False),
        sa.Column("popularity_score", sa.Integer(), nullable=False),
        sa.Column("video_url", sa.String(2048), nullable=True),
        sa.Column("thumbnail_url", sa.String(2048), nullable=True),
        sa.Column("platform", sa.String(32), nullable=False),
        sa.Column("platform_video_id", sa.String(255), nullable=True),
        sa.Column("embed_url", sa.String(2048), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("idx_content_items_category", "content_items", ["category"])
    op.create_index("idx_content_items_type", "content_items", ["type"])
    op.create_index(
        "idx_content_items_publication_date", "content_items", ["publication_date"]
    )
    op.create_index("idx_content_items_deleted_at", "content_items", ["deleted_at"])


def downgrade() -> None:
    op.drop_table("content_items")
