"""Content write endpoints.

Every mutation commits to the store and then publishes a change event;
the search index and caches catch up asynchronously.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends

from reelindex.api.deps import content_writer
from reelindex.content.model import ContentDraft, ContentPatch
from reelindex.content.service import ContentImport, ContentWriter

router = APIRouter(prefix="/content", tags=["Content"])


@router.post("", status_code=201)
async def create_content(
    draft: ContentDraft,
    writer: ContentWriter = Depends(content_writer),
) -> dict[str, Any]:
    item = await writer.create(draft)
    return item.model_dump(mode="json", by_alias=True)


@router.post("/import", status_code=201)
async def import_content(
    request: ContentImport,
    writer: ContentWriter = Depends(content_writer),
) -> dict[str, Any]:
    """Create an item from a supported video platform URL."""
    item = await writer.import_from_url(request)
    return item.model_dump(mode="json", by_alias=True)


@router.patch("/{item_id}")
async def update_content(
    item_id: UUID,
    patch: ContentPatch,
    writer: ContentWriter = Depends(content_writer),
) -> dict[str, Any]:
    item = await writer.update(item_id, patch)
    return item.model_dump(mode="json", by_alias=True)


@router.delete("/{item_id}", status_code=204)
async def delete_content(
    item_id: UUID,
    writer: ContentWriter = Depends(content_writer),
) -> None:
    await writer.soft_delete(item_id)
