"""Discovery endpoints: full-text search, item lookup and browsing.

- GET /discovery/search              - filtered, paginated search
- GET /discovery/items/{id}          - one item (optionally soft-deleted)
- GET /discovery/categories/{name}   - newest items in a category
- GET /discovery/types/{type}        - newest items of a content type
"""

from __future__ import annotations

from datetime import date
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from pydantic import ValidationError

from reelindex.api.deps import discovery_service
from reelindex.api.errors import BadRequestError, NotFoundError
from reelindex.content.model import ContentLanguage, ContentType
from reelindex.discovery.service import DiscoveryService
from reelindex.search.query import SearchQuery, SortOrder

router = APIRouter(prefix="/discovery", tags=["Discovery"])


@router.get("/search")
async def search(
    q: str | None = Query(None, description="Full-text query over title, description and tags"),
    category: str | None = Query(None),
    type: ContentType | None = Query(None),
    language: ContentLanguage | None = Query(None),
    tags: list[str] = Query(default_factory=list, description="Every tag must match"),
    page: int = Query(1, ge=1),
    limit: int | None = Query(None, ge=1),
    sort: SortOrder = Query(SortOrder.RELEVANCE),
    start_date: date | None = Query(None, alias="startDate"),
    end_date: date | None = Query(None, alias="endDate"),
    service: DiscoveryService = Depends(discovery_service),
) -> dict[str, Any]:
    params: dict[str, Any] = {
        "q": q,
        "category": category,
        "type": type,
        "language": language,
        "tags": tags,
        "page": page,
        "sort": sort,
        "start_date": start_date,
        "end_date": end_date,
    }
    if limit is not None:
        params["limit"] = limit
    try:
        query = SearchQuery.model_validate(params)
    except ValidationError as e:
        raise BadRequestError(str(e.errors()[0]["msg"]))

    page_result = await service.search(query)
    return page_result.to_response()


@router.get("/items/{item_id}")
async def get_item(
    item_id: UUID,
    include_deleted: bool = Query(False, alias="includeDeleted"),
    service: DiscoveryService = Depends(discovery_service),
) -> dict[str, Any]:
    item = await service.get_by_id(item_id, include_deleted=include_deleted)
    if item is None:
        raise NotFoundError("ContentItem", str(item_id))
    return item.model_dump(mode="json", by_alias=True)


@router.get("/categories/{category}")
async def browse_category(
    category: str,
    page: int = Query(1, ge=1),
    limit: int | None = Query(None, ge=1),
    service: DiscoveryService = Depends(discovery_service),
) -> dict[str, Any]:
    return (await service.by_category(category, page=page, limit=limit)).to_response()


@router.get("/types/{content_type}")
async def browse_type(
    content_type: ContentType,
    page: int = Query(1, ge=1),
    limit: int | None = Query(None, ge=1),
    service: DiscoveryService = Depends(discovery_service),
) -> dict[str, Any]:
    return (await service.by_type(content_type, page=page, limit=limit)).to_response()
