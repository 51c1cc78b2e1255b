"""Public source listing."""

import structlog
from fastapi import APIRouter, Depends, HTTPException

from newshub.api.dependencies import get_sources_service
from newshub.api.models import Envelope, ok, source_to_item
from newshub.sources.service import SourcesService

logger = structlog.get_logger(__name__)
router = APIRouter(prefix="/api")


@router.get(
    "/sources",
    response_model=Envelope,
    response_model_exclude_none=True,
    summary="List sources with article counts",
)
async def list_sources(service: SourcesService = Depends(get_sources_service)) -> dict:
    try:
        rows = await service.repository.list_with_stats()
    except Exception as e:
        logger.error("list_sources_failed", error=str(e), exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to fetch sources")

    items = [source_to_item(r.source, r).model_dump(mode="json") for r in rows]
    return ok(items, count=len(items))
