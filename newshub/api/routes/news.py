"""Public read endpoints for articles, trending tags and aggregate stats."""

from datetime import datetime

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query

from newshub.api.dependencies import get_article_repository
from newshub.api.models import Envelope, ErrorResponse, ok
from newshub.scraping.schemas import Category, ContentType
from newshub.storage.repository import ArticleRepository

logger = structlog.get_logger(__name__)
router = APIRouter(prefix="/api")


@router.get(
    "/news",
    response_model=Envelope,
    response_model_exclude_none=True,
    responses={500: {"model": ErrorResponse}},
    summary="List articles with filters",
)
async def list_news(
    source_id: int | None = Query(default=None, description="Filter by source id"),
    category: Category | None = Query(default=None, description="Filter by category"),
    content_type: ContentType | None = Query(default=None, description="Filter by content type"),
    search: str | None = Query(default=None, description="Substring match on title/excerpt"),
    since: datetime | None = Query(default=None, description="Published at or after"),
    limit: int = Query(default=50, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    repo: ArticleRepository = Depends(get_article_repository),
) -> dict:
    try:
        articles = await repo.list_articles(
            source_id=source_id,
            category=category.value if category else None,
            content_type=content_type.value if content_type else None,
            search=search,
            since=since,
            limit=limit,
            offset=offset,
        )
    except Exception as e:
        logger.error("list_news_failed", error=str(e), exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to fetch news articles")

    return ok([a.model_dump(mode="json") for a in articles], count=len(articles))


@router.get(
    "/news/{article_id}",
    response_model=Envelope,
    response_model_exclude_none=True,
    responses={404: {"model": ErrorResponse}},
    summary="Get one article",
)
async def get_news(
    article_id: int,
    repo: ArticleRepository = Depends(get_article_repository),
) -> dict:
    article = await repo.get_by_id(article_id)
    if article is None:
        raise HTTPException(status_code=404, detail="Article not found")
    return ok(article.model_dump(mode="json"))


@router.get(
    "/trending",
    response_model=Envelope,
    response_model_exclude_none=True,
    summary="Most used tags over the last week",
)
async def trending(
    limit: int = Query(default=10, ge=1, le=50),
    days: int = Query(default=7, ge=1, le=90),
    repo: ArticleRepository = Depends(get_article_repository),
) -> dict:
    try:
        tags = await repo.get_trending(limit=limit, days=days)
    except Exception as e:
        logger.error("trending_failed", error=str(e), exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to fetch trending topics")
    return ok(tags, count=len(tags))


@router.get(
    "/stats",
    response_model=Envelope,
    response_model_exclude_none=True,
    summary="Aggregate article counts",
)
async def stats(repo: ArticleRepository = Depends(get_article_repository)) -> dict:
    try:
        return ok(await repo.get_stats())
    except Exception as e:
        logger.error("stats_failed", error=str(e), exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to fetch statistics")
