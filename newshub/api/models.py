"""
Request and response models for the news API.

Every endpoint answers with the same envelope: ``{success, data}`` on
success (plus ``count`` for listings) and ``{success: false, error}`` on
failure.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from newshub.sources.schemas import Source, SourceWithStats


class Envelope(BaseModel):
    """Response envelope shared by all endpoints."""

    success: bool = Field(default=True, description="Whether the request succeeded")
    data: Any = Field(default=None, description="Response payload")
    count: int | None = Field(default=None, description="Item count for listings")
    error: str | None = Field(default=None, description="Error message on failure")


class ErrorResponse(BaseModel):
    """Response model for errors."""

    success: bool = False
    error: str = Field(..., description="Error message")


def ok(data: Any = None, count: int | None = None) -> dict[str, Any]:
    """Build a success envelope, omitting ``count`` when not given."""
    body: dict[str, Any] = {"success": True, "data": data}
    if count is not None:
        body["count"] = count
    return body


class SourceItem(BaseModel):
    """A source as returned by the listing endpoints."""

    id: int | None
    name: str
    url: str
    type: str
    scraper_type: str
    enabled: bool
    feed_url: str | None = None
    hashtag: str | None = None
    last_scraped: datetime | None = None
    last_successful_scrape: datetime | None = None
    scrape_count: int = 0
    error_count: int = 0
    last_error: str | None = None
    article_count: int | None = None
    latest_article: datetime | None = None


def source_to_item(source: Source, stats: SourceWithStats | None = None) -> SourceItem:
    return SourceItem(
        id=source.id,
        name=source.name,
        url=source.url,
        type=source.source_type,
        scraper_type=source.scraper_type,
        enabled=source.enabled,
        feed_url=source.feed_url,
        hashtag=source.hashtag,
        last_scraped=source.last_scraped,
        last_successful_scrape=source.last_successful_scrape,
        scrape_count=source.scrape_count,
        error_count=source.error_count,
        last_error=source.last_error,
        article_count=stats.article_count if stats else None,
        latest_article=stats.latest_article if stats else None,
    )


class UpdateSourceRequest(BaseModel):
    """Partial update of a source; unset fields are left unchanged."""

    model_config = ConfigDict(extra="ignore")

    name: str | None = None
    url: str | None = None
    enabled: bool | None = None
    feed_url: str | None = None
    hashtag: str | None = None
    selectors: dict[str, str] | None = None


class StartScrapeRequest(BaseModel):
    """Body of POST /admin/api/scrape/start. All fields optional."""

    model_config = ConfigDict(populate_by_name=True)

    source_ids: list[int] | None = Field(
        default=None,
        alias="sourceIds",
        description="Sources to scrape (default: all registered)",
    )
    timeout: int | None = Field(
        default=None,
        gt=0,
        description="Milliseconds before the partial result is returned",
    )
    max_articles: int | None = Field(
        default=None,
        ge=1,
        alias="maxArticles",
        description="Stop after this many new articles",
    )

    @property
    def timeout_seconds(self) -> float | None:
        """``timeout`` converted from milliseconds."""
        return self.timeout / 1000.0 if self.timeout is not None else None
