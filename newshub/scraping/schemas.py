"""
Item schemas for the scraping pipeline.

Extractors emit RawItem instances; the normalizer turns each one into an
ArticleRecord, which is the exact shape the article store writes. Field
names on ArticleRecord match the articles table columns.
"""

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field, field_validator

TITLE_MAX_LENGTH = 500
EXCERPT_MAX_LENGTH = 1000
CONTENT_MAX_LENGTH = 1000


def _utc_now() -> datetime:
    """Return current UTC time with timezone info."""
    return datetime.now(timezone.utc)


class Category(str, Enum):
    """Fixed article categories. LOCAL is the fallback."""

    LOCAL = "local"
    POLITICS = "politics"
    SPORTS = "sports"
    WEATHER = "weather"
    EDUCATION = "education"
    TOURISM = "tourism"
    DEVELOPMENT = "development"
    SOCIAL = "social"


class ContentType(str, Enum):
    NEWS = "news"
    SOCIAL = "social"
    MEDIA = "media"


class RawItem(BaseModel):
    """
    One article as an extractor found it, before normalization.

    Text fields may still contain stray whitespace and relative URLs.
    ``category`` is set only when the extractor forces one (mirror posts).
    """

    title: str
    url: str
    excerpt: str = ""
    content: str | None = None
    author: str | None = None
    published_at: datetime | None = None
    image_url: str | None = None
    category: Category | None = None
    content_type: ContentType = ContentType.NEWS
    platform: str | None = None
    extra_tags: list[str] = Field(default_factory=list)


class ArticleRecord(BaseModel):
    """
    Canonical article, ready for upsert.

    Length caps are enforced by the normalizer; the validators here only
    guarantee timezone-aware timestamps.
    """

    source_id: int | None = None
    title: str = Field(..., min_length=1, max_length=TITLE_MAX_LENGTH)
    url: str = Field(..., min_length=1)
    excerpt: str = Field(default="", max_length=EXCERPT_MAX_LENGTH)
    content: str | None = None
    author: str | None = None
    category: Category = Category.LOCAL
    content_type: ContentType = ContentType.NEWS
    platform: str | None = None
    image_url: str | None = None
    published_at: datetime = Field(default_factory=_utc_now)
    scraped_at: datetime = Field(default_factory=_utc_now)
    tags: list[str] = Field(default_factory=list)

    @field_validator("published_at", "scraped_at")
    @classmethod
    def ensure_utc(cls, v: datetime) -> datetime:
        """Treat naive datetimes as UTC."""
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v


class StoredArticle(BaseModel):
    """An article row as read back from the store."""

    id: int
    source_id: int | None = None
    source_name: str | None = None
    title: str
    url: str
    excerpt: str | None = None
    content: str | None = None
    author: str | None = None
    category: str = Category.LOCAL.value
    content_type: str = ContentType.NEWS.value
    platform: str | None = None
    image_url: str | None = None
    published_at: datetime | None = None
    scraped_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    tags: list[str] = Field(default_factory=list)
