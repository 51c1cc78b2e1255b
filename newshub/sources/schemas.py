"""Data models for the sources module."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class SourceKind(str, Enum):
    """What a source publishes."""

    NEWS = "news"
    SOCIAL = "social"
    MEDIA = "media"


class ExtractorKind(str, Enum):
    """How a source is scraped."""

    RSS = "rss"
    HTML = "html"
    MIRROR = "mirror"
    BROWSER = "browser"  # headless-browser sources; no implementation


@dataclass
class Source:
    """A configured external origin to scrape.

    ``name`` is unique. ``selectors`` overrides the structured-page defaults
    key by key; ``hashtag`` is the search term for mirror sources.
    """

    name: str
    url: str
    source_type: str = SourceKind.NEWS.value
    scraper_type: str = ExtractorKind.HTML.value
    enabled: bool = True
    id: int | None = None
    feed_url: str | None = None
    hashtag: str | None = None
    selectors: dict = field(default_factory=dict)
    metadata: dict = field(default_factory=dict)
    last_scraped: datetime | None = None
    last_successful_scrape: datetime | None = None
    scrape_count: int = 0
    error_count: int = 0
    last_error: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def fetch_full_content(self) -> bool:
        return bool(self.metadata.get("fetch_full_content", False))


@dataclass
class SourceWithStats:
    """A source plus aggregate article stats, for listings."""

    source: Source
    article_count: int = 0
    latest_article: datetime | None = None
