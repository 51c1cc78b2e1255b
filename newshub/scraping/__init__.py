"""Scraping module - fetcher, extractors, normalization and orchestration."""

from newshub.scraping.errors import (
    FetchError,
    ParseError,
    ScrapeError,
    SourceNotFoundError,
    UnsupportedSourceError,
)
from newshub.scraping.schemas import (
    ArticleRecord,
    Category,
    ContentType,
    RawItem,
    StoredArticle,
)

__all__ = [
    "ArticleRecord",
    "Category",
    "ContentType",
    "FetchError",
    "ParseError",
    "RawItem",
    "ScrapeError",
    "SourceNotFoundError",
    "StoredArticle",
    "UnsupportedSourceError",
]
