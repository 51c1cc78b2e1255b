"""
Extractor dispatch by source kind.

The set of kinds is closed (ExtractorKind). Each implemented kind maps to
one extractor class; ``browser`` is a declared kind with no implementation
and, like any unknown string, raises UnsupportedSourceError.
"""

import logging

from newshub.scraping.base_extractor import BaseExtractor
from newshub.scraping.errors import UnsupportedSourceError
from newshub.scraping.feed_extractor import FeedExtractor
from newshub.scraping.mirror_extractor import MirrorExtractor
from newshub.scraping.page_extractor import PageExtractor
from newshub.sources.schemas import ExtractorKind, Source
from newshub.storage.repository import ArticleRepository

logger = logging.getLogger(__name__)

EXTRACTORS: dict[ExtractorKind, type[BaseExtractor]] = {
    ExtractorKind.RSS: FeedExtractor,
    ExtractorKind.HTML: PageExtractor,
    ExtractorKind.MIRROR: MirrorExtractor,
}

# Older rows name the kind after the scraping library
KIND_ALIASES: dict[str, ExtractorKind] = {
    "cheerio": ExtractorKind.HTML,
    "puppeteer": ExtractorKind.BROWSER,
    "nitter": ExtractorKind.MIRROR,
}


def resolve_kind(value: str) -> ExtractorKind | None:
    """Map a stored scraper_type string to an ExtractorKind, or None if unknown."""
    value = (value or "").strip().lower()
    if value in KIND_ALIASES:
        return KIND_ALIASES[value]
    try:
        return ExtractorKind(value)
    except ValueError:
        return None


def build_extractor(
    source: Source,
    store: ArticleRepository | None = None,
    refresh_existing: bool = False,
    mirror_instances: list[str] | None = None,
) -> BaseExtractor:
    """
    Create the extractor for a source.

    Args:
        source: Source row
        store: Article store for the find-then-skip check
        refresh_existing: Keep already-stored URLs instead of skipping them
        mirror_instances: Failover list for mirror sources (default from settings)

    Raises:
        UnsupportedSourceError: Unknown kind, or a kind with no implementation
        ValueError: The source lacks configuration its kind requires
    """
    kind = resolve_kind(source.scraper_type)
    extractor_cls = EXTRACTORS.get(kind) if kind else None
    if extractor_cls is None:
        raise UnsupportedSourceError(source.name, source.scraper_type)

    if extractor_cls is MirrorExtractor:
        return MirrorExtractor(
            source,
            store=store,
            refresh_existing=refresh_existing,
            instances=mirror_instances,
        )
    return extractor_cls(source, store=store, refresh_existing=refresh_existing)
