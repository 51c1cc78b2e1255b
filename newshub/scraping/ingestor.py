"""
Ingestion of extracted items into the article store.

Normalizes each RawItem, upserts it by URL and attaches its tag set.
Store failures propagate and fail the source; an item that does not
normalize into a valid record is skipped.
"""

import logging
from dataclasses import dataclass

from pydantic import ValidationError

from newshub.observability.metrics import get_metrics
from newshub.scraping.normalizer import normalize
from newshub.scraping.schemas import RawItem
from newshub.sources.schemas import Source
from newshub.storage.repository import ArticleRepository

logger = logging.getLogger(__name__)


@dataclass
class IngestResult:
    """Counts from ingesting one source's items."""

    found: int = 0
    new: int = 0
    updated: int = 0
    invalid: int = 0

    @property
    def stored(self) -> int:
        return self.new + self.updated


class ArticleIngestor:
    """Writes normalized articles and their tags through the ArticleRepository."""

    def __init__(self, store: ArticleRepository):
        self._store = store

    async def ingest(self, items: list[RawItem], source: Source) -> IngestResult:
        """
        Normalize and store items for one source.

        Args:
            items: Items returned by the source's extractor
            source: Owning source (id and base URL)

        Returns:
            IngestResult with new/updated counts
        """
        result = IngestResult(found=len(items))
        metrics = get_metrics()

        for item in items:
            try:
                record = normalize(item, source_id=source.id, base_url=source.url)
            except ValidationError as e:
                result.invalid += 1
                logger.warning(f"Skipping invalid item {item.url} from {source.name}: {e}")
                continue

            stored, inserted = await self._store.upsert(record)
            await self._store.add_tags(stored.id, record.tags)

            if inserted:
                result.new += 1
                logger.info(f"Saved article: {record.title}")
            else:
                result.updated += 1
                logger.debug(f"Refreshed article: {record.url}")
            metrics.record_article_stored(record.content_type.value, inserted)

        return result
