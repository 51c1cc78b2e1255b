"""
Base extractor interface and shared functionality for source extractors.

Each extractor kind implements:
- _fetch_document(): fetch the source's listing document through the Fetcher
- _iter_blocks(): split the document into candidate items
- _transform(): turn one candidate into a RawItem (or None to skip it)

The base class provides:
- The per-item error boundary (a bad item never aborts its siblings)
- The find-then-skip fast path against the article store
- Stats and logging for every run
"""

import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from newshub.observability.metrics import get_metrics
from newshub.scraping.errors import ParseError
from newshub.scraping.fetcher import Fetcher
from newshub.scraping.schemas import RawItem
from newshub.sources.schemas import ExtractorKind, Source
from newshub.storage.repository import ArticleRepository

logger = logging.getLogger(__name__)


@dataclass
class ExtractorStats:
    """Statistics for one extract() call."""

    blocks_seen: int = 0
    items_extracted: int = 0
    items_filtered: int = 0
    items_skipped: int = 0
    errors: int = 0
    start_time: float = field(default_factory=time.monotonic)

    @property
    def elapsed_seconds(self) -> float:
        return time.monotonic() - self.start_time


class BaseExtractor(ABC):
    """
    Abstract base class for source extractors.

    An extractor is built once per source when the orchestrator initializes
    and reused across runs; the Fetcher is supplied per run.

    Subclasses must implement:
        - kind: ExtractorKind value
        - _fetch_document(): fetch and return the raw listing document
        - _iter_blocks(): yield candidate items from that document
        - _transform(): build a RawItem, return None for a quality skip,
          raise ParseError for a malformed item
    """

    def __init__(
        self,
        source: Source,
        store: ArticleRepository | None = None,
        refresh_existing: bool = False,
    ):
        """
        Initialize extractor.

        Args:
            source: Source this extractor scrapes
            store: Article store used for the find-then-skip check
            refresh_existing: Keep items whose URL is already stored
        """
        self.source = source
        self._store = store
        self._refresh_existing = refresh_existing
        self._stats = ExtractorStats()

    @property
    @abstractmethod
    def kind(self) -> ExtractorKind:
        """Return the extractor kind this class implements."""
        ...

    @property
    def name(self) -> str:
        """Human-readable extractor name."""
        return f"{self.kind.value}:{self.source.name}"

    @abstractmethod
    async def _fetch_document(self, fetcher: Fetcher) -> Any:
        """
        Fetch the listing document for this source.

        FetchError propagates and fails the whole source.
        """
        ...

    @abstractmethod
    def _iter_blocks(self, document: Any) -> Iterable[Any]:
        """Split a fetched document into candidate items."""
        ...

    @abstractmethod
    def _transform(self, block: Any) -> RawItem | None:
        """
        Turn one candidate into a RawItem.

        Returns None when the block fails a quality check (not an error).
        Raises ParseError when the block is malformed.
        """
        ...

    async def _enrich(self, item: RawItem, fetcher: Fetcher) -> RawItem:
        """Hook for per-item follow-up fetches on new items. Default: no-op."""
        return item

    async def _already_stored(self, url: str) -> bool:
        if self._store is None or self._refresh_existing:
            return False
        existing = await self._store.find_by_url(url)
        return existing is not None

    async def extract(self, fetcher: Fetcher) -> list[RawItem]:
        """
        Fetch the source and return its new items.

        Args:
            fetcher: Run-scoped fetcher (carries headers, timeout and delay)

        Returns:
            RawItems whose URLs are not yet stored (all of them when
            refresh_existing is set)

        Raises:
            FetchError: The listing document could not be fetched
            ParseError: The listing document is not parseable at all
        """
        self._stats = ExtractorStats()
        items: list[RawItem] = []

        logger.info(f"Starting extract for {self.name}")

        try:
            document = await self._fetch_document(fetcher)

            for block in self._iter_blocks(document):
                self._stats.blocks_seen += 1
                try:
                    item = self._transform(block)
                except ParseError as e:
                    self._stats.errors += 1
                    logger.warning(f"Skipping malformed item in {self.name}: {e}")
                    continue
                except Exception as e:
                    self._stats.errors += 1
                    logger.error(
                        f"Error transforming item in {self.name}: {e}",
                        exc_info=True,
                    )
                    continue

                if item is None:
                    self._stats.items_filtered += 1
                    continue

                if await self._already_stored(item.url):
                    self._stats.items_skipped += 1
                    logger.debug(f"Article already exists: {item.url}")
                    continue

                items.append(await self._enrich(item, fetcher))
                self._stats.items_extracted += 1

        finally:
            metrics = get_metrics()
            metrics.record_skipped(self.kind.value, self._stats.items_skipped)
            metrics.record_item_errors(self.kind.value, self._stats.errors)
            logger.info(
                f"{self.name} completed: "
                f"blocks={self._stats.blocks_seen}, "
                f"new={self._stats.items_extracted}, "
                f"skipped={self._stats.items_skipped}, "
                f"filtered={self._stats.items_filtered}, "
                f"errors={self._stats.errors}, "
                f"elapsed={self._stats.elapsed_seconds:.2f}s"
            )

        return items

    @property
    def stats(self) -> ExtractorStats:
        """Get statistics for the last extract() call."""
        return self._stats
