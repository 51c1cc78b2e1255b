"""Sources service with seed support."""

import json
import logging
from pathlib import Path

from newshub.sources.config import SourcesConfig
from newshub.sources.repository import SourcesRepository
from newshub.sources.schemas import ExtractorKind, Source
from newshub.storage.database import Database

logger = logging.getLogger(__name__)

_SEED_FILE = Path(__file__).parent / "data" / "seed_sources.json"


def _parse_seed_entry(entry: dict) -> Source:
    """Convert a JSON seed entry to a Source dataclass."""
    return Source(
        name=entry["name"],
        url=entry["url"],
        source_type=entry.get("type", "news"),
        scraper_type=entry.get("scraper_type", ExtractorKind.HTML.value),
        enabled=entry.get("enabled", True),
        feed_url=entry.get("feed_url"),
        hashtag=entry.get("hashtag"),
        selectors=entry.get("selectors", {}),
        metadata=entry.get("metadata", {}),
    )


class SourcesService:
    """Source registry access for the orchestrator, API and CLI."""

    def __init__(
        self,
        database: Database,
        config: SourcesConfig | None = None,
    ) -> None:
        self._config = config or SourcesConfig()
        self._repo = SourcesRepository(database)

    @property
    def repository(self) -> SourcesRepository:
        """Access the underlying repository for direct DB operations."""
        return self._repo

    async def list_enabled(self) -> list[Source]:
        return await self._repo.list_enabled()

    async def feed_source_ids(self) -> list[int]:
        """Ids of enabled feed sources, used by the feed-only admin run."""
        return await self._repo.list_ids_by_kind(ExtractorKind.RSS.value)

    # ── Seed ────────────────────────────────────────────────────

    async def seed_from_json(self, path: Path | None = None) -> int:
        """Load sources from a JSON file into the database.

        Returns the number of sources upserted.
        """
        seed_path = path or _SEED_FILE
        with open(seed_path) as f:
            entries = json.load(f)

        sources = [_parse_seed_entry(e) for e in entries]
        count = await self._repo.bulk_upsert(sources)
        logger.info("Seeded %d sources from %s", count, seed_path)
        return count

    async def ensure_seeded(self) -> None:
        """Seed from default JSON if the table is empty and seed_on_init is True."""
        if not self._config.seed_on_init:
            return

        existing = await self._repo.count()
        if existing > 0:
            logger.debug("Sources table has %d rows, skipping seed", existing)
            return

        logger.info("Sources table empty, seeding from default JSON")
        await self.seed_from_json()
