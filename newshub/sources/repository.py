"""Database repository for the sources table."""

import json
import logging
from typing import Any

from newshub.sources.schemas import Source, SourceWithStats
from newshub.storage.database import Database

logger = logging.getLogger(__name__)

_CREATE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS sources (
    id                     SERIAL PRIMARY KEY,
    name                   VARCHAR(100) NOT NULL UNIQUE,
    url                    VARCHAR(500) NOT NULL,
    type                   VARCHAR(50) NOT NULL,
    scraper_type           VARCHAR(50) NOT NULL,
    enabled                BOOLEAN NOT NULL DEFAULT TRUE,
    feed_url               VARCHAR(500),
    hashtag                VARCHAR(100),
    selectors              JSONB NOT NULL DEFAULT '{}',
    metadata               JSONB NOT NULL DEFAULT '{}',
    last_scraped           TIMESTAMPTZ,
    last_successful_scrape TIMESTAMPTZ,
    scrape_count           INTEGER NOT NULL DEFAULT 0,
    error_count            INTEGER NOT NULL DEFAULT 0,
    last_error             TEXT,
    created_at             TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at             TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_sources_enabled
    ON sources(enabled) WHERE enabled = TRUE;
CREATE INDEX IF NOT EXISTS idx_sources_scraper_type
    ON sources(scraper_type);
"""

_UPSERT_SQL = """
INSERT INTO sources (name, url, type, scraper_type, enabled, feed_url, hashtag, selectors, metadata)
VALUES ($1, $2, $3, $4, $5, $6, $7, $8::jsonb, $9::jsonb)
ON CONFLICT (name) DO UPDATE SET
    url = EXCLUDED.url,
    type = EXCLUDED.type,
    scraper_type = EXCLUDED.scraper_type,
    enabled = EXCLUDED.enabled,
    feed_url = EXCLUDED.feed_url,
    hashtag = EXCLUDED.hashtag,
    selectors = EXCLUDED.selectors,
    metadata = EXCLUDED.metadata,
    updated_at = NOW()
RETURNING *
"""

_BULK_UPSERT_SQL = """
INSERT INTO sources (name, url, type, scraper_type, enabled, feed_url, hashtag, selectors, metadata)
SELECT * FROM unnest(
    $1::text[], $2::text[], $3::text[], $4::text[], $5::boolean[],
    $6::text[], $7::text[], $8::jsonb[], $9::jsonb[]
)
ON CONFLICT (name) DO UPDATE SET
    url = EXCLUDED.url,
    type = EXCLUDED.type,
    scraper_type = EXCLUDED.scraper_type,
    feed_url = EXCLUDED.feed_url,
    hashtag = EXCLUDED.hashtag,
    selectors = EXCLUDED.selectors,
    metadata = EXCLUDED.metadata,
    updated_at = NOW()
"""

# Columns an admin may change through update()
_UPDATABLE_COLUMNS = {
    "name", "url", "type", "scraper_type", "enabled", "feed_url", "hashtag",
    "selectors", "metadata",
}
_JSON_COLUMNS = {"selectors", "metadata"}


def _json_field(value: Any) -> dict:
    """JSONB arrives as text unless a codec is registered on the pool."""
    if not value:
        return {}
    if isinstance(value, str):
        return json.loads(value)
    return dict(value)


def _row_count(status: str) -> int:
    """Parse the row count out of an asyncpg status string like 'UPDATE 3'."""
    try:
        return int(status.rsplit(" ", 1)[-1])
    except (ValueError, AttributeError, IndexError):
        return 0


def _record_to_source(record) -> Source:
    """Convert an asyncpg Record to a Source dataclass."""
    return Source(
        id=record["id"],
        name=record["name"],
        url=record["url"],
        source_type=record["type"],
        scraper_type=record["scraper_type"],
        enabled=record["enabled"],
        feed_url=record.get("feed_url"),
        hashtag=record.get("hashtag"),
        selectors=_json_field(record.get("selectors")),
        metadata=_json_field(record.get("metadata")),
        last_scraped=record.get("last_scraped"),
        last_successful_scrape=record.get("last_successful_scrape"),
        scrape_count=record.get("scrape_count") or 0,
        error_count=record.get("error_count") or 0,
        last_error=record.get("last_error"),
        created_at=record.get("created_at"),
        updated_at=record.get("updated_at"),
    )


class SourcesRepository:
    """CRUD and bookkeeping operations for the sources table."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def create_table(self) -> None:
        """Create the sources table and indexes (idempotent)."""
        await self._db.execute(_CREATE_TABLE_SQL)
        logger.info("Sources table ensured")

    async def upsert(self, source: Source) -> Source:
        """Insert or update a single source by name."""
        row = await self._db.fetchrow(
            _UPSERT_SQL,
            source.name,
            source.url,
            source.source_type,
            source.scraper_type,
            source.enabled,
            source.feed_url,
            source.hashtag,
            json.dumps(source.selectors),
            json.dumps(source.metadata),
        )
        return _record_to_source(row)

    async def bulk_upsert(self, sources: list[Source]) -> int:
        """Insert or update multiple sources in one statement.

        The enabled flag of existing rows is left alone so a re-seed
        does not re-enable sources an admin switched off.

        Returns the number of sources processed.
        """
        if not sources:
            return 0

        await self._db.execute(
            _BULK_UPSERT_SQL,
            [s.name for s in sources],
            [s.url for s in sources],
            [s.source_type for s in sources],
            [s.scraper_type for s in sources],
            [s.enabled for s in sources],
            [s.feed_url for s in sources],
            [s.hashtag for s in sources],
            [json.dumps(s.selectors) for s in sources],
            [json.dumps(s.metadata) for s in sources],
        )
        logger.info("Bulk upserted %d sources", len(sources))
        return len(sources)

    async def get_by_id(self, source_id: int) -> Source | None:
        row = await self._db.fetchrow("SELECT * FROM sources WHERE id = $1", source_id)
        return _record_to_source(row) if row else None

    async def list_enabled(self) -> list[Source]:
        """Enabled sources in listing order (by name)."""
        rows = await self._db.fetch(
            "SELECT * FROM sources WHERE enabled = TRUE ORDER BY name"
        )
        return [_record_to_source(r) for r in rows]

    async def list_ids_by_kind(self, scraper_type: str) -> list[int]:
        """Ids of enabled sources using the given extractor kind, in listing order."""
        rows = await self._db.fetch(
            "SELECT id FROM sources WHERE scraper_type = $1 AND enabled = TRUE ORDER BY name",
            scraper_type,
        )
        return [r["id"] for r in rows]

    async def list_with_stats(self) -> list[SourceWithStats]:
        """All sources with article counts and latest publication time."""
        rows = await self._db.fetch(
            """
            SELECT s.*, COUNT(a.id) AS article_count, MAX(a.published_at) AS latest_article
            FROM sources s
            LEFT JOIN articles a ON s.id = a.source_id
            GROUP BY s.id
            ORDER BY s.name
            """
        )
        return [
            SourceWithStats(
                source=_record_to_source(r),
                article_count=r["article_count"] or 0,
                latest_article=r["latest_article"],
            )
            for r in rows
        ]

    # ── Run bookkeeping ──────────────────────────────────────────

    async def mark_attempted(self, source_id: int) -> None:
        await self._db.execute(
            "UPDATE sources SET last_scraped = NOW() WHERE id = $1", source_id
        )

    async def mark_succeeded(self, source_id: int) -> None:
        await self._db.execute(
            """
            UPDATE sources
            SET last_successful_scrape = NOW(), scrape_count = scrape_count + 1
            WHERE id = $1
            """,
            source_id,
        )

    async def record_error(self, source_id: int, message: str) -> None:
        await self._db.execute(
            """
            UPDATE sources
            SET error_count = error_count + 1, last_error = $1
            WHERE id = $2
            """,
            message,
            source_id,
        )

    # ── Admin operations ────────────────────────────────────────

    async def toggle(self, source_id: int) -> Source | None:
        """Flip the enabled flag. Returns the updated source, or None if missing."""
        row = await self._db.fetchrow(
            """
            UPDATE sources SET enabled = NOT enabled, updated_at = NOW()
            WHERE id = $1
            RETURNING *
            """,
            source_id,
        )
        return _record_to_source(row) if row else None

    async def update(self, source_id: int, fields: dict[str, Any]) -> Source | None:
        """Update whitelisted columns. Raises ValueError if nothing to update."""
        updates = {k: v for k, v in fields.items() if k in _UPDATABLE_COLUMNS and v is not None}
        if not updates:
            raise ValueError("No fields to update")

        assignments = []
        params: list[Any] = []
        for idx, (column, value) in enumerate(updates.items(), start=1):
            if column in _JSON_COLUMNS:
                assignments.append(f"{column} = ${idx}::jsonb")
                params.append(json.dumps(value))
            else:
                assignments.append(f"{column} = ${idx}")
                params.append(value)
        params.append(source_id)

        sql = f"""
            UPDATE sources
            SET {", ".join(assignments)}, updated_at = NOW()
            WHERE id = ${len(params)}
            RETURNING *
        """
        row = await self._db.fetchrow(sql, *params)
        return _record_to_source(row) if row else None

    async def enable_all(self) -> int:
        status = await self._db.execute(
            "UPDATE sources SET enabled = TRUE, updated_at = NOW()"
        )
        return _row_count(status)

    async def reset_errors(self) -> int:
        status = await self._db.execute(
            "UPDATE sources SET error_count = 0, last_error = NULL, updated_at = NOW()"
        )
        return _row_count(status)

    async def count(self) -> int:
        """Count total sources in the table."""
        return await self._db.fetchval("SELECT COUNT(*) FROM sources")
