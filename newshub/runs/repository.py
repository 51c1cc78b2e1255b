"""Persisted per-source scrape log."""

import logging
from typing import Any

from newshub.runs.schemas import ScrapeLog
from newshub.storage.database import Database

logger = logging.getLogger(__name__)

MAX_LOG_LIMIT = 200

_CREATE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS scrape_logs (
    id             SERIAL PRIMARY KEY,
    source_id      INTEGER REFERENCES sources(id) ON DELETE CASCADE,
    status         VARCHAR(20) NOT NULL,
    articles_found INTEGER NOT NULL DEFAULT 0,
    articles_new   INTEGER NOT NULL DEFAULT 0,
    duration_ms    INTEGER,
    error_message  TEXT,
    started_at     TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    completed_at   TIMESTAMPTZ
);

CREATE INDEX IF NOT EXISTS idx_scrape_logs_source ON scrape_logs(source_id);
CREATE INDEX IF NOT EXISTS idx_scrape_logs_started ON scrape_logs(started_at DESC);
"""


class ScrapeLogRepository:
    """Append-only audit log of source attempts."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def create_table(self) -> None:
        await self._db.execute(_CREATE_TABLE_SQL)
        logger.info("Scrape log table ensured")

    async def append(self, entry: ScrapeLog) -> None:
        """Persist one source attempt.

        Args:
            entry: Attempt to record.
        """
        await self._db.execute(
            """
            INSERT INTO scrape_logs (
                source_id, status, articles_found, articles_new,
                duration_ms, error_message, started_at, completed_at
            ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
            """,
            entry.source_id,
            entry.status,
            entry.articles_found,
            entry.articles_new,
            entry.duration_ms,
            entry.error_message,
            entry.started_at,
            entry.completed_at,
        )

    async def recent(
        self,
        limit: int = 50,
        source_id: int | None = None,
    ) -> list[ScrapeLog]:
        """Most recent attempts first, optionally for one source.

        Args:
            limit: Maximum rows (capped at 200).
            source_id: Optional source filter.
        """
        limit = min(max(limit, 1), MAX_LOG_LIMIT)
        if source_id is not None:
            sql = """
                SELECT sl.*, s.name AS source_name
                FROM scrape_logs sl
                LEFT JOIN sources s ON sl.source_id = s.id
                WHERE sl.source_id = $1
                ORDER BY sl.started_at DESC
                LIMIT $2
            """
            rows = await self._db.fetch(sql, source_id, limit)
        else:
            sql = """
                SELECT sl.*, s.name AS source_name
                FROM scrape_logs sl
                LEFT JOIN sources s ON sl.source_id = s.id
                ORDER BY sl.started_at DESC
                LIMIT $1
            """
            rows = await self._db.fetch(sql, limit)

        return [_row_to_log(row) for row in rows]

    async def success_rate(self, last_n: int = 100) -> dict[str, Any]:
        """Success ratio and mean duration over the last ``last_n`` attempts."""
        row = await self._db.fetchrow(
            """
            SELECT
                COUNT(*) AS total,
                COUNT(*) FILTER (WHERE status = 'success') AS successful,
                AVG(duration_ms) AS avg_duration
            FROM (
                SELECT status, duration_ms FROM scrape_logs
                ORDER BY started_at DESC
                LIMIT $1
            ) recent_scrapes
            """,
            last_n,
        )
        total = row["total"] or 0
        successful = row["successful"] or 0
        avg_duration = row["avg_duration"]
        return {
            "total": total,
            "successful": successful,
            "rate": round(successful / total, 4) if total else None,
            "avg_duration_ms": round(float(avg_duration), 1) if avg_duration is not None else None,
        }

    async def source_stats(self) -> list[dict[str, Any]]:
        """Per-source attempt counts from the log, for the admin stats view."""
        rows = await self._db.fetch(
            """
            SELECT
                s.id, s.name, s.enabled, s.error_count, s.last_successful_scrape,
                COUNT(sl.id) AS attempts,
                COUNT(sl.id) FILTER (WHERE sl.status = 'success') AS successful_attempts
            FROM sources s
            LEFT JOIN scrape_logs sl ON s.id = sl.source_id
            GROUP BY s.id
            ORDER BY s.name
            """
        )
        return [
            {
                "id": r["id"],
                "name": r["name"],
                "enabled": r["enabled"],
                "error_count": r["error_count"],
                "last_successful_scrape": (
                    r["last_successful_scrape"].isoformat()
                    if r["last_successful_scrape"]
                    else None
                ),
                "attempts": r["attempts"],
                "successful_attempts": r["successful_attempts"],
            }
            for r in rows
        ]


def _row_to_log(row: Any) -> ScrapeLog:
    """Convert an asyncpg Record to a ScrapeLog."""
    return ScrapeLog(
        id=row["id"],
        source_id=row["source_id"],
        source_name=row.get("source_name"),
        status=row["status"],
        articles_found=row.get("articles_found") or 0,
        articles_new=row.get("articles_new") or 0,
        duration_ms=row.get("duration_ms") or 0,
        error_message=row.get("error_message"),
        started_at=row["started_at"],
        completed_at=row.get("completed_at"),
    )
