"""Tests for ScrapeLogRepository."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from newshub.runs.repository import MAX_LOG_LIMIT, ScrapeLogRepository
from newshub.runs.schemas import ScrapeLog

STARTED = datetime(2024, 6, 4, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def repository(mock_database: AsyncMock) -> ScrapeLogRepository:
    return ScrapeLogRepository(mock_database)


class TestAppend:
    @pytest.mark.asyncio
    async def test_inserts_row(
        self, repository: ScrapeLogRepository, mock_database: AsyncMock
    ) -> None:
        entry = ScrapeLog(
            source_id=3,
            status="error",
            articles_found=0,
            duration_ms=812,
            error_message="Failed to fetch https://x: HTTP 503",
            started_at=STARTED,
            completed_at=STARTED,
        )

        await repository.append(entry)

        sql, *params = mock_database.execute.call_args[0]
        assert "INSERT INTO scrape_logs" in sql
        assert params[:2] == [3, "error"]
        assert params[4] == 812
        assert params[5].endswith("HTTP 503")


class TestRecent:
    @pytest.mark.asyncio
    async def test_all_sources(
        self, repository: ScrapeLogRepository, mock_database: AsyncMock
    ) -> None:
        mock_database.fetch.return_value = [
            {
                "id": 1,
                "source_id": 3,
                "source_name": "Baldwin Times",
                "status": "success",
                "articles_found": 12,
                "articles_new": 2,
                "duration_ms": 1500,
                "error_message": None,
                "started_at": STARTED,
                "completed_at": STARTED,
            }
        ]

        [log] = await repository.recent(limit=10)

        assert log.source_name == "Baldwin Times"
        assert log.articles_new == 2
        assert mock_database.fetch.call_args[0][1:] == (10,)

    @pytest.mark.asyncio
    async def test_filtered_and_capped(
        self, repository: ScrapeLogRepository, mock_database: AsyncMock
    ) -> None:
        await repository.recent(limit=1000, source_id=3)

        sql, source_id, limit = mock_database.fetch.call_args[0]
        assert "WHERE sl.source_id = $1" in sql
        assert source_id == 3
        assert limit == MAX_LOG_LIMIT


class TestStats:
    @pytest.mark.asyncio
    async def test_success_rate(
        self, repository: ScrapeLogRepository, mock_database: AsyncMock
    ) -> None:
        mock_database.fetchrow.return_value = {"total": 8, "successful": 6, "avg_duration": 1234.56}

        stats = await repository.success_rate(100)

        assert stats == {"total": 8, "successful": 6, "rate": 0.75, "avg_duration_ms": 1234.6}

    @pytest.mark.asyncio
    async def test_success_rate_empty(
        self, repository: ScrapeLogRepository, mock_database: AsyncMock
    ) -> None:
        mock_database.fetchrow.return_value = {"total": 0, "successful": 0, "avg_duration": None}

        stats = await repository.success_rate()

        assert stats["rate"] is None
        assert stats["avg_duration_ms"] is None

    @pytest.mark.asyncio
    async def test_source_stats(
        self, repository: ScrapeLogRepository, mock_database: AsyncMock
    ) -> None:
        mock_database.fetch.return_value = [
            {
                "id": 3,
                "name": "Baldwin Times",
                "enabled": True,
                "error_count": 1,
                "last_successful_scrape": STARTED,
                "attempts": 10,
                "successful_attempts": 9,
            }
        ]

        [row] = await repository.source_stats()

        assert row["last_successful_scrape"] == STARTED.isoformat()
        assert row["successful_attempts"] == 9
