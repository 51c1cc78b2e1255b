"""Tests for the click CLI."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from click.testing import CliRunner

from newshub.cli import main
from newshub.runs.schemas import RunResult, SourceRunDetail


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def db(mock_database: AsyncMock):
    mock_database.connect = AsyncMock()
    mock_database.close = AsyncMock()
    with patch("newshub.storage.database.Database", return_value=mock_database):
        yield mock_database


@pytest.fixture
def orchestrator():
    orchestrator = MagicMock()
    orchestrator.initialize = AsyncMock(return_value=2)
    orchestrator.source_ids = [1, 3]
    orchestrator.wait_until_idle = AsyncMock()
    orchestrator.run_all = AsyncMock(
        return_value=RunResult(
            total=2,
            successful=1,
            failed=1,
            articles=3,
            details=[
                SourceRunDetail(source="AL.com Baldwin", status="success", articles=3),
                SourceRunDetail(source="Baldwin Times", status="error", error="HTTP 503"),
            ],
        )
    )
    orchestrator.run_selected = AsyncMock(return_value=RunResult(total=1, successful=1))
    with patch("newshub.scraping.orchestrator.ScrapeOrchestrator", return_value=orchestrator):
        yield orchestrator


def test_help_lists_commands(runner: CliRunner) -> None:
    result = runner.invoke(main, ["--help"])

    assert result.exit_code == 0
    for command in ("init-db", "scrape", "schedule", "serve", "purge", "health"):
        assert command in result.output


class TestScrape:
    def test_full_run_report(self, runner: CliRunner, db, orchestrator: MagicMock) -> None:
        result = runner.invoke(main, ["scrape"])

        assert result.exit_code == 0
        assert "Initialized 2 scrapers" in result.output
        assert "New articles:  3" in result.output
        assert "Error: HTTP 503" in result.output
        orchestrator.run_all.assert_awaited_once()
        orchestrator.wait_until_idle.assert_awaited_once()
        db.close.assert_awaited_once()

    def test_selected_sources(self, runner: CliRunner, db, orchestrator: MagicMock) -> None:
        result = runner.invoke(main, ["scrape", "--source", "3", "--max-articles", "10"])

        assert result.exit_code == 0
        orchestrator.run_selected.assert_awaited_once_with([3], timeout=None, max_articles=10)

    def test_timeout_alone_covers_all_sources(
        self, runner: CliRunner, db, orchestrator: MagicMock
    ) -> None:
        runner.invoke(main, ["scrape", "--timeout", "60"])

        orchestrator.run_selected.assert_awaited_once_with([1, 3], timeout=60.0, max_articles=None)

    def test_busy_exits_nonzero(self, runner: CliRunner, db, orchestrator: MagicMock) -> None:
        orchestrator.run_all.return_value = RunResult.busy()

        result = runner.invoke(main, ["scrape"])

        assert result.exit_code == 1
        assert "Scraping already in progress" in result.output


class TestPurge:
    def test_dry_run(self, runner: CliRunner, db: AsyncMock) -> None:
        db.fetchval.return_value = 5

        result = runner.invoke(main, ["purge", "--days", "30", "--dry-run"])

        assert result.exit_code == 0
        assert "would delete 5 articles older than 30 days" in result.output
        db.fetch.assert_not_awaited()

    def test_delete(self, runner: CliRunner, db: AsyncMock) -> None:
        db.fetch.return_value = [{"id": 1}, {"id": 2}]

        result = runner.invoke(main, ["purge", "--days", "30"])

        assert "Deleted 2 articles older than 30 days" in result.output


class TestHealth:
    def test_healthy(self, runner: CliRunner, db: AsyncMock) -> None:
        result = runner.invoke(main, ["health"])
        assert result.exit_code == 0

    def test_unhealthy(self, runner: CliRunner, db: AsyncMock) -> None:
        db.health_check.return_value = False
        result = runner.invoke(main, ["health"])
        assert result.exit_code == 1


class TestInitDb:
    def test_creates_tables_and_seeds(self, runner: CliRunner, db: AsyncMock) -> None:
        db.fetchval.return_value = 0

        result = runner.invoke(main, ["init-db"])

        assert result.exit_code == 0
        executed = [c[0][0] for c in db.execute.call_args_list]
        assert "CREATE TABLE IF NOT EXISTS sources" in executed[0]
        assert "CREATE TABLE IF NOT EXISTS articles" in executed[1]
        assert "CREATE TABLE IF NOT EXISTS scrape_logs" in executed[2]
        assert "unnest" in executed[3]
