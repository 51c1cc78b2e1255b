"""Fixtures for API tests: an app with every dependency overridden."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from newshub.api.app import create_app
from newshub.api.dependencies import (
    get_article_repository,
    get_database,
    get_ledger,
    get_log_repository,
    get_orchestrator,
    get_sources_service,
)
from newshub.runs.ledger import RunLedger
from newshub.runs.schemas import RunResult, SourceRunDetail


@pytest.fixture
def article_repo() -> AsyncMock:
    repo = AsyncMock()
    repo.list_articles = AsyncMock(return_value=[])
    repo.get_by_id = AsyncMock(return_value=None)
    repo.get_trending = AsyncMock(return_value=[])
    repo.get_stats = AsyncMock(return_value={"total_articles": 0})
    return repo


@pytest.fixture
def sources_service() -> MagicMock:
    service = MagicMock()
    service.repository = AsyncMock()
    service.repository.list_with_stats = AsyncMock(return_value=[])
    service.feed_source_ids = AsyncMock(return_value=[1, 5])
    return service


@pytest.fixture
def log_repo() -> AsyncMock:
    repo = AsyncMock()
    repo.recent = AsyncMock(return_value=[])
    repo.success_rate = AsyncMock(
        return_value={"total": 4, "successful": 3, "rate": 0.75, "avg_duration_ms": 900.0}
    )
    repo.source_stats = AsyncMock(return_value=[])
    return repo


@pytest.fixture
def orchestrator() -> MagicMock:
    result = RunResult(
        total=1,
        successful=1,
        articles=2,
        details=[SourceRunDetail(source="Baldwin Times", source_id=3, status="success", articles=2)],
    )
    orchestrator = MagicMock()
    orchestrator.is_running = False
    orchestrator.source_ids = [1, 3, 5]
    orchestrator.initialize = AsyncMock(return_value=3)
    orchestrator.run_all = AsyncMock(return_value=result)
    orchestrator.run_selected = AsyncMock(return_value=result)
    orchestrator.run_single = AsyncMock(return_value=result)
    return orchestrator


@pytest.fixture
def ledger() -> RunLedger:
    return RunLedger(limit=10, ttl_seconds=3600)


@pytest.fixture
def client(
    mock_database: AsyncMock,
    article_repo: AsyncMock,
    sources_service: MagicMock,
    log_repo: AsyncMock,
    orchestrator: MagicMock,
    ledger: RunLedger,
):
    app = create_app()
    app.dependency_overrides[get_database] = lambda: mock_database
    app.dependency_overrides[get_article_repository] = lambda: article_repo
    app.dependency_overrides[get_sources_service] = lambda: sources_service
    app.dependency_overrides[get_log_repository] = lambda: log_repo
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    app.dependency_overrides[get_ledger] = lambda: ledger

    with TestClient(app) as test_client:
        yield test_client
