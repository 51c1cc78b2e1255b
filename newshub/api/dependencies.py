"""
Dependency injection for FastAPI routes.

Global singletons are created on first use and torn down by
``cleanup_dependencies`` in the application lifespan. Async creation is
serialized so concurrent first requests share one instance.
"""

import asyncio

from newshub.config.settings import get_settings
from newshub.runs.ledger import RunLedger
from newshub.runs.repository import ScrapeLogRepository
from newshub.scraping.orchestrator import ScrapeOrchestrator
from newshub.sources.service import SourcesService
from newshub.storage.database import Database
from newshub.storage.repository import ArticleRepository

# Global instances (initialized lazily)
_database: Database | None = None
_orchestrator: ScrapeOrchestrator | None = None
_ledger: RunLedger | None = None

_database_lock = asyncio.Lock()
_orchestrator_lock = asyncio.Lock()


async def get_database() -> Database:
    """Get the connected database pool."""
    global _database

    if _database is None:
        async with _database_lock:
            if _database is None:
                database = Database()
                await database.connect()
                _database = database

    return _database


async def get_article_repository() -> ArticleRepository:
    return ArticleRepository(await get_database())


async def get_log_repository() -> ScrapeLogRepository:
    return ScrapeLogRepository(await get_database())


async def get_sources_service() -> SourcesService:
    return SourcesService(await get_database())


async def get_orchestrator() -> ScrapeOrchestrator:
    """
    Get the process-wide orchestrator.

    One instance per process so the single-run guard covers every
    admin request.
    """
    global _orchestrator

    if _orchestrator is None:
        async with _orchestrator_lock:
            if _orchestrator is None:
                orchestrator = ScrapeOrchestrator(await get_database())
                await orchestrator.initialize()
                _orchestrator = orchestrator

    return _orchestrator


def get_ledger() -> RunLedger:
    """Get the in-memory run ledger."""
    global _ledger

    if _ledger is None:
        settings = get_settings()
        _ledger = RunLedger(
            limit=settings.run_history_limit,
            ttl_seconds=settings.run_history_ttl_seconds,
        )

    return _ledger


async def cleanup_dependencies() -> None:
    """Clean up global dependencies on shutdown."""
    global _database, _orchestrator, _ledger, _database_lock, _orchestrator_lock

    if _orchestrator is not None:
        await _orchestrator.wait_until_idle()
        _orchestrator = None

    _ledger = None

    if _database is not None:
        await _database.close()
        _database = None

    # Fresh locks for the next event loop
    _database_lock = asyncio.Lock()
    _orchestrator_lock = asyncio.Lock()
