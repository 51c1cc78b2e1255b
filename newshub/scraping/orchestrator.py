"""
Scrape orchestrator - runs extractors over the registered sources.

One run at a time per orchestrator: a start request while a run is active
is rejected with a "busy" RunResult rather than queued. Within a run,
sources are scraped strictly in listing order, one after another, so the
Fetcher's post-fetch delay bounds load on upstream sites.

Features:
- Full, subset and single-source runs through the same bookkeeping
- Cooperative timeout: the partial result is returned on expiry while the
  in-flight source finishes in the background
- Max-articles cap checked after each successful source
- Per-source error boundary; a fatal error ends the run as data
"""

import asyncio
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import structlog

from newshub.config.settings import get_settings
from newshub.observability.logging import bind_context, clear_context
from newshub.observability.metrics import get_metrics
from newshub.runs.ledger import new_run_id
from newshub.runs.repository import ScrapeLogRepository
from newshub.runs.schemas import RunResult, ScrapeLog, SourceRunDetail
from newshub.scraping.base_extractor import BaseExtractor
from newshub.scraping.errors import SourceNotFoundError, UnsupportedSourceError
from newshub.scraping.fetcher import Fetcher
from newshub.scraping.ingestor import ArticleIngestor
from newshub.scraping.registry import build_extractor
from newshub.sources.repository import SourcesRepository
from newshub.sources.schemas import Source
from newshub.storage.database import Database
from newshub.storage.repository import ArticleRepository

logger = structlog.get_logger(__name__)

# Called with (source name, None) when a source starts and (None, detail) when it ends
ProgressCallback = Callable[[str | None, SourceRunDetail | None], None]

STATUS_SUCCESS = "success"
STATUS_ERROR = "error"


@dataclass
class _RunState:
    """Mutable accumulator shared between a run's loop task and its caller."""

    result: RunResult
    started: float = field(default_factory=time.monotonic)
    stop: bool = False

    def record(self, detail: SourceRunDetail) -> None:
        if detail.status == STATUS_SUCCESS:
            self.result.successful += 1
            self.result.articles += detail.articles
        else:
            self.result.failed += 1
        self.result.details.append(detail)

    def snapshot(self, **updates: Any) -> RunResult:
        result = self.result.model_copy(deep=True)
        result.duration_ms = int((time.monotonic() - self.started) * 1000)
        for key, value in updates.items():
            setattr(result, key, value)
        return result


class ScrapeOrchestrator:
    """
    Runs source extractors and records their outcomes.

    Usage:
        orchestrator = ScrapeOrchestrator(database)
        await orchestrator.initialize()
        result = await orchestrator.run_all()
    """

    def __init__(
        self,
        database: Database | None = None,
        *,
        sources: SourcesRepository | None = None,
        store: ArticleRepository | None = None,
        logs: ScrapeLogRepository | None = None,
        fetcher_factory: Callable[[], Fetcher] | None = None,
        refresh_existing: bool | None = None,
        mirror_instances: list[str] | None = None,
    ):
        """
        Initialize orchestrator.

        Args:
            database: Connected Database (repositories default to it)
            sources: Source registry repository
            store: Article store
            logs: Scrape log repository
            fetcher_factory: Builds the run-scoped Fetcher (default: Fetcher)
            refresh_existing: Refresh stored URLs instead of skipping (default from settings)
            mirror_instances: Mirror failover list (default from settings)
        """
        settings = get_settings()

        if database is None and None in (sources, store, logs):
            raise ValueError("database is required unless every repository is given")

        self._sources = sources or SourcesRepository(database)
        self._store = store or ArticleRepository(database)
        self._logs = logs or ScrapeLogRepository(database)
        self._ingestor = ArticleIngestor(self._store)
        self._fetcher_factory = fetcher_factory or Fetcher
        self._refresh_existing = (
            settings.refresh_existing if refresh_existing is None else refresh_existing
        )
        self._mirror_instances = mirror_instances

        self._extractors: dict[int, tuple[Source, BaseExtractor]] = {}
        self._lock = asyncio.Lock()
        self._loop_task: asyncio.Task | None = None
        self._initialized = False
        self._metrics = get_metrics()

    # ── Registration ────────────────────────────────────────────

    async def initialize(self) -> int:
        """
        Load enabled sources and build one extractor per source.

        Unsupported or misconfigured sources are logged and left out.

        Returns:
            Number of registered sources
        """
        sources = await self._sources.list_enabled()
        logger.info("Initializing scrape orchestrator", enabled_sources=len(sources))

        extractors: dict[int, tuple[Source, BaseExtractor]] = {}
        for source in sources:
            try:
                extractor = build_extractor(
                    source,
                    store=self._store,
                    refresh_existing=self._refresh_existing,
                    mirror_instances=self._mirror_instances,
                )
            except (UnsupportedSourceError, ValueError) as e:
                logger.warning("Skipping source", source=source.name, reason=str(e))
                continue
            extractors[source.id] = (source, extractor)

        self._extractors = extractors
        self._initialized = True
        logger.info("Scrape orchestrator initialized", registered=len(self._extractors))
        return len(self._extractors)

    async def ensure_initialized(self) -> None:
        if not self._initialized:
            await self.initialize()

    def register(self, source: Source, extractor: BaseExtractor) -> None:
        """Register an extractor for a source directly (appended to listing order)."""
        self._extractors[source.id] = (source, extractor)
        self._initialized = True

    @property
    def source_ids(self) -> list[int]:
        """Registered source ids in listing order."""
        return list(self._extractors)

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    @property
    def state(self) -> str:
        return "running" if self.is_running else "idle"

    # ── Runs ────────────────────────────────────────────────────

    async def run_all(self, progress: ProgressCallback | None = None) -> RunResult:
        """Scrape every registered source in listing order."""
        return await self._run(self.source_ids, mode="all", progress=progress)

    async def run_selected(
        self,
        source_ids: Sequence[int],
        timeout: float | None = None,
        max_articles: int | None = None,
        progress: ProgressCallback | None = None,
    ) -> RunResult:
        """
        Scrape a subset of sources.

        Args:
            source_ids: Ids in the order to scrape them; unknown ids count as failed
            timeout: Seconds before the partial result is returned (timed_out=True)
            max_articles: Stop once this many new articles have been stored
            progress: Optional per-source progress callback

        Returns:
            RunResult (a busy result if another run is active)
        """
        return await self._run(
            list(source_ids),
            mode="selected",
            timeout=timeout,
            max_articles=max_articles,
            progress=progress,
        )

    async def run_single(self, source_id: int) -> RunResult:
        """
        Scrape one registered source.

        Raises:
            SourceNotFoundError: No extractor is registered for ``source_id``
        """
        if source_id not in self._extractors:
            raise SourceNotFoundError(source_id)
        return await self._run([source_id], mode="single")

    async def wait_until_idle(self) -> None:
        """Wait for an in-flight loop (e.g. one left running after a timeout) to finish."""
        task = self._loop_task
        if task is not None and not task.done():
            await asyncio.wait({task})

    async def _run(
        self,
        source_ids: list[int],
        mode: str,
        timeout: float | None = None,
        max_articles: int | None = None,
        progress: ProgressCallback | None = None,
    ) -> RunResult:
        if self._lock.locked():
            self._metrics.record_rejected()
            logger.warning("Scraping already in progress, skipping")
            return RunResult.busy()

        await self._lock.acquire()
        self._metrics.set_run_active(True)

        run_id = new_run_id()
        state = _RunState(result=RunResult(total=len(source_ids)))
        bind_context(run_id=run_id)

        logger.info(
            "Starting scrape run",
            mode=mode,
            sources=len(source_ids),
            timeout=timeout,
            max_articles=max_articles,
        )

        # The lock is released by the task's done callback, not by this frame,
        # so a timed-out run stays active until its in-flight source finishes.
        task = asyncio.create_task(
            self._loop(source_ids, state, max_articles, progress),
            name=f"scrape_{run_id}",
        )
        self._loop_task = task
        task.add_done_callback(self._on_loop_done)

        try:
            done, _ = await asyncio.wait({task}, timeout=timeout)

            if task not in done:
                state.stop = True
                result = state.snapshot(timed_out=True)
                logger.warning(
                    "Scraping stopped due to timeout",
                    timeout=timeout,
                    completed=len(result.details),
                )
            elif task.exception() is not None:
                error = task.exception()
                result = state.snapshot(success=False, message=f"Scrape run failed: {error}")
                logger.error("Scrape run failed", error=str(error))
            else:
                result = state.snapshot()

            self._metrics.record_run(mode, result.duration_ms / 1000.0, result.timed_out)
            logger.info(
                "Scrape run complete",
                duration_seconds=round(result.duration_ms / 1000.0, 2),
                successful=result.successful,
                failed=result.failed,
                total=result.total,
                new_articles=result.articles,
                timed_out=result.timed_out,
            )
            return result
        finally:
            clear_context("run_id")

    async def _loop(
        self,
        source_ids: list[int],
        state: _RunState,
        max_articles: int | None,
        progress: ProgressCallback | None,
    ) -> None:
        async with self._fetcher_factory() as fetcher:
            for source_id in source_ids:
                if state.stop:
                    break

                entry = self._extractors.get(source_id)
                if entry is None:
                    error = SourceNotFoundError(source_id)
                    logger.warning("No scraper found for source", source_id=source_id)
                    detail = SourceRunDetail(
                        source=f"source {source_id}",
                        source_id=source_id,
                        status=STATUS_ERROR,
                        error=str(error),
                    )
                    state.record(detail)
                    if progress:
                        progress(None, detail)
                    continue

                source, extractor = entry
                if progress:
                    progress(source.name, None)

                detail = await self._scrape_source(source, extractor, fetcher)
                state.record(detail)
                if progress:
                    progress(None, detail)

                if (
                    max_articles
                    and detail.status == STATUS_SUCCESS
                    and state.result.articles >= max_articles
                ):
                    logger.info("Reached max articles limit, stopping", max_articles=max_articles)
                    break

    async def _scrape_source(
        self,
        source: Source,
        extractor: BaseExtractor,
        fetcher: Fetcher,
    ) -> SourceRunDetail:
        """Scrape one source with full bookkeeping. Only bookkeeping failures propagate."""
        started_at = datetime.now(timezone.utc)
        start = time.monotonic()
        status = STATUS_ERROR
        found = 0
        new = 0
        error_message: str | None = None

        logger.info("Scraping source", source=source.name, kind=extractor.kind.value)

        try:
            await self._sources.mark_attempted(source.id)
            items = await extractor.extract(fetcher)
            ingested = await self._ingestor.ingest(items, source)
            found, new = ingested.found, ingested.new
            status = STATUS_SUCCESS
            await self._sources.mark_succeeded(source.id)
            if new:
                logger.info("Source scraped", source=source.name, new_articles=new)
            else:
                logger.info("Source scraped, no new articles", source=source.name)

        except Exception as e:
            status = STATUS_ERROR
            error_message = str(e) or type(e).__name__
            logger.error("Source failed", source=source.name, error=error_message)
            await self._sources.record_error(source.id, error_message)

        elapsed = time.monotonic() - start
        duration_ms = int(elapsed * 1000)

        await self._logs.append(
            ScrapeLog(
                source_id=source.id,
                status=status,
                articles_found=found,
                articles_new=new,
                duration_ms=duration_ms,
                error_message=error_message,
                started_at=started_at,
                completed_at=datetime.now(timezone.utc),
            )
        )
        self._metrics.record_source_scrape(extractor.kind.value, status, elapsed)

        return SourceRunDetail(
            source=source.name,
            source_id=source.id,
            status=status,
            articles=new,
            duration_ms=duration_ms,
            error=error_message,
        )

    def _on_loop_done(self, task: asyncio.Task) -> None:
        if not task.cancelled() and task.exception() is not None:
            # Retrieve so a failure after a timeout still gets logged
            logger.error("Scrape loop ended with error", error=str(task.exception()))
        self._release()

    def _release(self) -> None:
        if self._lock.locked():
            self._lock.release()
        self._metrics.set_run_active(False)
