"""Admin dashboard endpoints: source management, scrape jobs, logs and stats."""

import asyncio

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status

from newshub.api.dependencies import (
    get_article_repository,
    get_ledger,
    get_log_repository,
    get_orchestrator,
    get_sources_service,
)
from newshub.api.models import (
    Envelope,
    ErrorResponse,
    StartScrapeRequest,
    UpdateSourceRequest,
    ok,
    source_to_item,
)
from newshub.runs.ledger import RunLedger
from newshub.runs.repository import ScrapeLogRepository
from newshub.runs.schemas import BUSY_MESSAGE, ScrapeRun, SourceRunDetail
from newshub.scraping.errors import SourceNotFoundError
from newshub.scraping.orchestrator import ScrapeOrchestrator
from newshub.sources.service import SourcesService
from newshub.storage.repository import ArticleRepository

logger = structlog.get_logger(__name__)
router = APIRouter(prefix="/admin/api")

# Strong references to fire-and-forget job tasks
_background_tasks: set[asyncio.Task] = set()


def _busy(ledger: RunLedger, orchestrator: ScrapeOrchestrator) -> HTTPException | None:
    running = ledger.running()
    if running is not None or orchestrator.is_running:
        detail = "A scrape job is already running"
        if running is not None:
            detail = f"{detail}: {running.run_id}"
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=detail)
    return None


async def _refresh(orchestrator: ScrapeOrchestrator) -> None:
    """Pick up source changes made through the admin API before a run."""
    if not orchestrator.is_running:
        await orchestrator.initialize()


async def _open_job(
    orchestrator: ScrapeOrchestrator,
    ledger: RunLedger,
    source_ids: list[int] | None,
) -> ScrapeRun:
    """
    Claim the ledger slot for a new job, then refresh the orchestrator.

    The busy check and ``ledger.create`` run without an await between
    them, so a concurrent start request sees the new entry and gets a 409.
    """
    conflict = _busy(ledger, orchestrator)
    if conflict is not None:
        raise conflict
    run = ledger.create(total=len(source_ids) if source_ids else 0)

    try:
        await _refresh(orchestrator)
    except Exception as e:
        ledger.fail(run.run_id, str(e))
        raise

    if not source_ids:
        run.progress.total = len(orchestrator.source_ids)
    return run


async def _run_job(
    orchestrator: ScrapeOrchestrator,
    ledger: RunLedger,
    run_id: str,
    source_ids: list[int] | None,
    timeout: float | None,
    max_articles: int | None,
) -> None:
    completed = 0

    def on_progress(current: str | None, detail: SourceRunDetail | None) -> None:
        nonlocal completed
        if detail is None:
            ledger.update_progress(run_id, current=current)
            return
        completed += 1
        ledger.update_progress(run_id, articles=detail.articles, completed=completed)

    try:
        if source_ids:
            result = await orchestrator.run_selected(
                source_ids,
                timeout=timeout,
                max_articles=max_articles,
                progress=on_progress,
            )
        else:
            result = await orchestrator.run_all(progress=on_progress)
    except Exception as e:
        logger.error("Scrape job failed", run_id=run_id, error=str(e), exc_info=True)
        ledger.fail(run_id, str(e))
        return

    if result.success:
        ledger.complete(run_id, result)
        logger.info("Scrape job completed", run_id=run_id, articles=result.articles)
    else:
        ledger.fail(run_id, result.message or "Scrape run failed")
        logger.warning("Scrape job did not complete", run_id=run_id, message=result.message)


def _spawn(coro) -> None:
    task = asyncio.create_task(coro)
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)


# ── Sources ─────────────────────────────────────────────────────


@router.get(
    "/sources",
    response_model=Envelope,
    response_model_exclude_none=True,
    summary="All sources with stats",
)
async def admin_list_sources(service: SourcesService = Depends(get_sources_service)) -> dict:
    rows = await service.repository.list_with_stats()
    items = [source_to_item(r.source, r).model_dump(mode="json") for r in rows]
    return ok(items, count=len(items))


@router.patch(
    "/sources/{source_id}/toggle",
    response_model=Envelope,
    response_model_exclude_none=True,
    responses={404: {"model": ErrorResponse}},
    summary="Enable or disable a source",
)
async def toggle_source(
    source_id: int,
    service: SourcesService = Depends(get_sources_service),
) -> dict:
    source = await service.repository.toggle(source_id)
    if source is None:
        raise HTTPException(status_code=404, detail="Source not found")
    logger.info("Source toggled", source=source.name, enabled=source.enabled)
    return ok(source_to_item(source).model_dump(mode="json"))


@router.patch(
    "/sources/{source_id}",
    response_model=Envelope,
    response_model_exclude_none=True,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="Update source details",
)
async def update_source(
    source_id: int,
    body: UpdateSourceRequest,
    service: SourcesService = Depends(get_sources_service),
) -> dict:
    try:
        source = await service.repository.update(source_id, body.model_dump(exclude_none=True))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if source is None:
        raise HTTPException(status_code=404, detail="Source not found")
    logger.info("Source updated", source=source.name)
    return ok(source_to_item(source).model_dump(mode="json"))


@router.post(
    "/sources/{source_id}/test",
    response_model=Envelope,
    response_model_exclude_none=True,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
    summary="Scrape a single source now",
)
async def test_source(
    source_id: int,
    orchestrator: ScrapeOrchestrator = Depends(get_orchestrator),
) -> dict:
    await _refresh(orchestrator)
    try:
        result = await orchestrator.run_single(source_id)
    except SourceNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    if not result.success and result.message == BUSY_MESSAGE:
        raise HTTPException(status_code=409, detail=BUSY_MESSAGE)
    return ok(result.model_dump(mode="json"))


@router.post(
    "/sources/enable-all",
    response_model=Envelope,
    response_model_exclude_none=True,
    summary="Enable every source",
)
async def enable_all_sources(service: SourcesService = Depends(get_sources_service)) -> dict:
    count = await service.repository.enable_all()
    logger.info("Enabled all sources", count=count)
    return ok(count=count)


@router.post(
    "/sources/reset-errors",
    response_model=Envelope,
    response_model_exclude_none=True,
    summary="Reset error counters on every source",
)
async def reset_source_errors(service: SourcesService = Depends(get_sources_service)) -> dict:
    count = await service.repository.reset_errors()
    logger.info("Reset source errors", count=count)
    return ok(count=count)


# ── Scrape jobs ─────────────────────────────────────────────────


@router.post(
    "/scrape/start",
    response_model=Envelope,
    response_model_exclude_none=True,
    responses={409: {"model": ErrorResponse}},
    summary="Start a background scrape job",
)
async def start_scrape(
    body: StartScrapeRequest | None = None,
    orchestrator: ScrapeOrchestrator = Depends(get_orchestrator),
    ledger: RunLedger = Depends(get_ledger),
) -> dict:
    body = body or StartScrapeRequest()
    run = await _open_job(orchestrator, ledger, body.source_ids)
    _spawn(
        _run_job(
            orchestrator,
            ledger,
            run.run_id,
            body.source_ids,
            body.timeout_seconds,
            body.max_articles,
        )
    )

    logger.info("Scrape job started", run_id=run.run_id, sources=run.progress.total)
    return ok({"jobId": run.run_id, "status": run.status.value})


@router.post(
    "/scrape/rss-only",
    response_model=Envelope,
    response_model_exclude_none=True,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
    summary="Start a background scrape of feed sources only",
)
async def scrape_feeds_only(
    orchestrator: ScrapeOrchestrator = Depends(get_orchestrator),
    ledger: RunLedger = Depends(get_ledger),
    service: SourcesService = Depends(get_sources_service),
) -> dict:
    source_ids = await service.feed_source_ids()
    if not source_ids:
        raise HTTPException(status_code=404, detail="No enabled RSS sources found")

    run = await _open_job(orchestrator, ledger, source_ids)
    _spawn(_run_job(orchestrator, ledger, run.run_id, source_ids, None, None))

    logger.info("Feed-only scrape job started", run_id=run.run_id, sources=len(source_ids))
    return ok(
        {"jobId": run.run_id, "status": run.status.value, "sourceCount": len(source_ids)}
    )


@router.get(
    "/scrape/status/{job_id}",
    response_model=Envelope,
    response_model_exclude_none=True,
    responses={404: {"model": ErrorResponse}},
    summary="Poll a scrape job",
)
async def scrape_status(job_id: str, ledger: RunLedger = Depends(get_ledger)) -> dict:
    run = ledger.get(job_id)
    if run is None:
        raise HTTPException(status_code=404, detail="Job not found")
    return ok(run.to_dict())


# ── Logs & stats ────────────────────────────────────────────────


@router.get(
    "/logs",
    response_model=Envelope,
    response_model_exclude_none=True,
    summary="Recent per-source scrape attempts",
)
async def scrape_logs(
    limit: int = Query(default=50, ge=1, le=200),
    source_id: int | None = Query(default=None),
    logs: ScrapeLogRepository = Depends(get_log_repository),
) -> dict:
    entries = await logs.recent(limit=limit, source_id=source_id)
    data = [
        {
            "id": e.id,
            "source_id": e.source_id,
            "source_name": e.source_name,
            "status": e.status,
            "articles_found": e.articles_found,
            "articles_new": e.articles_new,
            "duration_ms": e.duration_ms,
            "error_message": e.error_message,
            "started_at": e.started_at.isoformat() if e.started_at else None,
            "completed_at": e.completed_at.isoformat() if e.completed_at else None,
        }
        for e in entries
    ]
    return ok(data, count=len(data))


@router.get(
    "/stats",
    response_model=Envelope,
    response_model_exclude_none=True,
    summary="Dashboard statistics",
)
async def admin_stats(
    articles: ArticleRepository = Depends(get_article_repository),
    logs: ScrapeLogRepository = Depends(get_log_repository),
) -> dict:
    overall = await articles.get_stats()
    return ok(
        {
            "overall": overall,
            "success_rate": await logs.success_rate(last_n=100),
            "sources": await logs.source_stats(),
        }
    )
