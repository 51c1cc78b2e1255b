"""
Command-line interface for newshub.

Usage:
    newshub init-db       # Create tables and seed sources
    newshub seed-sources  # Re-apply the bundled source list
    newshub scrape        # Run one scrape and print the report
    newshub schedule      # Run scrapes on the calendar schedule
    newshub serve         # Start the API server
    newshub purge         # Delete old articles
    newshub health        # Check database connectivity
"""

import asyncio
import signal
import sys
from pathlib import Path

import click

from newshub.config.settings import get_settings
from newshub.observability.logging import setup_logging
from newshub.observability.metrics import get_metrics
from newshub.runs.schemas import RunResult


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
def main(debug: bool) -> None:
    """Baldwin County News Hub - local news scraper and API."""
    if debug:
        import os
        os.environ["LOG_LEVEL"] = "DEBUG"
        get_settings.cache_clear()

    setup_logging()


def _print_report(result: RunResult) -> None:
    if not result.success:
        click.echo(click.style(f"Scrape not run: {result.message}", fg="red"))
        return

    click.echo("=" * 50)
    click.echo(f"Total sources: {result.total}")
    click.echo(f"Successful:    {result.successful}")
    click.echo(f"Failed:        {result.failed}")
    click.echo(f"New articles:  {result.articles}")
    click.echo(f"Duration:      {result.duration_ms / 1000:.2f}s")
    if result.timed_out:
        click.echo(click.style("Stopped early: timeout reached", fg="yellow"))
    click.echo("=" * 50)

    for detail in result.details:
        icon = "✓" if detail.status == "success" else "✗"
        color = "green" if detail.status == "success" else "red"
        click.echo(
            click.style(
                f"  {icon} {detail.source}: {detail.articles} articles ({detail.duration_ms}ms)",
                fg=color,
            )
        )
        if detail.error:
            click.echo(f"      Error: {detail.error}")


@main.command("init-db")
@click.option("--seed/--no-seed", default=True, help="Seed sources when the table is empty")
def init_db(seed: bool) -> None:
    """Initialize the database schema."""
    from newshub.runs.repository import ScrapeLogRepository
    from newshub.sources.service import SourcesService
    from newshub.storage.database import Database
    from newshub.storage.repository import ArticleRepository

    async def run():
        db = Database()
        await db.connect()

        try:
            service = SourcesService(db)
            await service.repository.create_table()
            await ArticleRepository(db).create_tables()
            await ScrapeLogRepository(db).create_table()

            if seed:
                await service.ensure_seeded()

            count = await service.repository.count()
            click.echo(f"Database initialized successfully ({count} sources)")
        finally:
            await db.close()

    asyncio.run(run())


@main.command("seed-sources")
@click.option(
    "--file",
    "seed_file",
    default=None,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="JSON file of sources (default: bundled list)",
)
def seed_sources(seed_file: Path | None) -> None:
    """Upsert sources from a JSON file. Existing enabled flags are kept."""
    from newshub.sources.service import SourcesService
    from newshub.storage.database import Database

    async def run():
        db = Database()
        await db.connect()

        try:
            count = await SourcesService(db).seed_from_json(seed_file)
            click.echo(f"Seeded {count} sources")
        finally:
            await db.close()

    asyncio.run(run())


@main.command()
@click.option("--source", "source_ids", multiple=True, type=int, help="Source id (can repeat)")
@click.option("--timeout", default=None, type=float, help="Seconds before returning a partial result")
@click.option("--max-articles", default=None, type=int, help="Stop after this many new articles")
def scrape(source_ids: tuple[int, ...], timeout: float | None, max_articles: int | None) -> None:
    """Run one scrape over all (or the given) sources.

    Example:
        newshub scrape                          # Every enabled source
        newshub scrape --source 3 --source 5    # Two sources
        newshub scrape --timeout 60 --max-articles 100
    """
    from newshub.scraping.orchestrator import ScrapeOrchestrator
    from newshub.storage.database import Database

    async def run():
        db = Database()
        await db.connect()

        try:
            orchestrator = ScrapeOrchestrator(db)
            registered = await orchestrator.initialize()
            click.echo(f"Initialized {registered} scrapers\n")

            if source_ids or timeout or max_articles:
                ids = list(source_ids) or orchestrator.source_ids
                result = await orchestrator.run_selected(
                    ids, timeout=timeout, max_articles=max_articles
                )
            else:
                result = await orchestrator.run_all()

            _print_report(result)

            # A timed-out run keeps writing until its in-flight source finishes
            await orchestrator.wait_until_idle()
        finally:
            await db.close()

        return result

    result = asyncio.run(run())
    sys.exit(0 if result.success else 1)


@main.command()
@click.option("--initial/--no-initial", default=None, help="Run once immediately on start")
@click.option("--metrics/--no-metrics", default=True, help="Enable metrics server")
def schedule(initial: bool | None, metrics: bool) -> None:
    """Run scrapes on the business-hours / overnight calendar."""
    from newshub.scraping.orchestrator import ScrapeOrchestrator
    from newshub.services.scheduler import ScrapeScheduler
    from newshub.storage.database import Database

    async def run():
        db = Database()
        await db.connect()

        try:
            orchestrator = ScrapeOrchestrator(db)
            await orchestrator.initialize()
            scheduler = ScrapeScheduler(orchestrator)

            if metrics:
                get_metrics().start_server()

            # Handle shutdown signals
            loop = asyncio.get_running_loop()
            for sig in (signal.SIGTERM, signal.SIGINT):
                loop.add_signal_handler(sig, lambda: asyncio.create_task(scheduler.stop()))

            await scheduler.start(initial_run=initial)
            await orchestrator.wait_until_idle()
        finally:
            await db.close()

    asyncio.run(run())


@main.command()
@click.option("--host", default=None, help="API server host")
@click.option("--port", default=None, type=int, help="API server port")
@click.option("--reload", is_flag=True, help="Enable auto-reload (dev only)")
@click.option("--metrics/--no-metrics", default=True, help="Enable metrics server")
def serve(host: str | None, port: int | None, reload: bool, metrics: bool) -> None:
    """Start the news API server."""
    import uvicorn

    settings = get_settings()
    host = host or settings.api_host
    port = port or settings.api_port

    if metrics:
        get_metrics().start_server()
        click.echo(f"Metrics available on http://localhost:{settings.metrics_port}/metrics")

    click.echo(f"Starting API server on {host}:{port}")
    click.echo(f"API docs available on http://localhost:{port}/docs")

    uvicorn.run(
        "newshub.api.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_level="info",
    )


@main.command()
@click.option("--days", default=None, type=int, help="Days of articles to keep")
@click.option("--dry-run", is_flag=True, help="Show count without deleting")
def purge(days: int | None, dry_run: bool) -> None:
    """Remove articles older than the retention window.

    Example:
        newshub purge --days 30              # Delete articles older than 30 days
        newshub purge --days 30 --dry-run    # Preview without deleting
    """
    from newshub.storage.database import Database
    from newshub.storage.repository import ArticleRepository

    days = days or get_settings().retention_days

    async def run():
        db = Database()
        await db.connect()

        try:
            repo = ArticleRepository(db)
            if dry_run:
                count = await repo.count_older_than(days)
                click.echo(f"\nDry run - would delete {count} articles older than {days} days")
                click.echo("\nRun without --dry-run to actually delete.")
            else:
                deleted = await repo.delete_older_than(days)
                click.echo(f"\nDeleted {deleted} articles older than {days} days")
        finally:
            await db.close()

    asyncio.run(run())


@main.command()
def health() -> None:
    """Check database connectivity."""
    import structlog
    logger = structlog.get_logger()

    async def check() -> bool:
        from newshub.storage.database import Database

        try:
            db = Database()
            await db.connect()
            healthy = await db.health_check()
            await db.close()
        except Exception as e:
            logger.error("Postgres health check failed", error=str(e))
            healthy = False

        return healthy

    healthy = asyncio.run(check())
    icon = "✓" if healthy else "✗"
    color = "green" if healthy else "red"
    click.echo(click.style(f"  {icon} postgres: {healthy}", fg=color))
    sys.exit(0 if healthy else 1)


if __name__ == "__main__":
    main()
