"""
Prometheus metrics for monitoring scrape runs.

Defines and exposes metrics for:
- Articles stored (new vs refreshed)
- Per-source scrape outcomes and latency
- Fetch errors
- Run duration and single-flight rejections

Metrics are exposed via HTTP endpoint for Prometheus scraping.
"""

import logging

from prometheus_client import (
    REGISTRY,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    start_http_server,
)

from newshub.config.settings import get_settings

logger = logging.getLogger(__name__)

# Buckets for per-source latency (seconds). Every fetch carries a 2s delay.
SCRAPE_LATENCY_BUCKETS = (1.0, 2.5, 5.0, 10.0, 20.0, 30.0, 60.0, 120.0)
RUN_DURATION_BUCKETS = (10.0, 30.0, 60.0, 120.0, 300.0, 600.0, 1200.0)


class MetricsCollector:
    """
    Prometheus metrics collector for the scraper.

    Usage:
        metrics = MetricsCollector()
        metrics.start_server()

        metrics.record_source_scrape("html", "success", latency=4.2)
        metrics.record_article_stored("news", inserted=True)
    """

    def __init__(self, registry: CollectorRegistry | None = None):
        """Initialize Prometheus metrics."""
        self._registry = registry or REGISTRY

        self.articles_stored = Counter(
            "newshub_articles_stored_total",
            "Articles written to the store",
            ["content_type", "outcome"],  # outcome: new, refreshed
            registry=self._registry,
        )

        self.articles_skipped = Counter(
            "newshub_articles_skipped_total",
            "Extracted items skipped because their URL was already stored",
            ["extractor"],
            registry=self._registry,
        )

        self.source_scrapes = Counter(
            "newshub_source_scrapes_total",
            "Per-source scrape attempts",
            ["extractor", "status"],  # status: success, error
            registry=self._registry,
        )

        self.fetch_errors = Counter(
            "newshub_fetch_errors_total",
            "Failed HTTP fetches",
            ["error_type"],
            registry=self._registry,
        )

        self.item_errors = Counter(
            "newshub_item_errors_total",
            "Items skipped because they could not be parsed",
            ["extractor"],
            registry=self._registry,
        )

        self.scrape_latency = Histogram(
            "newshub_source_scrape_seconds",
            "Time to scrape a single source",
            ["extractor"],
            buckets=SCRAPE_LATENCY_BUCKETS,
            registry=self._registry,
        )

        self.run_duration = Histogram(
            "newshub_run_duration_seconds",
            "Duration of a full scrape run",
            ["mode"],  # all, selected, single
            buckets=RUN_DURATION_BUCKETS,
            registry=self._registry,
        )

        self.run_active = Gauge(
            "newshub_run_active",
            "1 while a scrape run holds the single-flight lock",
            registry=self._registry,
        )

        self.runs_rejected = Counter(
            "newshub_runs_rejected_total",
            "Run requests rejected because another run was active",
            registry=self._registry,
        )

        self.runs_timed_out = Counter(
            "newshub_runs_timed_out_total",
            "Bounded runs that returned partial results on timeout",
            registry=self._registry,
        )

        logger.info("Prometheus metrics initialized")

    def start_server(self, port: int | None = None) -> None:
        """
        Start Prometheus metrics HTTP server.

        Args:
            port: Port to expose metrics on (default from settings)
        """
        settings = get_settings()
        port = port or settings.metrics_port

        start_http_server(port, registry=self._registry)
        logger.info(f"Prometheus metrics server started on port {port}")

    # Convenience methods

    def record_source_scrape(
        self,
        extractor: str,
        status: str,
        latency: float | None = None,
    ) -> None:
        """Record the outcome of one source attempt."""
        self.source_scrapes.labels(extractor=extractor, status=status).inc()
        if latency is not None:
            self.scrape_latency.labels(extractor=extractor).observe(latency)

    def record_article_stored(self, content_type: str, inserted: bool) -> None:
        """Record an upsert, split by whether it created a row."""
        outcome = "new" if inserted else "refreshed"
        self.articles_stored.labels(content_type=content_type, outcome=outcome).inc()

    def record_skipped(self, extractor: str, count: int = 1) -> None:
        """Record items skipped by the find-then-skip fast path."""
        if count:
            self.articles_skipped.labels(extractor=extractor).inc(count)

    def record_fetch_error(self, error_type: str) -> None:
        self.fetch_errors.labels(error_type=error_type).inc()

    def record_item_errors(self, extractor: str, count: int) -> None:
        if count:
            self.item_errors.labels(extractor=extractor).inc(count)

    def record_run(self, mode: str, duration: float, timed_out: bool = False) -> None:
        """Record a finished (or timed-out) run."""
        self.run_duration.labels(mode=mode).observe(duration)
        if timed_out:
            self.runs_timed_out.inc()

    def set_run_active(self, active: bool) -> None:
        self.run_active.set(1 if active else 0)

    def record_rejected(self) -> None:
        self.runs_rejected.inc()


# Global metrics instance
_metrics: MetricsCollector | None = None


def get_metrics() -> MetricsCollector:
    """Get global metrics collector instance."""
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    return _metrics
