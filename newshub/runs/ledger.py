"""
In-memory ledger of runs started through the admin API.

Keyed by generated run id. Bounded to the most recent ``limit`` runs, and
finished runs older than ``ttl_seconds`` are dropped. A running entry is
never evicted.
"""

import logging
import uuid
from collections import OrderedDict
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from newshub.runs.schemas import RunProgress, RunResult, RunStatus, ScrapeRun

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def new_run_id() -> str:
    return f"scrape-{uuid.uuid4().hex[:12]}"


class RunLedger:
    """Ephemeral run-status cache for polling clients."""

    def __init__(
        self,
        limit: int = 50,
        ttl_seconds: int = 86_400,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._limit = limit
        self._ttl = timedelta(seconds=ttl_seconds)
        self._clock = clock
        self._runs: OrderedDict[str, ScrapeRun] = OrderedDict()

    def __len__(self) -> int:
        return len(self._runs)

    def __contains__(self, run_id: str) -> bool:
        return run_id in self._runs

    def create(self, total: int = 0) -> ScrapeRun:
        """Register a new running entry and return it."""
        run = ScrapeRun(
            run_id=new_run_id(),
            started_at=self._clock(),
            progress=RunProgress(total=total),
        )
        self._runs[run.run_id] = run
        self._evict()
        return run

    def get(self, run_id: str) -> ScrapeRun | None:
        return self._runs.get(run_id)

    def running(self) -> ScrapeRun | None:
        """The entry still in RUNNING state, if any."""
        for run in self._runs.values():
            if run.status == RunStatus.RUNNING:
                return run
        return None

    def update_progress(
        self,
        run_id: str,
        current: str | None = None,
        articles: int = 0,
        completed: int | None = None,
    ) -> None:
        run = self._runs.get(run_id)
        if run is None:
            return
        run.progress.current = current
        run.progress.articles += articles
        if completed is not None:
            run.progress.completed = completed

    def complete(self, run_id: str, result: RunResult) -> None:
        run = self._runs.get(run_id)
        if run is None:
            logger.warning(f"Completing unknown run {run_id}")
            return
        run.status = RunStatus.COMPLETED
        run.result = result
        run.completed_at = self._clock()
        run.progress.current = None
        run.progress.total = result.total or run.progress.total
        run.progress.completed = result.successful + result.failed
        run.progress.articles = result.articles
        self._evict()

    def fail(self, run_id: str, error: str) -> None:
        run = self._runs.get(run_id)
        if run is None:
            logger.warning(f"Failing unknown run {run_id}")
            return
        run.status = RunStatus.ERROR
        run.error = error
        run.completed_at = self._clock()
        run.progress.current = None
        self._evict()

    def _evict(self) -> None:
        now = self._clock()

        expired = [
            run_id
            for run_id, run in self._runs.items()
            if run.is_finished
            and run.completed_at is not None
            and now - run.completed_at > self._ttl
        ]
        for run_id in expired:
            del self._runs[run_id]

        # Oldest finished entries go first once over the limit
        if len(self._runs) > self._limit:
            for run_id in [r for r, run in self._runs.items() if run.is_finished]:
                if len(self._runs) <= self._limit:
                    break
                del self._runs[run_id]

        if expired:
            logger.debug(f"Evicted {len(expired)} expired runs from ledger")
