"""Data models for scrape runs and their per-source log."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

BUSY_MESSAGE = "Scraping already in progress"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RunStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    ERROR = "error"


class SourceRunDetail(BaseModel):
    """Outcome of one source within a run."""

    source: str
    source_id: int | None = None
    status: str  # success, error
    articles: int = 0
    duration_ms: int = 0
    error: str | None = None


class RunResult(BaseModel):
    """
    Aggregate result of a run, as returned to the API, scheduler and CLI.

    ``successful + failed == total`` for a run that finished; a timed-out or
    capped run may leave sources unattempted, which count in neither tally.
    """

    success: bool = True
    message: str | None = None
    total: int = 0
    successful: int = 0
    failed: int = 0
    articles: int = 0
    duration_ms: int = 0
    timed_out: bool = False
    details: list[SourceRunDetail] = Field(default_factory=list)

    @classmethod
    def busy(cls) -> "RunResult":
        """Result for a start request rejected because a run is active."""
        return cls(success=False, message=BUSY_MESSAGE)


@dataclass
class RunProgress:
    """Live progress of an in-flight run."""

    total: int = 0
    completed: int = 0
    current: str | None = None
    articles: int = 0


@dataclass
class ScrapeRun:
    """In-memory ledger entry for one run started through the admin API."""

    run_id: str
    status: RunStatus = RunStatus.RUNNING
    started_at: datetime = field(default_factory=_utc_now)
    completed_at: datetime | None = None
    progress: RunProgress = field(default_factory=RunProgress)
    result: RunResult | None = None
    error: str | None = None

    @property
    def is_finished(self) -> bool:
        return self.status != RunStatus.RUNNING

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.run_id,
            "status": self.status.value,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "progress": {
                "total": self.progress.total,
                "completed": self.progress.completed,
                "current": self.progress.current,
                "articles": self.progress.articles,
            },
            "results": self.result.model_dump() if self.result else None,
            "error": self.error,
        }


@dataclass
class ScrapeLog:
    """A persisted per-source attempt (scrape_logs row)."""

    source_id: int | None
    status: str
    articles_found: int = 0
    articles_new: int = 0
    duration_ms: int = 0
    error_message: str | None = None
    started_at: datetime = field(default_factory=_utc_now)
    completed_at: datetime | None = None
    id: int | None = None
    source_name: str | None = None
