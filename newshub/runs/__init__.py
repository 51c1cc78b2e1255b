"""Run ledger: in-memory job cache and persisted per-source scrape log.

Components:
- RunResult / SourceRunDetail: Aggregate and per-source outcome of a run
- ScrapeRun / RunStatus / RunProgress: In-memory ledger entry
- ScrapeLog: Dataclass mapping to the scrape_logs table
- RunLedger: Bounded in-memory cache keyed by run id
- ScrapeLogRepository: Append and query operations for scrape_logs
"""

from newshub.runs.ledger import RunLedger
from newshub.runs.repository import ScrapeLogRepository
from newshub.runs.schemas import (
    BUSY_MESSAGE,
    RunProgress,
    RunResult,
    RunStatus,
    ScrapeLog,
    ScrapeRun,
    SourceRunDetail,
)

__all__ = [
    "BUSY_MESSAGE",
    "RunLedger",
    "RunProgress",
    "RunResult",
    "RunStatus",
    "ScrapeLog",
    "ScrapeLogRepository",
    "ScrapeRun",
    "SourceRunDetail",
]
