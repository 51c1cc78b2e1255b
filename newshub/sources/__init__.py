"""Sources: database-backed registry of scrape origins."""

from newshub.sources.config import SourcesConfig
from newshub.sources.repository import SourcesRepository
from newshub.sources.schemas import ExtractorKind, Source, SourceKind, SourceWithStats
from newshub.sources.service import SourcesService

__all__ = [
    "ExtractorKind",
    "Source",
    "SourceKind",
    "SourceWithStats",
    "SourcesConfig",
    "SourcesRepository",
    "SourcesService",
]
