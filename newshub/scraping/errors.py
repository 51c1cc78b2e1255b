"""
Error taxonomy for the scraping layer.

Scope of each error:
- FetchError: source-fatal (or item-fatal for companion page fetches)
- ParseError: item-scoped, the item is skipped
- UnsupportedSourceError: raised at registration time for unknown/unimplemented kinds
- SourceNotFoundError: a caller asked for a source id the orchestrator doesn't know
"""


class ScrapeError(Exception):
    """Base exception for scraping errors."""


class FetchError(ScrapeError):
    """Network failure, timeout or non-2xx response for a single GET."""

    def __init__(
        self,
        url: str,
        cause: str,
        status_code: int | None = None,
    ):
        super().__init__(f"Failed to fetch {url}: {cause}")
        self.url = url
        self.cause = cause
        self.status_code = status_code


class ParseError(ScrapeError):
    """A single feed entry or page block could not be turned into an item."""


class UnsupportedSourceError(ScrapeError):
    """The source declares an extractor kind with no implementation."""

    def __init__(self, source_name: str, kind: str):
        super().__init__(f"Unsupported source type '{kind}' for {source_name}")
        self.source_name = source_name
        self.kind = kind


class SourceNotFoundError(ScrapeError):
    """No registered extractor for the requested source id."""

    def __init__(self, source_id: int):
        super().__init__(f"No scraper found for source ID: {source_id}")
        self.source_id = source_id
