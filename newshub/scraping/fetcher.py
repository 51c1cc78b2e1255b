"""
HTTP fetch layer with polite-scraping behaviour.

Every GET carries a fixed bot-identifying header set and a hard timeout,
and a successful fetch is followed by a mandatory delay before control
returns. The delay lives here rather than in the extractors so that every
extractor inherits it.

There are no automatic retries: a failed fetch surfaces as FetchError and
the caller decides whether it fails the item or the whole source.
"""

import asyncio
import logging
from typing import Any

import httpx

from newshub.config.settings import get_settings
from newshub.observability.metrics import get_metrics
from newshub.scraping.errors import FetchError

logger = logging.getLogger(__name__)


def build_headers(user_agent: str) -> dict[str, str]:
    """Request headers sent with every fetch."""
    return {
        "User-Agent": user_agent,
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        "Accept-Language": "en-US,en;q=0.5",
        "Accept-Encoding": "gzip, deflate",
        "DNT": "1",
        "Upgrade-Insecure-Requests": "1",
    }


class Fetcher:
    """
    Async HTTP fetcher with a post-fetch delay.

    Example:
        async with Fetcher() as fetcher:
            html = await fetcher.fetch("https://www.baldwintimes.com")
    """

    def __init__(
        self,
        delay_seconds: float | None = None,
        timeout: float | None = None,
        user_agent: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize fetcher.

        Args:
            delay_seconds: Sleep after each successful fetch (default from settings)
            timeout: Request timeout in seconds (default from settings)
            user_agent: User-Agent header (default from settings)
            transport: Optional httpx transport, used by tests
        """
        settings = get_settings()
        self.delay_seconds = (
            settings.scrape_delay_seconds if delay_seconds is None else delay_seconds
        )
        self.timeout = timeout or settings.fetch_timeout_seconds
        self.headers = build_headers(user_agent or settings.user_agent)
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._owns_client = False
        self.fetch_count = 0

    async def __aenter__(self) -> "Fetcher":
        """Enter async context manager, create client."""
        await self.open()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Exit async context manager, close client."""
        await self.close()

    async def open(self) -> None:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                headers=self.headers,
                follow_redirects=True,
                transport=self._transport,
            )
            self._owns_client = True

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None
        self._owns_client = False

    async def fetch(self, url: str) -> str:
        """
        GET a document and return its text.

        Args:
            url: Absolute URL to fetch

        Returns:
            Response body as text

        Raises:
            FetchError: On network error, timeout or non-2xx status
        """
        if self._client is None:
            await self.open()

        logger.info(f"Fetching: {url}")

        try:
            response = await self._client.get(url)
        except httpx.TimeoutException as e:
            get_metrics().record_fetch_error("timeout")
            raise FetchError(url, f"timeout after {self.timeout:.0f}s") from e
        except httpx.HTTPError as e:
            get_metrics().record_fetch_error(type(e).__name__)
            raise FetchError(url, f"{type(e).__name__}: {e}") from e

        if not response.is_success:
            get_metrics().record_fetch_error(f"http_{response.status_code}")
            raise FetchError(
                url,
                f"HTTP {response.status_code}",
                status_code=response.status_code,
            )

        self.fetch_count += 1
        text = response.text

        if self.delay_seconds > 0:
            await asyncio.sleep(self.delay_seconds)

        return text
