"""
RSS/Atom feed extractor.

Fetches a source's feed through the Fetcher and parses it with feedparser.
Handles:
- Summary/description and encoded content, HTML stripped to text
- Publication time from the parsed date fields (defaults to now)
- Image from enclosure, media:content or media:thumbnail
- The entry's own category terms, carried as extra tags
"""

import calendar
import html
import logging
import re
from datetime import datetime, timezone
from typing import Any

import feedparser
from bs4 import BeautifulSoup

from newshub.scraping.base_extractor import BaseExtractor
from newshub.scraping.errors import ParseError
from newshub.scraping.fetcher import Fetcher
from newshub.scraping.schemas import ContentType, RawItem
from newshub.sources.schemas import ExtractorKind

logger = logging.getLogger(__name__)


def html_to_text(html_content: str | None) -> str:
    """
    Extract clean text from an HTML fragment.

    Args:
        html_content: Raw HTML string

    Returns:
        Clean text content
    """
    if not html_content:
        return ""

    soup = BeautifulSoup(html_content, "html.parser")

    for element in soup(["script", "style", "nav", "footer", "header"]):
        element.decompose()

    text = soup.get_text(separator=" ")
    text = html.unescape(text)
    text = re.sub(r"\s+", " ", text)

    return text.strip()


class FeedExtractor(BaseExtractor):
    """
    Extractor for sources that publish an RSS or Atom feed.

    The feed URL is the source's feed_url when set, else its origin URL.
    """

    @property
    def kind(self) -> ExtractorKind:
        return ExtractorKind.RSS

    @property
    def feed_url(self) -> str:
        return self.source.feed_url or self.source.url

    async def _fetch_document(self, fetcher: Fetcher) -> Any:
        text = await fetcher.fetch(self.feed_url)
        feed = feedparser.parse(text)

        entries = feed.get("entries", [])
        if feed.get("bozo") and not entries:
            cause = feed.get("bozo_exception")
            raise ParseError(f"Not a parseable feed at {self.feed_url}: {cause}")

        logger.info(f"Found {len(entries)} items in feed {self.feed_url}")
        return feed

    def _iter_blocks(self, document: Any) -> list[Any]:
        return document.get("entries", [])

    def _transform(self, entry: Any) -> RawItem | None:
        """Transform a feed entry to a RawItem."""
        title = (entry.get("title") or "").strip()
        link = (entry.get("link") or "").strip()
        if not title or not link:
            raise ParseError(f"Feed entry missing title or link (link={link!r})")

        excerpt = html_to_text(entry.get("summary") or entry.get("description"))

        content = ""
        if entry.get("content"):
            content = html_to_text(entry["content"][0].get("value", ""))
        content = content or excerpt

        tags = [t.get("term", "") for t in entry.get("tags", []) if t.get("term")]

        return RawItem(
            title=title,
            url=link,
            excerpt=excerpt,
            content=content or None,
            author=entry.get("author") or None,
            published_at=self._parse_timestamp(entry),
            image_url=self._find_image(entry),
            content_type=ContentType.NEWS,
            extra_tags=tags,
        )

    def _parse_timestamp(self, entry: Any) -> datetime | None:
        """Parse the entry's date; None lets the normalizer default to now."""
        for field in ("published_parsed", "updated_parsed", "created_parsed"):
            parsed = entry.get(field)
            if parsed:
                try:
                    return datetime.fromtimestamp(calendar.timegm(parsed), tz=timezone.utc)
                except (OverflowError, TypeError, ValueError):
                    continue
        return None

    def _find_image(self, entry: Any) -> str | None:
        """Enclosure first, then media:content, then media:thumbnail."""
        for enclosure in entry.get("enclosures", []):
            href = enclosure.get("href") or enclosure.get("url")
            if href:
                return href

        for key in ("media_content", "media_thumbnail"):
            for media in entry.get(key, []) or []:
                if media.get("url"):
                    return media["url"]

        return None
