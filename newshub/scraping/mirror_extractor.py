"""
Twitter mirror (Nitter) search extractor.

Nitter instances are public alternate front ends for Twitter that render
search results as plain HTML, so hashtag searches can be scraped without
API access. Instances come and go; the configured list is tried in order
and the first one that answers is used for the whole extract.

Usage:
    extractor = MirrorExtractor(source)
    async with Fetcher() as fetcher:
        items = await extractor.extract(fetcher)
"""

import logging
import re
from datetime import datetime, timezone
from urllib.parse import quote

from bs4 import BeautifulSoup, Tag

from newshub.config.settings import get_settings
from newshub.scraping.base_extractor import BaseExtractor
from newshub.scraping.errors import FetchError, ScrapeError
from newshub.scraping.fetcher import Fetcher
from newshub.scraping.normalizer import HASHTAG_PATTERN, clean_text, parse_datetime
from newshub.scraping.schemas import Category, ContentType, RawItem
from newshub.sources.schemas import ExtractorKind, Source
from newshub.storage.repository import ArticleRepository

logger = logging.getLogger(__name__)

SEARCH_PATH = "/search?f=tweets&q=%23{hashtag}"
TWITTER_BASE_URL = "https://twitter.com"
MIN_POST_LENGTH = 5
TITLE_PREVIEW_LENGTH = 100
PLATFORM = "twitter"


def build_search_url(instance: str, hashtag: str) -> str:
    """Search URL for ``#hashtag`` on one mirror instance."""
    return instance.rstrip("/") + SEARCH_PATH.format(hashtag=quote(hashtag))


def parse_post_date(value: str | None) -> datetime | None:
    """
    Parse a mirror timestamp title such as "Mar 5, 2024 · 3:12 PM UTC".

    Falls back to the generic date parser for other shapes.
    """
    if not value:
        return None
    cleaned = value.replace("·", " ").replace(" UTC", "")
    cleaned = " ".join(cleaned.split())
    try:
        return datetime.strptime(cleaned, "%b %d, %Y %I:%M %p").replace(tzinfo=timezone.utc)
    except ValueError:
        return parse_datetime(value)


class MirrorExtractor(BaseExtractor):
    """
    Extractor for hashtag searches on Twitter mirror instances.

    On FetchError the next instance is tried; if every instance fails the
    last FetchError is raised and the source fails.
    """

    def __init__(
        self,
        source: Source,
        store: ArticleRepository | None = None,
        refresh_existing: bool = False,
        instances: list[str] | None = None,
    ):
        """
        Initialize mirror extractor.

        Args:
            source: Source with a hashtag set
            store: Article store for the find-then-skip check
            refresh_existing: Keep items whose URL is already stored
            instances: Mirror base URLs in failover order (default from settings)

        Raises:
            ValueError: If the source has no hashtag or no instances are configured
        """
        super().__init__(source, store=store, refresh_existing=refresh_existing)

        hashtag = (source.hashtag or "").lstrip("#").strip()
        if not hashtag:
            raise ValueError(f"Mirror source {source.name} has no hashtag")
        self.hashtag = hashtag

        self.instances = [
            i.rstrip("/") for i in (instances or get_settings().mirror_instance_list)
        ]
        if not self.instances:
            raise ValueError("No mirror instances configured")

        # Instance that served the current document; relative media resolves against it
        self.active_instance = self.instances[0]

    @property
    def kind(self) -> ExtractorKind:
        return ExtractorKind.MIRROR

    async def _fetch_document(self, fetcher: Fetcher) -> BeautifulSoup:
        logger.info(f"Scraping posts for #{self.hashtag} from mirror")

        last_error: FetchError | None = None
        for instance in self.instances:
            url = build_search_url(instance, self.hashtag)
            try:
                html = await fetcher.fetch(url)
            except FetchError as e:
                last_error = e
                logger.warning(f"Mirror instance {instance} failed, trying next: {e}")
                continue

            self.active_instance = instance
            return BeautifulSoup(html, "html.parser")

        if last_error is None:
            raise ScrapeError("No mirror instances configured")
        raise last_error

    def _iter_blocks(self, document: BeautifulSoup) -> list[Tag]:
        blocks = document.select(".timeline-item")
        logger.info(f"Found {len(blocks)} posts for #{self.hashtag}")
        return blocks

    def _transform(self, block: Tag) -> RawItem | None:
        content_node = block.select_one(".tweet-content")
        body = clean_text(content_node.get_text(separator=" ")) if content_node else ""
        if len(body) < MIN_POST_LENGTH:
            return None

        link = block.select_one(".tweet-link")
        href = link.get("href") if link else None
        if not href:
            return None
        url = self._post_url(href)

        author_node = block.select_one(".username")
        author = clean_text(author_node.get_text()) if author_node else ""

        date_node = block.select_one(".tweet-date a[title]")
        published_at = parse_post_date(date_node.get("title")) if date_node else None

        image_url = None
        image = block.select_one(".attachment.image img")
        if image is not None and image.get("src"):
            image_url = image["src"]
            if image_url.startswith("/"):
                image_url = f"{self.active_instance}{image_url}"

        if len(body) > TITLE_PREVIEW_LENGTH:
            title = body[:TITLE_PREVIEW_LENGTH] + "..."
        else:
            title = body

        tags = list(dict.fromkeys(HASHTAG_PATTERN.findall(body) + [f"#{self.hashtag}"]))

        return RawItem(
            title=title,
            url=url,
            excerpt=body,
            content=body,
            author=author or "Unknown",
            published_at=published_at,
            image_url=image_url,
            category=Category.SOCIAL,
            content_type=ContentType.SOCIAL,
            platform=PLATFORM,
            extra_tags=tags,
        )

    @staticmethod
    def _post_url(href: str) -> str:
        """Rewrite a mirror post path to its public twitter.com URL."""
        href = href.replace("/i/web", "")
        if href.startswith("http"):
            return href
        return f"{TWITTER_BASE_URL}{href}"
