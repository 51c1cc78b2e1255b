"""
Structured-page extractor for static HTML news listings.

Applies a per-source selector set (merged over common defaults) to locate
repeated article blocks, then resolves title, link, excerpt, date, author
and image inside each block. Blocks with a short or missing title, or no
link, are skipped as noise.

Optionally follows each new item's link to pull the article body and
fill a missing image or excerpt from the page's meta tags.
"""

import logging
from typing import Any

from bs4 import BeautifulSoup, Tag

from newshub.scraping.base_extractor import BaseExtractor
from newshub.scraping.errors import FetchError
from newshub.scraping.fetcher import Fetcher
from newshub.scraping.normalizer import clean_text, parse_datetime, resolve_url
from newshub.scraping.schemas import ContentType, RawItem
from newshub.sources.schemas import ExtractorKind

logger = logging.getLogger(__name__)

MIN_TITLE_LENGTH = 10

DEFAULT_SELECTORS: dict[str, str] = {
    "article_list": "article, .article, .post, .entry, .news-item",
    "title": "h2, h3, .title, .headline, .entry-title",
    "link": "a",
    "excerpt": ".excerpt, .summary, .description, p",
    "date": "time, .date, .published, .post-date",
    "author": ".author, .byline, [rel=\"author\"]",
    "image": "img",
}

# Tried in order on an article's own page; first non-empty match wins
CONTENT_SELECTORS: tuple[str, ...] = (
    "article .content",
    ".article-content",
    ".entry-content",
    ".post-content",
    "[itemprop=\"articleBody\"]",
    "main article",
)


def merge_selectors(overrides: dict[str, str] | None) -> dict[str, str]:
    """Source selectors replace defaults key by key; blank values are ignored."""
    merged = dict(DEFAULT_SELECTORS)
    for key, value in (overrides or {}).items():
        if key in merged and value:
            merged[key] = value
    return merged


def _meta(soup: BeautifulSoup, **attrs: str) -> str | None:
    tag = soup.find("meta", attrs=attrs)
    if tag and tag.get("content"):
        return tag["content"].strip() or None
    return None


def extract_metadata(html: str, base_url: str) -> dict[str, Any]:
    """
    Pull article metadata from OpenGraph, Twitter card and plain meta tags.

    Args:
        html: Article page HTML
        base_url: URL used to absolutize the image

    Returns:
        Dict with title, excerpt, author, published_at and image_url
        (each None when not found)
    """
    soup = BeautifulSoup(html, "html.parser")

    title = _meta(soup, property="og:title") or _meta(soup, name="twitter:title")
    if not title and soup.title:
        title = clean_text(soup.title.get_text())
    if not title:
        h1 = soup.find("h1")
        title = clean_text(h1.get_text()) if h1 else None

    excerpt = (
        _meta(soup, property="og:description")
        or _meta(soup, name="description")
        or _meta(soup, name="twitter:description")
    )

    author = _meta(soup, name="author") or _meta(soup, property="article:author")
    if not author:
        byline = soup.select_one(".author, [rel=\"author\"]")
        author = clean_text(byline.get_text()) if byline else None

    published = _meta(soup, property="article:published_time")
    if not published:
        time_tag = soup.find("time")
        published = time_tag.get("datetime") if time_tag else None

    image_url = _meta(soup, property="og:image") or _meta(soup, name="twitter:image")

    return {
        "title": title or None,
        "excerpt": excerpt,
        "author": author or None,
        "published_at": parse_datetime(published),
        "image_url": resolve_url(image_url, base_url),
    }


def extract_content(html: str) -> str:
    """Cleaned text of the first non-empty content container, or ""."""
    soup = BeautifulSoup(html, "html.parser")
    for selector in CONTENT_SELECTORS:
        node = soup.select_one(selector)
        if node is None:
            continue
        text = clean_text(node.get_text(separator=" "))
        if text:
            return text
    return ""


class PageExtractor(BaseExtractor):
    """
    Extractor for static HTML listing pages.

    Selector keys: article_list, title, link, excerpt, date, author, image.
    Set ``metadata.fetch_full_content`` on the source to follow each new
    item's link for its body text.
    """

    def __init__(self, source, store=None, refresh_existing: bool = False):
        super().__init__(source, store=store, refresh_existing=refresh_existing)
        self.selectors = merge_selectors(source.selectors)

    @property
    def kind(self) -> ExtractorKind:
        return ExtractorKind.HTML

    async def _fetch_document(self, fetcher: Fetcher) -> BeautifulSoup:
        html = await fetcher.fetch(self.source.url)
        return BeautifulSoup(html, "html.parser")

    def _iter_blocks(self, document: BeautifulSoup) -> list[Tag]:
        blocks = document.select(self.selectors["article_list"])
        logger.info(f"Found {len(blocks)} potential articles on {self.source.url}")
        return blocks

    def _first(self, block: Tag, key: str) -> Tag | None:
        return block.select_one(self.selectors[key])

    def _text(self, block: Tag, key: str) -> str:
        node = self._first(block, key)
        return clean_text(node.get_text(separator=" ")) if node else ""

    def _transform(self, block: Tag) -> RawItem | None:
        title = self._text(block, "title")
        if len(title) < MIN_TITLE_LENGTH:
            logger.debug("Skipping block: no valid title found")
            return None

        link = self._first(block, "link")
        href = link.get("href") if link else None
        if not href:
            logger.debug(f"Skipping block {title!r}: no link found")
            return None

        date_node = self._first(block, "date")
        published_at = None
        if date_node is not None:
            published_at = parse_datetime(
                date_node.get("datetime") or date_node.get_text()
            )

        image = self._first(block, "image")
        image_url = None
        if image is not None:
            src = image.get("src") or image.get("data-src")
            image_url = resolve_url(src, self.source.url) if src else None

        return RawItem(
            title=title,
            url=resolve_url(href.strip(), self.source.url),
            excerpt=self._text(block, "excerpt"),
            author=self._text(block, "author") or None,
            published_at=published_at,
            image_url=image_url,
            content_type=ContentType.NEWS,
        )

    async def _enrich(self, item: RawItem, fetcher: Fetcher) -> RawItem:
        if not self.source.fetch_full_content:
            return item

        html = await self._fetch_article_page(item.url, fetcher)
        if not html:
            return item

        updates: dict[str, Any] = {}
        content = extract_content(html)
        if content:
            updates["content"] = content

        metadata = extract_metadata(html, item.url)
        if not item.image_url and metadata["image_url"]:
            updates["image_url"] = metadata["image_url"]
        if not item.excerpt and metadata["excerpt"]:
            updates["excerpt"] = metadata["excerpt"]
        if not item.author and metadata["author"]:
            updates["author"] = metadata["author"]

        return item.model_copy(update=updates) if updates else item

    async def _fetch_article_page(self, url: str, fetcher: Fetcher) -> str:
        try:
            return await fetcher.fetch(url)
        except FetchError as e:
            logger.warning(f"Error fetching article content from {url}: {e}")
            return ""

    async def fetch_article_content(self, url: str, fetcher: Fetcher) -> str:
        """
        Fetch an article's own page and return its body text.

        Returns "" when the fetch fails or no content container matches.
        """
        html = await self._fetch_article_page(url, fetcher)
        return extract_content(html) if html else ""
