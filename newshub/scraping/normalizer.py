"""
Normalization of extracted items into canonical article records.

Shared by every extractor:
- Keyword category rules (ordered, first match wins)
- Tag extraction (gazetteer places + inline #hashtags)
- Hard truncation of title, excerpt and content
- Relative URL resolution against the source's base URL
- Whitespace collapsing and timestamp defaults
"""

import logging
import re
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from urllib.parse import urljoin

from newshub.config.places import KNOWN_PLACES
from newshub.scraping.schemas import (
    CONTENT_MAX_LENGTH,
    EXCERPT_MAX_LENGTH,
    TITLE_MAX_LENGTH,
    ArticleRecord,
    Category,
    RawItem,
)

logger = logging.getLogger(__name__)

# Precedence matters: a storm story about a football game is weather.
CATEGORY_RULES: tuple[tuple[Category, re.Pattern[str]], ...] = (
    (Category.WEATHER, re.compile(r"weather|storm|hurricane|flood|tornado|forecast")),
    (Category.POLITICS, re.compile(r"election|council|mayor|government|vote|policy|bill")),
    (Category.SPORTS, re.compile(r"football|basketball|baseball|sports|game|team|player")),
    (Category.EDUCATION, re.compile(r"school|education|student|teacher|university|college")),
    (Category.TOURISM, re.compile(r"beach|tourism|visitor|hotel|resort|festival")),
    (Category.DEVELOPMENT, re.compile(r"development|construction|zoning|building|property")),
)

HASHTAG_PATTERN = re.compile(r"#\w+")

# Formats seen in page date elements that fromisoformat/RFC 2822 miss
_DATE_FORMATS = (
    "%B %d, %Y",
    "%b %d, %Y",
    "%b. %d, %Y",
    "%m/%d/%Y",
    "%Y-%m-%d %H:%M:%S",
    "%B %d, %Y %I:%M %p",
)


def clean_text(text: str | None) -> str:
    """
    Collapse whitespace and drop control characters.

    Args:
        text: Raw text content

    Returns:
        Cleaned text ("" for None)
    """
    if not text:
        return ""
    text = " ".join(text.split())
    text = re.sub(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]", "", text)
    return text.strip()


def truncate(text: str | None, limit: int) -> str:
    """Hard cut at ``limit`` characters, no ellipsis."""
    if not text:
        return ""
    return text[:limit]


def resolve_url(url: str | None, base_url: str | None) -> str | None:
    """Resolve ``url`` against ``base_url``; return the input unchanged on failure."""
    if not url:
        return url
    if not base_url:
        return url
    try:
        return urljoin(base_url, url)
    except ValueError:
        logger.debug(f"Could not resolve {url!r} against {base_url!r}")
        return url


def categorize(title: str, excerpt: str = "") -> Category:
    """Classify by the first matching keyword rule over title + excerpt."""
    text = f"{title} {excerpt}".lower()
    for category, pattern in CATEGORY_RULES:
        if pattern.search(text):
            return category
    return Category.LOCAL


def extract_tags(
    title: str,
    excerpt: str = "",
    places: tuple[str, ...] | list[str] = KNOWN_PLACES,
) -> list[str]:
    """
    Gazetteer places plus inline #hashtags, de-duplicated.

    Place matching is a case-insensitive substring test; the tag uses the
    gazetteer spelling.
    """
    text = f"{title} {excerpt}"
    lowered = text.lower()

    tags: dict[str, None] = {}
    for place in places:
        if place.lower() in lowered:
            tags[place] = None
    for hashtag in HASHTAG_PATTERN.findall(text):
        tags[hashtag] = None
    return list(tags)


def parse_datetime(value: str | None) -> datetime | None:
    """
    Best-effort parse of a date string from a page or feed.

    Accepts ISO 8601, RFC 2822 and a handful of common long forms.
    Naive results are taken as UTC. Returns None if nothing matches.
    """
    value = clean_text(value)
    if not value:
        return None

    parsed: datetime | None = None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        pass

    if parsed is None:
        try:
            parsed = parsedate_to_datetime(value)
        except (TypeError, ValueError, IndexError):
            pass

    if parsed is None:
        for fmt in _DATE_FORMATS:
            try:
                parsed = datetime.strptime(value, fmt)
                break
            except ValueError:
                continue

    if parsed is None:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def normalize(
    raw: RawItem,
    source_id: int | None = None,
    base_url: str | None = None,
    now: datetime | None = None,
) -> ArticleRecord:
    """
    Map an extractor's raw item onto the canonical article record.

    Args:
        raw: Item as emitted by an extractor
        source_id: Owning source row id
        base_url: Source URL used to absolutize link and image
        now: Ingestion time (defaults to current UTC time)

    Returns:
        ArticleRecord ready for upsert
    """
    now = now or datetime.now(timezone.utc)

    title = truncate(clean_text(raw.title), TITLE_MAX_LENGTH)
    excerpt = truncate(clean_text(raw.excerpt), EXCERPT_MAX_LENGTH)
    content = clean_text(raw.content)
    content = truncate(content, CONTENT_MAX_LENGTH) if content else None

    category = raw.category or categorize(title, excerpt)

    tags = extract_tags(title, excerpt)
    for tag in raw.extra_tags:
        tag = clean_text(tag)
        if tag and tag not in tags:
            tags.append(tag)

    author = clean_text(raw.author) or None

    return ArticleRecord(
        source_id=source_id,
        title=title,
        url=resolve_url(raw.url.strip(), base_url),
        excerpt=excerpt,
        content=content,
        author=author,
        category=category,
        content_type=raw.content_type,
        platform=raw.platform,
        image_url=resolve_url(raw.image_url, base_url),
        published_at=raw.published_at or now,
        scraped_at=now,
        tags=tags,
    )
