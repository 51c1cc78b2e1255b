"""
Article repository: dedup/upsert store and read queries.

URL is the sole identity of an article. A second observation of the same
URL refreshes title, excerpt and content and bumps updated_at; created_at
keeps the first observation's time.

Tables:
    - articles: One row per canonical URL
    - tags: Place names, hashtags and feed categories with usage counts
    - article_tags: Many-to-many junction
"""

import logging
from datetime import datetime
from typing import Any

import asyncpg

from newshub.scraping.schemas import ArticleRecord, Category, StoredArticle
from newshub.storage.database import Database

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100

_CREATE_TABLES_SQL = """
CREATE TABLE IF NOT EXISTS articles (
    id           SERIAL PRIMARY KEY,
    source_id    INTEGER REFERENCES sources(id) ON DELETE CASCADE,
    title        VARCHAR(500) NOT NULL,
    excerpt      TEXT,
    content      TEXT,
    url          VARCHAR(1000) NOT NULL UNIQUE,
    author       VARCHAR(200),
    category     VARCHAR(50) NOT NULL DEFAULT 'local',
    content_type VARCHAR(20) NOT NULL DEFAULT 'news',
    platform     VARCHAR(50),
    image_url    VARCHAR(1000),
    published_at TIMESTAMPTZ,
    scraped_at   TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    created_at   TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at   TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS tags (
    id         SERIAL PRIMARY KEY,
    name       VARCHAR(100) NOT NULL UNIQUE,
    type       VARCHAR(20) NOT NULL DEFAULT 'general',
    count      INTEGER NOT NULL DEFAULT 0,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS article_tags (
    article_id INTEGER REFERENCES articles(id) ON DELETE CASCADE,
    tag_id     INTEGER REFERENCES tags(id) ON DELETE CASCADE,
    PRIMARY KEY (article_id, tag_id)
);

CREATE INDEX IF NOT EXISTS idx_articles_source ON articles(source_id);
CREATE INDEX IF NOT EXISTS idx_articles_published ON articles(published_at DESC);
CREATE INDEX IF NOT EXISTS idx_articles_category ON articles(category);
CREATE INDEX IF NOT EXISTS idx_articles_content_type ON articles(content_type);
CREATE INDEX IF NOT EXISTS idx_articles_created ON articles(created_at DESC);
CREATE INDEX IF NOT EXISTS idx_article_tags_tag ON article_tags(tag_id);

INSERT INTO tags (name, type) VALUES
    ('#BaldwinCounty', 'hashtag'),
    ('#OrangeBeach', 'hashtag'),
    ('#GulfShores', 'hashtag'),
    ('#Foley', 'hashtag'),
    ('Development', 'category'),
    ('Education', 'category'),
    ('Tourism', 'category'),
    ('Local Government', 'category'),
    ('Weather', 'category'),
    ('Sports', 'category')
ON CONFLICT (name) DO NOTHING;
"""

_UPSERT_SQL = """
INSERT INTO articles (
    source_id, title, excerpt, content, url, author,
    category, content_type, platform, image_url, published_at, scraped_at
) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12)
ON CONFLICT (url) DO UPDATE SET
    title = EXCLUDED.title,
    excerpt = EXCLUDED.excerpt,
    content = EXCLUDED.content,
    updated_at = NOW()
RETURNING *, (xmax = 0) AS inserted
"""

_UPSERT_TAG_SQL = """
INSERT INTO tags (name, type) VALUES ($1, $2)
ON CONFLICT (name) DO UPDATE SET name = EXCLUDED.name
RETURNING id
"""

_LINK_TAG_SQL = """
INSERT INTO article_tags (article_id, tag_id) VALUES ($1, $2)
ON CONFLICT DO NOTHING
RETURNING tag_id
"""

_ARTICLE_SELECT = """
SELECT a.*, s.name AS source_name,
       COALESCE(array_agg(DISTINCT t.name) FILTER (WHERE t.name IS NOT NULL), '{}') AS tags
FROM articles a
LEFT JOIN sources s ON a.source_id = s.id
LEFT JOIN article_tags at ON a.id = at.article_id
LEFT JOIN tags t ON at.tag_id = t.id
"""


def tag_type(name: str) -> str:
    """Hashtags start with '#'; everything else is a general tag."""
    return "hashtag" if name.startswith("#") else "general"


def _record_to_article(record: Any) -> StoredArticle:
    data = dict(record)
    data["tags"] = list(data.get("tags") or [])
    return StoredArticle.model_validate(data)


class ArticleRepository:
    """
    Repository for article storage and retrieval.

    Write side: find_by_url, upsert, add_tags.
    Read side: list_articles, get_by_id, get_trending, get_stats.
    Retention: delete_older_than.
    """

    def __init__(self, database: Database):
        """
        Initialize repository.

        Args:
            database: Connected Database instance
        """
        self._db = database

    async def create_tables(self) -> None:
        """Create articles, tags and article_tags (sources must exist first)."""
        await self._db.execute(_CREATE_TABLES_SQL)
        logger.info("Article tables ensured")

    # ── Write side ──────────────────────────────────────────────

    async def find_by_url(self, url: str) -> asyncpg.Record | None:
        """Return the stored row's id and timestamps, or None if the URL is new."""
        return await self._db.fetchrow(
            "SELECT id, url, created_at, updated_at FROM articles WHERE url = $1",
            url,
        )

    async def upsert(self, article: ArticleRecord) -> tuple[StoredArticle, bool]:
        """
        Insert an article or refresh the row with the same URL.

        Args:
            article: Normalized article

        Returns:
            (stored row, True if a new row was created)
        """
        row = await self._db.fetchrow(
            _UPSERT_SQL,
            article.source_id,
            article.title,
            article.excerpt,
            article.content,
            article.url,
            article.author,
            article.category.value,
            article.content_type.value,
            article.platform,
            article.image_url,
            article.published_at,
            article.scraped_at,
        )
        return _record_to_article(row), bool(row["inserted"])

    async def add_tags(self, article_id: int, names: list[str]) -> int:
        """
        Attach tags to an article in one transaction.

        Missing tags are created. A tag's count is incremented only when
        the article-tag link is new.

        Returns:
            Number of newly created links
        """
        if not names:
            return 0

        linked = 0
        async with self._db.transaction() as conn:
            for name in dict.fromkeys(names):
                tag_id = await conn.fetchval(_UPSERT_TAG_SQL, name, tag_type(name))
                created = await conn.fetchval(_LINK_TAG_SQL, article_id, tag_id)
                if created is not None:
                    await conn.execute(
                        "UPDATE tags SET count = count + 1 WHERE id = $1", tag_id
                    )
                    linked += 1
        return linked

    # ── Read side ───────────────────────────────────────────────

    def _build_filters(
        self,
        *,
        source_id: int | None = None,
        category: str | None = None,
        content_type: str | None = None,
        search: str | None = None,
        since: datetime | None = None,
    ) -> tuple[str, list[Any], int]:
        """Build a WHERE clause; returns (clause, params, next param index)."""
        conditions = ["TRUE"]
        params: list[Any] = []
        idx = 1

        if source_id is not None:
            conditions.append(f"a.source_id = ${idx}")
            params.append(source_id)
            idx += 1
        if category:
            conditions.append(f"a.category = ${idx}")
            params.append(category)
            idx += 1
        if content_type:
            conditions.append(f"a.content_type = ${idx}")
            params.append(content_type)
            idx += 1
        if search:
            conditions.append(f"(a.title ILIKE ${idx} OR a.excerpt ILIKE ${idx})")
            params.append(f"%{search}%")
            idx += 1
        if since is not None:
            conditions.append(f"a.published_at >= ${idx}")
            params.append(since)
            idx += 1

        return " AND ".join(conditions), params, idx

    async def list_articles(
        self,
        *,
        source_id: int | None = None,
        category: str | None = None,
        content_type: str | None = None,
        search: str | None = None,
        since: datetime | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[StoredArticle]:
        """
        List articles newest first with their tags and source name.

        ``search`` is a plain case-insensitive substring match on title and
        excerpt. ``limit`` is capped at 100.
        """
        where_clause, params, idx = self._build_filters(
            source_id=source_id,
            category=category,
            content_type=content_type,
            search=search,
            since=since,
        )
        sql = f"""
            {_ARTICLE_SELECT}
            WHERE {where_clause}
            GROUP BY a.id, s.name
            ORDER BY a.published_at DESC NULLS LAST, a.created_at DESC
            LIMIT ${idx} OFFSET ${idx + 1}
        """
        params.extend([min(max(limit, 1), MAX_PAGE_SIZE), max(offset, 0)])
        rows = await self._db.fetch(sql, *params)
        return [_record_to_article(r) for r in rows]

    async def get_by_id(self, article_id: int) -> StoredArticle | None:
        sql = f"""
            {_ARTICLE_SELECT}
            WHERE a.id = $1
            GROUP BY a.id, s.name
        """
        row = await self._db.fetchrow(sql, article_id)
        return _record_to_article(row) if row else None

    async def get_trending(self, limit: int = 10, days: int = 7) -> list[dict[str, Any]]:
        """Tags ranked by how many articles published in the last ``days`` use them."""
        rows = await self._db.fetch(
            """
            SELECT t.name, t.type, COUNT(at.article_id) AS article_count
            FROM tags t
            JOIN article_tags at ON t.id = at.tag_id
            JOIN articles a ON at.article_id = a.id
            WHERE a.published_at >= NOW() - make_interval(days => $2)
            GROUP BY t.id, t.name, t.type
            ORDER BY article_count DESC
            LIMIT $1
            """,
            limit,
            days,
        )
        return [
            {"name": r["name"], "type": r["type"], "article_count": r["article_count"]}
            for r in rows
        ]

    async def get_stats(self) -> dict[str, Any]:
        """Aggregate article counts for the public stats endpoint."""
        summary = await self._db.fetchrow(
            """
            SELECT
                COUNT(*) AS total_articles,
                COUNT(DISTINCT source_id) AS total_sources,
                COUNT(*) FILTER (WHERE published_at >= NOW() - INTERVAL '1 day') AS articles_today,
                COUNT(*) FILTER (WHERE published_at >= NOW() - INTERVAL '7 days') AS articles_this_week,
                COUNT(*) FILTER (WHERE content_type = 'news') AS news_count,
                COUNT(*) FILTER (WHERE content_type = 'social') AS social_count,
                COUNT(*) FILTER (WHERE content_type = 'media') AS media_count,
                MAX(created_at) AS last_article
            FROM articles
            """
        )
        category_rows = await self._db.fetch(
            """
            SELECT category, COUNT(*) AS count
            FROM articles
            GROUP BY category
            ORDER BY count DESC
            """
        )

        last_article = summary["last_article"]
        return {
            "total_articles": summary["total_articles"],
            "total_sources": summary["total_sources"],
            "articles_today": summary["articles_today"],
            "articles_this_week": summary["articles_this_week"],
            "by_content_type": {
                "news": summary["news_count"],
                "social": summary["social_count"],
                "media": summary["media_count"],
            },
            "by_category": [
                {"category": r["category"] or Category.LOCAL.value, "count": r["count"]}
                for r in category_rows
            ],
            "last_article": last_article.isoformat() if last_article else None,
        }

    # ── Retention ───────────────────────────────────────────────

    async def count_older_than(self, days: int) -> int:
        """Count articles the retention sweep would delete."""
        return await self._db.fetchval(
            "SELECT COUNT(*) FROM articles WHERE created_at < NOW() - make_interval(days => $1)",
            days,
        )

    async def delete_older_than(self, days: int = 90) -> int:
        """
        Delete articles created more than ``days`` ago.

        Args:
            days: Age threshold in days

        Returns:
            Number of deleted articles
        """
        sql = """
            DELETE FROM articles
            WHERE created_at < NOW() - make_interval(days => $1)
            RETURNING id
        """
        result = await self._db.fetch(sql, days)
        count = len(result)
        logger.info(f"Deleted {count} articles older than {days} days")
        return count
