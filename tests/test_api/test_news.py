"""Tests for the public read endpoints."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock

from fastapi.testclient import TestClient

from newshub.scraping.schemas import StoredArticle
from newshub.sources.schemas import Source, SourceWithStats

PUBLISHED = datetime(2024, 6, 4, 15, 0, tzinfo=timezone.utc)


def _article(article_id: int = 42) -> StoredArticle:
    return StoredArticle(
        id=article_id,
        source_id=1,
        source_name="AL.com Baldwin",
        title="Orange Beach council approves new marina",
        url="https://www.al.com/news/2024/06/marina.html",
        excerpt="The council voted 5-0 on Tuesday.",
        category="politics",
        published_at=PUBLISHED,
        tags=["Orange Beach"],
    )


class TestRoot:
    def test_root(self, client: TestClient) -> None:
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["success"] is True

    def test_request_id_header(self, client: TestClient) -> None:
        response = client.get("/", headers={"X-Request-ID": "abc-123"})
        assert response.headers["X-Request-ID"] == "abc-123"


class TestHealth:
    def test_healthy(self, client: TestClient) -> None:
        response = client.get("/api/health")

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["status"] == "healthy"
        assert "database_latency_ms" in body

    def test_unhealthy(self, client: TestClient, mock_database: AsyncMock) -> None:
        mock_database.health_check.return_value = False

        response = client.get("/api/health")

        assert response.status_code == 503
        assert response.json()["status"] == "unhealthy"

    def test_check_raises(self, client: TestClient, mock_database: AsyncMock) -> None:
        mock_database.health_check.side_effect = OSError("connection refused")

        response = client.get("/api/health")

        assert response.status_code == 503
        assert response.json()["error"] == "connection refused"


class TestListNews:
    def test_envelope_with_count(self, client: TestClient, article_repo: AsyncMock) -> None:
        article_repo.list_articles.return_value = [_article(1), _article(2)]

        response = client.get("/api/news")

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["count"] == 2
        assert body["data"][0]["title"] == "Orange Beach council approves new marina"
        assert body["data"][0]["tags"] == ["Orange Beach"]

    def test_filters_passed_through(self, client: TestClient, article_repo: AsyncMock) -> None:
        client.get(
            "/api/news",
            params={
                "source_id": 1,
                "category": "weather",
                "content_type": "news",
                "search": "hurricane",
                "limit": 10,
                "offset": 20,
            },
        )

        kwargs = article_repo.list_articles.call_args.kwargs
        assert kwargs["source_id"] == 1
        assert kwargs["category"] == "weather"
        assert kwargs["content_type"] == "news"
        assert kwargs["search"] == "hurricane"
        assert kwargs["limit"] == 10
        assert kwargs["offset"] == 20

    def test_invalid_query(self, client: TestClient) -> None:
        response = client.get("/api/news", params={"limit": 500})

        assert response.status_code == 422
        body = response.json()
        assert body["success"] is False
        assert body["error"] == "Invalid request"

    def test_unknown_category(self, client: TestClient) -> None:
        response = client.get("/api/news", params={"category": "gossip"})
        assert response.status_code == 422

    def test_store_failure(self, client: TestClient, article_repo: AsyncMock) -> None:
        article_repo.list_articles.side_effect = ConnectionError("pool closed")

        response = client.get("/api/news")

        assert response.status_code == 500
        assert response.json() == {"success": False, "error": "Failed to fetch news articles"}


class TestGetNews:
    def test_found(self, client: TestClient, article_repo: AsyncMock) -> None:
        article_repo.get_by_id.return_value = _article()

        response = client.get("/api/news/42")

        assert response.status_code == 200
        assert response.json()["data"]["id"] == 42

    def test_not_found(self, client: TestClient) -> None:
        response = client.get("/api/news/999")

        assert response.status_code == 404
        assert response.json() == {"success": False, "error": "Article not found"}


class TestTrendingAndStats:
    def test_trending(self, client: TestClient, article_repo: AsyncMock) -> None:
        article_repo.get_trending.return_value = [
            {"name": "#OrangeBeach", "type": "hashtag", "article_count": 12}
        ]

        response = client.get("/api/trending", params={"limit": 5})

        assert response.json()["count"] == 1
        article_repo.get_trending.assert_awaited_once_with(limit=5, days=7)

    def test_stats(self, client: TestClient, article_repo: AsyncMock) -> None:
        article_repo.get_stats.return_value = {"total_articles": 120, "articles_today": 8}

        response = client.get("/api/stats")

        assert response.json()["data"]["total_articles"] == 120


class TestSources:
    def test_list_sources(self, client: TestClient, sources_service) -> None:
        sources_service.repository.list_with_stats.return_value = [
            SourceWithStats(
                source=Source(
                    id=3,
                    name="Baldwin Times",
                    url="https://www.baldwintimes.com",
                    scraper_type="html",
                    error_count=2,
                ),
                article_count=17,
                latest_article=PUBLISHED,
            )
        ]

        response = client.get("/api/sources")

        body = response.json()
        assert body["count"] == 1
        item = body["data"][0]
        assert item["name"] == "Baldwin Times"
        assert item["type"] == "news"
        assert item["article_count"] == 17
        assert item["error_count"] == 2
