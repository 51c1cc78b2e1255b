"""Tests for ArticleIngestor."""

from unittest.mock import AsyncMock

import pytest

from newshub.scraping.ingestor import ArticleIngestor
from newshub.scraping.schemas import ArticleRecord, RawItem, StoredArticle
from newshub.sources.schemas import Source


def _stored(record: ArticleRecord, article_id: int) -> StoredArticle:
    return StoredArticle(id=article_id, title=record.title, url=record.url)


@pytest.fixture
def store() -> AsyncMock:
    store = AsyncMock()
    store.add_tags = AsyncMock(return_value=1)
    return store


class TestIngest:
    @pytest.mark.asyncio
    async def test_counts_new_and_updated(self, store: AsyncMock, html_source: Source) -> None:
        outcomes = iter([True, False])

        async def upsert(record: ArticleRecord):
            return _stored(record, 1), next(outcomes)

        store.upsert = AsyncMock(side_effect=upsert)
        items = [
            RawItem(title="Foley council meets tonight", url="/news/a"),
            RawItem(title="Storm warning for Gulf Shores", url="/news/b"),
        ]

        result = await ArticleIngestor(store).ingest(items, html_source)

        assert result.found == 2
        assert result.new == 1
        assert result.updated == 1
        assert result.stored == 2

    @pytest.mark.asyncio
    async def test_normalizes_before_upsert(self, store: AsyncMock, html_source: Source) -> None:
        store.upsert = AsyncMock(side_effect=lambda r: (_stored(r, 5), True))
        item = RawItem(title="Storm delays football game", url="/sports/storm")

        await ArticleIngestor(store).ingest([item], html_source)

        record: ArticleRecord = store.upsert.call_args[0][0]
        assert record.source_id == html_source.id
        assert record.url == "https://www.baldwintimes.com/sports/storm"
        assert record.category.value == "weather"

    @pytest.mark.asyncio
    async def test_tags_attached_per_article(self, store: AsyncMock, html_source: Source) -> None:
        store.upsert = AsyncMock(side_effect=lambda r: (_stored(r, 42), True))
        item = RawItem(title="Orange Beach festival returns #OrangeBeach", url="/f")

        await ArticleIngestor(store).ingest([item], html_source)

        store.add_tags.assert_awaited_once_with(42, ["Orange Beach", "#OrangeBeach"])

    @pytest.mark.asyncio
    async def test_invalid_item_skipped(self, store: AsyncMock, html_source: Source) -> None:
        store.upsert = AsyncMock(side_effect=lambda r: (_stored(r, 1), True))
        items = [
            RawItem(title="   ", url="/blank-title"),
            RawItem(title="Fairhope arts walk this Friday", url="/arts"),
        ]

        result = await ArticleIngestor(store).ingest(items, html_source)

        assert result.invalid == 1
        assert result.new == 1
        assert store.upsert.await_count == 1

    @pytest.mark.asyncio
    async def test_store_failure_propagates(self, store: AsyncMock, html_source: Source) -> None:
        store.upsert = AsyncMock(side_effect=ConnectionError("db down"))

        with pytest.raises(ConnectionError):
            await ArticleIngestor(store).ingest(
                [RawItem(title="Daphne road closures", url="/roads")], html_source
            )

    @pytest.mark.asyncio
    async def test_empty_list(self, store: AsyncMock, html_source: Source) -> None:
        result = await ArticleIngestor(store).ingest([], html_source)
        assert result.found == 0
        assert result.new == 0
