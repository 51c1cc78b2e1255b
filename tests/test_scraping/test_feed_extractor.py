"""Tests for the RSS/Atom feed extractor."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock

import httpx
import pytest
import respx

from newshub.scraping.errors import FetchError, ParseError
from newshub.scraping.feed_extractor import FeedExtractor, html_to_text
from newshub.scraping.fetcher import Fetcher
from newshub.scraping.schemas import ContentType
from newshub.sources.schemas import ExtractorKind, Source

FEED_XML = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0"
     xmlns:media="http://search.yahoo.com/mrss/"
     xmlns:content="http://purl.org/rss/1.0/modules/content/">
  <channel>
    <title>AL.com Baldwin County</title>
    <link>https://www.al.com/baldwin</link>
    <item>
      <title>Orange Beach council approves new marina</title>
      <link>https://www.al.com/news/2024/06/marina.html</link>
      <description>&lt;p&gt;The council voted &lt;b&gt;5-0&lt;/b&gt; on Tuesday.&lt;/p&gt;</description>
      <content:encoded><![CDATA[<p>Full story about the marina vote.</p><script>x()</script>]]></content:encoded>
      <author>jdoe@al.com (Jane Doe)</author>
      <pubDate>Tue, 04 Jun 2024 15:00:00 GMT</pubDate>
      <category>Local Government</category>
      <media:content url="https://www.al.com/img/marina.jpg" medium="image" />
    </item>
    <item>
      <title>Entry without a link</title>
      <description>Nothing to link to.</description>
    </item>
    <item>
      <title>Gulf Shores beach reopens after cleanup</title>
      <link>https://www.al.com/news/2024/06/beach.html</link>
      <description>Crews finished overnight.</description>
      <enclosure url="https://www.al.com/img/beach.jpg" type="image/jpeg" length="1000" />
    </item>
  </channel>
</rss>
"""


@pytest.fixture
def fetcher() -> Fetcher:
    return Fetcher(delay_seconds=0)


class TestHtmlToText:
    def test_strips_tags_and_scripts(self) -> None:
        assert html_to_text("<p>Hello <b>Foley</b></p><script>bad()</script>") == "Hello Foley"

    def test_unescapes_entities(self) -> None:
        assert html_to_text("Fish &amp; Chips") == "Fish & Chips"

    def test_empty(self) -> None:
        assert html_to_text(None) == ""


class TestFeedExtractor:
    def test_kind_and_feed_url(self, feed_source: Source) -> None:
        extractor = FeedExtractor(feed_source)
        assert extractor.kind == ExtractorKind.RSS
        assert extractor.feed_url == feed_source.feed_url

    def test_feed_url_falls_back_to_source_url(self) -> None:
        source = Source(name="Mobile Register", url="https://example.com/rss", scraper_type="rss")
        assert FeedExtractor(source).feed_url == "https://example.com/rss"

    @pytest.mark.asyncio
    @respx.mock
    async def test_extracts_valid_entries(self, feed_source: Source, fetcher: Fetcher) -> None:
        respx.get(feed_source.feed_url).mock(return_value=httpx.Response(200, text=FEED_XML))

        extractor = FeedExtractor(feed_source)
        async with fetcher:
            items = await extractor.extract(fetcher)

        assert [i.title for i in items] == [
            "Orange Beach council approves new marina",
            "Gulf Shores beach reopens after cleanup",
        ]
        first = items[0]
        assert first.url == "https://www.al.com/news/2024/06/marina.html"
        assert first.excerpt == "The council voted 5-0 on Tuesday."
        assert first.content == "Full story about the marina vote."
        assert first.published_at == datetime(2024, 6, 4, 15, 0, tzinfo=timezone.utc)
        assert first.image_url == "https://www.al.com/img/marina.jpg"
        assert "Local Government" in first.extra_tags
        assert first.content_type == ContentType.NEWS

        second = items[1]
        assert second.image_url == "https://www.al.com/img/beach.jpg"
        assert second.content == "Crews finished overnight."
        assert second.published_at is None

    @pytest.mark.asyncio
    @respx.mock
    async def test_malformed_entry_counted_not_fatal(
        self, feed_source: Source, fetcher: Fetcher
    ) -> None:
        respx.get(feed_source.feed_url).mock(return_value=httpx.Response(200, text=FEED_XML))

        extractor = FeedExtractor(feed_source)
        async with fetcher:
            await extractor.extract(fetcher)

        assert extractor.stats.blocks_seen == 3
        assert extractor.stats.errors == 1
        assert extractor.stats.items_extracted == 2

    @pytest.mark.asyncio
    @respx.mock
    async def test_skips_already_stored_urls(self, feed_source: Source, fetcher: Fetcher) -> None:
        respx.get(feed_source.feed_url).mock(return_value=httpx.Response(200, text=FEED_XML))

        store = AsyncMock()
        store.find_by_url = AsyncMock(
            side_effect=lambda url: {"id": 9} if url.endswith("marina.html") else None
        )
        extractor = FeedExtractor(feed_source, store=store)
        async with fetcher:
            items = await extractor.extract(fetcher)

        assert [i.url for i in items] == ["https://www.al.com/news/2024/06/beach.html"]
        assert extractor.stats.items_skipped == 1

    @pytest.mark.asyncio
    @respx.mock
    async def test_refresh_existing_bypasses_lookup(
        self, feed_source: Source, fetcher: Fetcher
    ) -> None:
        respx.get(feed_source.feed_url).mock(return_value=httpx.Response(200, text=FEED_XML))

        store = AsyncMock()
        store.find_by_url = AsyncMock(return_value={"id": 9})
        extractor = FeedExtractor(feed_source, store=store, refresh_existing=True)
        async with fetcher:
            items = await extractor.extract(fetcher)

        assert len(items) == 2
        store.find_by_url.assert_not_awaited()

    @pytest.mark.asyncio
    @respx.mock
    async def test_fetch_failure_propagates(self, feed_source: Source, fetcher: Fetcher) -> None:
        respx.get(feed_source.feed_url).mock(return_value=httpx.Response(500))

        async with fetcher:
            with pytest.raises(FetchError):
                await FeedExtractor(feed_source).extract(fetcher)

    @pytest.mark.asyncio
    @respx.mock
    async def test_unparseable_feed_raises(self, feed_source: Source, fetcher: Fetcher) -> None:
        respx.get(feed_source.feed_url).mock(
            return_value=httpx.Response(200, text="Service temporarily unavailable")
        )

        async with fetcher:
            with pytest.raises(ParseError):
                await FeedExtractor(feed_source).extract(fetcher)
