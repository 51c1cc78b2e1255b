"""Tests for the Twitter mirror search extractor."""

from datetime import datetime, timezone

import httpx
import pytest
import respx

from newshub.scraping.errors import FetchError, ScrapeError
from newshub.scraping.fetcher import Fetcher
from newshub.scraping.mirror_extractor import (
    MirrorExtractor,
    build_search_url,
    parse_post_date,
)
from newshub.scraping.schemas import Category, ContentType
from newshub.sources.schemas import ExtractorKind, Source

PRIMARY = "https://nitter.one"
FALLBACK = "https://nitter.two"

LONG_POST = (
    "Traffic is backed up on the Foley Beach Express after this morning's crash, "
    "expect delays heading south toward the beach #BaldwinCounty #traffic"
)

SEARCH_HTML = f"""
<div class="timeline">
  <div class="timeline-item">
    <a class="tweet-link" href="/gulfcoastfan/status/1798#m"></a>
    <a class="username" href="/gulfcoastfan">@gulfcoastfan</a>
    <span class="tweet-date"><a href="/gulfcoastfan/status/1798" title="Jun 4, 2024 · 3:12 PM UTC">1h</a></span>
    <div class="tweet-content">Sunset over Orange Beach tonight #OrangeBeach</div>
    <div class="attachment image"><img src="/pic/media%2Fsunset.jpg"></div>
  </div>
  <div class="timeline-item">
    <a class="tweet-link" href="/i/web/status/1799"></a>
    <div class="tweet-content">{LONG_POST}</div>
  </div>
  <div class="timeline-item">
    <a class="tweet-link" href="/someone/status/1800"></a>
    <div class="tweet-content">ok</div>
  </div>
  <div class="timeline-item">
    <div class="tweet-content">A post with no permalink at all</div>
  </div>
</div>
"""


@pytest.fixture
def fetcher() -> Fetcher:
    return Fetcher(delay_seconds=0)


def _search(instance: str) -> str:
    return build_search_url(instance, "BaldwinCounty")


class TestHelpers:
    def test_build_search_url(self) -> None:
        assert (
            build_search_url("https://nitter.net/", "BaldwinCounty")
            == "https://nitter.net/search?f=tweets&q=%23BaldwinCounty"
        )

    def test_parse_post_date(self) -> None:
        assert parse_post_date("Jun 4, 2024 · 3:12 PM UTC") == datetime(
            2024, 6, 4, 15, 12, tzinfo=timezone.utc
        )

    def test_parse_post_date_fallback(self) -> None:
        assert parse_post_date("2024-06-04T15:12:00Z") == datetime(
            2024, 6, 4, 15, 12, tzinfo=timezone.utc
        )
        assert parse_post_date(None) is None


class TestConstruction:
    def test_requires_hashtag(self) -> None:
        source = Source(name="No tag", url="https://twitter.com", scraper_type="mirror")
        with pytest.raises(ValueError, match="hashtag"):
            MirrorExtractor(source, instances=[PRIMARY])

    def test_strips_hash_and_trailing_slash(self) -> None:
        source = Source(
            name="Tagged", url="https://twitter.com", scraper_type="mirror", hashtag="#Foley"
        )
        extractor = MirrorExtractor(source, instances=[PRIMARY + "/"])
        assert extractor.hashtag == "Foley"
        assert extractor.instances == [PRIMARY]
        assert extractor.kind == ExtractorKind.MIRROR


class TestMirrorExtractor:
    @pytest.mark.asyncio
    @respx.mock
    async def test_extracts_posts(self, mirror_source: Source, fetcher: Fetcher) -> None:
        respx.get(_search(PRIMARY)).mock(return_value=httpx.Response(200, text=SEARCH_HTML))

        extractor = MirrorExtractor(mirror_source, instances=[PRIMARY, FALLBACK])
        async with fetcher:
            items = await extractor.extract(fetcher)

        assert len(items) == 2
        assert extractor.stats.items_filtered == 2

        first = items[0]
        assert first.title == "Sunset over Orange Beach tonight #OrangeBeach"
        assert first.url == "https://twitter.com/gulfcoastfan/status/1798#m"
        assert first.author == "@gulfcoastfan"
        assert first.published_at == datetime(2024, 6, 4, 15, 12, tzinfo=timezone.utc)
        assert first.image_url == f"{PRIMARY}/pic/media%2Fsunset.jpg"
        assert first.category == Category.SOCIAL
        assert first.content_type == ContentType.SOCIAL
        assert first.platform == "twitter"
        assert first.extra_tags == ["#OrangeBeach", "#BaldwinCounty"]

    @pytest.mark.asyncio
    @respx.mock
    async def test_long_post_title_and_web_intent_url(
        self, mirror_source: Source, fetcher: Fetcher
    ) -> None:
        respx.get(_search(PRIMARY)).mock(return_value=httpx.Response(200, text=SEARCH_HTML))

        async with fetcher:
            items = await MirrorExtractor(mirror_source, instances=[PRIMARY]).extract(fetcher)

        post = items[1]
        assert post.title == LONG_POST[:100] + "..."
        assert post.excerpt == LONG_POST
        assert post.url == "https://twitter.com/status/1799"
        assert post.author == "Unknown"
        assert post.published_at is None
        assert post.extra_tags == ["#BaldwinCounty", "#traffic"]

    @pytest.mark.asyncio
    @respx.mock
    async def test_failover_resolves_media_against_serving_instance(
        self, mirror_source: Source, fetcher: Fetcher
    ) -> None:
        primary = respx.get(_search(PRIMARY)).mock(return_value=httpx.Response(503))
        fallback = respx.get(_search(FALLBACK)).mock(
            return_value=httpx.Response(200, text=SEARCH_HTML)
        )

        extractor = MirrorExtractor(mirror_source, instances=[PRIMARY, FALLBACK])
        async with fetcher:
            items = await extractor.extract(fetcher)

        assert primary.called and fallback.called
        assert extractor.active_instance == FALLBACK
        assert items[0].image_url == f"{FALLBACK}/pic/media%2Fsunset.jpg"

    @pytest.mark.asyncio
    @respx.mock
    async def test_all_instances_fail(self, mirror_source: Source, fetcher: Fetcher) -> None:
        respx.get(_search(PRIMARY)).mock(return_value=httpx.Response(503))
        respx.get(_search(FALLBACK)).mock(side_effect=httpx.ConnectError("down"))

        async with fetcher:
            with pytest.raises(FetchError) as exc_info:
                await MirrorExtractor(mirror_source, instances=[PRIMARY, FALLBACK]).extract(
                    fetcher
                )

        assert FALLBACK in exc_info.value.url

    @pytest.mark.asyncio
    async def test_empty_instance_list_raises(
        self, mirror_source: Source, fetcher: Fetcher
    ) -> None:
        extractor = MirrorExtractor(mirror_source, instances=[PRIMARY])
        extractor.instances = []

        async with fetcher:
            with pytest.raises(ScrapeError, match="No mirror instances configured"):
                await extractor.extract(fetcher)
