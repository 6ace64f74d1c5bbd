"""
Tests for the external signals collector and its news, video and feed sub-sources.
"""
from __future__ import annotations

import httpx
import pytest
import respx

from rule_of_thirds.core.exceptions import FeedError
from rule_of_thirds.domain.models import CollectorStatus, SignalKind
from rule_of_thirds.services.external_svc import ExternalCollectorConfig, ExternalSignalsCollector
from rule_of_thirds.services.feed_svc import FeedService, html_to_text
from rule_of_thirds.services.news_svc import NewsService
from rule_of_thirds.services.video_svc import VideoService

FEED_URL = "https://feeds.example.com/product.xml"
BROKEN_FEED_URL = "https://unreachable.example.com/rss"

RSS_BODY = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
  <channel>
    <title>Product Weekly</title>
    <item>
      <title>Checkout flow teardown</title>
      <link>https://blog.example.com/checkout</link>
      <description>&lt;p&gt;A detailed look at how the best teams design their &lt;b&gt;checkout flow&lt;/b&gt; for conversion.&lt;/p&gt;</description>
      <pubDate>Thu, 13 Mar 2025 10:00:00 GMT</pubDate>
      <category>ux</category>
    </item>
    <item>
      <title>Unrelated</title>
      <description>Gardening tips.</description>
    </item>
  </channel>
</rss>
"""


def _collector(settings, **config) -> ExternalSignalsCollector:
    return ExternalSignalsCollector(settings, ExternalCollectorConfig(**config))


@pytest.mark.asyncio
async def test_no_credentials_returns_simulated_signals(settings):
    collector = _collector(settings, feed_urls=[])

    result = await collector.collect("checkout flow")

    assert result.status == CollectorStatus.SUCCESS
    assert result.item_count == 5
    assert all(signal.is_simulated for signal in result.signals)
    assert {source.name for source in result.sources} == {"news", "video", "feeds"}
    assert all(source.status == CollectorStatus.SUCCESS for source in result.sources)


@pytest.mark.asyncio
async def test_signals_are_ranked_and_truncated(settings):
    collector = _collector(settings, feed_urls=[], max_results=3)

    result = await collector.collect("checkout flow")

    scores = [signal.combined_score for signal in result.signals]
    assert scores == sorted(scores, reverse=True)
    assert result.item_count == 3
    assert result.total_candidates == 5


@pytest.mark.asyncio
@respx.mock
async def test_unreachable_feed_only_fails_the_feed_sub_source(settings):
    respx.get(BROKEN_FEED_URL).mock(side_effect=httpx.ConnectError("unreachable"))
    collector = _collector(settings, feed_urls=[BROKEN_FEED_URL])

    result = await collector.collect("checkout flow")

    assert result.status == CollectorStatus.SUCCESS
    assert result.item_count == 5
    assert {signal.kind for signal in result.signals} == {SignalKind.NEWS_ARTICLE, SignalKind.VIDEO_ITEM}
    feeds = next(source for source in result.sources if source.name == "feeds")
    assert feeds.status == CollectorStatus.FAILED
    assert "unreachable" in feeds.error


@pytest.mark.asyncio
@respx.mock
async def test_one_failing_feed_is_skipped(settings):
    respx.get(FEED_URL).mock(return_value=httpx.Response(200, text=RSS_BODY))
    respx.get(BROKEN_FEED_URL).mock(return_value=httpx.Response(500))
    collector = _collector(settings, enable_news=False, enable_video=False, feed_urls=[FEED_URL, BROKEN_FEED_URL])

    result = await collector.collect("checkout flow")

    assert result.status == CollectorStatus.SUCCESS
    assert result.item_count == 1
    signal = result.signals[0]
    assert signal.kind == SignalKind.FEED_ARTICLE
    assert signal.source_label == "Product Weekly"
    assert "<b>" not in signal.content
    assert signal.published_at is not None
    assert result.sources[0].label == "1 RSS feeds"


@pytest.mark.asyncio
@respx.mock
async def test_feed_service_raises_when_every_feed_fails(now):
    respx.get(BROKEN_FEED_URL).mock(side_effect=httpx.ConnectError("down"))

    with pytest.raises(FeedError):
        await FeedService([BROKEN_FEED_URL]).fetch("checkout flow", None, now)


@pytest.mark.asyncio
@respx.mock
async def test_news_api_failure_falls_back_to_simulated(settings, now):
    settings.NEWS_API_KEY = "news-key"
    respx.get(NewsService.BASE_URL).mock(return_value=httpx.Response(401, json={"status": "error", "message": "bad key"}))

    batch = await NewsService(settings).fetch("checkout flow", None, now)

    assert batch.simulated is True
    assert batch.count == 3


@pytest.mark.asyncio
@respx.mock
async def test_news_api_articles_are_mapped(settings):
    settings.NEWS_API_KEY = "news-key"
    respx.get(NewsService.BASE_URL).mock(
        return_value=httpx.Response(
            200,
            json={
                "status": "ok",
                "articles": [
                    {
                        "title": "Checkout flow lessons",
                        "description": "What we learned redesigning the checkout flow.",
                        "url": "https://news.example.com/1",
                        "publishedAt": "2025-03-13T09:00:00Z",
                        "source": {"name": "Example News"},
                    }
                ],
            },
        )
    )

    items = await NewsService(settings).search("checkout flow")

    assert len(items) == 1
    assert items[0].source_label == "Example News"
    assert items[0].published_at.year == 2025
    assert not items[0].is_simulated


@pytest.mark.asyncio
@respx.mock
async def test_video_api_error_fails_only_the_video_batch(settings):
    settings.YOUTUBE_API_KEY = "yt-key"
    respx.get(VideoService.BASE_URL).mock(return_value=httpx.Response(403, json={"error": "quota"}))
    collector = _collector(settings, feed_urls=[])

    result = await collector.collect("checkout flow")

    assert result.status == CollectorStatus.SUCCESS
    assert result.item_count == 3
    video = next(source for source in result.sources if source.name == "video")
    assert video.status == CollectorStatus.FAILED


@pytest.mark.asyncio
async def test_empty_topic_is_a_failed_result(settings):
    result = await _collector(settings, feed_urls=[]).collect("   ")

    assert result.status == CollectorStatus.FAILED
    assert result.signals == []
    assert "Topic is required" in result.error_message


def test_html_to_text_strips_markup():
    assert html_to_text("<p>Hello <b>world</b></p>") == "Hello world"
    assert html_to_text("plain") == "plain"
