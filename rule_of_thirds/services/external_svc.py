from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from rule_of_thirds.core.config import DEFAULT_RSS_FEEDS, Settings
from rule_of_thirds.domain.models import CollectorKind, CollectorStatus, Signal, SourceBatch
from rule_of_thirds.domain.scoring import MARKET_WEIGHTS
from rule_of_thirds.services.base import BaseCollector, SubSource
from rule_of_thirds.services.feed_svc import FeedService
from rule_of_thirds.services.news_svc import NewsService
from rule_of_thirds.services.video_svc import VideoService


class ExternalCollectorConfig(BaseModel):
    enable_news: bool = True
    enable_video: bool = True
    enable_feeds: bool = True
    feed_urls: list[str] = Field(default_factory=lambda: list(DEFAULT_RSS_FEEDS))
    max_results: int = Field(default=20, ge=1)

    @classmethod
    def from_settings(cls, settings: Settings) -> ExternalCollectorConfig:
        return cls(feed_urls=list(settings.RSS_FEEDS), max_results=settings.EXTERNAL_MAX_RESULTS)


class ExternalSignalsCollector(BaseCollector):
    """Market signals from news search, video search and syndication feeds."""

    kind = CollectorKind.EXTERNAL
    weights = MARKET_WEIGHTS
    default_max_results = 20

    def __init__(
        self,
        settings: Settings,
        config: ExternalCollectorConfig | None = None,
        *,
        news_service: NewsService | None = None,
        video_service: VideoService | None = None,
        feed_service: FeedService | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.config = config or ExternalCollectorConfig.from_settings(settings)
        super().__init__(max_results=self.config.max_results, logger=logger)
        self.news_service = news_service or NewsService(settings, page_size=self.config.max_results)
        self.video_service = video_service or VideoService(settings, max_results=max(1, self.config.max_results // 2))
        self.feed_service = feed_service or FeedService(self.config.feed_urls)

    def _sub_sources(self, topic: str, focus: str | None, now: datetime) -> list[SubSource]:
        sources: list[SubSource] = []
        if self.config.enable_news:
            sources.append(SubSource("news", lambda: self.news_service.fetch(topic, focus, now)))
        if self.config.enable_video:
            sources.append(SubSource("video", lambda: self.video_service.fetch(topic, focus, now)))
        if self.config.enable_feeds:
            sources.append(SubSource("feeds", lambda: self.feed_service.fetch(topic, focus, now)))
        return sources

    def _summarise(
        self,
        topic: str,
        focus: str | None,
        batches: list[SourceBatch],
        ranked: list[Signal],
    ) -> dict[str, Any]:
        counts = Counter(signal.kind.value for signal in ranked)
        top_types = ", ".join(f"{kind} ({count})" for kind, count in counts.most_common(5))
        successful = sum(1 for batch in batches if batch.status == CollectorStatus.SUCCESS)
        return {"message": f"{successful}/{len(batches)} sources succeeded" + (f"; top types: {top_types}" if top_types else "")}
