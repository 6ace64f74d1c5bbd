from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any

import httpx

from rule_of_thirds.core.config import HTTP_TIMEOUT_SECONDS, USER_AGENT, Settings
from rule_of_thirds.core.exceptions import NewsAPIError
from rule_of_thirds.core.resilience import retry_with_backoff
from rule_of_thirds.domain.models import RawItem, SignalKind, SourceBatch
from rule_of_thirds.utils import parse_timestamp

logger = logging.getLogger(__name__)


def simulated_news(topic: str, focus: str | None, now: datetime) -> list[RawItem]:
    """Deterministic stand-in articles used when the news API is unavailable."""
    area = focus or "related technologies"
    articles = [
        (
            f"Industry Analysis: {topic} Trends Reshape Market Landscape",
            f"Recent market analysis reveals significant shifts in {topic} adoption patterns. "
            f"Key industry players are investing heavily in {area} to capture emerging opportunities.",
            "Tech Industry Report",
            2,
        ),
        (
            f"Breaking: Major Investment in {topic} Solutions",
            f"Venture capital firms announce a $50M funding round for startups focusing on {topic} "
            "innovation, signalling strong market confidence.",
            "Business News Daily",
            1,
        ),
        (
            f"Research Report: Consumer Adoption of {topic} Accelerates",
            f"New consumer research indicates a 67% increase in {topic} adoption over the past quarter, "
            "driven by improved user experience and cost reduction.",
            "Market Research Weekly",
            3,
        ),
    ]
    return [
        RawItem(
            kind=SignalKind.NEWS_ARTICLE,
            title=title,
            content=content,
            source_label=source,
            url=f"https://example.com/news/{index}",
            published_at=now - timedelta(days=age_days),
            metadata={"simulated": True},
        )
        for index, (title, content, source, age_days) in enumerate(articles, 1)
    ]


class NewsService:
    """
    News search client (NewsAPI ``everything`` endpoint).

    Without an API key, or when the API fails, it returns simulated articles
    so the external collector always has a news contribution.
    """

    BASE_URL = "https://newsapi.org/v2/everything"

    def __init__(self, settings: Settings, page_size: int = 20) -> None:
        self.settings = settings
        self.page_size = min(page_size, 100)

    @retry_with_backoff()
    async def _request(self, params: dict[str, Any], headers: dict[str, str]) -> dict[str, Any]:
        async with httpx.AsyncClient(timeout=HTTP_TIMEOUT_SECONDS) as client:
            response = await client.get(self.BASE_URL, params=params, headers=headers)
            response.raise_for_status()
            return response.json()

    async def search(self, topic: str, focus: str | None = None) -> list[RawItem]:
        """
        Search recent English-language articles for the topic.

        Args:
            topic: Topic phrase, quoted in the query.
            focus: Optional focus phrase, ANDed into the query.

        Returns:
            Articles mapped to news items, newest first.

        Raises:
            NewsAPIError: If the request fails or the API reports an error.
        """
        query = f'"{topic}" AND "{focus}"' if focus else f'"{topic}"'
        params = {"q": query, "language": "en", "sortBy": "publishedAt", "pageSize": self.page_size}
        headers = {"X-Api-Key": self.settings.NEWS_API_KEY or "", "User-Agent": USER_AGENT}

        try:
            payload = await self._request(params, headers)
        except httpx.HTTPStatusError as exc:
            raise NewsAPIError(
                f"News API request failed with status {exc.response.status_code}",
                status_code=exc.response.status_code,
            ) from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise NewsAPIError(f"News API request failed: {exc}") from exc

        if not isinstance(payload, dict) or payload.get("status") != "ok":
            message = payload.get("message", "unexpected response") if isinstance(payload, dict) else "unexpected response"
            raise NewsAPIError(f"News API error: {message}")

        items: list[RawItem] = []
        for article in payload.get("articles", []):
            if not isinstance(article, dict):
                continue
            content = article.get("description") or article.get("content") or ""
            items.append(
                RawItem(
                    kind=SignalKind.NEWS_ARTICLE,
                    title=article.get("title"),
                    content=content,
                    source_label=(article.get("source") or {}).get("name") or "News API",
                    url=article.get("url"),
                    published_at=parse_timestamp(article.get("publishedAt")),
                    metadata={"author": article.get("author"), "image_url": article.get("urlToImage")},
                )
            )
        return items

    async def fetch(self, topic: str, focus: str | None, now: datetime) -> SourceBatch:
        """Return real articles when possible, simulated ones otherwise."""
        if not self.settings.NEWS_API_KEY:
            logger.info("No News API key, using simulated news data")
            return SourceBatch(name="news", items=simulated_news(topic, focus, now), label="Simulated News Data", simulated=True)
        try:
            items = await self.search(topic, focus)
        except NewsAPIError as exc:
            logger.warning("News API failed: %s, falling back to simulated data", exc)
            return SourceBatch(name="news", items=simulated_news(topic, focus, now), label="Simulated News Data", simulated=True)
        return SourceBatch(name="news", items=items, label="News API")
