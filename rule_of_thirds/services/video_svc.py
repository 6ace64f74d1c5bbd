from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any

import httpx

from rule_of_thirds.core.config import HTTP_TIMEOUT_SECONDS, Settings
from rule_of_thirds.core.exceptions import VideoAPIError
from rule_of_thirds.core.resilience import retry_with_backoff
from rule_of_thirds.domain.models import RawItem, SignalKind, SourceBatch
from rule_of_thirds.utils import parse_timestamp

logger = logging.getLogger(__name__)


def simulated_videos(topic: str, focus: str | None, now: datetime) -> list[RawItem]:
    """Deterministic stand-in videos used when no video API key is configured."""
    audience = focus or "Professionals"
    return [
        RawItem(
            kind=SignalKind.VIDEO_ITEM,
            title=f"{topic} Explained: Complete Guide for {audience}",
            content=(
                f"Comprehensive tutorial covering {topic} implementation, best practices, and real-world "
                f"case studies. Perfect for teams looking to adopt {topic} solutions."
            ),
            source_label="Tech Education Hub",
            url="https://www.youtube.com/watch?v=sim123456789",
            published_at=now - timedelta(days=5),
            metadata={"simulated": True, "channel": "Tech Education Hub"},
        ),
        RawItem(
            kind=SignalKind.VIDEO_ITEM,
            title=f"Industry Leaders Discuss {topic} Future Trends",
            content=(
                f"Panel discussion featuring CTOs from leading companies sharing insights on {topic} "
                "evolution and market opportunities."
            ),
            source_label="Industry Insights",
            url="https://www.youtube.com/watch?v=sim987654321",
            published_at=now - timedelta(days=7),
            metadata={"simulated": True, "channel": "Industry Insights"},
        ),
    ]


class VideoService:
    """YouTube Data API search client with a simulated fallback when unconfigured."""

    BASE_URL = "https://www.googleapis.com/youtube/v3/search"

    def __init__(self, settings: Settings, max_results: int = 10) -> None:
        self.settings = settings
        self.max_results = max(1, min(max_results, 25))

    @retry_with_backoff()
    async def _request(self, params: dict[str, Any]) -> dict[str, Any]:
        async with httpx.AsyncClient(timeout=HTTP_TIMEOUT_SECONDS) as client:
            response = await client.get(self.BASE_URL, params=params)
            response.raise_for_status()
            return response.json()

    async def search(self, topic: str, focus: str | None = None) -> list[RawItem]:
        """
        Search videos by relevance.

        Raises:
            VideoAPIError: If the request fails.
        """
        query = f"{topic} {focus}" if focus else topic
        params = {
            "part": "snippet",
            "q": query,
            "type": "video",
            "order": "relevance",
            "maxResults": self.max_results,
            "key": self.settings.YOUTUBE_API_KEY,
        }
        try:
            payload = await self._request(params)
        except httpx.HTTPStatusError as exc:
            raise VideoAPIError(
                f"YouTube API request failed with status {exc.response.status_code}",
                status_code=exc.response.status_code,
            ) from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise VideoAPIError(f"YouTube API request failed: {exc}") from exc

        items: list[RawItem] = []
        for entry in payload.get("items", []) if isinstance(payload, dict) else []:
            snippet = entry.get("snippet") or {}
            video_id = (entry.get("id") or {}).get("videoId")
            items.append(
                RawItem(
                    kind=SignalKind.VIDEO_ITEM,
                    title=snippet.get("title"),
                    content=snippet.get("description") or "",
                    source_label=snippet.get("channelTitle") or "YouTube",
                    url=f"https://www.youtube.com/watch?v={video_id}" if video_id else None,
                    published_at=parse_timestamp(snippet.get("publishedAt")),
                    metadata={"channel": snippet.get("channelTitle"), "video_id": video_id},
                )
            )
        return items

    async def fetch(self, topic: str, focus: str | None, now: datetime) -> SourceBatch:
        if not self.settings.YOUTUBE_API_KEY:
            logger.info("No YouTube API key, using simulated video data")
            return SourceBatch(
                name="video", items=simulated_videos(topic, focus, now), label="Simulated YouTube Data", simulated=True
            )
        items = await self.search(topic, focus)
        return SourceBatch(name="video", items=items, label="YouTube API")
