from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any

import feedparser
import httpx
from bs4 import BeautifulSoup

from rule_of_thirds.core.config import FEED_ITEM_LIMIT, HTTP_TIMEOUT_SECONDS, USER_AGENT
from rule_of_thirds.core.exceptions import FeedError
from rule_of_thirds.domain.models import RawItem, SignalKind, SourceBatch

logger = logging.getLogger(__name__)


def html_to_text(markup: str) -> str:
    """Strip tags from a feed summary, collapsing whitespace."""
    if not markup or "<" not in markup:
        return (markup or "").strip()
    text = BeautifulSoup(markup, "html.parser").get_text(" ")
    return " ".join(text.split())


def _entry_timestamp(entry: Any) -> datetime | None:
    for key in ("published_parsed", "updated_parsed"):
        parsed = entry.get(key)
        if parsed:
            return datetime(*parsed[:6], tzinfo=timezone.utc)
    return None


class FeedService:
    """Fetch syndication feeds concurrently and map their entries to feed items."""

    def __init__(self, feed_urls: list[str], item_limit: int = FEED_ITEM_LIMIT) -> None:
        self.feed_urls = list(feed_urls)
        self.item_limit = item_limit

    async def fetch_feed(self, client: httpx.AsyncClient, feed_url: str) -> list[RawItem]:
        """
        Fetch and parse one feed.

        Raises:
            FeedError: If the feed cannot be fetched or parsed.
        """
        try:
            response = await client.get(feed_url)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise FeedError(f"RSS feed failed: {feed_url} - {exc}", feed_url=feed_url) from exc

        feed = feedparser.parse(response.text)
        if feed.bozo and not feed.entries:
            raise FeedError(f"Feed parse error for {feed_url}: {feed.bozo_exception}", feed_url=feed_url)

        feed_title = feed.feed.get("title") or feed_url
        items: list[RawItem] = []
        for entry in feed.entries[: self.item_limit]:
            summary = entry.get("summary") or entry.get("description") or ""
            items.append(
                RawItem(
                    kind=SignalKind.FEED_ARTICLE,
                    title=entry.get("title"),
                    content=html_to_text(summary),
                    source_label=feed_title,
                    url=entry.get("link"),
                    published_at=_entry_timestamp(entry),
                    metadata={
                        "feed_url": feed_url,
                        "categories": [tag.get("term") for tag in entry.get("tags", []) if tag.get("term")],
                    },
                )
            )
        return items

    async def fetch(self, topic: str, focus: str | None, now: datetime) -> SourceBatch:
        """
        Fetch every configured feed; one failing feed is skipped.

        Raises:
            FeedError: If every configured feed failed.
        """
        if not self.feed_urls:
            return SourceBatch(name="feeds", label="0 RSS feeds")

        headers = {"User-Agent": USER_AGENT}
        async with httpx.AsyncClient(timeout=HTTP_TIMEOUT_SECONDS, follow_redirects=True, headers=headers) as client:
            outcomes = await asyncio.gather(
                *(self.fetch_feed(client, url) for url in self.feed_urls),
                return_exceptions=True,
            )

        items: list[RawItem] = []
        failures: list[str] = []
        for feed_url, outcome in zip(self.feed_urls, outcomes):
            if isinstance(outcome, BaseException):
                logger.warning("RSS feed failed: %s - %s", feed_url, outcome)
                failures.append(str(outcome))
                continue
            items.extend(outcome)

        if len(failures) == len(self.feed_urls):
            raise FeedError(f"All {len(failures)} RSS feeds failed: {failures[-1]}")

        healthy = len(self.feed_urls) - len(failures)
        return SourceBatch(name="feeds", items=items, label=f"{healthy} RSS feeds")
